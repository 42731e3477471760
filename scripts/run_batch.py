from __future__ import annotations

from imagegen_batch.cli import batch_main


if __name__ == "__main__":
    batch_main()
