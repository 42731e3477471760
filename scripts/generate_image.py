from __future__ import annotations

from imagegen_batch.cli import generate_main


if __name__ == "__main__":
    generate_main()
