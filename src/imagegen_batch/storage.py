from __future__ import annotations

from pathlib import Path
from typing import Iterable

import httpx

from .errors import ProviderError
from .images import decode_base64_image, image_dimensions, is_remote_url
from .report import render_summary_report
from .types import BatchSummary, ImageReference, RemoteImage, SavedImage

RESULTS_FILENAME = "batch_results.json"
REPORT_FILENAME = "summary_report.md"


class ResultStore:
    """Persist generated images and batch summaries under a results directory."""

    def __init__(self, base_dir: Path, http_client: httpx.Client | None = None) -> None:
        self.base_dir = Path(base_dir)
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(120.0), follow_redirects=True)
        self._owns_http = http_client is None

    def prepare(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _download(self, url: str) -> tuple[bytes, str | None]:
        response = self._http.get(url)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(f"Failed to download image {url}: {exc.response.status_code}") from exc
        return response.content, response.headers.get("content-type")

    def _write(self, filename: str, data: bytes) -> Path:
        path = self.base_dir / filename
        path.write_bytes(data)
        return path

    def discard(self, filenames: Iterable[str]) -> None:
        """Remove previously saved files; missing ones are ignored."""
        for filename in filenames:
            (self.base_dir / filename).unlink(missing_ok=True)

    def save_image(self, image: ImageReference, filename: str) -> SavedImage:
        """
        Resolve an image reference to bytes and write it as ``filename``.

        Remote handles carrying a content type replace the extension of
        ``filename`` with the one implied by that content type.
        """
        if isinstance(image, RemoteImage):
            data, header_type = self._download(image.url)
            content_type = image.content_type or header_type
            extension = image.extension
            if extension:
                filename = str(Path(filename).with_suffix(f".{extension}"))
            self._write(filename, data)
            dimensions = (
                f"{image.width}x{image.height}" if image.width and image.height else image_dimensions(data)
            )
            return SavedImage(
                filename=filename,
                source_type="remote_file",
                size=len(data),
                content_type=content_type,
                dimensions=dimensions,
                url=image.url,
            )

        if isinstance(image, (bytes, bytearray)):
            data = bytes(image)
            self._write(filename, data)
            return SavedImage(
                filename=filename,
                source_type="bytes",
                size=len(data),
                dimensions=image_dimensions(data),
            )

        if isinstance(image, str) and is_remote_url(image):
            data, content_type = self._download(image)
            self._write(filename, data)
            return SavedImage(
                filename=filename,
                source_type="url",
                size=len(data),
                content_type=content_type,
                dimensions=image_dimensions(data),
                url=image,
            )

        if isinstance(image, str):
            data = decode_base64_image(image)
            self._write(filename, data)
            return SavedImage(
                filename=filename,
                source_type="base64",
                size=len(data),
                dimensions=image_dimensions(data),
            )

        raise ProviderError(f"Unknown image data format: {type(image).__name__}")

    def write_summary(self, summary: BatchSummary, title: str) -> tuple[Path, Path]:
        """Write the JSON document and Markdown report for ``summary``."""
        json_path = self.base_dir / RESULTS_FILENAME
        json_path.write_text(summary.to_json(), encoding="utf-8")
        report_path = self.base_dir / REPORT_FILENAME
        report_path.write_text(render_summary_report(summary, title), encoding="utf-8")
        return json_path, report_path

    def __enter__(self) -> "ResultStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()
