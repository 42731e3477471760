from __future__ import annotations

import time
from typing import Any, Callable, Mapping

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn, TimeRemainingColumn

from ..clients.base import ImageClient
from ..images import image_to_data_url
from ..presets import ModelPreset
from ..report import truncate
from ..storage import ResultStore
from ..types import BatchItemOutcome, BatchSummary, SavedImage
from .prompt_plan import BatchEntry, BatchPlan


class BatchRunner:
    """Run one adapter call per batch entry and aggregate the outcomes."""

    def __init__(
        self,
        client: ImageClient,
        plan: BatchPlan,
        store: ResultStore,
        *,
        preset: ModelPreset | None = None,
        options: Mapping[str, Any] | None = None,
        delay_seconds: float = 1.0,
        image_base_url: str | None = None,
        console: Console | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._preset = preset or client.preset
        self._plan = plan
        self._store = store
        self._options = dict(self._preset.batch_options if options is None else options)
        self._delay = delay_seconds
        self._image_base_url = image_base_url.rstrip("/") if image_base_url else None
        self._console = console or Console()
        self._sleep = sleep

    @property
    def mode(self) -> str:
        return "edit" if self._plan.image_count is not None else "generate"

    @property
    def title(self) -> str:
        action = "Editing" if self.mode == "edit" else "Generation"
        return f"{self._preset.display_name} Batch Image {action} Report"

    def _reference_for(self, entry: BatchEntry) -> str | None:
        if entry.image_path is None:
            return None
        if self._image_base_url:
            return f"{self._image_base_url}/{entry.image_path.name}"
        return image_to_data_url(entry.image_path)

    def _filename(self, entry: BatchEntry, position: int) -> str:
        extension = self._preset.extension
        if entry.image_path is not None:
            return f"edit_{entry.index:02d}_{entry.image_path.stem}_result_{position}.{extension}"
        return f"prompt_{entry.index:02d}_image_{position}.{extension}"

    def _run_item(self, entry: BatchEntry) -> BatchItemOutcome:
        started = time.perf_counter()
        saved: list[SavedImage] = []
        try:
            result = self._client.generate(entry.prompt, self._reference_for(entry), self._options)
            for position, image in enumerate(result.images, start=1):
                saved.append(self._store.save_image(image, self._filename(entry, position)))
        except Exception as exc:  # noqa: BLE001 - a failed item must not stop the batch
            wall_clock = time.perf_counter() - started
            message = str(exc) or type(exc).__name__
            # a failed item leaves no files behind
            self._store.discard(image.filename for image in saved)
            self._console.print(f"[red]Error processing {self.mode} {entry.index}:[/red] {escape(message)}")
            return BatchItemOutcome(
                index=entry.index,
                prompt=entry.prompt,
                reference_image=entry.image_name,
                success=False,
                error=message,
                wall_clock_time=wall_clock,
            )

        wall_clock = time.perf_counter() - started
        self._console.print(
            f"[green]Generated {len(saved)} image(s)[/green] for {self.mode} {entry.index} "
            f"in {wall_clock:.2f}s"
        )
        return BatchItemOutcome(
            index=entry.index,
            prompt=entry.prompt,
            reference_image=entry.image_name,
            success=True,
            execution_time=result.model_execution_time or wall_clock,
            wall_clock_time=wall_clock,
            images_generated=len(saved),
            saved_images=saved,
            metadata={"model_name": result.model_name, **result.mutable_metadata()},
        )

    def run(self) -> BatchSummary:
        """Process every entry sequentially, then persist the JSON and Markdown summaries."""
        if self._plan.is_truncated:
            self._console.print(
                f"[yellow]Warning:[/yellow] {self._plan.prompt_count} prompts but "
                f"{self._plan.image_count} images. Processing {len(self._plan)} pairs."
            )
        self._store.prepare()

        outcomes: list[BatchItemOutcome] = []
        started = time.perf_counter()
        total = len(self._plan)
        with Progress(
            SpinnerColumn(),
            TextColumn(f"[bold]{self._preset.name}[/bold]"),
            TextColumn("{task.description}"),
            TimeElapsedColumn(),
            TimeRemainingColumn(),
            console=self._console,
            transient=True,
        ) as progress:
            task_id = progress.add_task("queued", total=total)
            for entry in self._plan.entries:
                progress.update(task_id, description=f"{entry.index}/{total}", advance=0)
                source = f" ({escape(entry.image_name)})" if entry.image_name else ""
                self._console.print(
                    f"Processing {self.mode} {entry.index}/{total}{source}: \"{escape(truncate(entry.prompt, 80))}\""
                )
                outcomes.append(self._run_item(entry))
                progress.advance(task_id)
                self._sleep(self._delay)

        summary = BatchSummary.from_outcomes(
            provider=self._preset.provider,
            model=self._preset.display_name,
            mode=self.mode,
            outcomes=outcomes,
            wall_clock_time=time.perf_counter() - started,
        )
        json_path, report_path = self._store.write_summary(summary, self.title)

        self._console.print(
            f"[green]Batch completed:[/green] {summary.successful_items}/{summary.total_items} successful "
            f"({summary.success_rate:.1f}%)"
        )
        self._console.print(f"[green]Results saved to[/green] {self._store.base_dir}")
        self._console.print(f"Detailed report: {json_path}")
        self._console.print(f"Summary report: {report_path}")
        return summary
