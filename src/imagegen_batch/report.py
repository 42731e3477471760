from __future__ import annotations

from .types import BatchItemOutcome, BatchSummary

_LABELS = {
    "generate": ("Prompt", "prompts", "prompt", "generations"),
    "edit": ("Edit", "edits", "edit", "edits"),
}


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


def _format_size(size: int | None) -> str:
    if not size:
        return "unknown size"
    return f"{size / 1024:.1f}KB"


def _outcome_line(outcome: BatchItemOutcome, label: str) -> str:
    source = f" ({outcome.reference_image})" if outcome.reference_image else ""
    prompt = truncate(outcome.prompt, 50)
    if outcome.success:
        nsfw = " ⚠️ NSFW" if outcome.metadata.get("has_nsfw_concepts") else ""
        return (
            f"✅ {label} {outcome.index}{source}: \"{prompt}\" - "
            f"{outcome.images_generated} images ({outcome.execution_time:.2f}s){nsfw}"
        )
    return f"❌ {label} {outcome.index}{source}: \"{prompt}\" - Error: {outcome.error}"


def render_summary_report(summary: BatchSummary, title: str) -> str:
    """Render the human-readable view of a batch summary."""
    item_label, plural, singular, outcome_noun = _LABELS[summary.mode]

    lines = [
        f"# {title}",
        "",
        f"Generated: {summary.timestamp}",
        f"Model: {summary.model}",
        f"Provider: {summary.provider}",
        "",
        "## Summary",
        f"- Total {plural}: {summary.total_items}",
        f"- Successful {outcome_noun}: {summary.successful_items}",
        f"- Failed {outcome_noun}: {summary.failed_items}",
        f"- Total images generated: {summary.total_images}",
        f"- Total execution time: {summary.total_execution_time:.2f}s",
        f"- Average time per {singular}: {summary.average_time_per_item:.2f}s",
        f"- Total wall-clock time: {summary.total_wall_clock_time:.2f}s",
        f"- Success rate: {summary.success_rate:.1f}%",
        f"- NSFW detections: {summary.nsfw_detections}",
        "",
        "## Individual Results",
    ]
    lines.extend(_outcome_line(outcome, item_label) for outcome in summary.results)
    lines.extend(["", "## Files Generated"])
    lines.extend(f"- {image.filename} ({_format_size(image.size)})" for image in summary.saved_files())
    return "\n".join(lines) + "\n"
