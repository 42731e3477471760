from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Sequence

import httpx
from rich.console import Console
from rich.markup import escape

from .clients import build_client
from .config import load_config, supported_providers
from .errors import ImageGenError
from .images import resolve_image_source
from .presets import available_presets, get_preset
from .storage import ResultStore
from .tasks.batch_runner import BatchRunner
from .tasks.prompt_plan import load_batch_plan
from .types import RemoteImage

DEFAULT_PROMPTS_FILE = Path("example_inputs/prompts.txt")
DEFAULT_EDIT_PROMPTS_FILE = Path("example_inputs/edit-prompts.txt")
DEFAULT_EDIT_IMAGES_DIR = Path("example_inputs/edit-images")


def _add_model_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("provider", choices=supported_providers(), help="Image provider to call.")
    parser.add_argument(
        "model",
        help=f"Model preset for the provider. Available: {', '.join(available_presets())}",
    )
    parser.add_argument(
        "--dotenv",
        type=Path,
        default=None,
        help="Optional path to a .env file containing provider credentials.",
    )


def _parse_option(value: str) -> tuple[str, Any]:
    key, sep, raw = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"Options must look like KEY=VALUE, got '{value}'")
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        parsed = raw
    return key.strip(), parsed


def parse_batch_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run every prompt (or prompt/image pair) of a file through one provider model."
    )
    _add_model_arguments(parser)
    parser.add_argument(
        "--prompts",
        type=Path,
        default=None,
        help="Newline-delimited prompts file (defaults to example_inputs/prompts.txt or edit-prompts.txt).",
    )
    parser.add_argument(
        "--images",
        type=Path,
        default=None,
        help="Directory of reference images for edit models (defaults to example_inputs/edit-images).",
    )
    parser.add_argument(
        "--results-dir",
        type=Path,
        default=None,
        help="Output directory (defaults to <RESULTS_ROOT_DIR>/<provider>/<model>).",
    )
    parser.add_argument(
        "--image-base-url",
        default=None,
        help="Public base URL serving the reference images; sent instead of inline data URIs.",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds to wait after each item (defaults to BATCH_ITEM_DELAY or 1.0).",
    )
    return parser.parse_args(argv)


def parse_generate_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate or edit a single image with one provider model.")
    _add_model_arguments(parser)
    parser.add_argument("prompt", help="Text prompt or edit instruction.")
    parser.add_argument(
        "--image",
        default=None,
        help="Reference image for edit models: local path, http(s) URL or data URI.",
    )
    parser.add_argument(
        "--option",
        dest="options",
        action="append",
        type=_parse_option,
        default=[],
        metavar="KEY=VALUE",
        help="Provider option override; values are parsed as JSON when possible. Repeatable.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Optional directory where the returned images are saved.",
    )
    return parser.parse_args(argv)


def run_batch(args: argparse.Namespace, console: Console) -> None:
    preset = get_preset(args.provider, args.model)
    config = load_config(args.provider, args.dotenv)

    if preset.mode == "edit":
        prompts_file = args.prompts or DEFAULT_EDIT_PROMPTS_FILE
        images_dir = args.images or DEFAULT_EDIT_IMAGES_DIR
    else:
        prompts_file = args.prompts or DEFAULT_PROMPTS_FILE
        images_dir = args.images

    plan = load_batch_plan(prompts_file, images_dir)
    results_dir = args.results_dir or config.batch.results_root / preset.results_dir
    delay = args.delay if args.delay is not None else config.batch.item_delay_seconds

    console.rule(f"{preset.display_name} ({preset.name})")
    console.print(f"Prompts: {prompts_file} ({plan.prompt_count} found)")
    if images_dir is not None:
        console.print(f"Reference images: {images_dir} ({plan.image_count} found)")

    with build_client(preset, config.credentials) as client, ResultStore(results_dir) as store:
        runner = BatchRunner(
            client,
            plan,
            store,
            preset=preset,
            delay_seconds=delay,
            image_base_url=args.image_base_url,
            console=console,
        )
        runner.run()


def run_generate(args: argparse.Namespace, console: Console) -> None:
    preset = get_preset(args.provider, args.model)
    config = load_config(args.provider, args.dotenv)
    reference = resolve_image_source(args.image) if args.image else None
    overrides = dict(args.options)

    with build_client(preset, config.credentials) as client:
        console.print(f"Generating with {preset.display_name}: \"{escape(args.prompt)}\"")
        result = client.generate(args.prompt, reference, overrides)

    console.print(f"[green]Generated {len(result.images)} image(s)[/green] in {result.model_execution_time:.2f}s")
    for position, image in enumerate(result.images, start=1):
        if isinstance(image, RemoteImage):
            label = image.url
        elif isinstance(image, str) and image.startswith("http"):
            label = image
        else:
            label = "<inline image data>"
        console.print(f"  {position}. {escape(label)}")

    if args.output_dir is not None:
        with ResultStore(args.output_dir) as store:
            store.prepare()
            for position, image in enumerate(result.images, start=1):
                saved = store.save_image(image, f"image_{position}.{preset.extension}")
                console.print(f"Saved {store.base_dir / saved.filename} ({saved.size} bytes)")


def _run(command, args: argparse.Namespace) -> None:  # noqa: ANN001
    console = Console()
    try:
        command(args, console)
    except (ImageGenError, httpx.HTTPError, OSError) as exc:
        Console(stderr=True).print(f"[red]Error:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc


def batch_main(argv: Sequence[str] | None = None) -> None:
    _run(run_batch, parse_batch_args(argv))


def generate_main(argv: Sequence[str] | None = None) -> None:
    _run(run_generate, parse_generate_args(argv))
