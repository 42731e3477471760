from __future__ import annotations

import io
import json
import re
from pathlib import Path

import httpx
from rich.console import Console

from imagegen_batch.storage import REPORT_FILENAME, RESULTS_FILENAME, ResultStore
from imagegen_batch.tasks.batch_runner import BatchRunner
from imagegen_batch.tasks.prompt_plan import load_batch_plan, pair_entries

from conftest import FakeClient, make_png


def _quiet_console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False)


def _runner(client, plan, results_dir: Path, sleeps: list[float] | None = None, **kwargs) -> BatchRunner:
    recorded = sleeps if sleeps is not None else []
    return BatchRunner(
        client,
        plan,
        ResultStore(results_dir),
        console=_quiet_console(),
        sleep=recorded.append,
        **kwargs,
    )


def test_all_successful_items_produce_one_image_each(tmp_path: Path, generate_preset) -> None:
    client = FakeClient(generate_preset)
    plan = pair_entries(["red car", "blue car", "green car"])
    sleeps: list[float] = []

    summary = _runner(client, plan, tmp_path / "results", sleeps).run()

    assert summary.total_items == 3
    assert summary.successful_items == 3
    assert summary.failed_items == 0
    assert summary.total_images == summary.total_items
    assert summary.total_execution_time == 4.5
    assert summary.average_time_per_item == 1.5
    assert sleeps == [1.0, 1.0, 1.0]
    assert sorted(p.name for p in (tmp_path / "results").glob("*.png")) == [
        "prompt_01_image_1.png",
        "prompt_02_image_1.png",
        "prompt_03_image_1.png",
    ]


def test_batch_options_are_passed_to_every_call(tmp_path: Path, generate_preset) -> None:
    client = FakeClient(generate_preset)

    _runner(client, pair_entries(["a", "b"]), tmp_path).run()

    assert [call[2] for call in client.calls] == [{"seed": 42}, {"seed": 42}]
    assert all(call[1] is None for call in client.calls)


def test_failures_are_recorded_and_do_not_stop_the_batch(tmp_path: Path, generate_preset) -> None:
    client = FakeClient(generate_preset, fail_when=lambda prompt: prompt == "bad")
    sleeps: list[float] = []

    summary = _runner(client, pair_entries(["good", "bad", "also good"]), tmp_path, sleeps).run()

    assert summary.successful_items + summary.failed_items == summary.total_items == 3
    assert summary.failed_items == 1
    assert summary.total_images == 2
    assert summary.total_execution_time == 3.0
    failed = summary.results[1]
    assert failed.index == 2
    assert not failed.success
    assert failed.error == "provider rejected 'bad'"
    assert failed.saved_images == []
    assert len(sleeps) == 3
    assert [call[0] for call in client.calls] == ["good", "bad", "also good"]


def test_always_failing_client_reports_every_error(tmp_path: Path, generate_preset) -> None:
    client = FakeClient(generate_preset, fail_when=lambda prompt: True)

    summary = _runner(client, pair_entries(["one", "two"]), tmp_path).run()

    assert summary.successful_items == 0
    assert summary.total_images == 0
    assert summary.average_time_per_item == 0.0
    assert all(outcome.error for outcome in summary.results)


def test_edit_mode_pairs_prompts_with_sorted_images(tmp_path: Path, edit_preset, edit_inputs) -> None:
    prompts_file, images_dir = edit_inputs
    client = FakeClient(edit_preset)
    plan = load_batch_plan(prompts_file, images_dir)

    summary = _runner(client, plan, tmp_path / "results").run()

    assert summary.mode == "edit"
    assert summary.total_items == 3
    assert [outcome.reference_image for outcome in summary.results] == [
        "image_01.jpg",
        "image_02.jpeg",
        "image_03.webp",
    ]
    assert client.calls[0][1].startswith("data:image/jpeg;base64,")
    assert client.calls[2][1].startswith("data:image/webp;base64,")
    assert [image.filename for outcome in summary.results for image in outcome.saved_images] == [
        "edit_01_image_01_result_1.png",
        "edit_02_image_02_result_1.png",
        "edit_03_image_03_result_1.png",
    ]


def test_image_base_url_replaces_inline_data(tmp_path: Path, edit_preset, edit_inputs) -> None:
    prompts_file, images_dir = edit_inputs
    client = FakeClient(edit_preset)
    plan = load_batch_plan(prompts_file, images_dir)

    _runner(client, plan, tmp_path, image_base_url="https://example.com/edit-images/").run()

    assert client.calls[0][1] == "https://example.com/edit-images/image_01.jpg"


def test_multiple_images_per_call_get_unique_names(tmp_path: Path, generate_preset) -> None:
    client = FakeClient(generate_preset, images_per_call=2)

    summary = _runner(client, pair_entries(["a"]), tmp_path).run()

    assert [image.filename for image in summary.results[0].saved_images] == [
        "prompt_01_image_1.png",
        "prompt_01_image_2.png",
    ]
    assert summary.total_images == 2


def test_filenames_are_deterministic_across_runs(tmp_path: Path, generate_preset) -> None:
    first = _runner(FakeClient(generate_preset), pair_entries(["x", "y"]), tmp_path / "one").run()
    second = _runner(FakeClient(generate_preset), pair_entries(["x", "y"]), tmp_path / "two").run()

    assert [img.filename for img in first.saved_files()] == [img.filename for img in second.saved_files()]


def test_json_and_markdown_reports_agree(tmp_path: Path, generate_preset) -> None:
    client = FakeClient(generate_preset, fail_when=lambda prompt: prompt == "b")

    _runner(client, pair_entries(["a", "b", "c"]), tmp_path).run()

    document = json.loads((tmp_path / RESULTS_FILENAME).read_text(encoding="utf-8"))
    report = (tmp_path / REPORT_FILENAME).read_text(encoding="utf-8")

    assert document["totalItems"] == 3
    assert document["successfulItems"] == 2
    assert document["failedItems"] == 1
    assert document["results"][0]["savedImages"][0]["filename"] == "prompt_01_image_1.png"
    assert document["results"][0]["savedImages"][0]["dimensions"] == "4x3"
    match = re.search(r"Total images generated: (\d+)", report)
    assert match is not None
    assert int(match.group(1)) == document["totalImages"] == 2
    assert "- Total prompts: 3" in report
    assert "Error: provider rejected 'b'" in report
    assert "- prompt_03_image_1.png (" in report


class PartlyBrokenClient(FakeClient):
    """Returns one decodable image and one corrupt payload for selected prompts."""

    def __init__(self, preset, broken: set[str]) -> None:  # noqa: ANN001
        super().__init__(preset, images_per_call=2)
        self.broken = broken

    def generate(self, prompt, reference_image=None, options=None):  # noqa: ANN001
        result = super().generate(prompt, reference_image, options)
        if prompt in self.broken:
            result.images = [make_png(), "%%% not base64 %%%"]
        return result


def test_save_failure_fails_the_item_and_removes_its_files(tmp_path: Path, generate_preset) -> None:
    client = PartlyBrokenClient(generate_preset, broken={"corrupt"})

    summary = _runner(client, pair_entries(["corrupt", "fine"]), tmp_path).run()

    failed, succeeded = summary.results
    assert not failed.success
    assert "not valid base64" in failed.error
    assert failed.saved_images == []
    assert failed.images_generated == 0
    assert succeeded.success
    assert succeeded.images_generated == 2
    assert summary.total_images == 2
    assert sorted(path.name for path in tmp_path.glob("*.png")) == [
        "prompt_02_image_1.png",
        "prompt_02_image_2.png",
    ]
    document = json.loads((tmp_path / RESULTS_FILENAME).read_text(encoding="utf-8"))
    assert document["results"][0]["success"] is False
    assert "prompt_01_image_1.png" not in (tmp_path / REPORT_FILENAME).read_text(encoding="utf-8")


def test_download_failure_fails_only_that_item(tmp_path: Path, generate_preset) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/missing.png":
            return httpx.Response(404)
        return httpx.Response(200, content=make_png(), headers={"content-type": "image/png"})

    class UrlClient(FakeClient):
        def generate(self, prompt, reference_image=None, options=None):  # noqa: ANN001
            result = super().generate(prompt, reference_image, options)
            result.images = [f"https://cdn.example.com/{prompt}.png"]
            return result

    store = ResultStore(tmp_path, http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    runner = BatchRunner(
        UrlClient(generate_preset),
        pair_entries(["missing", "present"]),
        store,
        console=_quiet_console(),
        sleep=lambda seconds: None,
    )

    summary = runner.run()

    assert [outcome.success for outcome in summary.results] == [False, True]
    assert "404" in summary.results[0].error
    assert summary.successful_items + summary.failed_items == summary.total_items
    assert [image.filename for image in summary.saved_files()] == ["prompt_02_image_1.png"]
