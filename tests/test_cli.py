from __future__ import annotations

from pathlib import Path

import allure
import pytest
from click.testing import CliRunner
from conftest import PNG_BYTES, StubClient

from studio_queue import main as main_module
from studio_queue.main import studio_queue
from studio_queue.queue.backend.base import VideoOperation

pytestmark = [
    allure.epic("Generation Queue"),
    allure.feature("CLI"),
]


@pytest.fixture()
def fast_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> list[StubClient]:
    for name in ("STUDIO_QUEUE_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STUDIO_QUEUE_TICK_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("STUDIO_QUEUE_SETTLE_DELAY_SECONDS", "0")
    monkeypatch.setenv("STUDIO_QUEUE_VIDEO_POLL_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("STUDIO_QUEUE_MEDIA_DIR", str(tmp_path / "media"))
    clients: list[StubClient] = []

    def _factory(_api_key: str) -> StubClient:
        client = StubClient(
            start_script=[
                VideoOperation(name="operations/v", done=True, error_message="rejected"),
            ],
        )
        clients.append(client)
        return client

    monkeypatch.setattr(main_module.STUDIO_CONTROLLER, "client_factory", _factory)
    return clients


def test_image_command_generates_and_saves(
    fast_env: list[StubClient],
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("STUDIO_QUEUE_API_KEY", "test-key")
    output_dir = tmp_path / "gallery"

    result = CliRunner().invoke(
        studio_queue,
        ["image", "--prompt", "a paper boat", "--count", "2", "--output-dir", str(output_dir)],
    )

    assert result.exit_code == 0, result.output
    assert "Queued 2 task(s)" in result.output
    assert "processed=2 succeeded=2 failed=0 paused=false" in result.output
    assert result.output.count("status=completed") == 2
    assert "Rate: 2 / 20 RPM (healthy)" in result.output
    saved = list((output_dir / "Uncategorized").glob("*.png"))
    assert len(saved) == 2
    assert all(path.read_bytes().startswith(PNG_BYTES) for path in saved)


def test_image_command_without_key_pauses_and_fails(
    fast_env: list[StubClient],
    tmp_path: Path,
) -> None:
    result = CliRunner().invoke(
        studio_queue,
        ["image", "--prompt", "a paper boat", "--output-dir", str(tmp_path / "gallery")],
    )

    assert result.exit_code == 1
    assert "status=pending" in result.output
    assert "paused=true" in result.output
    assert "Queue paused: missing API key. Set STUDIO_QUEUE_API_KEY" in result.output
    assert fast_env == []


def test_batch_command_applies_preset_style(
    fast_env: list[StubClient],
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    target = tmp_path / "product.png"
    target.write_bytes(PNG_BYTES)

    result = CliRunner().invoke(
        studio_queue,
        [
            "batch",
            "--target-image",
            str(target),
            "--style",
            "luxury",
            "--output-dir",
            str(tmp_path / "gallery"),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "label=Luxury Marble" in result.output
    (client,) = fast_env
    parts = client.image_requests[0].parts
    assert parts[0].data == PNG_BYTES
    assert parts[0].mime_type == "image/png"
    assert "Luxury Marble" in parts[-1].text


def test_batch_command_requires_a_style(fast_env: list[StubClient], tmp_path: Path) -> None:
    target = tmp_path / "product.png"
    target.write_bytes(PNG_BYTES)

    result = CliRunner().invoke(studio_queue, ["batch", "--target-image", str(target)])

    assert result.exit_code == 2
    assert "--style" in result.output


def test_video_command_reports_generation_error(
    fast_env: list[StubClient],
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("STUDIO_QUEUE_API_KEY", "test-key")

    result = CliRunner().invoke(
        studio_queue,
        ["video", "--prompt", "slow pan", "--output-dir", str(tmp_path / "gallery")],
    )

    assert result.exit_code == 1
    assert "label=Cinematic Video (video generation error)" in result.output
    assert "failed=1" in result.output


def test_video_command_needs_prompt_or_image(fast_env: list[StubClient]) -> None:
    result = CliRunner().invoke(studio_queue, ["video"])

    assert result.exit_code == 2
