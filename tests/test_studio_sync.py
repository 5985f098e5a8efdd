from __future__ import annotations

from pathlib import Path

import allure
import pytest
from conftest import PNG_BYTES, FakeClock

from studio_queue.queue.gallery import DirectoryAssetStore, GalleryAsset, sanitize_name
from studio_queue.queue.media import to_data_url
from studio_queue.queue.models import (
    FailureClass,
    ImagePayload,
    TaskCreate,
    TaskKind,
    VideoPayload,
    VideoSettings,
)
from studio_queue.queue.store import TaskQueue
from studio_queue.queue.studio_sync import StudioSync

pytestmark = [
    allure.epic("Generation Queue"),
    allure.feature("Studio Sync"),
]


def _image(prompt: str) -> TaskCreate:
    return TaskCreate(
        kind=TaskKind.IMAGE_GENERATION,
        payload=ImagePayload(prompt=prompt, model="gemini-2.5-flash-image"),
        label=prompt,
    )


def _complete(queue: TaskQueue, task_id: str, url: str) -> None:
    queue.mark_processing(task_id, progress=5)
    queue.complete(task_id, result_url=url)


def test_sync_imports_completed_tasks_once(tmp_path: Path, fake_clock: FakeClock) -> None:
    queue = TaskQueue(clock=fake_clock)
    first, second = queue.enqueue([_image("fox"), _image("owl")])
    sync = StudioSync(queue=queue, store=DirectoryAssetStore(tmp_path), clock=fake_clock)
    sync.watch([first.task_id, second.task_id])

    _complete(queue, first.task_id, to_data_url(PNG_BYTES))
    fake_clock.advance(3)
    report = sync.sync_once()

    assert [asset.task_id for asset in report.imported] == [first.task_id]
    assert report.imported[0].prompt == "fox"
    assert report.imported[0].generation_seconds == 3
    assert report.saved_paths[0].read_bytes() == PNG_BYTES
    assert report.progress.status == "generating"
    assert (report.progress.current, report.progress.total) == (2, 2)

    again = sync.sync_once()
    assert again.imported == []
    assert sync.watched == (second.task_id,)


def test_sync_reports_failures_and_goes_idle(tmp_path: Path) -> None:
    queue = TaskQueue()
    (task,) = queue.enqueue([_image("storm")])
    sync = StudioSync(queue=queue, store=DirectoryAssetStore(tmp_path))
    sync.watch([task.task_id])
    queue.mark_processing(task.task_id, progress=5)
    queue.fail(task.task_id, failure_class=FailureClass.NO_RESULT, reason="no image generated")

    report = sync.sync_once()

    assert [failed.label for failed in report.failed] == ["storm (no image generated)"]
    assert report.imported == []
    assert report.progress.status == "idle"
    assert (report.progress.current, report.progress.total) == (1, 1)


def test_sync_forgets_removed_tasks(tmp_path: Path) -> None:
    queue = TaskQueue()
    kept, removed = queue.enqueue([_image("kept"), _image("removed")])
    sync = StudioSync(queue=queue, store=DirectoryAssetStore(tmp_path))
    sync.watch([kept.task_id, removed.task_id])
    queue.remove(removed.task_id)

    report = sync.sync_once()

    assert report.forgotten == [removed.task_id]
    assert sync.progress().total == 1
    assert sync.progress().current == 1


def test_video_result_copied_from_file_uri(tmp_path: Path) -> None:
    media = tmp_path / "media" / "clip.mp4"
    media.parent.mkdir()
    media.write_bytes(b"mp4")
    queue = TaskQueue()
    (task,) = queue.enqueue(
        [
            TaskCreate(
                kind=TaskKind.VIDEO_GENERATION,
                payload=VideoPayload(settings=VideoSettings(prompt="tide")),
                label="Cinematic Video",
            ),
        ],
    )
    sync = StudioSync(queue=queue, store=DirectoryAssetStore(tmp_path / "gallery"))
    sync.watch([task.task_id])
    _complete(queue, task.task_id, media.resolve().as_uri())

    report = sync.sync_once()

    (saved,) = report.saved_paths
    assert saved.suffix == ".mp4"
    assert saved.parent == tmp_path / "gallery" / "Uncategorized"
    assert saved.read_bytes() == b"mp4"
    assert report.imported[0].content_type == "video"


def test_store_rejects_remote_urls(tmp_path: Path) -> None:
    asset = GalleryAsset(
        asset_id="abcd1234",
        task_id="t",
        name="remote",
        url="https://example.com/a.png",
        prompt="p",
        model="m",
        content_type="image",
        width=1,
        height=1,
        created_at=0.0,
    )

    with pytest.raises(ValueError, match="Unsupported asset URL"):
        DirectoryAssetStore(tmp_path).save(asset)


def test_sanitize_name() -> None:
    assert sanitize_name('Studio Gen: 12/30 "final"?') == "Studio Gen_ 12_30 _final__"
