"""Tests for background task error tracking."""

import pytest

from meshnotify.services.background_tasks import BackgroundTaskTracker, safe_background_task


@pytest.mark.asyncio
async def test_safe_background_task_success() -> None:
    tracker = BackgroundTaskTracker()

    async def work() -> None:
        return None

    assert await safe_background_task("cleanup", work, tracker) is True

    status = await tracker.get_status()
    assert status["successful_tasks"] == 1
    assert status["failed_tasks"] == 0


@pytest.mark.asyncio
async def test_safe_background_task_failure_is_recorded() -> None:
    tracker = BackgroundTaskTracker()

    async def work() -> None:
        raise ValueError("listing failed")

    assert await safe_background_task("cleanup", work, tracker) is False

    status = await tracker.get_status()
    assert status["failed_tasks"] == 1
    failure = status["recent_failures"][0]
    assert failure["task"] == "cleanup"
    assert failure["type"] == "ValueError"
    assert failure["error"] == "listing failed"


@pytest.mark.asyncio
async def test_history_is_bounded() -> None:
    tracker = BackgroundTaskTracker(max_history=3)

    for _ in range(5):
        await tracker.record_success("cleanup")
        await tracker.record_failure("cleanup", RuntimeError("boom"))

    status = await tracker.get_status()
    assert status["successful_tasks"] == 3
    assert status["failed_tasks"] == 3
    assert len(status["recent_failures"]) == 3
