"""Unit tests for the LearningScheduler."""

import asyncio

import pytest

from navigator.application.services import LearningScheduler


class FakeSession:
    def __init__(self):
        self.committed = False
        self.rolled_back = False

    async def commit(self):
        self.committed = True

    async def rollback(self):
        self.rolled_back = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeLearningService:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.cycles: list[str] = []

    async def run_cycle(self):
        self.cycles.append("scoring")
        if self.fail:
            raise RuntimeError("feedback table locked")

    async def run_embedding_cycle(self):
        self.cycles.append("embedding")


def _scheduler(service, sessions: list[FakeSession], **intervals) -> LearningScheduler:
    def session_factory():
        session = FakeSession()
        sessions.append(session)
        return session

    return LearningScheduler(session_factory, lambda session: service, **intervals)


@pytest.mark.asyncio
async def test_successful_cycle_commits():
    sessions: list[FakeSession] = []
    service = FakeLearningService()

    assert await _scheduler(service, sessions).run_once() is True

    assert service.cycles == ["scoring"]
    assert sessions[0].committed and not sessions[0].rolled_back


@pytest.mark.asyncio
async def test_embedding_cycle_is_selected():
    sessions: list[FakeSession] = []
    service = FakeLearningService()

    await _scheduler(service, sessions).run_once(embeddings=True)

    assert service.cycles == ["embedding"]


@pytest.mark.asyncio
async def test_failed_cycle_rolls_back_and_reports(caplog):
    sessions: list[FakeSession] = []

    ok = await _scheduler(FakeLearningService(fail=True), sessions).run_once()

    assert ok is False
    assert sessions[0].rolled_back and not sessions[0].committed
    assert "scoring cycle failed" in caplog.text


@pytest.mark.asyncio
async def test_loop_runs_cycles_until_stopped():
    sessions: list[FakeSession] = []
    service = FakeLearningService()
    scheduler = _scheduler(service, sessions, learning_interval=0.01, embedding_interval=3600)

    await scheduler.start()
    assert scheduler.running
    await asyncio.sleep(0.1)
    await scheduler.stop()

    assert not scheduler.running
    assert "scoring" in service.cycles
    assert "embedding" not in service.cycles
