"""Tests for the UnitOfWork context-manager protocol."""

import pytest

from src.domain.repositories.unit_of_work import UnitOfWork


class _RecordingUnitOfWork(UnitOfWork):
    def __init__(self):
        self.calls = []

    async def _begin(self):
        self.calls.append("begin")

    async def commit(self):
        self.calls.append("commit")

    async def rollback(self):
        self.calls.append("rollback")

    async def _close(self):
        self.calls.append("close")


def test_unit_of_work_is_abstract():
    with pytest.raises(TypeError):
        UnitOfWork()  # type: ignore[abstract]


async def test_clean_exit_commits_then_closes():
    uow = _RecordingUnitOfWork()
    async with uow as entered:
        assert entered is uow
    assert uow.calls == ["begin", "commit", "close"]


async def test_exception_rolls_back_and_propagates():
    uow = _RecordingUnitOfWork()
    with pytest.raises(RuntimeError):
        async with uow:
            raise RuntimeError("boom")
    assert uow.calls == ["begin", "rollback", "close"]


async def test_close_runs_even_if_commit_fails():
    class _FailingCommit(_RecordingUnitOfWork):
        async def commit(self):
            raise RuntimeError("commit failed")

    uow = _FailingCommit()
    with pytest.raises(RuntimeError):
        async with uow:
            pass
    assert uow.calls == ["begin", "close"]
