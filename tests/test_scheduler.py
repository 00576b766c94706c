"""Tests for DeferredRetryScheduler: immediate pass, delayed pass with retries."""

import asyncio
from pathlib import Path
from typing import Callable

import pytest

from modtoggler.layout import ModuleLayout
from modtoggler.models import ToggleState
from modtoggler.toggle import DeferredRetryScheduler, ModuleFiles, PendingToggleStore

from conftest import FakeRuntime


@pytest.fixture
def files(layout: ModuleLayout) -> ModuleFiles:
    return ModuleFiles(layout)


@pytest.fixture
def store() -> PendingToggleStore:
    return PendingToggleStore()


@pytest.fixture
def scheduler(files: ModuleFiles, store: PendingToggleStore) -> DeferredRetryScheduler:
    return DeferredRetryScheduler(files, store, grace_period=0, max_attempts=3, retry_pause=0)


def _count_and_fail(files: ModuleFiles, monkeypatch: pytest.MonkeyPatch, failures: int) -> list[int]:
    """Make files.move raise PermissionError for the first `failures` calls."""
    calls: list[int] = []
    real = files.move

    def move(src: Path, dst: Path) -> None:
        calls.append(1)
        if len(calls) <= failures:
            raise PermissionError(13, "The process cannot access the file", str(src))
        real(src, dst)

    monkeypatch.setattr(files, "move", move)
    return calls


class TestImmediatePass:
    def test_resolves_unlocked_entry(
        self,
        scheduler: DeferredRetryScheduler,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
    ) -> None:
        alpha = make_module("Alpha.pkg")
        store.schedule("Alpha", ToggleState.DISABLED)
        report = scheduler.run_immediate_pass()
        assert report.resolved == ["Alpha"]
        assert report.unresolved == []
        assert alpha.with_name("Alpha.pkg.disabled").exists()
        assert len(store) == 0

    def test_enable_direction(
        self,
        scheduler: DeferredRetryScheduler,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
    ) -> None:
        beta = make_module("Beta.pkg.disabled")
        store.schedule("Beta", ToggleState.ENABLED)
        assert scheduler.run_immediate_pass().resolved == ["Beta"]
        assert beta.with_name("Beta.pkg").exists()

    def test_already_in_target_state_counts_as_resolved(
        self,
        scheduler: DeferredRetryScheduler,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
    ) -> None:
        make_module("Alpha.pkg.disabled")
        store.schedule("Alpha", ToggleState.DISABLED)
        assert scheduler.run_immediate_pass().resolved == ["Alpha"]
        assert len(store) == 0

    def test_failure_keeps_entry(
        self,
        scheduler: DeferredRetryScheduler,
        files: ModuleFiles,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        make_module("Alpha.pkg")
        store.schedule("Alpha", ToggleState.DISABLED)
        _count_and_fail(files, monkeypatch, failures=1)
        report = scheduler.run_immediate_pass()
        assert report.unresolved == ["Alpha"]
        assert "Alpha" in store

    def test_missing_file_is_unresolved(
        self, scheduler: DeferredRetryScheduler, store: PendingToggleStore, modules_dir: Path
    ) -> None:
        store.schedule("Ghost", ToggleState.DISABLED)
        assert scheduler.run_immediate_pass().unresolved == ["Ghost"]


class TestDelayedPass:
    @pytest.mark.asyncio
    async def test_nothing_left_after_immediate_pass(
        self,
        scheduler: DeferredRetryScheduler,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
    ) -> None:
        make_module("Alpha.pkg")
        store.schedule("Alpha", ToggleState.DISABLED)
        scheduler.run_immediate_pass()
        report = await scheduler.run_delayed_pass()
        assert report.attempted == 0

    @pytest.mark.asyncio
    async def test_retries_until_success(
        self,
        scheduler: DeferredRetryScheduler,
        files: ModuleFiles,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        alpha = make_module("Alpha.pkg")
        store.schedule("Alpha", ToggleState.DISABLED)
        calls = _count_and_fail(files, monkeypatch, failures=2)
        report = await scheduler.run_delayed_pass()
        assert report.resolved == ["Alpha"]
        assert len(calls) == 3
        assert alpha.with_name("Alpha.pkg.disabled").exists()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(
        self,
        scheduler: DeferredRetryScheduler,
        files: ModuleFiles,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        alpha = make_module("Alpha.pkg")
        store.schedule("Alpha", ToggleState.DISABLED)
        calls = _count_and_fail(files, monkeypatch, failures=100)
        report = await scheduler.run_delayed_pass()
        assert report.unresolved == ["Alpha"]
        assert len(calls) == 3
        assert alpha.exists()
        assert "Alpha" in store

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(
        self,
        scheduler: DeferredRetryScheduler,
        files: ModuleFiles,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        make_module("Alpha.pkg")
        make_module("Beta.pkg")
        store.schedule("Alpha", ToggleState.DISABLED)
        store.schedule("Beta", ToggleState.DISABLED)
        real = files.apply

        def apply(key: str, desired: ToggleState) -> bool:
            if key == "Alpha":
                raise RuntimeError("unexpected")
            return real(key, desired)

        monkeypatch.setattr(files, "apply", apply)
        report = await scheduler.run_delayed_pass()
        assert report.unresolved == ["Alpha"]
        assert report.resolved == ["Beta"]


class TestFlush:
    def test_empty_store_schedules_nothing(self, scheduler: DeferredRetryScheduler) -> None:
        assert scheduler.flush() is None
        assert scheduler.delayed_task is None

    def test_without_event_loop_runs_immediate_pass_only(
        self,
        scheduler: DeferredRetryScheduler,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
    ) -> None:
        alpha = make_module("Alpha.pkg")
        store.schedule("Alpha", ToggleState.DISABLED)
        assert scheduler.flush() is None
        assert alpha.with_name("Alpha.pkg.disabled").exists()

    @pytest.mark.asyncio
    async def test_returns_delayed_task(
        self,
        scheduler: DeferredRetryScheduler,
        files: ModuleFiles,
        store: PendingToggleStore,
        make_module: Callable[..., Path],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        alpha = make_module("Alpha.pkg")
        store.schedule("Alpha", ToggleState.DISABLED)
        # immediate pass fails once, delayed pass succeeds
        _count_and_fail(files, monkeypatch, failures=1)
        task = scheduler.flush()
        assert isinstance(task, asyncio.Task)
        assert alpha.exists()
        report = await scheduler.wait()
        assert report.resolved == ["Alpha"]
        assert alpha.with_name("Alpha.pkg.disabled").exists()

    @pytest.mark.asyncio
    async def test_wait_without_flush(self, scheduler: DeferredRetryScheduler) -> None:
        assert await scheduler.wait() is None

    def test_attach_registers_flush(
        self, scheduler: DeferredRetryScheduler, fake_runtime: FakeRuntime
    ) -> None:
        scheduler.attach(fake_runtime)
        assert fake_runtime.hooks == [scheduler.flush]
