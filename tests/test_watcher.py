"""
Tests for the change-aware watcher.

Most tests replace the filesystem observer with a MagicMock and inject
changes through ``notify_change``; one test runs the real watchdog observer
against a temporary project.

Run: python -m pytest tests/test_watcher.py -v
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from teamwatch.exceptions import WatcherError
from teamwatch.models import AgentRecord, AgentStatus, ProjectState, Snapshot
from teamwatch.services.assembler import TeamStateAssembler
from teamwatch.services.watcher import (
    ChangeHandler,
    SnapshotWatcher,
    Trigger,
    glob_to_regex,
    has_status_changed,
    plan_schedules,
    static_prefix,
)


def make_snapshot(*statuses: AgentStatus, name: str = "p") -> Snapshot:
    return Snapshot(
        agents=[AgentRecord(id=f"a{i}", role="r", status=s) for i, s in enumerate(statuses)],
        project=ProjectState(name=name, phase="1", status="executing"),
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def assembler(tmp_path: Path):
    mock = MagicMock()
    mock.name = "team"
    mock.watch_targets.return_value = [str(tmp_path / "state" / "mamh-state.json")]
    mock.read_state = AsyncMock(return_value=make_snapshot(AgentStatus.WORKING))
    return mock


@pytest.fixture
def observer_factory():
    return MagicMock()


@pytest.fixture
def watcher(assembler, observer_factory):
    return SnapshotWatcher(
        assembler,
        debounce_seconds=0.02,
        reevaluate_seconds=60.0,
        stability_seconds=0.01,
        observer_factory=observer_factory,
    )


# =============================================================================
# Status comparison
# =============================================================================

class TestHasStatusChanged:

    def test_rules(self) -> None:
        base = make_snapshot(AgentStatus.WORKING, AgentStatus.IDLE)

        assert has_status_changed(None, base) is True
        assert has_status_changed(base, make_snapshot(AgentStatus.WORKING, AgentStatus.IDLE, name="other")) is False
        assert has_status_changed(base, make_snapshot(AgentStatus.WORKING)) is True
        assert has_status_changed(base, make_snapshot(AgentStatus.WORKING, AgentStatus.COMPLETED)) is True


# =============================================================================
# Target matching
# =============================================================================

class TestTargetMatching:

    def test_double_star_matches_any_depth(self) -> None:
        regex = glob_to_regex("/p/.mamh/tickets/**/*.md")

        assert regex.match("/p/.mamh/tickets/T01.md")
        assert regex.match("/p/.mamh/tickets/milestones/M1/T01.md")
        assert not regex.match("/p/.mamh/tickets/milestones/M1.json")

    def test_single_star_stays_in_segment(self) -> None:
        regex = glob_to_regex("/p/comms/*.json")

        assert regex.match("/p/comms/inbox.json")
        assert not regex.match("/p/comms/old/inbox.json")

    def test_trailing_double_star(self) -> None:
        assert glob_to_regex("/p/comms/**").match("/p/comms/a/b/c.md")

    def test_static_prefix(self) -> None:
        assert static_prefix("/p/tickets/**/*.md") == Path("/p/tickets")
        assert static_prefix("/p/state/mamh-state.json") == Path("/p/state")

    def test_plan_schedules(self, tmp_path: Path) -> None:
        (tmp_path / "state").mkdir()

        plan = plan_schedules(
            [
                str(tmp_path / "state" / "mamh-state.json"),
                str(tmp_path / "missing" / "deep" / "file.json"),
                str(tmp_path / "state" / "**" / "*.md"),
            ]
        )

        assert plan == {tmp_path / "state": True, tmp_path: True}

    def test_plan_schedules_plain_file(self, tmp_path: Path) -> None:
        (tmp_path / "state").mkdir()
        plan = plan_schedules([str(tmp_path / "state" / "mamh-state.json")])
        assert plan == {tmp_path / "state": False}


class TestChangeHandler:

    def test_filters_events(self) -> None:
        seen = []
        handler = ChangeHandler([glob_to_regex("/p/state/*.json")], seen.append)

        handler.dispatch(FileModifiedEvent("/p/state/mamh-state.json"))
        handler.dispatch(FileModifiedEvent("/p/state/notes.txt"))
        handler.dispatch(DirModifiedEvent("/p/state"))
        handler.dispatch(FileClosedEvent("/p/state/mamh-state.json"))
        handler.dispatch(FileMovedEvent("/p/state/.tmp123", "/p/state/registry.json"))

        assert seen == ["/p/state/mamh-state.json", "/p/state/registry.json"]


# =============================================================================
# Passes
# =============================================================================

class TestRunPass:

    @pytest.mark.asyncio
    async def test_periodic_pass_publishes_only_on_status_change(self, watcher, assembler) -> None:
        published = []
        watcher.add_listener(published.append)
        watcher.start()
        try:
            await watcher.run_pass(Trigger.PERIODIC)
            await watcher.run_pass(Trigger.PERIODIC)
            assert len(published) == 1

            assembler.read_state.return_value = make_snapshot(AgentStatus.COMPLETED)
            await watcher.run_pass(Trigger.PERIODIC)
            assert len(published) == 2
            assert watcher.last_snapshot.agents[0].status == AgentStatus.COMPLETED
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_debounce_pass_always_publishes(self, watcher) -> None:
        published = []
        watcher.add_listener(published.append)
        watcher.start()
        try:
            await watcher.run_pass(Trigger.DEBOUNCE)
            await watcher.run_pass(Trigger.DEBOUNCE)
        finally:
            await watcher.stop()

        assert len(published) == 2

    @pytest.mark.asyncio
    async def test_debounce_failure_reaches_error_listeners(self, watcher, assembler) -> None:
        errors = []
        published = []
        watcher.add_error_listener(errors.append)
        watcher.add_listener(published.append)
        assembler.read_state.side_effect = OSError("disk gone")
        watcher.start()
        try:
            await watcher.run_pass(Trigger.DEBOUNCE)
            await watcher.run_pass(Trigger.PERIODIC)
        finally:
            await watcher.stop()

        assert len(errors) == 1
        assert isinstance(errors[0], WatcherError)
        assert errors[0].context == {"trigger": "debounce"}
        assert isinstance(errors[0].original_error, OSError)
        assert published == []

    @pytest.mark.asyncio
    async def test_no_publish_after_stop(self, watcher) -> None:
        published = []
        watcher.add_listener(published.append)
        watcher.start()
        await watcher.stop()

        await watcher.run_pass(Trigger.DEBOUNCE)

        assert published == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, watcher) -> None:
        published = []

        def broken(_snapshot):
            raise RuntimeError("boom")

        watcher.add_listener(broken)
        watcher.add_listener(published.append)
        watcher.start()
        try:
            await watcher.run_pass(Trigger.DEBOUNCE)
        finally:
            await watcher.stop()

        assert len(published) == 1

    @pytest.mark.asyncio
    async def test_initial_snapshot_counts_as_published(self, watcher) -> None:
        published = []
        watcher.add_listener(published.append)
        initial = await watcher.get_initial_snapshot()
        watcher.start()
        try:
            await watcher.run_pass(Trigger.PERIODIC)
        finally:
            await watcher.stop()

        assert watcher.last_snapshot == initial
        assert published == []


# =============================================================================
# Lifecycle and timing
# =============================================================================

class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, watcher, observer_factory, tmp_path: Path) -> None:
        watcher.start()
        watcher.start()
        try:
            assert watcher.running is True
            assert observer_factory.call_count == 1
            observer = observer_factory.return_value
            observer.schedule.assert_called_once()
            _, directory = observer.schedule.call_args[0]
            assert directory == str(tmp_path)
            observer.start.assert_called_once()
        finally:
            await watcher.stop()

        assert watcher.running is False
        observer_factory.return_value.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_burst_of_changes_yields_one_pass(self, watcher, assembler) -> None:
        published = []
        watcher.add_listener(published.append)
        watcher.start()
        try:
            for _ in range(5):
                watcher.notify_change("/p/state/mamh-state.json")
                watcher.notify_change("/p/agents/registry.json")
            await asyncio.sleep(0.3)
        finally:
            await watcher.stop()

        assert assembler.read_state.await_count == 1
        assert len(published) == 1

    @pytest.mark.asyncio
    async def test_periodic_timer_drives_passes(self, assembler, observer_factory) -> None:
        watcher = SnapshotWatcher(
            assembler,
            debounce_seconds=0.02,
            reevaluate_seconds=0.03,
            observer_factory=observer_factory,
        )
        published = []
        watcher.add_listener(published.append)
        watcher.start()
        try:
            await asyncio.sleep(0.25)
        finally:
            await watcher.stop()

        assert assembler.read_state.await_count >= 2
        # status never changes: only the first periodic pass publishes
        assert len(published) == 1

    @pytest.mark.asyncio
    async def test_changes_ignored_while_stopped(self, watcher, assembler) -> None:
        watcher.notify_change("/p/state/mamh-state.json")
        await asyncio.sleep(0.1)
        assembler.read_state.assert_not_awaited()


# =============================================================================
# Live filesystem observer
# =============================================================================

class TestLiveObserver:

    @pytest.mark.asyncio
    async def test_registry_write_publishes_new_agent(self, project_dir, claude_home, write_json) -> None:
        agents_dir = project_dir / ".mamh" / "agents"
        agents_dir.mkdir(parents=True)
        watcher = SnapshotWatcher(
            TeamStateAssembler(project_dir, claude_home),
            debounce_seconds=0.02,
            reevaluate_seconds=60.0,
            stability_seconds=0.01,
        )
        published = []
        arrived = asyncio.Event()

        def on_snapshot(snapshot: Snapshot) -> None:
            published.append([agent.id for agent in snapshot.agents])
            if any(agent.id == "backend-engineer" for agent in snapshot.agents):
                arrived.set()

        watcher.add_listener(on_snapshot)
        initial = await watcher.get_initial_snapshot()
        assert "backend-engineer" not in [agent.id for agent in initial.agents]

        watcher.start()
        try:
            write_json(agents_dir / "registry.json", {"agents": [{"id": "backend-engineer", "role": "Backend"}]})
            await asyncio.wait_for(arrived.wait(), timeout=5.0)
        finally:
            await watcher.stop()

        assert published[-1][0] == "lead"
        assert "backend-engineer" in published[-1]
