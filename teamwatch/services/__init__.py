"""
Pipeline services: assembly, watching and broadcast.
"""

from teamwatch.services.assembler import (
    SessionOnlyAssembler,
    SnapshotAssembler,
    TeamStateAssembler,
    merge_activity,
    select_assembler,
)
from teamwatch.services.broadcast import (
    BroadcastMessage,
    MessageKind,
    SnapshotBroadcaster,
    Subscription,
)
from teamwatch.services.demo import DEMO_SNAPSHOT, StaticSnapshotSource
from teamwatch.services.watcher import SnapshotWatcher, Trigger, has_status_changed

__all__ = [
    "BroadcastMessage",
    "DEMO_SNAPSHOT",
    "MessageKind",
    "SessionOnlyAssembler",
    "SnapshotAssembler",
    "SnapshotBroadcaster",
    "SnapshotWatcher",
    "StaticSnapshotSource",
    "Subscription",
    "TeamStateAssembler",
    "Trigger",
    "has_status_changed",
    "merge_activity",
    "select_assembler",
]
