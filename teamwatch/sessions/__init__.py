"""
Session Transcript Reading
===========================

Reads worker-agent transcripts from the companion home and classifies
each session as working / completed / idle from its last write time.

Usage:
    from teamwatch.sessions import read_session_snapshot

    snap = await read_session_snapshot("/home/me/.claude", "/work/my-project")
    if snap.main_session:
        print(snap.main_session.activity)
"""

from teamwatch.sessions.discovery import project_sessions_dir, read_session_snapshot
from teamwatch.sessions.status import activity_for_elapsed, derive_activity
from teamwatch.sessions.transcript import (
    TranscriptHead,
    read_last_action,
    read_transcript_head,
)

__all__ = [
    "TranscriptHead",
    "activity_for_elapsed",
    "derive_activity",
    "project_sessions_dir",
    "read_last_action",
    "read_session_snapshot",
    "read_transcript_head",
]
