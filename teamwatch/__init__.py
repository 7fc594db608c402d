"""
teamwatch - live team-state snapshots for AI worker agents.

Infers who is working on what from transcripts, agent registries, ticket
documents and usage caches on disk, and streams one consistent snapshot to
any number of observers.
"""

__version__ = "0.1.0"
