"""
Append-only audit logging.
"""

from thesis_portal.kernel.events.event_store import EventStore

__all__ = ["EventStore"]
