"""Change-notification plumbing shared by store implementations."""

from .bus import MESSAGE_INSERTED, Event, EventBus

__all__ = ["EventBus", "Event", "MESSAGE_INSERTED"]
