"""Delivery sink interface."""

from typing import List, Protocol

from duenudge.db.models import OutgoingNotification, PendingNotification


class DeliveryError(Exception):
    """Raised when the sink cannot schedule or cancel a notification."""


class NotificationSink(Protocol):
    """Whatever actually alerts the user (local timers, push, chat)."""

    async def schedule(self, notification: OutgoingNotification) -> str | None:
        """Schedule a notification and return a cancellable handle."""

    async def cancel(self, handle: str) -> None:
        """Cancel a previously scheduled notification."""

    async def cancel_all_of_type(self, kind: str) -> None:
        """Cancel every pending notification of one kind."""

    async def list_pending(self) -> List[PendingNotification]:
        """List notifications that have not been delivered yet."""
