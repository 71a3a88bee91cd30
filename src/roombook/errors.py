from __future__ import annotations

from roombook.models import Rejection


class BookingRejectedError(Exception):
    """A booking request failed an admissibility check."""

    def __init__(self, rejection: Rejection) -> None:
        super().__init__(rejection.message)
        self.rejection = rejection


class ConcurrentWriteError(Exception):
    """The per room/day ledger stayed contended across every retry."""
