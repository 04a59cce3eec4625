"""Custom exceptions for the ticket store."""


class StateStoreError(Exception):
    """Base exception for ticket store errors."""


class TicketNotFoundError(StateStoreError):
    """Ticket with given reference does not exist."""


class DuplicateTicketError(StateStoreError):
    """A uniqueness constraint (number, id or filename) was violated."""


class ScopingUnsupportedError(StateStoreError):
    """The store predates repository scoping columns."""
