"""Custom exceptions for the ticket lifecycle."""


class TicketError(Exception):
    """Base exception for ticket lifecycle errors."""


class TicketValidationError(TicketError):
    """Input rejected before any store mutation."""


class IdAllocationError(TicketError):
    """No free ticket number found within the retry bound."""


class TicketMoveError(TicketError):
    """Column transition not permitted or could not be completed."""
