"""Custom exceptions for context pack assembly."""


class ContextPackError(Exception):
    """The conversation portion of the context pack could not be assembled."""
