"""Errors shared by the data schemas and processors."""


class InputValidationError(ValueError):
    """Raised for genuinely malformed input records (e.g. negative goals)."""
