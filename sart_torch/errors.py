"""Exceptions raised by sart_torch."""


class InvalidConfiguration(ValueError):
    """Raised when solver options are unknown, malformed or inconsistent.

    Always raised before the first projector call, so a failing configuration
    never leaves a partially updated volume behind.
    """
