"""Exceptions raised by the shift simulator."""


class ShiftSimError(Exception):
    """Base class for all simulator errors."""


class ConfigurationError(ShiftSimError):
    """Invalid shift window, tick interval, entity counts or cache settings."""


class UpstreamUnavailable(ShiftSimError):
    """A store fetch failed or the store has not been populated yet."""
