"""Exceptions raised at configuration boundaries."""


class ConfigurationError(ValueError):
    """Raised when a population, trait bound or context is misconfigured.

    Always raised eagerly, from constructors, ``initialize`` or
    ``set_context``, never from inside a tick.
    """
