"""
Autopilot error hierarchy.

Fatal errors abort a run and mark it failed with ``str(exc)`` as the message.
Messages are the only discriminator callers get, so keep them stable.
"""


class AutopilotError(Exception):
    """Base class for pipeline failures."""


class ConfigurationError(AutopilotError):
    """A required API key or endpoint is not configured."""


class TrendDetectionError(AutopilotError):
    """The trend detection call failed."""


class SynthesisError(AutopilotError):
    """The multi-channel synthesis call failed or returned unusable output."""


class PersistenceError(AutopilotError):
    """Generated content could not be stored."""
