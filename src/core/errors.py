"""Error taxonomy for the dispatch pipeline.

Only ConfigError is fatal to the process. Every other error aborts the
pipeline of a single message and is reported to the logs, never to the chat.
"""

from __future__ import annotations


class TelecmdError(Exception):
    """Base class for all telecmd errors."""


class ConfigError(TelecmdError):
    """Configuration is invalid; the bot must not start."""


class BuildError(TelecmdError):
    """A rule could not be turned into an invocation."""


class LaunchError(TelecmdError):
    """The external process could not be started."""


class UnknownOutputFormat(TelecmdError):
    """Command output looked structured but could not be parsed."""


class SendError(TelecmdError):
    """A reply could not be delivered to the chat."""
