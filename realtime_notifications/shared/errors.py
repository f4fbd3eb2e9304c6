"""
Exceptions raised inside the notification engine.

None of these escape a public entry point: the router catches `FrameError`,
and the audio dispatcher turns the playback errors into a `PlayResult`.
"""


class NotificationEngineError(Exception):
    """Base class for engine errors."""


class FrameError(NotificationEngineError, ValueError):
    """An inbound frame could not be parsed or validated."""


class PlaybackRejectedError(NotificationEngineError):
    """The audio backend refused to play (autoplay policy or device error)."""


class ResourceMissingError(NotificationEngineError):
    """No audio data is loaded for the requested category."""
