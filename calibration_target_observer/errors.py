"""
Exception types raised by the target observer.

PatternNotFoundError is the ordinary "no target in this frame" outcome; the
caller is expected to retry with a new frame. Everything else signals a
configuration problem or a detector fault.
"""


class TargetObserverError(Exception):
    """Base class for all target observer errors."""


class ConfigError(TargetObserverError, ValueError):
    """Unknown or unsupported pattern type, or inconsistent target geometry."""


class RoiError(TargetObserverError, ValueError):
    """Region of interest is malformed or exceeds the image bounds."""


class DetectionError(TargetObserverError):
    """Detection did not produce a correspondence list."""


class PatternNotFoundError(DetectionError):
    """The configured pattern is not visible in the frame."""


class InternalDetectionError(DetectionError):
    """The detector failed in an unexpected way."""
