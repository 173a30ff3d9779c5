"""Exception types raised by the Build Uploader pipeline.

Every error here is scoped to a single watch target: the orchestrator
catches them, logs them and moves on to the next target.  Only an
invalid process-wide configuration at startup stops the program.
"""


class BuildUploaderError(Exception):
    """Base class for all Build Uploader errors."""


class ConfigurationError(BuildUploaderError):
    """A required setting, target file or script template is missing or invalid."""


class RemoteFetchError(BuildUploaderError):
    """The build API could not be reached or returned malformed metadata."""


class StagingError(BuildUploaderError):
    """Downloading or unpacking a build artifact failed."""


class PublishError(BuildUploaderError):
    """The external publishing tool exited with a non-zero status."""


class NotificationError(BuildUploaderError):
    """A webhook notification could not be delivered."""
