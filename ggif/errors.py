"""Exception types raised by ggif.

Only fatal conditions are exceptions; failed external commands are
reported as :class:`ggif.runner.CommandResult` values and logged.
"""


class GgifError(Exception):
    """Base class for errors that should stop the program."""


class ConfigError(GgifError):
    """The resolved configuration is invalid."""


class NoInputError(GgifError):
    """No video file was given and none could be found."""


class WatchSetupError(GgifError):
    """The source folder could not be watched."""


class ScratchDirError(GgifError):
    """The scratch directory for extracted frames could not be created."""
