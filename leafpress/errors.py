"""
Exception types raised by the Leafpress build pipeline.
"""


class LeafpressError(Exception):
    """Base class for all Leafpress errors."""


class ConfigError(LeafpressError):
    """The site configuration could not be loaded or is invalid."""


class ConfigNotFoundError(ConfigError):
    """No configuration file was found where one was required."""


class FileReadError(LeafpressError):
    """A content source file could not be read."""

    def __init__(self, path, reason=None):
        self.path = path
        self.reason = reason
        message = f"Failed to read content file {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class OutputWriteError(LeafpressError):
    """Writing a file into the output directory failed."""

    def __init__(self, path, reason=None):
        self.path = path
        self.reason = reason
        message = f"Failed to write output file {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PluginError(LeafpressError):
    """Misuse of the plugin registry."""


class PluginLoadError(PluginError):
    """A configured plugin could not be imported or constructed."""


class ThemeNotFoundError(LeafpressError):
    """Neither the requested theme nor the default theme is available."""
