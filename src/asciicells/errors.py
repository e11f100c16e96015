class AsciiCellsError(Exception):
    """Base class for errors raised by asciicells."""


class ConfigurationError(AsciiCellsError, ValueError):
    """Invalid options or mismatched dimensions. Never retried."""


class ArtifactError(AsciiCellsError, ValueError):
    """A persisted or encoded artifact could not be read."""
