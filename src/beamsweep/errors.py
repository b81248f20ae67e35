"""Exceptions raised by beamsweep."""


class BeamSweepError(Exception):
    """Base class for all beamsweep errors."""


class SourceReadError(BeamSweepError):
    """A tabular source could not be opened or decoded."""

    def __init__(self, path, reason):
        self.path = str(path)
        self.reason = str(reason)
        super().__init__(f"cannot read source {self.path}: {self.reason}")


class ConfigError(BeamSweepError, ValueError):
    """Invalid sweep configuration."""


__all__ = ["BeamSweepError", "SourceReadError", "ConfigError"]
