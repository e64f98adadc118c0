"""Exceptions raised by the analyzer."""

from pathlib import Path


class AnalyzerError(Exception):
    """Base class for all analyzer errors."""


class ConfigError(AnalyzerError):
    """The configuration file could not be read or parsed."""


class SourceParseError(AnalyzerError):
    """A Go source file could not be read or contains syntax errors."""

    def __init__(self, path: Path, message: str, line: int | None = None, column: int | None = None):
        self.path = path
        self.line = line
        self.column = column
        location = f"{path}:{line}:{column}" if line is not None else str(path)
        super().__init__(f"{location}: {message}")
