from __future__ import annotations


class ExporterError(Exception):
    """Base class for exporter failures."""


class DataSourceError(ExporterError):
    """nvidia-smi (or the fixture) could not produce output."""


class SnapshotParseError(ExporterError):
    """The data source output is not a well-formed XML document."""


class ConfigError(ExporterError):
    """Invalid startup configuration."""
