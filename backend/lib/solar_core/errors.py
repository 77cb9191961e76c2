class RelayError(Exception):
    """Base class for errors raised while producing a production report."""


class ConfigError(RelayError):
    pass


class DataSourceError(RelayError):
    """The reading store is missing, unreadable or corrupt."""


class ExtractionError(RelayError):
    """The external extractor could not be run or exited with an error."""
