"""Domain errors raised by the import/export pipeline."""


class DataExchangeError(Exception):
    """Base class for import/export failures the API maps to HTTP errors."""


class UnsupportedEntityError(DataExchangeError):
    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"Unsupported entity type: {entity}")


class CsvParseError(DataExchangeError):
    """The uploaded file could not be read as CSV; no row was processed."""


class ImportInProgressError(DataExchangeError):
    def __init__(self, state: str):
        self.state = state
        super().__init__(f"An import is already running (state: {state})")


class NothingToExportError(DataExchangeError):
    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"No {entity} to export.")


class BatchLimitExceededError(DataExchangeError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"A write batch cannot hold more than {limit} operations")


class BatchCommitError(DataExchangeError):
    """An atomic batch commit failed and none of its writes were applied."""
