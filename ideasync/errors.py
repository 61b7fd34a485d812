"""Exception types for ideasync."""


class IdeaSyncError(Exception):
    """Base class for all ideasync errors."""


class ConfigError(IdeaSyncError):
    """Raised when configuration values cannot be parsed."""


class MalformedRemoteRecord(IdeaSyncError):
    """Raised when a fetched row lacks a required field.

    Attributes:
        field: Name of the missing or invalid remote field.
        entity_id: Id of the row, when it has one.
    """

    def __init__(self, field: str, entity_id: str | None = None):
        self.field = field
        self.entity_id = entity_id
        where = f" (id={entity_id})" if entity_id else ""
        super().__init__(f"Remote record missing or invalid '{field}'{where}")


class LocalCacheError(IdeaSyncError):
    """Raised when a cached document cannot be read back."""
