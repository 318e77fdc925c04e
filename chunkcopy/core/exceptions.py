"""
ChunkCopy Core Exceptions

Exception hierarchy shared by the migration engine, the API and the CLI.
"""


class ChunkCopyError(Exception):
    """Base exception for all ChunkCopy errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        """Convert the exception to a dictionary for API responses."""
        result = {
            'error': self.__class__.__name__,
            'message': self.message
        }
        if self.details:
            result['details'] = self.details
        return result


class ConfigurationError(ChunkCopyError):
    """A required setting is missing or invalid."""
    pass


class MetadataError(ChunkCopyError):
    """The source table or its columns could not be resolved."""
    pass


class ChunkExecutionError(ChunkCopyError):
    """A single chunk statement failed inside a worker."""
    pass


class ConnectionError(ChunkCopyError):
    """Pool exhaustion, or a cursor/writer session failed."""
    pass


class ValidationError(ChunkCopyError):
    """Invalid arguments passed to an operation."""
    pass


class DatabaseError(ChunkCopyError):
    """An ad hoc database query failed."""
    pass
