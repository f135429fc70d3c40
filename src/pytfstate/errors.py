class StorageError(Exception):
    """Raised when the state backend cannot be reached or answers unexpectedly."""

class FileAlreadyExistsError(StorageError):
    """Raised when creating a file that already exists in the backing repository."""
    def __init__(self, path: str):
        super().__init__(f'File already exists: {path}')
        self.path = path

class BodyTooLargeError(Exception):
    """Raised while streaming a request body that exceeds the configured limit."""
    def __init__(self, limit: int):
        super().__init__(f'Request body exceeds {limit} bytes')
        self.limit = limit
