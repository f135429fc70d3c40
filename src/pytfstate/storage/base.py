from abc import ABCMeta, abstractmethod

class StateStorage(metaclass=ABCMeta):
    """Content store keyed by repository path, where every write becomes a revision."""

    @abstractmethod
    def get_file(self, path: str) -> tuple[bytes, str] | None:
        """
        Read a file and its revision token.

        Returns None if the file does not exist.
        Raises StorageError only for transport or backend failures.
        """
        raise NotImplementedError

    @abstractmethod
    def create_or_update_file(self, path: str, content: bytes, message: str) -> None:
        """Create the file, or replace its content if it exists, recording `message` on the revision."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any client resources held by the storage."""
        pass
