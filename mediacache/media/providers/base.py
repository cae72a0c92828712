"""Base class for remote file providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from mediacache.media.models import RemoteEntry


class BaseRemoteProvider(ABC):
    """Base class for remote file stores.

    All providers should inherit from this class and implement its abstract
    methods. Failures must be raised as ``RemoteUnavailable`` when retrying
    may help and ``RemoteRejected`` otherwise.
    """

    @abstractmethod
    async def list_files(self, query: str | None = None) -> list[RemoteEntry]:
        """List every file matching the query.

        Args:
            query: Provider-specific filter expression

        Returns:
            Remote entries in provider order
        """
        raise NotImplementedError

    @abstractmethod
    async def get_bytes(self, file_id: str) -> bytes:
        """Download the full payload of a file."""
        raise NotImplementedError

    @abstractmethod
    async def get_range(self, file_id: str, start: int, end: int) -> bytes:
        """Download bytes ``start`` through ``end`` (inclusive) of a file."""
        raise NotImplementedError

    @abstractmethod
    async def move_to_trash(self, file_id: str) -> None:
        """Move a file to the provider's trash."""
        raise NotImplementedError

    @abstractmethod
    async def upload(self, name: str, mime_type: str, data: bytes) -> str:
        """Upload a new file and return its id."""
        raise NotImplementedError

    async def iter_range(
        self, file_id: str, start: int, end: int, chunk_size: int
    ) -> AsyncIterator[bytes]:
        """Yield an inclusive byte span in pieces of at most ``chunk_size``.

        Providers that can stream natively may override this.
        """
        position = start
        while position <= end:
            chunk_end = min(position + chunk_size - 1, end)
            data = await self.get_range(file_id, position, chunk_end)
            if not data:
                return
            yield data
            position += len(data)

    async def close(self) -> None:
        """Release provider resources."""

    def __repr__(self) -> str:
        """String representation of the provider."""
        return f"{self.__class__.__name__}()"
