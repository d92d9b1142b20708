"""Abstract interface for voice sample blob storage."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BlobStorageService(ABC):
    """Blob storage for recorded and uploaded voice samples.

    All methods may raise ``talkpad.exceptions.StorageError``; any other
    exception is treated the same way by callers. Timeouts are the
    implementation's concern and surface as failures.
    """

    @abstractmethod
    async def upload(self, data: bytes, *, name: str | None = None) -> str:
        """Store ``data`` and return its blob reference.

        Args:
            data: Encoded audio bytes.
            name: Suggested object name (e.g. ``"recording/sample-1"``).
        """
        ...

    @abstractmethod
    async def download(self, blob_ref: str) -> bytes:
        """Return the bytes stored under ``blob_ref``."""
        ...

    @abstractmethod
    async def delete(self, blob_ref: str) -> None:
        """Remove ``blob_ref``."""
        ...
