"""Remote-side HEIC conversion.

When enabled, HEIC/HEIF files are converted to JPEG, uploaded next to the
original, and the original is moved to the provider's trash. The next
listing refresh then replaces the HEIC entry with the uploaded JPEG.
"""

from pathlib import PurePosixPath

from mediacache.core.logging import get_logger
from mediacache.media.errors import MediaError
from mediacache.media.models import JPEG_MIME_TYPE, RemoteEntry
from mediacache.media.providers.base import BaseRemoteProvider
from mediacache.media.retry import with_remote_retry

logger = get_logger(__name__)


def jpeg_name(name: str) -> str:
    """Replace a file name's extension with .jpg."""
    return str(PurePosixPath(name).with_suffix(".jpg"))


class RemoteConverter:
    """Writes converted JPEGs back to the remote store."""

    def __init__(
        self,
        provider: BaseRemoteProvider,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.provider = provider
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.converted = 0

    async def convert(self, entry: RemoteEntry, jpeg: bytes) -> str | None:
        """Upload ``jpeg`` in place of ``entry`` and trash the original.

        Args:
            entry: The HEIC/HEIF listing entry
            jpeg: Full-quality JPEG conversion of the original

        Returns:
            Id of the uploaded file, or None when the upload failed
        """
        name = jpeg_name(entry.name)
        try:
            new_id = await with_remote_retry(
                lambda: self.provider.upload(name, JPEG_MIME_TYPE, jpeg),
                attempts=self.retry_attempts,
                delay=self.retry_delay,
                operation="upload",
            )
        except MediaError as e:
            logger.error(
                "remote_conversion_failed",
                file_id=entry.id,
                name=entry.name,
                error=str(e),
            )
            return None

        try:
            await with_remote_retry(
                lambda: self.provider.move_to_trash(entry.id),
                attempts=self.retry_attempts,
                delay=self.retry_delay,
                operation="trash",
            )
        except MediaError as e:
            # The JPEG exists remotely now; the original lingers until removed
            logger.error(
                "remote_trash_failed",
                file_id=entry.id,
                name=entry.name,
                uploaded_id=new_id,
                error=str(e),
            )

        self.converted += 1
        logger.info(
            "remote_conversion_complete",
            file_id=entry.id,
            name=entry.name,
            uploaded_id=new_id,
            uploaded_name=name,
        )
        return new_id
