import asyncio
import logging
import os
from pathlib import Path
import aiofiles
from app.config import settings
from app.core.exceptions import StorageFailureException
from app.core.logging_utils import sanitize_log_message

# Timeout for file operations (30 seconds)
FILE_OPERATION_TIMEOUT = 30

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """
    Stores uploaded files under UPLOAD_DIR, addressed by a relative storage key
    such as ``documents/12/Jane_passport_1700000000000_1.pdf``.
    """

    def __init__(self, base_dir: str = None):
        self.base_dir = Path(base_dir or settings.UPLOAD_DIR).resolve()

    def path_for(self, storage_key: str) -> Path:
        """
        Resolve a storage key to an absolute path inside the upload directory.

        Raises:
            StorageFailureException if the key escapes the upload directory
        """
        path = (self.base_dir / storage_key).resolve()
        if self.base_dir not in path.parents:
            logger.error(sanitize_log_message("Rejected storage key outside upload dir", Key=storage_key))
            raise StorageFailureException()
        return path

    async def save(self, storage_key: str, content: bytes) -> Path:
        """
        Write ``content`` to ``storage_key``.

        Raises:
            StorageFailureException if the write fails or times out
        """
        path = self.path_for(storage_key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, 'wb') as f:
                await asyncio.wait_for(f.write(content), timeout=FILE_OPERATION_TIMEOUT)
        except (OSError, asyncio.TimeoutError) as e:
            logger.error(
                sanitize_log_message("File write failed", Key=storage_key, Error=repr(e)),
                exc_info=True
            )
            if path.exists():
                os.remove(path)
            raise StorageFailureException()
        return path

    def exists(self, storage_key: str) -> bool:
        return self.path_for(storage_key).is_file()

    def delete(self, storage_key: str) -> bool:
        """
        Remove a stored file. A file that is already gone is not an error.

        Returns:
            True if a file was removed

        Raises:
            StorageFailureException if removal fails
        """
        path = self.path_for(storage_key)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning(sanitize_log_message("Stored file already missing", Key=storage_key))
            return False
        except OSError as e:
            logger.error(sanitize_log_message("File delete failed", Key=storage_key, Error=repr(e)))
            raise StorageFailureException()
        return True
