# ============================================================================
# mail_indexer/attachment_store.py
# ============================================================================

import hashlib
import logging
import os
import tempfile

from .models import StoredAttachment


class AttachmentStore:
    """Content-addressed, write-once storage for attachment bodies."""

    DIGEST_SIZE = 32
    FILE_MODE = 0o444

    def __init__(self, logger: logging.Logger, base_dir: str):
        self.logger = logger
        self.base_dir = base_dir

    def path_for(self, data: bytes) -> str:
        digest = hashlib.blake2b(data, digest_size=self.DIGEST_SIZE).hexdigest()
        return os.path.join(self.base_dir, digest)

    def store(self, data: bytes) -> StoredAttachment:
        """
        Store bytes under their digest.

        The returned path is valid even when the write failed; the failure is
        reported in the result's error field instead of being raised.
        """
        try:
            path = self.path_for(data)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Could not hash attachment: {e}")
            return StoredAttachment(path='', error=str(e))

        if os.path.exists(path):
            self.logger.debug(f"File already exists: {path}")
            return StoredAttachment(path=path)

        try:
            created = self._write(path, data)
        except OSError as e:
            self.logger.error(f"Could not write file {path}: {e}")
            return StoredAttachment(path=path, error=str(e))

        if created:
            self.logger.debug(f"Stored {len(data)} bytes at {path}")
        return StoredAttachment(path=path, created=created)

    def _write(self, path: str, data: bytes) -> bool:
        os.makedirs(self.base_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, prefix='.tmp-')
        try:
            with os.fdopen(fd, 'wb') as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_path, self.FILE_MODE)
            return self._publish(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)

    def _publish(self, tmp_path: str, path: str) -> bool:
        """Atomically make tmp_path visible at path; False if another writer won."""
        try:
            os.link(tmp_path, path)
        except FileExistsError:
            self.logger.debug(f"Concurrent writer already published {path}")
            return False
        except (AttributeError, NotImplementedError, PermissionError):
            # No hard links on this filesystem
            os.replace(tmp_path, path)
        return True
