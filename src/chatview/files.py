"""Copy message attachments out of the vendor data directory."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from datetime import datetime

from .cache import CacheService
from .errors import PathNotFound, WriteFailed
from .models import ChatMessage, MessageType

_logger = logging.getLogger(__name__)


def write_atomic(path: str, data: bytes) -> None:
    """Write *data* to *path* via a temp file in the same directory.

    The target is either left as it was or fully replaced; a failed write
    never leaves a partial file behind.
    """
    tmp = tempfile.NamedTemporaryFile(
        dir=os.path.dirname(path) or ".", prefix=".tmp-", delete=False
    )
    try:
        with tmp:
            tmp.write(data)
        os.replace(tmp.name, path)
    except BaseException:
        try:
            os.remove(tmp.name)
        except FileNotFoundError:
            pass
        raise


_EXTENSIONS = {
    MessageType.IMAGE: ".jpg",
    MessageType.VOICE: ".silk",
    MessageType.VIDEO: ".mp4",
}


def attachment_extension(message: ChatMessage) -> str:
    """Pick the saved file's extension from the message type."""
    if message.type in _EXTENSIONS:
        return _EXTENSIONS[message.type]
    if message.type == MessageType.FILE and message.file_name:
        ext = os.path.splitext(message.file_name)[1]
        if ext:
            return ext
    return ".file"


class FileService:
    """Save attachments under ``<base_dir>/<YYYY>/<MM>/``, remembering where."""

    def __init__(
        self,
        base_dir: str,
        cache: CacheService | None = None,
        logger: logging.Logger | None = None,
    ):
        self.base_dir = base_dir
        self.logger = logger or _logger
        self.cache = cache if cache is not None else CacheService(logger=self.logger)

    def target_path(self, message: ChatMessage) -> str:
        created = datetime.fromtimestamp(message.create_time)
        folder = os.path.join(self.base_dir, f"{created.year:04d}", f"{created.month:02d}")
        filename = f"{message.create_time * 1000}_{message.msg_id}{attachment_extension(message)}"
        return os.path.join(folder, filename)

    def save_file(self, message: ChatMessage) -> str:
        """Copy *message*'s attachment and return the saved path."""
        key = f"file_{message.msg_id}"
        cached = self.cache.get_file(key)
        if cached is not None:
            return cached

        src_path = message.file_path
        if not src_path:
            raise PathNotFound(
                f"Message {message.msg_id} has no attachment", {"msg_id": message.msg_id}
            )
        if not os.path.isfile(src_path) or not os.access(src_path, os.R_OK):
            raise PathNotFound(
                f"Attachment missing or unreadable: {src_path}",
                {"msg_id": message.msg_id, "path": src_path},
            )

        target = self.target_path(message)
        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            shutil.copyfile(src_path, target)
        except OSError as e:
            self.logger.warning("Could not copy attachment %s: %s", src_path, e)
            raise WriteFailed(
                f"Could not copy attachment to {target}: {e}",
                {"msg_id": message.msg_id, "path": target},
            ) from e

        self.cache.set_file(key, target)
        self.logger.info("Saved attachment %s", target)
        return target
