"""Local blob storage for converted ledgers and preview images."""

import os
import re
from typing import Optional

from statement_ledger.config.settings import STORAGE_DIR
from statement_ledger.utils.exceptions import ValidationError
from statement_ledger.utils.logger import get_logger

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(name: str) -> str:
    """Reduce a name to characters that are safe in a single path segment."""
    cleaned = _UNSAFE_CHARS_RE.sub("_", os.path.basename(name or "")).strip("._")
    if not cleaned:
        raise ValidationError(f"Invalid storage name: {name!r}")
    return cleaned


class LocalFileStorage:
    """Stores binary payloads under ``<root>/<namespace>/<name>``.

    The handle returned by :meth:`store` is the path relative to the root,
    with forward slashes.
    """

    def __init__(self, root: Optional[str] = None) -> None:
        self.root = os.path.abspath(root or STORAGE_DIR)
        self.logger = get_logger(__name__)

    def _resolve(self, handle: str) -> str:
        path = os.path.abspath(os.path.join(self.root, *handle.split("/")))
        if os.path.commonpath([self.root, path]) != self.root:
            raise ValidationError(f"Storage handle escapes the storage root: {handle}")
        return path

    def store(self, namespace: str, name: str, data: bytes) -> str:
        """Write ``data`` and return its handle."""
        handle = f"{safe_name(namespace)}/{safe_name(name)}"
        path = self._resolve(handle)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as file:
            file.write(data)
        self.logger.info(f"Stored {len(data)} bytes at {handle}")
        return handle

    def read(self, handle: str) -> bytes:
        with open(self._resolve(handle), "rb") as file:
            return file.read()

    def exists(self, handle: str) -> bool:
        return os.path.isfile(self._resolve(handle))

    def delete(self, handle: str) -> bool:
        """Remove a stored payload. Returns False if it did not exist."""
        path = self._resolve(handle)
        if not os.path.isfile(path):
            return False
        os.remove(path)
        self.logger.info(f"Deleted {handle}")
        return True

    def path_for(self, handle: str) -> str:
        return self._resolve(handle)
