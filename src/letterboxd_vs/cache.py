import os
import logging
import tempfile
from contextlib import suppress
from pathlib import Path
from .config import CACHE_DIR

logger = logging.getLogger(__name__)


class FileCache:
    """
    Write-once key/value store backed by one file per key.

    Entries are never updated or removed by this class: the first insert for a
    key is authoritative and later inserts for the same key are no-ops. Keys must
    already be safe file names (see utils.validate_username).
    """

    def __init__(self, cache_dir: Path | str = CACHE_DIR):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        if not key or key in (".", "..") or "/" in key or "\\" in key or "\0" in key:
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.cache_dir / key

    def __contains__(self, key: str) -> bool:
        return self.path_for(key).exists()

    def get(self, key: str) -> str | None:
        """
        Return the cached value, or None when the key was never written.

        Any other I/O failure (permissions, unreadable file) is raised, never
        reported as a miss.
        """
        try:
            return self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def insert(self, key: str, value: str) -> None:
        """
        Store value under key unless the key already exists.

        The value is written to a temp file first and hard-linked into place.
        The link either creates the entry atomically or fails because another
        writer got there first, so concurrent inserts (threads or processes)
        cannot overwrite each other and readers never see a partial file.
        """
        path = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            try:
                os.link(tmp_name, path)
            except FileExistsError:
                logger.debug(f"Cache entry for {key} already exists, keeping it")
                return
            logger.debug(f"Cached {key} ({len(value)} bytes)")
        finally:
            with suppress(FileNotFoundError):
                os.unlink(tmp_name)
