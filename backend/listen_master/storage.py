from __future__ import annotations
import logging
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class LocalAudioStorage:
    """Stores uploaded audio on local disk; files are served from ``base_url``."""

    def __init__(self, root: str | Path, base_url: str = "/media") -> None:
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or any(p in ("..", ".") for p in parts):
            raise StorageError(f"invalid storage key: {key!r}")
        return self.root.joinpath(*parts)

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def save(self, key: str, data: bytes) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"failed to write {key}: {e}") from e
        logger.info("Stored %s (%d bytes)", key, len(data))
        return self.url_for(key)

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"failed to delete {key}: {e}") from e
        return True

    def key_for_url(self, url: str) -> str | None:
        prefix = self.base_url + "/"
        if url.startswith(prefix):
            return url[len(prefix):]
        return None
