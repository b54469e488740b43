"""Filesystem blob store for generated audio."""
import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

AUDIO_ROOT = "audio"


def audio_path(week_id: str, group: str, key: str) -> str:
    return f"{AUDIO_ROOT}/{week_id}/{group}/{key}.mp3"


class LocalBlobStore:
    """Blobs addressed by slash-separated paths under a root directory."""

    def __init__(self, root: str):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise ValueError(f"Blob path escapes store root: {path}")
        return target

    def put(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target.as_uri()

    def get(self, path: str) -> str | None:
        target = self._resolve(path)
        return target.as_uri() if target.is_file() else None

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        if target.is_dir():
            shutil.rmtree(target)
        elif target.exists():
            target.unlink()

    def list(self, prefix: str = "") -> list[str]:
        """Names of the direct children under ``prefix``."""
        target = self._resolve(prefix)
        if not target.is_dir():
            return []
        return sorted(p.name for p in target.iterdir())


def cleanup_old_audio(store: LocalBlobStore, current_week: str) -> list[str]:
    """Delete every week folder under audio/ except the current one."""
    removed = []
    for week in store.list(AUDIO_ROOT):
        if week == current_week:
            continue
        store.delete(f"{AUDIO_ROOT}/{week}")
        removed.append(week)
    if removed:
        logger.info("Removed audio for old weeks: %s", ", ".join(removed))
    return removed
