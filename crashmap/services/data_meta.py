"""Read-only access to the dataset metadata written by the refresh pipeline."""
import json
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from crashmap.utils.config import settings
from crashmap.utils.logging import get_logger

logger = get_logger(__name__)

VERSION_KEYS = (
    "dataVersion",
    "data_version",
    "data_version_label",
    "latestAccidentDate",
    "latest_accident_date",
)


class DataMetaReader:
    """Caches ``meta.json`` and re-reads it only when its mtime changes.

    Expected keys: sourceUrl, downloadedAt, rowCount, latestAccidentDate,
    dataVersion.
    """

    def __init__(self, meta_path: Optional[str] = None, version_override: Optional[str] = None):
        self.meta_path = Path(meta_path or settings.data.meta_path)
        self.version_override = (
            version_override if version_override is not None else settings.data.version_override
        )
        self._cached_mtime: Optional[float] = None
        self._cached_meta: Optional[Dict[str, Any]] = None

    def read(self) -> Optional[Dict[str, Any]]:
        """Return parsed metadata, or None when missing or unreadable."""
        try:
            mtime = os.stat(self.meta_path).st_mtime
        except OSError:
            return None

        if self._cached_mtime == mtime:
            return self._cached_meta

        try:
            with open(self.meta_path, encoding="utf-8") as f:
                meta = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Failed to read dataset metadata", path=str(self.meta_path), error=str(exc)
            )
            return None

        if not isinstance(meta, dict):
            logger.warning("Dataset metadata is not an object", path=str(self.meta_path))
            return None

        self._cached_mtime = mtime
        self._cached_meta = meta
        return meta

    def data_version_label(self) -> Optional[str]:
        """Label identifying the loaded extract, for freshness reporting."""
        meta = self.read()
        if meta:
            for key in VERSION_KEYS:
                if meta.get(key):
                    return str(meta[key])
        return self.version_override

    def latest_data_date(self) -> date:
        """Latest known crash date; today when metadata has none."""
        meta = self.read() or {}
        for key in ("latestAccidentDate", "dataVersion", "downloadedAt"):
            parsed = _parse_date(meta.get(key))
            if parsed:
                return parsed
        return date.today()


def _parse_date(raw: Any) -> Optional[date]:
    if not raw or not isinstance(raw, str):
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return None


_default_reader: Optional[DataMetaReader] = None


def get_data_meta_reader() -> DataMetaReader:
    global _default_reader
    if _default_reader is None:
        _default_reader = DataMetaReader()
    return _default_reader
