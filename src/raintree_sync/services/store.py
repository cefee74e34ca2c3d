"""
Mapping store: persistence for the Partner <-> Raintree pairings.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.config import SyncSettings
from ..models.mapping import RecordMapping, normalize_mappings
from ..models.records import RecordKind

logger = logging.getLogger(__name__)


class MappingStore(ABC):
    """Key-value persistence of mappings, keyed by record kind and Partner id."""

    @abstractmethod
    def get_raw(self, kind: RecordKind) -> Dict[str, Any]:
        """Stored values for a kind exactly as persisted."""
        pass

    @abstractmethod
    def put_many(self, kind: RecordKind, mappings: Dict[str, RecordMapping]) -> None:
        """Write several mappings; entries not named are left as they are."""
        pass

    def get(self, kind: RecordKind) -> Dict[str, RecordMapping]:
        """All well-formed mappings for a kind; malformed entries are logged and skipped."""
        mappings, skipped = normalize_mappings(self.get_raw(kind))
        if skipped:
            logger.warning(f"Ignored {len(skipped)} malformed {kind.value} mappings: {skipped}")
        return mappings

    def put(self, kind: RecordKind, partner_id: str, mapping: RecordMapping) -> None:
        self.put_many(kind, {partner_id: mapping})


class JsonFileMappingStore(MappingStore):
    """
    Mappings kept in one JSON document on local disk::

        {"opportunity": {"<partnerId>": {...}}, "lead": {...}}
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()
        logger.info(f"Mapping store using file: {self.path}")

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".mappings-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def get_raw(self, kind: RecordKind) -> Dict[str, Any]:
        with self._lock:
            return dict(self._load().get(kind.value, {}))

    def put_many(self, kind: RecordKind, mappings: Dict[str, RecordMapping]) -> None:
        if not mappings:
            return
        with self._lock:
            data = self._load()
            section = data.setdefault(kind.value, {})
            for partner_id, mapping in mappings.items():
                section[partner_id] = mapping.to_store()
            self._save(data)
        logger.info(f"Saved {len(mappings)} {kind.value} mappings to {self.path}")


def create_mapping_store(settings: Optional[SyncSettings] = None) -> MappingStore:
    """Firestore when ``MAPPING_STORE=firestore``, otherwise the local JSON file."""
    settings = settings or SyncSettings.from_env()
    if settings.mapping_store == "firestore":
        from .firestore import FirestoreMappingStore
        return FirestoreMappingStore(project_id=settings.google_cloud_project)
    return JsonFileMappingStore(settings.mapping_store_path)
