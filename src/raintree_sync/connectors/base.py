"""
Base gateway class for the systems on either side of a sync.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Iterable, Optional
import logging

from ..models.mapping import SyncSource
from ..models.records import ObservedRecord, RecordKind

logger = logging.getLogger(__name__)


class RecordGateway(ABC):
    """
    Uniform read/update capability over one side of the sync.

    The engine only talks to this interface and never needs to know which
    concrete system backs a side. Implementations raise ``RemoteError``
    subclasses for failed calls.
    """

    side: SyncSource = SyncSource.SYSTEM

    @abstractmethod
    def fetch_by_id(self, kind: RecordKind, record_id: str) -> Optional[ObservedRecord]:
        """Fetch one record, or None if it does not exist on this side."""
        pass

    @abstractmethod
    def fetch_recent(self, kind: RecordKind, limit: int = 100) -> List[ObservedRecord]:
        """Fetch the most recently created records of a kind, newest first."""
        pass

    @abstractmethod
    def update(self, kind: RecordKind, record_id: str, fields: Dict[str, Any]) -> None:
        """Write the given fields onto an existing record."""
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test if the gateway can successfully reach its system."""
        pass

    def fetch_many(self, kind: RecordKind, record_ids: Iterable[str]) -> Dict[str, ObservedRecord]:
        """
        Fetch several records by id.

        Ids with no record on this side are absent from the result. The
        default implementation issues one request per id; gateways with a
        cheap bulk query override it.
        """
        records: Dict[str, ObservedRecord] = {}
        for record_id in record_ids:
            record = self.fetch_by_id(kind, record_id)
            if record is not None:
                records[record_id] = record
        return records

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(side={self.side.value})"
