"""
Salesforce gateways for the Partner and Raintree orgs.
"""

import logging
from typing import Dict, List, Any, Iterable, Optional

from ..core.config import SyncSettings
from ..exceptions import ConfigurationError, RecordNotFoundError, SalesforceAPIError
from ..integrations.salesforce.client import SalesforceClient
from ..models.mapping import SyncSource
from ..models.records import ObservedRecord, RecordKind
from .base import RecordGateway

logger = logging.getLogger(__name__)

# Keeps the IN (...) clause well under the SOQL statement length limit
BULK_QUERY_CHUNK_SIZE = 200


def _quote(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class SalesforceGateway(RecordGateway):
    """
    Gateway backed by a Salesforce org's REST API.

    Reads return ``ObservedRecord`` snapshots carrying the kind's synced
    fields and the record's modification timestamp.
    """

    def __init__(self, client: SalesforceClient):
        self.client = client
        logger.info(f"Initialized {self.__class__.__name__} for {client.instance_url}")

    def _observe(self, kind: RecordKind, data: Dict[str, Any]) -> ObservedRecord:
        try:
            return ObservedRecord.from_salesforce(kind, data)
        except ValueError as e:
            raise SalesforceAPIError(f"Unusable {kind.sobject} record from {self.side.value}: {e}") from e

    def fetch_by_id(self, kind: RecordKind, record_id: str) -> Optional[ObservedRecord]:
        try:
            data = self.client.get_record(kind.sobject, record_id, fields=kind.query_fields)
        except RecordNotFoundError:
            logger.info(f"{kind.sobject} {record_id} not found in {self.side.value}")
            return None
        return self._observe(kind, data)

    def fetch_recent(self, kind: RecordKind, limit: int = 100) -> List[ObservedRecord]:
        soql = (f"SELECT {', '.join(kind.query_fields)} FROM {kind.sobject} "
                f"ORDER BY CreatedDate DESC LIMIT {int(limit)}")
        records = self.client.query(soql)
        logger.info(f"Retrieved {len(records)} recent {kind.sobject} records from {self.side.value}")
        return [self._observe(kind, data) for data in records]

    def update(self, kind: RecordKind, record_id: str, fields: Dict[str, Any]) -> None:
        logger.info(f"Updating {kind.sobject} {record_id} in {self.side.value}")
        self.client.update_record(kind.sobject, record_id, fields)

    def test_connection(self) -> bool:
        result = self.client.test_connection()
        if result["status"] != "success":
            logger.error(f"{self.side.value} connection test failed: {result['message']}")
            return False
        return True


class PartnerGateway(SalesforceGateway):
    """Partner org gateway; reads mapped records in bulk with one SOQL query per chunk."""

    side = SyncSource.PARTNER

    def fetch_many(self, kind: RecordKind, record_ids: Iterable[str]) -> Dict[str, ObservedRecord]:
        ids = list(dict.fromkeys(record_ids))
        records: Dict[str, ObservedRecord] = {}

        for start in range(0, len(ids), BULK_QUERY_CHUNK_SIZE):
            chunk = ids[start:start + BULK_QUERY_CHUNK_SIZE]
            soql = (f"SELECT {', '.join(kind.query_fields)} FROM {kind.sobject} "
                    f"WHERE Id IN ({', '.join(_quote(record_id) for record_id in chunk)})")
            for data in self.client.query(soql):
                try:
                    record = ObservedRecord.from_salesforce(kind, data)
                except ValueError as e:
                    logger.warning(f"Ignoring unusable Partner {kind.sobject} record: {e}")
                    continue
                records[record.id] = record

        logger.info(f"Retrieved {len(records)} of {len(ids)} Partner {kind.sobject} records")
        return records


class RaintreeGateway(SalesforceGateway):
    """Raintree org gateway; id-oriented, records are read one at a time."""

    side = SyncSource.RAINTREE


def create_gateway_from_env(side: str, settings: Optional[SyncSettings] = None) -> SalesforceGateway:
    """Create the gateway for one side using environment variables.

    Args:
        side: "partner" or "raintree"
        settings: Already loaded settings; read from the environment if None

    Returns:
        Configured gateway instance

    Raises:
        ConfigurationError: If the side is unknown or its credentials are missing
    """
    from . import CONNECTOR_REGISTRY

    if side not in CONNECTOR_REGISTRY:
        raise ConfigurationError(f"Unknown side: {side}")

    settings = settings or SyncSettings.from_env()
    credentials = settings.credentials_for(side)
    client = SalesforceClient(
        instance_url=credentials.instance_url,
        access_token=credentials.access_token,
        api_version=settings.api_version,
        timeout=settings.request_timeout,
    )
    return CONNECTOR_REGISTRY[side](client)
