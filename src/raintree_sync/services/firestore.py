"""
Firestore-backed mapping store.
"""

import logging
from typing import Dict, Any, Optional
from google.cloud import firestore
from google.auth import default

from ..models.mapping import RecordMapping
from ..models.records import RecordKind
from .store import MappingStore

logger = logging.getLogger(__name__)

# Firestore caps a write batch at 500 operations
BATCH_SIZE = 500


class FirestoreMappingStore(MappingStore):
    """
    Mappings stored in Firestore, one collection per record kind and one
    document per Partner id.
    """

    def __init__(self, project_id: Optional[str] = None, client: Optional[firestore.Client] = None,
                 collection_prefix: str = "sync_mappings"):
        """
        Initialize Firestore mapping store.

        Args:
            project_id: Google Cloud project ID. If None, uses default from environment.
            client: Existing Firestore client to use instead of creating one
            collection_prefix: Collection name prefix; the kind is appended
        """
        try:
            if client is not None:
                self.db = client
            elif project_id:
                self.db = firestore.Client(project=project_id)
            else:
                # Use application default credentials
                credentials, project = default()
                self.db = firestore.Client(project=project, credentials=credentials)

            self.collection_prefix = collection_prefix
            logger.info(f"Firestore mapping store initialized for project: {self.db.project}")

        except Exception as e:
            logger.error(f"Failed to initialize Firestore: {e}")
            raise

    def collection_name(self, kind: RecordKind) -> str:
        return f"{self.collection_prefix}_{kind.value}"

    def get_raw(self, kind: RecordKind) -> Dict[str, Any]:
        try:
            collection = self.db.collection(self.collection_name(kind))
            return {doc.id: doc.to_dict() for doc in collection.stream()}
        except Exception as e:
            logger.error(f"Failed to load {kind.value} mappings: {e}")
            raise

    def put_many(self, kind: RecordKind, mappings: Dict[str, RecordMapping]) -> None:
        try:
            collection = self.db.collection(self.collection_name(kind))
            items = list(mappings.items())

            for start in range(0, len(items), BATCH_SIZE):
                batch = self.db.batch()
                for partner_id, mapping in items[start:start + BATCH_SIZE]:
                    batch.set(collection.document(partner_id), mapping.to_store())
                batch.commit()

            logger.info(f"Saved {len(items)} {kind.value} mappings to Firestore")

        except Exception as e:
            logger.error(f"Failed to save {kind.value} mappings: {e}")
            raise
