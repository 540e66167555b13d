"""
Firestore-backed store for MindSplit.

One document per key in a single collection. Vectors are written as
Firestore Vector values in the 'embedding' field so search() can use
FIND_NEAREST; everything else is JSON-encoded in the 'value' field.

batch() maps onto a Firestore WriteBatch, which commits atomically.

Environment Variables:
    GCP_PROJECT: Google Cloud project ID
    MINDSPLIT_COLLECTION: Firestore collection name (default: mindsplit_memory)
"""

import json
import logging
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore
from google.cloud.firestore_v1.base_vector_query import DistanceMeasure
from google.cloud.firestore_v1.vector import Vector

from .exceptions import StorageError, ValidationError
from .store import BatchOp, SearchResult, is_vector, normalize_ops

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = 'mindsplit_memory'

# Firestore rejects write batches above this size
MAX_BATCH_SIZE = 500


class FirestoreStore:
    """
    Store backed by a Firestore collection.

    Args:
        client: Existing firestore.Client (created from GCP_PROJECT if omitted)
        collection_name: Collection holding one document per key
    """

    def __init__(
        self,
        client: Optional[firestore.Client] = None,
        collection_name: Optional[str] = None
    ):
        if client is None:
            project = os.getenv('GCP_PROJECT')
            logger.info(f"Initializing Firestore client for project: {project}")
            client = firestore.Client(project=project)

        self.client = client
        self.collection_name = collection_name or os.getenv('MINDSPLIT_COLLECTION', DEFAULT_COLLECTION)
        self.collection = client.collection(self.collection_name)

    def _ref(self, key: str):
        if not key or '/' in key:
            raise ValidationError(f"Invalid store key: {key!r}")
        return self.collection.document(key)

    @staticmethod
    def _encode(value: Any) -> Dict[str, Any]:
        if is_vector(value):
            return {'kind': 'vector', 'embedding': Vector([float(x) for x in value])}
        return {'kind': 'json', 'value': json.dumps(value)}

    @staticmethod
    def _decode(data: Dict[str, Any]) -> Any:
        if data.get('kind') == 'vector':
            embedding = data.get('embedding')
            if hasattr(embedding, 'to_map_value'):
                map_value = embedding.to_map_value()
                embedding = map_value.get('value', map_value)
            return [float(x) for x in embedding]
        return json.loads(data['value'])

    def get(self, key: str) -> Any:
        try:
            doc = self._ref(key).get()
        except GoogleAPICallError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        if not doc.exists:
            return None
        return self._decode(doc.to_dict())

    def set(self, key: str, value: Any) -> None:
        try:
            self._ref(key).set(self._encode(value))
        except GoogleAPICallError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._ref(key).delete()
        except GoogleAPICallError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

    def has(self, key: str) -> bool:
        try:
            return self._ref(key).get().exists
        except GoogleAPICallError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    def batch(self, operations: Iterable[Union[BatchOp, Mapping[str, Any]]]) -> None:
        """
        Commit all operations in one WriteBatch.

        Raises:
            StorageError: If the batch is too large or the commit fails;
                Firestore applies nothing from a failed commit
        """
        ops = normalize_ops(operations)
        if not ops:
            return
        if len(ops) > MAX_BATCH_SIZE:
            raise StorageError(
                f"Batch of {len(ops)} operations exceeds Firestore limit of {MAX_BATCH_SIZE}"
            )

        write_batch = self.client.batch()
        for operation in ops:
            ref = self._ref(operation.key)
            if operation.op == 'set':
                write_batch.set(ref, self._encode(operation.value))
            else:
                write_batch.delete(ref)

        try:
            write_batch.commit()
        except GoogleAPICallError as e:
            logger.error(f"Firestore batch commit failed: {e}")
            raise StorageError(f"Batch write failed: {e}") from e

        logger.debug(f"Committed Firestore batch of {len(ops)} operations")

    def search(self, query_vector: Sequence[float], top_k: int) -> List[SearchResult]:
        """Cosine nearest neighbours using Firestore FIND_NEAREST."""
        if top_k <= 0:
            return []

        vector_query = self.collection.find_nearest(
            vector_field='embedding',
            query_vector=Vector([float(x) for x in query_vector]),
            distance_measure=DistanceMeasure.COSINE,
            limit=top_k,
            distance_result_field='vector_distance'
        )

        try:
            docs = list(vector_query.stream())
        except GoogleAPICallError as e:
            raise StorageError(f"Vector search failed: {e}") from e

        results = []
        for doc in docs:
            data = doc.to_dict()
            distance = float(data.pop('vector_distance', 1.0))
            results.append(SearchResult(key=doc.id, score=1.0 - distance, value=self._decode(data)))

        logger.info(f"Found {len(results)} nearest neighbours")
        return results
