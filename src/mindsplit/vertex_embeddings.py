"""
Vertex AI embedding provider (gemini-embedding-001).

Transient API errors (rate limits, 5xx) are retried with exponential
backoff inside the provider; other errors and the last failed attempt
are raised unchanged.

Environment Variables:
    GCP_PROJECT: Google Cloud project ID
    GCP_REGION: Google Cloud region (default: europe-west4)
"""

import logging
import os
import time
from typing import List, Optional

from google.api_core.exceptions import InternalServerError, ResourceExhausted

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "gemini-embedding-001"
DEFAULT_DIMENSION = 768

# Retry configuration
MAX_RETRIES = 3
INITIAL_BACKOFF = 1.0  # seconds
MAX_BACKOFF = 32.0  # seconds


class VertexEmbeddingProvider:
    """
    Embeds text with a Vertex AI text embedding model.

    Args:
        project: GCP project (default: GCP_PROJECT env var)
        region: GCP region (default: GCP_REGION env var or europe-west4)
        model_name: Vertex AI model id
        dimension: output_dimensionality requested from the model
    """

    def __init__(
        self,
        project: Optional[str] = None,
        region: Optional[str] = None,
        model_name: str = DEFAULT_MODEL_NAME,
        dimension: int = DEFAULT_DIMENSION
    ):
        self.project = project or os.getenv('GCP_PROJECT')
        self.region = region or os.getenv('GCP_REGION', 'europe-west4')
        self.model_name = model_name
        self.dimension = dimension
        self._model = None

    def _get_model(self):
        """Lazy initialization of the Vertex AI model."""
        if self._model is None:
            from google.cloud import aiplatform
            from vertexai.language_models import TextEmbeddingModel

            logger.info(f"Initializing Vertex AI in project={self.project}, region={self.region}")
            aiplatform.init(project=self.project, location=self.region)
            self._model = TextEmbeddingModel.from_pretrained(self.model_name)
            logger.info(f"Embedding model {self.model_name} loaded")
        return self._model

    def embed(self, text: str) -> List[float]:
        model = self._get_model()
        backoff = INITIAL_BACKOFF

        for attempt in range(MAX_RETRIES):
            try:
                embeddings = model.get_embeddings([text], output_dimensionality=self.dimension)
                return [float(x) for x in embeddings[0].values]
            except (ResourceExhausted, InternalServerError) as e:
                if attempt == MAX_RETRIES - 1:
                    logger.error(f"Embedding failed after {MAX_RETRIES} attempts: {e}")
                    raise
                logger.warning(
                    f"Transient embedding error (attempt {attempt + 1}/{MAX_RETRIES}), "
                    f"retrying after {backoff}s: {e}"
                )
                time.sleep(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)

        # Unreachable: the last attempt either returns or raises
        raise RuntimeError("Embedding retries exhausted")
