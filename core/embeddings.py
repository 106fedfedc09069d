# /core/embeddings.py

import hashlib
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import List, Optional

import numpy as np
from langchain_core.embeddings import Embeddings
from langchain_google_genai import GoogleGenerativeAIEmbeddings

from core.config import settings
from core.logger import get_logger

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


def normalize(vector) -> List[float]:
    """L2-normalizes a vector. A zero vector is returned unchanged."""
    array = np.asarray(vector, dtype=np.float32)
    norm = float(np.linalg.norm(array))
    if norm == 0.0:
        return array.tolist()
    return (array / norm).tolist()


class HashingEmbeddings(Embeddings):
    """
    Deterministic, offline embeddings built with the hashing trick.

    Every lowercase word token is hashed into one of `dimensions` buckets with a
    +1/-1 sign taken from the same digest, so texts sharing vocabulary end up
    with a positive dot product. Used when the real model is unavailable.
    """

    def __init__(self, dimensions: int = 768):
        self.dimensions = dimensions

    def _embed(self, text: str) -> List[float]:
        vector = np.zeros(self.dimensions, dtype=np.float32)
        for token in TOKEN_PATTERN.findall(text.lower()):
            digest = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16)
            sign = 1.0 if (digest >> 64) & 1 else -1.0
            vector[digest % self.dimensions] += sign
        return normalize(vector)

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [self._embed(text) for text in texts]

    def embed_query(self, text: str) -> List[float]:
        return self._embed(text)


class FallbackEmbeddings(Embeddings):
    """
    Wraps a real embedding model and fails closed to a deterministic fallback.

    Any exception, timeout or wrong-sized vector from the primary model is
    logged and the text is embedded by the fallback instead, so callers never
    see a provider error. All returned vectors are L2-normalized.
    """

    def __init__(self, primary: Optional[Embeddings], fallback: Embeddings, dimensions: int, timeout: Optional[float] = None):
        self.primary = primary
        self.fallback = fallback
        self.dimensions = dimensions
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="embeddings") if primary else None

    def _call_primary(self, func, *args):
        future = self._executor.submit(func, *args)
        return future.result(timeout=self.timeout)

    def embed_query(self, text: str) -> List[float]:
        if self.primary is None:
            return self.fallback.embed_query(text)
        try:
            vector = self._call_primary(self.primary.embed_query, text)
            if len(vector) != self.dimensions:
                raise ValueError(f"expected {self.dimensions} dimensions, got {len(vector)}")
            return normalize(vector)
        except FutureTimeout:
            logger.warning(f"Embedding call timed out after {self.timeout}s. Using hash embedding.")
        except Exception as e:
            logger.warning(f"Embedding call failed, using hash embedding. Error: {e}")
        return self.fallback.embed_query(text)

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if self.primary is None:
            return self.fallback.embed_documents(texts)
        try:
            vectors = self._call_primary(self.primary.embed_documents, texts)
            if any(len(vector) != self.dimensions for vector in vectors):
                raise ValueError(f"expected {self.dimensions} dimensions")
            return [normalize(vector) for vector in vectors]
        except FutureTimeout:
            logger.warning(f"Batch embedding timed out after {self.timeout}s. Using hash embeddings.")
        except Exception as e:
            logger.warning(f"Batch embedding failed, using hash embeddings. Error: {e}")
        return self.fallback.embed_documents(texts)


def get_embeddings_model(config=settings) -> Embeddings:
    """Builds the application's embedding provider from settings."""
    fallback = HashingEmbeddings(dimensions=config.EMBEDDING_DIMENSIONS)
    primary = None
    if config.GOOGLE_API_KEY:
        primary = GoogleGenerativeAIEmbeddings(
            model=config.EMBEDDING_MODEL,
            google_api_key=config.GOOGLE_API_KEY,
        )
    else:
        logger.info("GOOGLE_API_KEY not set. Using hash embeddings only.")
    return FallbackEmbeddings(
        primary=primary,
        fallback=fallback,
        dimensions=config.EMBEDDING_DIMENSIONS,
        timeout=config.PROVIDER_TIMEOUT,
    )
