# /core/vector_store.py

import base64
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import faiss
from langchain_community.docstore.in_memory import InMemoryDocstore
from langchain_community.vectorstores import FAISS
from langchain_community.vectorstores.utils import DistanceStrategy
from langchain_core.embeddings import Embeddings

from core.exceptions import MalformedInputError
from core.logger import get_logger
from core.models import (
    DocumentMetadata,
    Reference,
    ScrapedPage,
    SearchFilters,
    SearchHit,
    VectorDocument,
)

logger = get_logger(__name__)

DEFAULT_PREVIEW_LENGTH = 1000
EMBEDDING_CONTENT_LIMIT = 8000
_ID_STRIP = str.maketrans("", "", "+/=")


def document_id_for(url: str) -> str:
    """Deterministic document id: the base64 form of the url without + / =."""
    return base64.b64encode(url.encode("utf-8")).decode("ascii").translate(_ID_STRIP)


def classify_page_type(page: ScrapedPage) -> str:
    """
    Classifies a scraped page. The first matching rule wins:
    product, recipe, about, contact, category, general.
    """
    metadata = page.metadata
    title = page.title.lower()
    content = page.content.lower()

    if metadata.product_info is not None and metadata.product_info.name:
        return "product"
    if metadata.recipe_info is not None:
        return "recipe"
    if "about" in title or "about us" in content or "our story" in content:
        return "about"
    if "contact" in title or "contact us" in content:
        return "contact"
    if "/category/" in page.url or "/categories/" in page.url or metadata.category:
        return "category"
    return "general"


def truncate(content: str, length: int = DEFAULT_PREVIEW_LENGTH) -> str:
    if len(content) > length:
        return content[:length] + "..."
    return content


class VectorStore:
    """
    In-memory semantic index over scraped pages.

    Documents are keyed by url and kept in insertion order; the vectors live in
    a FAISS inner-product index. Because every vector is L2-normalized by the
    embedding provider, the inner product is the cosine similarity.
    """

    def __init__(self, embeddings_model: Embeddings, dimensions: int, preview_length: int = DEFAULT_PREVIEW_LENGTH):
        self.embeddings_model = embeddings_model
        self.dimensions = dimensions
        self.preview_length = preview_length
        self._lock = threading.RLock()
        self._documents: Dict[str, VectorDocument] = {}
        self._index = self._new_index()

    def _new_index(self) -> FAISS:
        return FAISS(
            embedding_function=self.embeddings_model,
            index=faiss.IndexFlatIP(self.dimensions),
            docstore=InMemoryDocstore(),
            index_to_docstore_id={},
            distance_strategy=DistanceStrategy.MAX_INNER_PRODUCT,
        )

    def _hit(self, document: VectorDocument, score: Optional[float] = None) -> SearchHit:
        return SearchHit(
            url=document.url,
            title=document.title,
            content=truncate(document.content, self.preview_length),
            score=score,
        )

    # --- Writes ---

    def build_document(self, page: ScrapedPage) -> VectorDocument:
        """Embeds and classifies a scraped page without storing it."""
        content_for_embedding = "\n".join([
            f"Title: {page.title}",
            f"Description: {page.metadata.description or ''}",
            f"Category: {page.metadata.category or ''}",
            f"Content: {page.content[:EMBEDDING_CONTENT_LIMIT]}",
        ])
        vector = self.embeddings_model.embed_query(content_for_embedding)

        return VectorDocument(
            id=document_id_for(page.url),
            url=page.url,
            title=page.title,
            content=page.content,
            vector=vector,
            metadata=DocumentMetadata(
                category=page.metadata.category or None,
                tags=list(page.metadata.tags),
                page_type=classify_page_type(page),
                last_updated=datetime.now(timezone.utc).isoformat(),
                image_count=len(page.images),
                product_info=page.metadata.product_info,
                recipe_info=page.metadata.recipe_info,
            ),
        )

    def upsert(self, document: VectorDocument) -> VectorDocument:
        """
        Stores a document keyed by its url. An existing document with the same
        url is overwritten in place, keeping its position.
        """
        if not document.url:
            raise MalformedInputError("Document url is required.")
        if len(document.vector) != self.dimensions:
            raise MalformedInputError(f"Document vector must have {self.dimensions} dimensions, got {len(document.vector)}.")

        doc_id = document_id_for(document.url)
        if document.id != doc_id:
            document = document.model_copy(update={"id": doc_id})

        with self._lock:
            exists = document.url in self._documents
            # The index is keyed by url; stripped base64 ids can collide
            if exists:
                self._index.delete([document.url])
            self._index.add_embeddings(
                [(document.content, document.vector)],
                metadatas=[{"url": document.url, "title": document.title, "page_type": document.metadata.page_type}],
                ids=[document.url],
            )
            self._documents[document.url] = document

        if exists:
            logger.info(f"Updated document: {document.title}")
        else:
            logger.info(f"Added new document: {document.title}")
        return document

    def add_pages(self, pages: Iterable[ScrapedPage]) -> int:
        """Builds and upserts each page. A failing page is logged and skipped."""
        pages = list(pages)
        logger.info(f"Adding {len(pages)} pages to vector database")
        stored = 0
        for page in pages:
            try:
                self.upsert(self.build_document(page))
                stored += 1
            except Exception as e:
                logger.error(f"Error adding {page.url} to vector database: {e}")
        logger.info(f"Vector database now contains {self.count()} documents")
        return stored

    def clear(self):
        with self._lock:
            self._documents = {}
            self._index = self._new_index()

    # --- Reads ---

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def get_document(self, url: str) -> Optional[VectorDocument]:
        with self._lock:
            return self._documents.get(url)

    def list_sources(self) -> List[Reference]:
        with self._lock:
            return [Reference(url=doc.url, title=doc.title) for doc in self._documents.values()]

    def similarity_search(self, query: str, k: int = 5) -> List[SearchHit]:
        """Top-k documents by cosine similarity to the query, with content previews."""
        if k <= 0 or self.count() == 0:
            logger.info("Vector database is empty, returning empty results")
            return []

        query_vector = self.embeddings_model.embed_query(query)

        with self._lock:
            results = self._index.similarity_search_with_score_by_vector(query_vector, k=k)
            hits = []
            for doc, score in results:
                document = self._documents.get(doc.metadata["url"])
                if document is not None:
                    hits.append(self._hit(document, float(score)))

        logger.info(f"Found {len(hits)} relevant results for query: {query}")
        return hits

    def filtered_search(self, filters: SearchFilters) -> List[SearchHit]:
        """
        Pure metadata filter with AND semantics across the provided filters.
        category and page_type match exactly, product_name and brand are
        case-insensitive substrings, tags match on any overlap. Not ranked.
        """
        product_name = filters.product_name.lower() if filters.product_name else None
        brand = filters.brand.lower() if filters.brand else None
        tags = set(filters.tags) if filters.tags else None

        def matches(document: VectorDocument) -> bool:
            metadata = document.metadata
            product = metadata.product_info
            if filters.category and metadata.category != filters.category:
                return False
            if filters.page_type and metadata.page_type != filters.page_type:
                return False
            if product_name and not (product and product.name and product_name in product.name.lower()):
                return False
            if brand and not (product and product.brand and brand in product.brand.lower()):
                return False
            if tags and not tags.intersection(metadata.tags):
                return False
            return True

        with self._lock:
            results = [self._hit(document) for document in self._documents.values() if matches(document)]

        logger.info(f"Found {len(results)} results matching filters {filters.model_dump(exclude_none=True)}")
        return results
