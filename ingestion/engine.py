from typing import Dict, List

from core.database import InMemoryKnowledgeGraph
from core.logger import get_logger
from core.vector_store import VectorStore
from ingestion.sources import DataSource

logger = get_logger(__name__)


class IngestionEngine:
    def __init__(self, vector_store: VectorStore, graph: InMemoryKnowledgeGraph, data_sources: List[DataSource]):
        self.vector_store = vector_store
        self.graph = graph
        self.data_sources = data_sources

    def run(self) -> Dict[str, int]:
        """
        Runs the ingestion pipeline:
        1. Loads pages from all sources.
        2. Upserts them into the vector store.
        3. Imports the entity relations found on them into the knowledge graph.

        The two stores are updated independently; a failure in one does not
        roll back the other.
        """
        pages = []
        for source in self.data_sources:
            pages.extend(source.load_pages())

        if not pages:
            logger.info("No pages loaded. Exiting ingestion.")
            return {"pages": 0, "documents": 0, "graph_changes": 0}

        documents = self.vector_store.add_pages(pages)

        graph_changes = 0
        for page in pages:
            if page.entity_relations:
                graph_changes += self.graph.import_entity_relations(page.entity_relations)

        logger.info(f"Ingestion complete: {len(pages)} pages, {documents} documents stored, {graph_changes} graph changes.")
        return {"pages": len(pages), "documents": documents, "graph_changes": graph_changes}
