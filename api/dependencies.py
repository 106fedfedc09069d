from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from langchain_core.embeddings import Embeddings

from core.agent_logic import build_chat_agent
from core.config import Settings, settings
from core.database import InMemoryKnowledgeGraph
from core.embeddings import get_embeddings_model
from core.generator import GeminiGenerator, GeneratorAdapter
from core.graph_builder import load_sample_graph
from core.logger import get_logger
from core.vector_store import VectorStore

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything a request handler needs. One instance per application."""
    config: Settings
    embeddings: Embeddings
    graph: InMemoryKnowledgeGraph
    vector_store: VectorStore
    generator: GeneratorAdapter
    agent: Any


def create_services(config: Settings = settings, embeddings: Optional[Embeddings] = None, generator: Optional[GeneratorAdapter] = None) -> Services:
    """Builds fresh, empty stores and wires them into the chat workflow."""
    embeddings = embeddings or get_embeddings_model(config)
    generator = generator or GeminiGenerator(config)

    graph = InMemoryKnowledgeGraph(embeddings_model=embeddings, brand_names=config.BRAND_NAMES)
    if config.SEED_SAMPLE_GRAPH:
        load_sample_graph(graph)

    vector_store = VectorStore(
        embeddings_model=embeddings,
        dimensions=config.EMBEDDING_DIMENSIONS,
        preview_length=config.PREVIEW_LENGTH,
    )
    agent = build_chat_agent(vector_store, graph, generator, config)

    logger.info("Services initialized.")
    return Services(
        config=config,
        embeddings=embeddings,
        graph=graph,
        vector_store=vector_store,
        generator=generator,
        agent=agent,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
