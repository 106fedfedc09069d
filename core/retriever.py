# /core/retriever.py

from typing import Dict, List, Optional

from core.database import GraphStore
from core.logger import get_logger
from core.models import GraphNode, GraphRelationship, KnowledgeSubgraph, QueryIntent, SearchHit
from core.nutrition import NutritionalInfo

logger = get_logger(__name__)

NO_VECTOR_RESULTS = "No specific information found in vector database."
NO_GRAPH_RESULTS = "No relevant knowledge graph information found."


def extract_knowledge_subgraph(graph: GraphStore, query: str, seed_count: int = 3, depth: int = 2) -> KnowledgeSubgraph:
    """
    Finds the graph neighbourhood relevant to a query.

    The top `seed_count` nodes by semantic similarity each get their own BFS of
    `depth` hops and the results are merged, deduplicated by id. The best match
    is reported as the central node. No match gives an empty subgraph.
    """
    try:
        seeds = graph.semantic_node_search(query, seed_count)
        if not seeds:
            return KnowledgeSubgraph()

        all_nodes: Dict[str, GraphNode] = {}
        all_relationships: Dict[str, GraphRelationship] = {}
        for seed in seeds:
            subgraph = graph.query_graph(seed.id, depth)
            for node in subgraph.nodes:
                all_nodes.setdefault(node.id, node)
            for relationship in subgraph.relationships:
                all_relationships.setdefault(relationship.id, relationship)

        return KnowledgeSubgraph(
            nodes=list(all_nodes.values()),
            relationships=list(all_relationships.values()),
            central_node=seeds[0],
        )
    except Exception as e:
        logger.error(f"Error extracting knowledge subgraph: {e}", exc_info=True)
        return KnowledgeSubgraph()


def format_vector_context(hits: List[SearchHit]) -> str:
    return "\n\n".join(f"Title: {hit.title}\nURL: {hit.url}\nContent: {hit.content}" for hit in hits)


def format_graph_context(subgraph: KnowledgeSubgraph) -> str:
    if not subgraph.nodes:
        return NO_GRAPH_RESULTS

    node_blocks = []
    for node in subgraph.nodes:
        block = f"{node.type.value.upper()}: {node.name}"
        if node.properties:
            block += "\nProperties: " + ", ".join(f"{key}: {value}" for key, value in node.properties.items())
        node_blocks.append(block)

    names = {node.id: node.name for node in subgraph.nodes}
    relationship_lines = [
        f"{names[rel.source_id]} -[{rel.type}]-> {names[rel.target_id]}"
        for rel in subgraph.relationships
        if rel.source_id in names and rel.target_id in names
    ]

    sections = [
        "NODES:\n" + "\n\n".join(node_blocks),
        "RELATIONSHIPS:\n" + "\n".join(relationship_lines),
    ]
    if subgraph.central_node is not None:
        sections.append(f"CENTRAL CONCEPT: {subgraph.central_node.name} ({subgraph.central_node.type.value})")
    return "\n\n".join(sections)


def format_nutrition_context(entity_name: str, entries: List[NutritionalInfo]) -> str:
    lines = [f'NUTRITIONAL INFORMATION FOR "{entity_name.upper()}":']
    for index, info in enumerate(entries, start=1):
        lines.append("")
        lines.append(f"Product Variant {index}: {info.name}")
        lines.append(f"Serving Size: {info.serving_size}")
        lines.append(f"Calories: {info.calories} per serving")
        if info.protein:
            lines.append(f"Protein: {info.protein}g")
        if info.carbohydrates:
            lines.append(f"Carbohydrates: {info.carbohydrates}g")
        if info.sugars:
            lines.append(f"Sugars: {info.sugars}g")
        if info.fat:
            lines.append(f"Total Fat: {info.fat.total}g")
            if info.fat.saturated:
                lines.append(f"Saturated Fat: {info.fat.saturated}g")
        if info.variants:
            lines.append(f"Sub-variants within {info.name}:")
            for variant in info.variants:
                lines.append(f"- {variant.name}: {variant.serving_size}, {variant.calories} calories")
    return "\n".join(lines)


def format_filtered_context(intent: QueryIntent, hits: List[SearchHit]) -> str:
    header = f'SPECIALIZED RESULTS FOR {intent.entity_type.upper()} "{intent.entity_name or ""}":'
    blocks = [f"Title: {hit.title}\nURL: {hit.url}\nExcerpt: {hit.content[:200]}..." for hit in hits]
    return header + "\n" + "\n\n".join(blocks)


def build_combined_context(vector_hits: List[SearchHit], graph_context: str, specialized_context: Optional[str] = None) -> str:
    """Fuses vector hits, graph context and specialized blocks into one context string."""
    sections = [
        "VECTOR DATABASE RESULTS:\n" + (format_vector_context(vector_hits) or NO_VECTOR_RESULTS),
        "KNOWLEDGE GRAPH CONTEXT:\n" + (graph_context or NO_GRAPH_RESULTS),
    ]
    if specialized_context:
        sections.append(specialized_context)
    return "\n\n".join(sections)
