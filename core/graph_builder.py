# /core/graph_builder.py

from typing import List

from core.database import InMemoryKnowledgeGraph
from core.logger import get_logger
from core.models import EntityRelation, NodeType, RelationshipType, ScrapedPage

logger = get_logger(__name__)

SAMPLE_NODES = [
    {
        "node_id": "1",
        "node_type": NodeType.PRODUCT,
        "name": "Nestlé Toll House Morsels",
        "properties": {"description": "Semi-sweet chocolate chips", "size": "340g"},
    },
    {
        "node_id": "2",
        "node_type": NodeType.RECIPE,
        "name": "Chocolate Chip Cookies",
        "properties": {"difficulty": "Easy", "prepTime": "15 minutes", "cookTime": "12 minutes"},
    },
    {
        "node_id": "3",
        "node_type": NodeType.CATEGORY,
        "name": "Baking",
        "properties": {"description": "Baking products and recipes"},
    },
    {
        "node_id": "4",
        "node_type": NodeType.INGREDIENT,
        "name": "Chocolate",
        "properties": {"description": "Key baking ingredient"},
    },
    {
        "node_id": "5",
        "node_type": NodeType.BRAND,
        "name": "Nestlé",
        "properties": {"description": "Global food brand"},
    },
]

SAMPLE_RELATIONSHIPS = [
    {"relationship_id": "r1", "type": RelationshipType.USED_IN, "source_id": "1", "target_id": "2"},
    {"relationship_id": "r2", "type": RelationshipType.BELONGS_TO, "source_id": "1", "target_id": "3"},
    {"relationship_id": "r3", "type": RelationshipType.BELONGS_TO, "source_id": "2", "target_id": "3"},
    {"relationship_id": "r4", "type": RelationshipType.CONTAINS, "source_id": "1", "target_id": "4"},
    {"relationship_id": "r5", "type": RelationshipType.MADE_BY, "source_id": "1", "target_id": "5"},
]


def load_sample_graph(graph: InMemoryKnowledgeGraph) -> InMemoryKnowledgeGraph:
    """Seeds an empty graph with a small baking product neighbourhood."""
    if graph.get_nodes():
        return graph

    for node in SAMPLE_NODES:
        graph.add_node(**node)
    for relationship in SAMPLE_RELATIONSHIPS:
        graph.add_relationship(**relationship)

    logger.info(f"Sample graph loaded with {len(SAMPLE_NODES)} nodes and {len(SAMPLE_RELATIONSHIPS)} relationships.")
    return graph


def derive_entity_relations(pages: List[ScrapedPage]) -> List[ScrapedPage]:
    """
    Detects relations between entities found on scraped pages:
    product -> brand / ingredients / category from product metadata, and
    page -> page REFERENCES when one page's content mentions another's title.
    Returns new page objects with entity_relations filled in.
    """
    enriched = []
    for page in pages:
        relations: List[EntityRelation] = []
        product = page.metadata.product_info

        if product and product.name:
            if product.brand:
                relations.append(EntityRelation(source=product.name, relation=RelationshipType.MADE_BY.value, target=product.brand))
            for ingredient in product.ingredients:
                relations.append(EntityRelation(source=product.name, relation=RelationshipType.CONTAINS.value, target=ingredient))
            if page.metadata.category:
                relations.append(EntityRelation(source=product.name, relation=RelationshipType.BELONGS_TO.value, target=page.metadata.category))

        content_lower = page.content.lower()
        for other in pages:
            if other.url != page.url and other.title and other.title.lower() in content_lower:
                relations.append(EntityRelation(source=page.title, relation=RelationshipType.REFERENCES.value, target=other.title))

        enriched.append(page.model_copy(update={"entity_relations": relations}))

    return enriched
