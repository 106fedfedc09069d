# /core/models.py

import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# This file holds all the shared Pydantic data structures.
# Field names are snake_case in Python and camelCase on the wire.

RELATIONSHIP_TYPE_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NodeType(str, Enum):
    PRODUCT = "product"
    RECIPE = "recipe"
    INGREDIENT = "ingredient"
    CATEGORY = "category"
    BRAND = "brand"
    PAGE = "page"
    CUSTOM = "custom"


class RelationshipType(str, Enum):
    """Conventional relationship labels. The graph accepts any valid label."""
    USED_IN = "USED_IN"
    CONTAINS = "CONTAINS"
    BELONGS_TO = "BELONGS_TO"
    SIMILAR_TO = "SIMILAR_TO"
    RELATED_TO = "RELATED_TO"
    MADE_BY = "MADE_BY"
    HAS_INGREDIENT = "HAS_INGREDIENT"
    PART_OF = "PART_OF"
    REFERENCES = "REFERENCES"


def normalize_relationship_type(value: Any) -> str:
    """
    Turns a free-form label into the upper-snake-case form used in the graph.
    "used in" and "used-in" both become "USED_IN".
    """
    if isinstance(value, RelationshipType):
        return value.value
    if not isinstance(value, str):
        raise ValueError("Relationship type must be a string.")
    label = re.sub(r"[\s\-]+", "_", value.strip()).upper()
    if not RELATIONSHIP_TYPE_PATTERN.match(label):
        raise ValueError(f"Invalid relationship type: {value!r}")
    return label


# --- Knowledge Graph ---

class GraphNode(CamelModel):
    id: str = Field(description="A unique identifier for the node.")
    type: NodeType = Field(description="The type of the entity (product, recipe, ingredient, ...).")
    name: str = Field(description="Display name; not required to be unique.")
    properties: Dict[str, Any] = Field(default_factory=dict)
    embedding: Optional[List[float]] = Field(default=None, exclude=True, description="Normalized vector embedding of the node.")
    inferred: bool = Field(default=False, description="True when the type was guessed during relation import.")


class GraphRelationship(CamelModel):
    id: str
    type: str = Field(description="Upper-snake-case label, e.g. USED_IN, MADE_BY.")
    source_id: str
    target_id: str
    properties: Dict[str, Any] = Field(default_factory=dict)
    weight: float = 1.0

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        return normalize_relationship_type(value)


class Subgraph(CamelModel):
    nodes: List[GraphNode] = Field(default_factory=list)
    relationships: List[GraphRelationship] = Field(default_factory=list)


class KnowledgeSubgraph(Subgraph):
    central_node: Optional[GraphNode] = None


class GraphStats(CamelModel):
    node_count: int
    relationship_count: int
    node_types: Dict[str, int]
    relationship_types: Dict[str, int]


class EntityRelation(BaseModel):
    source: str
    relation: str
    target: str


# --- Scraped Pages and Vector Documents ---

class ProductInfo(CamelModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)


class RecipeInfo(CamelModel):
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    servings: Optional[str] = None
    difficulty: Optional[str] = None
    nutrients: Dict[str, str] = Field(default_factory=dict)


class PageMetadata(CamelModel):
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    date_published: Optional[str] = None
    description: Optional[str] = None
    product_info: Optional[ProductInfo] = None
    recipe_info: Optional[RecipeInfo] = None


class ScrapedPage(CamelModel):
    url: str
    title: str
    content: str
    links: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    tables: List[List[List[str]]] = Field(default_factory=list)
    metadata: PageMetadata = Field(default_factory=PageMetadata)
    entity_relations: List[EntityRelation] = Field(default_factory=list)


class DocumentMetadata(CamelModel):
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    page_type: str = "general"
    last_updated: Optional[str] = None
    image_count: int = 0
    product_info: Optional[ProductInfo] = None
    recipe_info: Optional[RecipeInfo] = None


class VectorDocument(CamelModel):
    id: str
    url: str
    title: str
    content: str
    vector: List[float] = Field(default_factory=list, exclude=True)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


class SearchHit(CamelModel):
    url: str
    title: str
    content: str
    score: Optional[float] = None


class SearchFilters(CamelModel):
    category: Optional[str] = None
    page_type: Optional[str] = None
    product_name: Optional[str] = None
    brand: Optional[str] = None
    tags: Optional[List[str]] = None


# --- Chat ---

class QueryIntent(CamelModel):
    """What the user is asking about, used to pick specialized context."""
    entity_type: Optional[str] = Field(default=None, description="product, recipe, ingredient, category or brand.")
    entity_name: Optional[str] = Field(default=None, description="The specific entity named in the query, if any.")
    action: Optional[str] = Field(default=None, description="What the user wants to do or know.")


class Reference(BaseModel):
    url: str
    title: str


class ChatResponse(BaseModel):
    text: str
    references: List[Reference] = Field(default_factory=list)
