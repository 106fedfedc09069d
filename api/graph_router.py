from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.dependencies import Services, get_services
from core.exceptions import MalformedInputError, NodeNotFoundError
from core.logger import get_logger
from core.models import CamelModel, EntityRelation, GraphNode, GraphRelationship, GraphStats, Subgraph

logger = get_logger(__name__)

# --- Pydantic Models ---
class CreateNodeRequest(BaseModel):
    type: str = Field(description="product, recipe, ingredient, category, brand, page or custom.")
    name: str = Field(min_length=1)
    properties: Dict[str, Any] = Field(default_factory=dict)

class CreateRelationshipRequest(CamelModel):
    source_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    properties: Dict[str, Any] = Field(default_factory=dict)
    weight: float = 1.0

class ImportRelationsRequest(BaseModel):
    relations: List[EntityRelation]

class ImportRelationsResponse(BaseModel):
    count: int

# --- Router Initialization ---
router = APIRouter(
    prefix="/graph",
    tags=["Knowledge Graph"]
)


def _get_existing_node(services: Services, node_id: str) -> GraphNode:
    node = services.graph.get_node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail=f"Node with ID {node_id} not found")
    return node


# --- API Endpoints ---

@router.get("/nodes", response_model=List[GraphNode])
def list_nodes(type: Optional[str] = None, services: Services = Depends(get_services)):
    """Lists all nodes, optionally only those of one type."""
    try:
        if type:
            return services.graph.get_nodes_by_type(type)
        return services.graph.get_nodes()
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/nodes", response_model=GraphNode, status_code=201)
def create_node(request: CreateNodeRequest, services: Services = Depends(get_services)):
    try:
        return services.graph.add_node(request.type, request.name, request.properties)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/nodes/{node_id}", response_model=GraphNode)
def get_node(node_id: str, services: Services = Depends(get_services)):
    return _get_existing_node(services, node_id)


@router.get("/nodes/{node_id}/relationships", response_model=List[GraphRelationship])
def get_node_relationships(node_id: str, services: Services = Depends(get_services)):
    _get_existing_node(services, node_id)
    return services.graph.get_node_relationships(node_id)


@router.get("/nodes/{node_id}/subgraph", response_model=Subgraph)
def get_subgraph(
    node_id: str,
    depth: int = Query(2, ge=0),
    types: Optional[List[str]] = Query(None),
    services: Services = Depends(get_services),
):
    """Breadth-first neighbourhood of a node, optionally following only some relationship types."""
    _get_existing_node(services, node_id)
    try:
        return services.graph.query_graph(node_id, depth, types)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/relationships", response_model=List[GraphRelationship])
def list_relationships(services: Services = Depends(get_services)):
    return services.graph.get_relationships()


@router.post("/relationships", response_model=GraphRelationship, status_code=201)
def create_relationship(request: CreateRelationshipRequest, services: Services = Depends(get_services)):
    try:
        return services.graph.add_relationship(
            source_id=request.source_id,
            target_id=request.target_id,
            type=request.type,
            properties=request.properties,
            weight=request.weight,
        )
    except NodeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/import", response_model=ImportRelationsResponse)
def import_relations(request: ImportRelationsRequest, services: Services = Depends(get_services)):
    """Bulk import of (source, relation, target) triples. Bad triples are skipped."""
    return ImportRelationsResponse(count=services.graph.import_entity_relations(request.relations))


@router.get("/paths", response_model=List[Subgraph])
def find_paths(
    source: str,
    target: str,
    max_depth: int = Query(3, alias="maxDepth", ge=0),
    services: Services = Depends(get_services),
):
    return services.graph.find_paths(source, target, max_depth, max_paths=services.config.MAX_PATHS)


@router.get("/search", response_model=List[GraphNode])
def search_nodes(q: str = Query(..., min_length=1), limit: int = Query(5, ge=1), services: Services = Depends(get_services)):
    return services.graph.semantic_node_search(q, limit)


@router.get("/stats", response_model=GraphStats)
def get_stats(services: Services = Depends(get_services)):
    return services.graph.get_stats()
