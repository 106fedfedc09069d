from typing import List

from fastapi import APIRouter, Depends, Query

from api.dependencies import Services, get_services
from core.models import Reference, SearchFilters, SearchHit

router = APIRouter(
    prefix="/knowledge",
    tags=["Knowledge Base"]
)

@router.get("/sources", response_model=List[Reference])
def get_knowledge_sources(services: Services = Depends(get_services)):
    """
    Returns the url and title of every page that has been ingested into the
    vector store, in ingestion order.
    """
    return services.vector_store.list_sources()

@router.get("/search", response_model=List[SearchHit])
def similarity_search(q: str = Query(..., min_length=1), k: int = Query(5, ge=1, le=50), services: Services = Depends(get_services)):
    """Semantic search over the ingested pages."""
    return services.vector_store.similarity_search(q, k)

@router.post("/search", response_model=List[SearchHit])
def filtered_search(filters: SearchFilters, services: Services = Depends(get_services)):
    """Metadata search: every page matching all the given filters."""
    return services.vector_store.filtered_search(filters)

@router.delete("/clear")
def clear_knowledge_base(services: Services = Depends(get_services)):
    """Empties the vector store. The knowledge graph is left untouched."""
    services.vector_store.clear()
    return {"message": "Knowledge base (vector store) cleared successfully."}
