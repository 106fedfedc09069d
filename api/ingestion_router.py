from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.dependencies import Services, get_services
from core.logger import get_logger
from core.models import CamelModel
from ingestion.engine import IngestionEngine
from ingestion.sources import SiteScraper

logger = get_logger(__name__)

class ScrapeRequest(BaseModel):
    url: Optional[str] = None

class ScrapeResponse(CamelModel):
    success: bool
    count: int
    documents: int
    graph_changes: int

router = APIRouter(
    tags=["Ingestion"]
)

@router.post("/scrape", response_model=ScrapeResponse)
def scrape_website(request: Optional[ScrapeRequest] = None, services: Services = Depends(get_services)):
    """
    Crawls the site (or a specific url on it), stores the pages in the vector
    store and imports the detected entity relations into the knowledge graph.
    """
    url = request.url if request and request.url else services.config.SCRAPE_START_URL
    try:
        engine = IngestionEngine(
            vector_store=services.vector_store,
            graph=services.graph,
            data_sources=[SiteScraper(start_url=url, config=services.config)],
        )
        stats = engine.run()
    except Exception as e:
        logger.error(f"Error scraping website: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to scrape website")

    return ScrapeResponse(
        success=True,
        count=stats["pages"],
        documents=stats["documents"],
        graph_changes=stats["graph_changes"],
    )
