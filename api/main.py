from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, field_validator

from api.dependencies import Services, create_services, get_services
from api.graph_router import router as graph_router
from api.ingestion_router import router as ingestion_router
from api.knowledge_router import router as knowledge_router
from api.streaming_logic import stream_agent_response
from core.agent_logic import answer_question
from core.config import settings
from core.logger import get_logger
from core.models import ChatResponse

logger = get_logger(__name__)


class ChatRequest(BaseModel):
    message: str

    @field_validator("message")
    @classmethod
    def message_must_not_be_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message is required")
        return value


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Builds the API. Tests pass their own services; otherwise they are
    created on startup from the environment settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = create_services(settings)
        yield

    app = FastAPI(
        title="Smartie Graph RAG API",
        description="Chat API over a scraped recipe site, backed by a vector store and a knowledge graph.",
        version="1.0.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Include all the Routers ---
    app.include_router(graph_router)
    app.include_router(ingestion_router)
    app.include_router(knowledge_router)

    @app.post("/chat", response_model=ChatResponse)
    def chat(request: ChatRequest, services: Services = Depends(get_services)):
        """Answers a question in one go, with the pages it was based on."""
        logger.info(f"Received chat message: {request.message}")
        return answer_question(services.agent, request.message)

    @app.post("/chat/stream")
    async def chat_stream(request: ChatRequest, services: Services = Depends(get_services)):
        """
        Receives a question and streams the workflow's progress and final answer.
        """
        logger.info(f"Received streaming chat message: {request.message}")
        return stream_agent_response(services.agent, request.message)

    @app.get("/")
    def read_root():
        return {"message": "Smartie Graph RAG API is running."}

    return app


app = create_app()
