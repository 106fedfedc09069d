from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    """
    Centralized application settings. Pydantic's BaseSettings will automatically
    load these from environment variables or a .env file.
    """
    # --- LLM and Embedding Models ---
    GENERATION_MODEL: str = Field("gemini-2.5-flash", description="The primary model for answer generation.")
    EMBEDDING_MODEL: str = Field("models/embedding-001", description="The model used for creating text embeddings.")
    FAST_MODEL: str = Field("gemini-2.5-flash", description="The model for fast tasks like intent classification.")
    GENERATION_TEMPERATURE: float = Field(0.7, description="Sampling temperature for answer generation.")
    MAX_OUTPUT_TOKENS: int = Field(800, description="Upper bound on generated answer length.")

    # --- Google API Key ---
    # Left empty, the service runs on hash embeddings and answers with an apology.
    GOOGLE_API_KEY: str = Field("", description="API key for Gemini models.")

    # --- Provider Behaviour ---
    EMBEDDING_DIMENSIONS: int = Field(768, description="Dimensions of the text embeddings (Gemini is 768).")
    PROVIDER_TIMEOUT: float = Field(20.0, description="Seconds to wait for an embedding or generation call.")
    PROVIDER_MAX_RETRIES: int = Field(2, description="Retries for the chat model before giving up.")

    # --- Retrieval Parameters ---
    VECTOR_TOP_K: int = Field(5, description="Number of vector hits fed into the prompt.")
    PREVIEW_LENGTH: int = Field(1000, description="Characters of page content returned per search hit.")
    GRAPH_SEED_NODES: int = Field(3, description="Top-ranked graph nodes used as BFS seeds.")
    GRAPH_CONTEXT_DEPTH: int = Field(2, description="BFS depth around each seed node.")
    MAX_PATHS: int = Field(50, description="Maximum number of paths returned by path search.")
    BRAND_NAMES: List[str] = Field(["nestlé", "nestle"], description="Names that mark a node as a brand.")
    SEED_SAMPLE_GRAPH: bool = Field(True, description="Load the sample product graph on startup.")

    # --- Scraper ---
    SCRAPE_START_URL: str = Field("https://www.madewithnestle.ca/", description="Default crawl entry point.")
    SCRAPE_ALLOWED_DOMAIN: str = Field("madewithnestle.ca", description="Links outside this domain are not followed.")
    SCRAPE_MAX_PAGES: int = Field(100, description="Crawl stops after this many pages.")
    SCRAPE_DELAY_SECONDS: float = Field(1.0, description="Pause between page fetches.")
    SCRAPE_TIMEOUT: float = Field(10.0, description="HTTP timeout per page fetch.")

    # --- Service ---
    LOG_LEVEL: str = Field("INFO", description="Root level for the JSON loggers.")
    CORS_ORIGINS: List[str] = Field(["http://localhost", "http://localhost:3000"], description="Origins allowed to call the API.")

    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

settings = Settings()
