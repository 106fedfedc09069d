# /core/generator.py

from abc import ABC, abstractmethod

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI

from core.config import settings
from core.exceptions import ProviderError
from core.logger import get_logger
from core.models import QueryIntent
from core.router import get_intent_chain

logger = get_logger(__name__)


class GeneratorAdapter(ABC):
    """
    The text-generation service the chat workflow talks to.
    """
    @abstractmethod
    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Returns the model's answer. Raises ProviderError on failure."""
        pass

    @abstractmethod
    def classify_intent(self, query: str) -> QueryIntent:
        """Returns the query intent, or an empty intent when classification fails."""
        pass


class GeminiGenerator(GeneratorAdapter):
    """GeneratorAdapter backed by Gemini chat models through LangChain."""

    def __init__(self, config=settings):
        self.config = config

    def _chat_model(self, model: str, temperature: float) -> ChatGoogleGenerativeAI:
        if not self.config.GOOGLE_API_KEY:
            raise ProviderError("GOOGLE_API_KEY is not configured.")
        return ChatGoogleGenerativeAI(
            model=model,
            temperature=temperature,
            max_output_tokens=self.config.MAX_OUTPUT_TOKENS,
            timeout=self.config.PROVIDER_TIMEOUT,
            max_retries=self.config.PROVIDER_MAX_RETRIES,
            google_api_key=self.config.GOOGLE_API_KEY,
        )

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        # Prompts go in as variables so braces in scraped content are not parsed as placeholders
        prompt = ChatPromptTemplate.from_messages([
            ("system", "{system_prompt}"),
            ("human", "{user_prompt}"),
        ])
        try:
            llm = self._chat_model(self.config.GENERATION_MODEL, self.config.GENERATION_TEMPERATURE)
            chain = prompt | llm | StrOutputParser()
            return chain.invoke({"system_prompt": system_prompt, "user_prompt": user_prompt})
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Generation failed: {e}") from e

    def classify_intent(self, query: str) -> QueryIntent:
        try:
            llm = self._chat_model(self.config.FAST_MODEL, 0.3)
            result = get_intent_chain(llm).invoke({"question": query})
        except Exception as e:
            logger.error(f"Error detecting query intent: {e}")
            return QueryIntent()

        if isinstance(result, dict):
            return QueryIntent.model_validate(result)
        return result or QueryIntent()
