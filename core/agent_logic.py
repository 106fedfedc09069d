import re
from typing import List, TypedDict

from langgraph.graph import StateGraph, END

from core.config import settings
from core.database import GraphStore
from core.generator import GeneratorAdapter
from core.logger import get_logger
from core.models import ChatResponse, QueryIntent, Reference, SearchFilters, SearchHit
from core.nutrition import get_nutritional_info
from core.retriever import (
    build_combined_context,
    extract_knowledge_subgraph,
    format_filtered_context,
    format_graph_context,
    format_nutrition_context,
)
from core.vector_store import VectorStore

logger = get_logger(__name__)

APOLOGY_MESSAGE = "I'm sorry, I'm having trouble answering right now. Please try again in a moment."
EMPTY_ANSWER_MESSAGE = "I'm sorry, I couldn't generate a response."
MAX_FALLBACK_REFERENCES = 3
REFERENCE_MARKER = re.compile(r"\[\d+\]")

SYSTEM_PROMPT = """
You are Smartie, the personal MadeWithNestlé assistant. Your name is Smartie, not Nestlé Assistant.
Your goal is to provide accurate, detailed information about Nestlé products, recipes, and related topics.

Follow these guidelines:
1. Be friendly, helpful, and concise.
2. When referencing information, use numbered references like [1], [2], etc.
3. ALWAYS include precise nutritional information when asked about products (calories, protein, etc.)
4. Format nutrition info with bullet points using hyphens (-) only, not asterisks (*).
5. Focus on Nestlé products and recipes.
6. For product questions, give exact calorie counts, nutritional content, ingredients when available, and product variants.
7. For gift or recipe questions, format as numbered lists with clear options.
8. Include "Buy in Store" links when relevant.
9. Always list "References:" at the end with numbered sources.
10. When asked about calories or nutrition, always provide specific numbers, not general statements.
11. DO NOT use markdown formatting like # or * or ** in your responses. Use plain text only.
12. For recipe steps, use numbers (1., 2., 3.) without hashtags. For headings use all caps instead of hashtags.

Base your answer on the relevant information supplied with the query. If it does not cover the question, say so.
"""

USER_PROMPT_TEMPLATE = """
User Query: {question}

Relevant Information:
{context}
"""


class AgentState(TypedDict, total=False):
    question: str
    vector_results: List[SearchHit]
    graph_context: str
    intent: QueryIntent
    specialized_context: str
    answer: str
    references: List[Reference]
    # Streamed output for the client
    streaming_thought: str


def extract_references(response_text: str, vector_results: List[SearchHit]) -> List[Reference]:
    """
    Vector hits whose url appears in the answer. When none is cited, the
    first few hits are returned instead.
    """
    references = [Reference(url=hit.url, title=hit.title) for hit in vector_results if hit.url in response_text]
    if not references:
        references = [Reference(url=hit.url, title=hit.title) for hit in vector_results[:MAX_FALLBACK_REFERENCES]]
    return references


def clean_response_text(text: str) -> str:
    """Removes [n] reference markers."""
    return REFERENCE_MARKER.sub("", text).strip()


def build_chat_agent(vector_store: VectorStore, graph: GraphStore, generator: GeneratorAdapter, config=settings):
    """
    Compiles the chat workflow:
    retrieve_documents -> retrieve_graph -> classify_intent -> build_specialized_context -> generate_response
    """

    def retrieve_documents(state: AgentState):
        logger.info("--- RETRIEVER: Searching vector store ---")
        try:
            results = vector_store.similarity_search(state["question"], k=config.VECTOR_TOP_K)
        except Exception as e:
            logger.error(f"Error searching vector database: {e}")
            results = []
        return {
            "vector_results": results,
            "streaming_thought": f"Found {len(results)} relevant page(s).",
        }

    def retrieve_graph(state: AgentState):
        logger.info("--- RETRIEVER: Extracting knowledge subgraph ---")
        subgraph = extract_knowledge_subgraph(
            graph,
            state["question"],
            seed_count=config.GRAPH_SEED_NODES,
            depth=config.GRAPH_CONTEXT_DEPTH,
        )
        thought = "No related concepts in the knowledge graph."
        if subgraph.central_node is not None:
            thought = f"Exploring the knowledge graph around '{subgraph.central_node.name}'."
        return {"graph_context": format_graph_context(subgraph), "streaming_thought": thought}

    def classify_intent(state: AgentState):
        try:
            intent = generator.classify_intent(state["question"])
        except Exception as e:
            logger.error(f"Intent classification failed, continuing without it: {e}")
            intent = QueryIntent()
        logger.info(f"  - Intent: {intent.model_dump(exclude_none=True)}")
        return {"intent": intent, "streaming_thought": "Working out what you're asking about..."}

    def build_specialized_context(state: AgentState):
        intent = state.get("intent") or QueryIntent()
        blocks = []

        if intent.entity_type == "product" and intent.entity_name:
            entries = get_nutritional_info(intent.entity_name)
            if entries:
                blocks.append(format_nutrition_context(intent.entity_name, entries))

        if intent.entity_type:
            try:
                hits = vector_store.filtered_search(SearchFilters(
                    page_type=intent.entity_type,
                    product_name=intent.entity_name,
                ))
                if hits:
                    blocks.append(format_filtered_context(intent, hits))
            except Exception as e:
                logger.error(f"Error getting specialized context: {e}")

        return {"specialized_context": "\n\n".join(blocks)}

    def generate_response(state: AgentState):
        logger.info("--- RESPONDER: Generating answer ---")
        vector_results = state.get("vector_results", [])
        context = build_combined_context(
            vector_results,
            state.get("graph_context", ""),
            state.get("specialized_context"),
        )
        user_prompt = USER_PROMPT_TEMPLATE.format(question=state["question"], context=context)

        try:
            response_text = generator.complete(SYSTEM_PROMPT, user_prompt) or EMPTY_ANSWER_MESSAGE
        except Exception as e:
            logger.error(f"Error generating answer: {e}")
            return {"answer": APOLOGY_MESSAGE, "references": [], "streaming_thought": "Done."}

        return {
            "answer": clean_response_text(response_text),
            "references": extract_references(response_text, vector_results),
            "streaming_thought": "Done.",
        }

    # --- Build and Compile the Graph ---
    workflow = StateGraph(AgentState)
    workflow.add_node("retrieve_documents", retrieve_documents)
    workflow.add_node("retrieve_graph", retrieve_graph)
    workflow.add_node("classify_intent", classify_intent)
    workflow.add_node("build_specialized_context", build_specialized_context)
    workflow.add_node("generate_response", generate_response)

    workflow.set_entry_point("retrieve_documents")
    workflow.add_edge("retrieve_documents", "retrieve_graph")
    workflow.add_edge("retrieve_graph", "classify_intent")
    workflow.add_edge("classify_intent", "build_specialized_context")
    workflow.add_edge("build_specialized_context", "generate_response")
    workflow.add_edge("generate_response", END)

    return workflow.compile()


def answer_question(agent, question: str) -> ChatResponse:
    """Runs the chat workflow. Never raises: failures become an apology."""
    try:
        final_state = agent.invoke({"question": question})
        return ChatResponse(
            text=final_state.get("answer") or EMPTY_ANSWER_MESSAGE,
            references=final_state.get("references", []),
        )
    except Exception as e:
        logger.error(f"Error processing chat message: {e}", exc_info=True)
        return ChatResponse(text=APOLOGY_MESSAGE, references=[])
