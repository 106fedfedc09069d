import json

from fastapi.responses import StreamingResponse

from core.agent_logic import APOLOGY_MESSAGE
from core.logger import get_logger

logger = get_logger(__name__)


def _event(data: dict) -> str:
    return f"data: {json.dumps(data)}\n\n"


async def stream_agent_response_logic(agent, question: str):
    """
    Runs the chat workflow and streams back its progress and the final answer.
    """
    try:
        async for event in agent.astream({"question": question}):
            # Each event maps the node that just ran to the state update it produced
            last_node = list(event.keys())[-1]
            last_state = event[last_node] or {}

            if last_state.get('streaming_thought'):
                yield _event({"type": "thought", "content": last_state['streaming_thought']})

            if last_state.get('answer'):
                references = [ref.model_dump() for ref in last_state.get('references', [])]
                yield _event({"type": "answer", "content": last_state['answer'], "references": references})
    except Exception as e:
        logger.error(f"Streaming chat failed: {e}", exc_info=True)
        yield _event({"type": "answer", "content": APOLOGY_MESSAGE, "references": []})


def stream_agent_response(agent, question: str):
    return StreamingResponse(
        stream_agent_response_logic(agent, question),
        media_type="text/event-stream"
    )
