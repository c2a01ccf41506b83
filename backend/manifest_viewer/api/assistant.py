"""
Assistant endpoints (chat, streamed chat, suggested quick actions, action execution).

LLM calls are blocking, so these handlers are plain ``def`` and run in the threadpool.
"""
import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import StreamingResponse

from manifest_viewer.schemas.assistant import (
    ChatRequest,
    ChatResponse,
    RunActionRequest,
    RunActionResponse,
    SuggestionsRequest,
    SuggestionsResponse,
)
from manifest_viewer.services.assistant import answer_question, run_action, stream_answer, suggest_actions

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/chat", response_model=ChatResponse)
def chat(request: ChatRequest):
    return answer_question(
        request.manifest,
        request.question,
        selected_mawb=request.selected_mawb,
        selected_item=request.selected_item,
        history=request.history,
    )


@router.post("/chat/stream")
def chat_stream(request: ChatRequest):
    """Server-Sent Events: incremental ``text`` frames, then one ``done`` frame."""
    events = stream_answer(
        request.manifest,
        request.question,
        selected_mawb=request.selected_mawb,
        selected_item=request.selected_item,
        history=request.history,
    )
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/suggestions", response_model=SuggestionsResponse)
def suggestions(request: SuggestionsRequest):
    return SuggestionsResponse(actions=suggest_actions(request.manifest, request.selected_mawb))


@router.post("/actions/run", response_model=RunActionResponse)
def run(request: RunActionRequest):
    try:
        return run_action(request.manifest, request.action)
    except Exception as e:
        logger.exception("Quick action %s failed", request.action.type)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error running action: {str(e)}"
        )
