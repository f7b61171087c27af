"""Assistant routes: conversation init and the streamed chat turn."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from loguru import logger

from dadafarin.application.use_cases.chat import ChatOrchestrator
from dadafarin.application.use_cases.subscription import SubscriptionChecker
from dadafarin.presentation.auth import AuthenticatedUser, get_current_user
from dadafarin.presentation.schemas import (
    AssistantRequest,
    InitConversationRequest,
    InitConversationResponse,
)
from dadafarin.presentation.sse import EventStreamResponse, encode_events

router = APIRouter(prefix="/api/assistant", tags=["assistant"])


@router.post("")
async def chat_stream(
    request: AssistantRequest,
    raw_request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Send a message and receive the reply as server-sent events.

    - ``data: {"data": "<fragment>"}`` for every fragment
    - ``event: end`` with ``{"data": "[DONE]"}`` once the reply is complete
    - ``event: error`` with ``{"error": "Streaming failed"}`` on failure

    Entitlement, validation and retrieval errors are returned as ordinary
    JSON error responses before the stream starts.
    """
    subscriptions: SubscriptionChecker = raw_request.app.state.subscriptions
    uc: ChatOrchestrator = raw_request.app.state.chat_uc

    subscriptions.ensure_active(current_user.user_id)

    logger.info(
        "POST /api/assistant | user={} conversation={} msg={}",
        current_user.user_id,
        request.conversation_id,
        request.message[:60],
    )
    turn = await uc.prepare_turn(
        current_user.user_id, request.conversation_id, request.message, request.persona
    )

    return EventStreamResponse(encode_events(uc.stream_reply(turn)), on_close=turn.release)


@router.post("/init", response_model=InitConversationResponse)
async def init_conversation(
    request: InitConversationRequest,
    raw_request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Load a conversation's context into memory, creating an id if none is given."""
    uc: ChatOrchestrator = raw_request.app.state.chat_uc
    conversation_id = await uc.init_conversation(
        current_user.user_id, request.conversation_id, request.persona
    )
    return InitConversationResponse(conversation_id=conversation_id)
