"""Conversation history routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from loguru import logger

from dadafarin.application.exceptions import ValidationFailedError
from dadafarin.application.use_cases.chat import ChatOrchestrator
from dadafarin.infrastructure.conversation_store import ConversationStore
from dadafarin.presentation.auth import AuthenticatedUser, get_current_user
from dadafarin.presentation.schemas import (
    ConversationSummaryResponse,
    SuccessResponse,
    TurnResponse,
)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@router.get("", response_model=None)
async def list_conversations(
    raw_request: Request,
    conversation_id: str | None = Query(default=None, alias="conversationId"),
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Without ``conversationId``: the user's conversations, most recent first.
    With it: that conversation's turns, oldest first."""
    store: ConversationStore = raw_request.app.state.conversations

    if conversation_id:
        turns = store.list_ordered(current_user.user_id, conversation_id)
        return [
            TurnResponse(
                id=t.id,
                conversation_id=t.conversation_id,
                sender=t.sender,
                message=t.message,
                name=t.name,
                created_at=t.created_at,
            )
            for t in turns
        ]

    return [
        ConversationSummaryResponse(
            conversation_id=s.conversation_id, name=s.name, created_at=s.created_at
        )
        for s in store.list_conversations(current_user.user_id)
    ]


@router.delete("", response_model=SuccessResponse)
async def delete_conversation(
    raw_request: Request,
    conversation_id: str | None = Query(default=None, alias="conversationId"),
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    if not conversation_id:
        raise ValidationFailedError("Conversation ID is required")
    uc: ChatOrchestrator = raw_request.app.state.chat_uc
    removed = await uc.delete_conversation(current_user.user_id, conversation_id)
    logger.info(
        "DELETE /api/conversations | user={} conversation={} turns={}",
        current_user.user_id,
        conversation_id,
        removed,
    )
    return SuccessResponse()
