"""
Conversation persistence router — /api/db

    GET    ?conversationId=  → one conversation (messages + transcript)
    GET    ?userId=          → conversation list for a user
    POST                     → save a conversation, 201 {conversationId}
    PUT    ?conversationId=&action=title|favorite
    DELETE ?conversationId=

Other methods get 405 from the router.  Storage failures surface as the
generic 500 body installed in main.py.
"""
from __future__ import annotations

import logging
from typing import List, Literal, Optional, Union

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from mission_coach.api.deps import get_conversation_store
from mission_coach.core.config import settings
from mission_coach.schemas.conversations import (
    ConversationCreate,
    ConversationCreated,
    ConversationDetail,
    ConversationSummary,
    SuccessResponse,
    TitleUpdate,
)
from mission_coach.services.conversations import ConversationStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api', tags=['conversations'])


def _not_found(conversation_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f'Conversation {conversation_id} not found',
    )


@router.get('/db', response_model=Union[ConversationDetail, List[ConversationSummary]])
def read_conversations(
    conversation_id: Optional[int] = Query(None, alias='conversationId'),
    user_id: Optional[int] = Query(None, alias='userId'),
    store: ConversationStore = Depends(get_conversation_store),
):
    if conversation_id is not None:
        conversation = store.get_conversation(conversation_id)
        if conversation is None:
            raise _not_found(conversation_id)
        return conversation
    return store.get_conversations(user_id or settings.DEFAULT_USER_ID)


@router.post('/db', response_model=ConversationCreated, status_code=status.HTTP_201_CREATED)
def create_conversation(
    payload: ConversationCreate,
    store: ConversationStore = Depends(get_conversation_store),
):
    conversation_id = store.save_conversation(
        payload.user_id or settings.DEFAULT_USER_ID,
        payload.title,
        payload.messages,
        payload.transcript,
        payload.is_favorite,
    )
    return ConversationCreated(conversation_id=conversation_id)


@router.put('/db', response_model=SuccessResponse)
def update_conversation(
    conversation_id: int = Query(..., alias='conversationId'),
    action: Literal['title', 'favorite'] = Query(...),
    payload: Optional[TitleUpdate] = Body(None),
    store: ConversationStore = Depends(get_conversation_store),
):
    if action == 'title':
        if payload is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='title is required for action=title',
            )
        found = store.update_conversation_title(conversation_id, payload.title)
    else:
        found = store.toggle_favorite(conversation_id)

    if not found:
        raise _not_found(conversation_id)
    logger.info('Conversation %d updated (action=%s)', conversation_id, action)
    return SuccessResponse()


@router.delete('/db', response_model=SuccessResponse)
def delete_conversation(
    conversation_id: int = Query(..., alias='conversationId'),
    store: ConversationStore = Depends(get_conversation_store),
):
    if not store.delete_conversation(conversation_id):
        raise _not_found(conversation_id)
    return SuccessResponse()
