"""
NoteDigest Backend — Quiz Chat Route Handler
=============================================

Endpoints:
    POST /api/chat/quiz   {messages: [{role, parts}]} → 200 {reply} | 200 {quiz}

    The latest user message may carry a PDF as a base64 data URL file part.
    Nothing is stored; each call answers one turn of the conversation.
"""

import logging

from fastapi import APIRouter, Depends

from notedigest.auth import CurrentUser, get_current_user
from notedigest.dependencies import get_quiz_service
from notedigest.schemas.note import ErrorResponse
from notedigest.schemas.quiz import QuizChatRequest, QuizChatResponse
from notedigest.services.quiz_service import QuizService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.post(
    "/quiz",
    response_model=QuizChatResponse,
    responses={
        400: {"description": "Empty conversation", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        503: {"description": "Generation unavailable or invalid quiz", "model": ErrorResponse},
    },
    summary="Chat about an attached PDF and generate a multiple-choice quiz",
)
async def quiz_chat(
    body: QuizChatRequest,
    user: CurrentUser = Depends(get_current_user),
    quizzes: QuizService = Depends(get_quiz_service),
) -> QuizChatResponse:
    logger.info("Quiz chat turn for %s (%d messages)", user.id, len(body.messages))
    return await quizzes.respond(body.messages)
