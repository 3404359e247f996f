"""
NoteDigest Backend — Quiz Chat Service
=======================================

What:  Answers one turn of the quiz chat: reads the PDF attached to the
       latest user message and either asks what to do with it, chats about
       it, or returns a four-question multiple-choice quiz.
How:   The PDF goes through the same validation, temporary file and
       extraction strategies as POST /api/summaries. One prompt is sent to
       the generation service; a reply that is a JSON object is validated as
       a Quiz, anything else is returned as plain text.
Who:   Called by POST /api/chat/quiz.

Prompt Branches:
    PDF + user text   document included; quiz allowed (JSON-only reply)
    PDF, no text      ask the user what to do with the document
    no PDF            ask the user to upload a PDF

Nothing is persisted: quiz turns create no Source or Note.
"""

import base64
import logging
import re
from typing import List, Optional

from pydantic import ValidationError as SchemaValidationError

from notedigest.exceptions import (
    ExtractionError,
    FileStorageError,
    SummarizationUnavailableError,
    ValidationError,
)
from notedigest.schemas.quiz import ChatMessage, Quiz, QuizChatResponse
from notedigest.services.file_service import FileService
from notedigest.services.llm_base import LLMService
from notedigest.services.pdf_extractor import PdfExtractor
from notedigest.services.summarizer import truncate_content

logger = logging.getLogger(__name__)

QUIZ_MAX_OUTPUT_TOKENS = 1500
PDF_MEDIA_TYPE = "application/pdf"
DEFAULT_FILENAME = "document.pdf"

QUIZ_FAILURE_MESSAGE = (
    "Failed to generate quiz. The AI service may be unavailable. Please try again later."
)

# A JSON object, optionally wrapped in a ```json fence
JSON_REPLY_PATTERN = re.compile(r"^\s*(?:```(?:json)?\s*)?(\{[\s\S]*\})\s*(?:```)?\s*$")

DOCUMENT_PROMPT = """You are a quiz generator assistant. The user has uploaded a document with the following content:

<document_content>
{document}
</document_content>

If the user asks you to generate a quiz, create a 4-question multiple choice quiz based on this document content. Each question should:
- Test understanding of key concepts from the document
- Have exactly 4 answer options
- Have one clearly correct answer

When you generate a quiz, reply with ONLY a JSON object of this shape and no other text:
{{"questions": [{{"question": "...", "options": ["...", "...", "...", "..."], "correctIndex": 0}}]}}

For anything else, reply in plain text and never as JSON."""

CLARIFY_PROMPT = """You are a quiz generator assistant. The user has uploaded a PDF document but didn't provide any instructions.

Ask the user what they would like you to do with the document. For example, they might want you to:
- Generate a quiz based on the content
- Summarize the document
- Answer questions about it

Be friendly and helpful in asking for clarification. Reply in plain text."""

UPLOAD_PROMPT = (
    "You are a quiz generator assistant. When users upload a PDF document, you can "
    "create a 4-question multiple choice quiz based on its content. Please ask the "
    "user to upload a PDF document to generate a quiz. Reply in plain text."
)


def last_user_message(messages: List[ChatMessage]) -> Optional[ChatMessage]:
    for message in reversed(messages):
        if message.role == "user":
            return message
    return None


def message_text(message: Optional[ChatMessage]) -> str:
    if message is None:
        return ""
    return "".join(part.text or "" for part in message.parts if part.type == "text").strip()


def decode_data_url(url: Optional[str]) -> bytes:
    """
    Return the bytes of a base64 data URL ("data:<type>;base64,<payload>").

    Raises:
        ValueError: No payload after the comma, or the payload is not base64.
    """
    _, separator, payload = (url or "").partition(",")
    if not separator or not payload.strip():
        raise ValueError("data URL has no payload")
    return base64.b64decode(payload.strip(), validate=True)


def build_quiz_prompt(
    messages: List[ChatMessage],
    document_text: Optional[str],
    user_text: str,
) -> str:
    if document_text and user_text:
        system = DOCUMENT_PROMPT.format(document=truncate_content(document_text))
    elif document_text:
        system = CLARIFY_PROMPT
    else:
        system = UPLOAD_PROMPT

    turns = []
    for message in messages:
        speaker = "User" if message.role == "user" else "Assistant"
        text = message_text(message)
        if any(part.type == "file" for part in message.parts):
            text = f"{text} [attached PDF]".strip()
        if text:
            turns.append(f"{speaker}: {text}")

    return "\n\n".join([system, "Conversation:", "\n".join(turns), "Assistant:"])


def parse_quiz(reply: str) -> Optional[Quiz]:
    """
    Return the Quiz when `reply` is a JSON object, None for a plain-text reply.

    Raises:
        pydantic.ValidationError: The reply is a JSON object but not a valid
            four-question quiz.
    """
    match = JSON_REPLY_PATTERN.match(reply)
    if match is None:
        return None
    return Quiz.model_validate_json(match.group(1))


class QuizService:
    def __init__(
        self,
        llm: LLMService,
        pdf_extractor: Optional[PdfExtractor] = None,
        file_service: Optional[FileService] = None,
    ):
        self.llm = llm
        self.pdf_extractor = pdf_extractor or PdfExtractor()
        self.file_service = file_service or FileService()

    async def extract_document(self, message: Optional[ChatMessage]) -> Optional[str]:
        """
        Text of the first readable PDF attached to `message`.

        Attachments that fail to decode, validate or extract are logged and
        skipped; the turn then continues as if no PDF had been sent.
        """
        if message is None:
            return None

        for part in message.parts:
            if part.type != "file" or part.media_type != PDF_MEDIA_TYPE:
                continue
            filename = part.filename or DEFAULT_FILENAME
            try:
                content = decode_data_url(part.url)
                self.file_service.validate_upload(filename, part.media_type, content)
                async with self.file_service.temporary_file(content) as path:
                    extracted = await self.pdf_extractor.extract(path)
            except (ValueError, ValidationError, ExtractionError, FileStorageError) as e:
                logger.warning(
                    "Skipping unreadable quiz attachment %s: %s", filename, type(e).__name__
                )
                continue
            logger.info("Quiz attachment %s: %d chars", filename, len(extracted.text))
            return extracted.text

        return None

    async def respond(self, messages: List[ChatMessage]) -> QuizChatResponse:
        """
        Raises:
            ValidationError: The conversation is empty.
            SummarizationUnavailableError: Provider failure, empty output, or
                a quiz reply that does not match the quiz shape.
        """
        if not messages:
            raise ValidationError("No messages provided.", field="messages")

        latest = last_user_message(messages)
        document_text = await self.extract_document(latest)
        user_text = message_text(latest)
        prompt = build_quiz_prompt(messages, document_text, user_text)

        try:
            reply = await self.llm.generate(prompt, max_output_tokens=QUIZ_MAX_OUTPUT_TOKENS)
        except SummarizationUnavailableError:
            raise
        except Exception as e:
            logger.error("Quiz generation failed: %s: %s", type(e).__name__, str(e))
            raise SummarizationUnavailableError(
                QUIZ_FAILURE_MESSAGE, context={"error_type": type(e).__name__}
            ) from e

        if not reply or not reply.strip():
            logger.warning("Generation service returned an empty quiz reply")
            raise SummarizationUnavailableError(
                QUIZ_FAILURE_MESSAGE, context={"reason": "empty_output"}
            )

        # Quizzes are only offered when a document and an instruction are present
        if document_text and user_text:
            try:
                quiz = parse_quiz(reply)
            except SchemaValidationError as e:
                logger.warning("Quiz reply failed validation: %d errors", e.error_count())
                raise SummarizationUnavailableError(
                    QUIZ_FAILURE_MESSAGE, context={"reason": "invalid_quiz"}
                ) from e
            if quiz is not None:
                return QuizChatResponse(quiz=quiz)

        return QuizChatResponse(reply=reply.strip())
