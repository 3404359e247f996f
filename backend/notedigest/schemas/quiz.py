"""
NoteDigest Backend — Quiz Chat Schemas
=======================================

What:  Request and response models for POST /api/chat/quiz, and the quiz
       shape the generation service must produce.
How:   Same camelCase wire format as the note schemas. `Quiz` doubles as
       the validator for the model's JSON output.

Message Shape (one chat turn):
    {
        "role": "user",
        "parts": [
            {"type": "text", "text": "Make me a quiz"},
            {"type": "file", "mediaType": "application/pdf",
             "url": "data:application/pdf;base64,JVBERi0..."}
        ]
    }
"""

from typing import List, Optional

from pydantic import Field

from notedigest.schemas.note import CamelModel


class QuizQuestion(CamelModel):
    question: str = Field(min_length=1, description="The question text")
    options: List[str] = Field(min_length=4, max_length=4, description="Four possible answers")
    correct_index: int = Field(ge=0, le=3, description="Index of the correct answer (0-3)")


class Quiz(CamelModel):
    """Four multiple-choice questions about one document."""

    questions: List[QuizQuestion] = Field(min_length=4, max_length=4)


class ChatPart(CamelModel):
    type: str = Field(description="text or file")
    text: Optional[str] = None
    media_type: Optional[str] = None
    filename: Optional[str] = None
    url: Optional[str] = Field(default=None, description="Base64 data URL for file parts")


class ChatMessage(CamelModel):
    role: str = Field(description="user or assistant")
    parts: List[ChatPart] = Field(default_factory=list)


class QuizChatRequest(CamelModel):
    """Body of POST /api/chat/quiz: the whole conversation so far."""

    messages: List[ChatMessage] = Field(default_factory=list)


class QuizChatResponse(CamelModel):
    """
    Exactly one of `reply` (a plain assistant message) or `quiz` is set.

    Example:
        {"reply": null, "quiz": {"questions": [{"question": "…",
         "options": ["a", "b", "c", "d"], "correctIndex": 2}, …]}}
    """

    reply: Optional[str] = None
    quiz: Optional[Quiz] = None
