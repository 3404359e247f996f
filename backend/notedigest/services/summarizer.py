"""
NoteDigest Backend — Summarizer
================================

What:  Builds a bounded prompt from normalized text and asks the generation
       service for a concise markdown summary.
How:   Prompt parts are joined by blank lines; the body is cut at 12,000
       characters. The provider is an injected LLMService.
Who:   Called by the ingestion service once per ingestion.

Prompt Layout:
    You are a note-taking assistant that summarizes <kind>.
    Return a concise markdown summary with headings and bullet points.
    [User instructions: ...]
    [Source URL: ...]
    <Header> content:
    <body, truncated>
"""

import logging
from typing import Optional

from notedigest.exceptions import SummarizationUnavailableError
from notedigest.services.llm_base import LLMService

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 12_000
TRUNCATION_MARKER = "\n\n...[truncated]"
MAX_OUTPUT_TOKENS = 800

# source type → (what the framing sentence calls it, content header)
PROMPT_SUBJECTS = {
    "text": ("text content", "Document content:"),
    "pdf": ("PDF document content", "Document content:"),
    "web": ("web content", "Web content:"),
    "youtube": ("video transcript content", "Transcript content:"),
}


def truncate_content(content: str, max_length: int = MAX_CONTENT_LENGTH) -> str:
    """Keep at most `max_length` characters, marking the cut when one happens."""
    if len(content) <= max_length:
        return content
    return content[:max_length] + TRUNCATION_MARKER


def build_prompt(
    text: str,
    instructions: Optional[str] = None,
    source_label: Optional[str] = None,
    source_type: str = "text",
) -> str:
    subject, header = PROMPT_SUBJECTS.get(source_type, PROMPT_SUBJECTS["text"])
    parts = [
        f"You are a note-taking assistant that summarizes {subject}.",
        "Return a concise markdown summary with headings and bullet points.",
        f"User instructions: {instructions.strip()}" if instructions and instructions.strip() else None,
        f"Source URL: {source_label}" if source_label else None,
        header,
        truncate_content(text),
    ]
    return "\n\n".join(part for part in parts if part)


class Summarizer:
    """
    Turns normalized text into a markdown summary.

    Never returns an empty summary: empty provider output is treated as an
    outage, same as a timeout or quota error.
    """

    def __init__(self, llm: LLMService):
        self.llm = llm

    @property
    def model_name(self) -> str:
        return self.llm.model_name

    async def summarize(
        self,
        text: str,
        instructions: Optional[str] = None,
        source_label: Optional[str] = None,
        source_type: str = "text",
    ) -> str:
        """
        Raises:
            SummarizationUnavailableError: Provider failure or empty output.
        """
        prompt = build_prompt(text, instructions, source_label, source_type)

        try:
            summary = await self.llm.generate(prompt, max_output_tokens=MAX_OUTPUT_TOKENS)
        except SummarizationUnavailableError:
            raise
        except Exception as e:
            logger.error("Summary generation failed: %s: %s", type(e).__name__, str(e))
            raise SummarizationUnavailableError(
                context={"error_type": type(e).__name__}
            ) from e

        if not summary or not summary.strip():
            logger.warning("Generation service returned an empty summary")
            raise SummarizationUnavailableError(context={"reason": "empty_output"})

        return summary.strip()
