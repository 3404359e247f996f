"""
NoteDigest Backend — YouTube Transcript Extractor
==================================================

What:  Resolves a YouTube URL or bare video id and fetches its transcript.
How:   youtube-transcript-api (synchronous) runs in a worker thread; caption
       snippets become ordered segments with millisecond offsets, and the
       plain text is the space-joined snippet texts.
Who:   Called by the ingestion service for POST /api/notes/transcripts.

Accepted input shapes:
    dQw4w9WgXcQ
    https://www.youtube.com/watch?v=dQw4w9WgXcQ
    https://youtu.be/dQw4w9WgXcQ
    https://www.youtube.com/embed/dQw4w9WgXcQ
    https://www.youtube.com/v/dQw4w9WgXcQ
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

import requests
from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeTranscriptApi,
)

from notedigest.exceptions import ExtractionError, ValidationError
from notedigest.services.extraction import ExtractedContent, Segment

logger = logging.getLogger(__name__)

VIDEO_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")
YOUTUBE_URL_PATTERN = re.compile(
    r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/v/)"
    r"([a-zA-Z0-9_-]{11})"
)

TRANSCRIPT_UNAVAILABLE_MESSAGE = (
    "Transcript is not available for this video. "
    "The video may not have captions enabled."
)
VIDEO_UNAVAILABLE_MESSAGE = "Video is private or unavailable. Please check the video URL."
EMPTY_TRANSCRIPT_MESSAGE = "No transcript available for this video."
GENERIC_FAILURE_MESSAGE = "Failed to fetch transcript. Please try again later."


@dataclass
class TranscriptItem:
    """One caption with offsets in milliseconds."""

    text: str
    offset_ms: int
    duration_ms: int


# (video_id, languages) → caption snippets exposing .text, .start, .duration (seconds)
TranscriptFetcher = Callable[[str, Sequence[str]], Iterable]


def extract_video_id(url_or_id: Optional[str]) -> Optional[str]:
    """Return the 11-character video id, or None when the input has none."""
    candidate = (url_or_id or "").strip()
    if VIDEO_ID_PATTERN.match(candidate):
        return candidate
    match = YOUTUBE_URL_PATTERN.search(candidate)
    if match:
        return match.group(1)
    return None


def canonical_video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def _fetch_with_api(video_id: str, languages: Sequence[str]) -> Iterable:
    return YouTubeTranscriptApi().fetch(video_id, languages=list(languages))


class YouTubeExtractor:
    """
    Transcript extractor.

    `fetcher` is a synchronous callable; tests pass a stub instead of
    reaching YouTube.
    """

    def __init__(
        self,
        languages: Sequence[str] = ("en",),
        fetcher: Optional[TranscriptFetcher] = None,
    ):
        self.languages = list(languages) or ["en"]
        self.fetcher = fetcher or _fetch_with_api

    def resolve(self, url_or_id: Optional[str]) -> str:
        """
        Raises:
            ValidationError: No video id could be found in the input.
        """
        video_id = extract_video_id(url_or_id)
        if video_id is None:
            raise ValidationError(
                "Invalid YouTube URL or video ID. Please provide a valid YouTube link.",
                field="url",
            )
        return video_id

    async def fetch_transcript(self, video_id: str) -> List[TranscriptItem]:
        """
        Raises:
            ExtractionError: Transcript disabled or missing, video private or
                removed, network failure, or any other retrieval failure.
        """
        try:
            snippets = await asyncio.to_thread(
                lambda: list(self.fetcher(video_id, self.languages))
            )
        except (TranscriptsDisabled, NoTranscriptFound) as e:
            logger.info("No transcript for video %s: %s", video_id, type(e).__name__)
            raise ExtractionError(
                TRANSCRIPT_UNAVAILABLE_MESSAGE, context={"video_id": video_id}
            ) from e
        except VideoUnavailable as e:
            logger.info("Video %s is unavailable", video_id)
            raise ExtractionError(
                VIDEO_UNAVAILABLE_MESSAGE, context={"video_id": video_id}
            ) from e
        except CouldNotRetrieveTranscript as e:
            logger.warning("Transcript retrieval failed for %s: %s", video_id, type(e).__name__)
            raise ExtractionError(
                GENERIC_FAILURE_MESSAGE,
                context={"video_id": video_id, "error_type": type(e).__name__},
            ) from e
        except (requests.RequestException, OSError) as e:
            logger.warning("Transcript transport error for %s: %s", video_id, e)
            raise ExtractionError(
                GENERIC_FAILURE_MESSAGE,
                context={"video_id": video_id, "error_type": type(e).__name__},
            ) from e

        return [
            TranscriptItem(
                text=snippet.text,
                offset_ms=int(round(snippet.start * 1000)),
                duration_ms=int(round(snippet.duration * 1000)),
            )
            for snippet in snippets
        ]

    async def extract(self, url_or_id: Optional[str]) -> ExtractedContent:
        """Resolve, fetch and normalize a transcript."""
        video_id = self.resolve(url_or_id)
        items = await self.fetch_transcript(video_id)

        segments = [
            Segment(
                text=item.text,
                start_sec=item.offset_ms // 1000,
                end_sec=(item.offset_ms + item.duration_ms) // 1000,
            )
            for item in items
            if item.text and item.text.strip()
        ]
        text = " ".join(segment.text for segment in segments).strip()
        if not text:
            raise ExtractionError(EMPTY_TRANSCRIPT_MESSAGE, context={"video_id": video_id})

        logger.info("Fetched transcript for %s: %d segments", video_id, len(segments))
        return ExtractedContent(
            text=text,
            segments=segments,
            origin=canonical_video_url(video_id),
        )
