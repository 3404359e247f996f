"""
NoteDigest Backend — Google Gemini Service Implementation
==========================================================

What:  Concrete LLM service generating note summaries with Google Gemini.
How:   Sends the prompt to Gemini with a bounded output length, with retry
       logic, a circuit breaker, and latency logging.
Who:   Created once per process by the dependency layer; called by the Summarizer.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient failures
       (unavailable, quota exhausted, deadline exceeded, network errors)
    2. Circuit breaker fails fast while Gemini is down
    3. Per-request timeout passed to the SDK
"""

import logging
import time
import uuid
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from notedigest.config import settings
from notedigest.exceptions import CircuitBreakerOpenError, SummarizationUnavailableError
from notedigest.services.llm_base import LLMService

logger = logging.getLogger(__name__)

# Errors worth another attempt; everything else (bad key, blocked prompt) fails at once
TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    ConnectionError,
    TimeoutError,
)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Implements the circuit breaker pattern to prevent cascade failures.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not thread-safe; uvicorn async workers share a single event loop per process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = max(1, int(self.recovery_timeout - elapsed))
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """
    Google Gemini implementation of the text-generation contract.

    Error Handling Chain:
        API call fails with a transient error → tenacity retries
        → All retries fail → record circuit breaker failure → 503
        → Threshold reached → future calls rejected instantly
        → Recovery timeout → allow one test call (HALF_OPEN)
    """

    def __init__(self, model_name: Optional[str] = None):
        if settings.gemini_api_key:
            genai.configure(api_key=settings.gemini_api_key)

        self._model_name = model_name or settings.gemini_model
        self.model = genai.GenerativeModel(self._model_name)

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            self._model_name,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    async def generate(self, prompt: str, max_output_tokens: int) -> str:
        """
        Generate text for a prompt.

        Flow:
            1. Check circuit breaker → may raise CircuitBreakerOpenError
            2. Call Gemini with retry on transient errors
            3. Record success/failure in circuit breaker

        Raises:
            CircuitBreakerOpenError: Circuit is open (too many recent failures)
            SummarizationUnavailableError: Gemini failed after all retry attempts
        """
        call_id = str(uuid.uuid4())[:8]

        self.circuit_breaker.can_execute()

        logger.info(
            "[%s] Starting Gemini generation (%d prompt chars)",
            call_id,
            len(prompt),
        )

        try:
            result = await self._call_gemini_with_retry(prompt, max_output_tokens, call_id)
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini generation failed: %s: %s",
                call_id,
                type(e).__name__,
                str(e),
            )
            raise SummarizationUnavailableError(
                retry_after=(
                    self.circuit_breaker.recovery_timeout
                    if self.circuit_breaker.state == CircuitBreaker.OPEN
                    else None
                ),
                context={"call_id": call_id, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        return result

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        # attempt 1 → ~2s, attempt 2 → ~4s, capped at retry_max_wait (+jitter)
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(
        self, prompt: str, max_output_tokens: int, call_id: str
    ) -> str:
        """
        Makes the actual Gemini API call. Only this call is retried; the
        circuit breaker check stays outside the retry loop.
        """
        start_time = time.time()

        try:
            response = await self.model.generate_content_async(
                prompt,
                generation_config={"max_output_tokens": max_output_tokens},
                request_options={"timeout": settings.gemini_timeout},
            )
            duration_ms = (time.time() - start_time) * 1000

            text = response.text.strip() if response.text else ""

            logger.info(
                "[%s] Gemini generation completed in %.0fms, %d chars",
                call_id,
                duration_ms,
                len(text),
            )
            return text

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                call_id,
                duration_ms,
                str(e),
            )
            raise

    async def health_check(self) -> bool:
        """
        Check if Gemini API is reachable.

        How: Lists available models (no token cost). An open circuit counts as
        unhealthy without probing.
        """
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return False
        try:
            model_names = [m.name for m in genai.list_models()]
            target = f"models/{self._model_name}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False
