"""
Roast Pipeline Orchestration.

This module defines `RoastService`, which sequences one roast request:

    received -> fetching -> extracting -> sanitizing -> generating(1..N) -> responding

Key Components:
- `validate_url`: Rejects profile references that do not contain the
  configured domain, before any outbound call is made.
- `analyze`: The full pipeline used by `/api/analyze`. Only the generation
  stage is retried: a fixed number of attempts with a fixed delay and no
  jitter. When every attempt fails the caller still gets a canned roast,
  flagged with `is_error`.
- `fetch` / `generate`: The split two-phase variant used by clients that
  report staged progress.
- `persist`: Best-effort save of a finished roast. A failed save is logged and
  never fails the request.

Architectural Design:
- Typed Failures, Late Fallbacks: Providers raise `FetchError` and
  `GenerationError`; this service is the only place that turns them into
  canned user-facing text, so the error kind stays visible in logs and
  results.
- Provider Injection: Content and completion providers are passed in, which
  lets tests replace the network with mocks.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from core.exceptions import FetchError, GenerationError, PersistenceError, ValidationError
from core.extraction import extract_blogger_info
from core.formatting import is_error_roast, normalize_roast
from core.logging_config import log_function_call
from core.models import AnalysisResult, BloggerInfo
from core.prompts import (
    ANALYZE_FALLBACK_ROAST,
    FETCH_FAILED_MESSAGE,
    GENERATE_FAILED_MESSAGE,
    GENERATE_FALLBACK_ROAST,
    GENERATION_FAILED_MESSAGE,
    INVALID_URL_MESSAGE,
)
from core.sanitizer import clean_content_for_ai
from providers.content_provider import ContentProvider
from providers.llm_provider import CompletionProvider
from services.roast_store import RoastStore

logger = logging.getLogger(__name__)


class RoastService:
    """Service that runs the fetch, extract, sanitize and generate pipeline"""

    def __init__(
        self,
        content_provider: ContentProvider,
        completion_provider: CompletionProvider,
        store: Optional[RoastStore] = None,
        required_domain: str = "xiaohongshu.com",
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        persist_results: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.content_provider = content_provider
        self.completion_provider = completion_provider
        self.store = store
        self.required_domain = required_domain
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.persist_results = persist_results
        self.sleep = sleep

    def validate_url(self, url: str) -> str:
        if not isinstance(url, str) or self.required_domain not in url:
            raise ValidationError("url", url, INVALID_URL_MESSAGE)
        return url.strip()

    def _log_stage(self, stage: str, start_time: float, **extra):
        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            f"Stage {stage} finished in {duration_ms}ms",
            extra={"stage": stage, "duration_ms": duration_ms, **extra},
        )

    async def generate_with_retry(self, content: str) -> str:
        """
        Call the completion provider up to `max_attempts` times.

        Sleeps `retry_delay` seconds between attempts. A non-retryable error
        (missing credentials) is raised at once; otherwise the last error is
        raised after the final attempt.
        """
        for attempt in range(1, self.max_attempts + 1):
            start_time = time.time()
            try:
                roast = await self.completion_provider.generate_roast(content)
                self._log_stage("generating", start_time, attempt=attempt)
                return roast
            except GenerationError as e:
                logger.warning(
                    f"Roast generation failed (attempt {attempt}/{self.max_attempts}): {e.message}",
                    extra={"stage": "generating", "attempt": attempt, "kind": e.kind},
                )
                if not e.retryable or attempt >= self.max_attempts:
                    raise
                await self.sleep(self.retry_delay)

    @log_function_call(logger)
    async def analyze(self, url: str) -> AnalysisResult:
        """Run the whole pipeline for one profile URL"""
        url = self.validate_url(url)

        start_time = time.time()
        try:
            raw_content = await self.content_provider.fetch_raw_content(url)
        except FetchError as e:
            logger.error(f"Fetching failed for {url}: {e.reason}")
            return AnalysisResult(
                success=False,
                error=FETCH_FAILED_MESSAGE,
                error_code=e.error_code,
                error_detail=e.reason,
            )
        self._log_stage("fetching", start_time, content_length=len(raw_content))

        start_time = time.time()
        blogger = extract_blogger_info(raw_content)
        self._log_stage("extracting", start_time, nickname=blogger.nickname)

        start_time = time.time()
        cleaned = clean_content_for_ai(raw_content)
        self._log_stage(
            "sanitizing",
            start_time,
            original_length=len(raw_content),
            cleaned_length=len(cleaned),
        )

        try:
            roast = await self.generate_with_retry(cleaned)
        except GenerationError as e:
            logger.error(f"All generation attempts failed for {url}: {e.message}")
            return AnalysisResult(
                success=False,
                roast=ANALYZE_FALLBACK_ROAST,
                blogger=blogger,
                error=GENERATION_FAILED_MESSAGE,
                error_code=e.error_code,
                error_detail=e.message,
                is_error=True,
            )

        result = AnalysisResult(
            success=True, roast=normalize_roast(roast), blogger=blogger
        )
        result.share_id = await self.persist(url, blogger, result.roast)
        return result

    @log_function_call(logger)
    async def fetch(self, url: str) -> AnalysisResult:
        """First phase of the split pipeline: fetch and extract only"""
        url = self.validate_url(url)
        try:
            raw_content = await self.content_provider.fetch_raw_content(url)
        except FetchError as e:
            return AnalysisResult(
                success=False,
                error=FETCH_FAILED_MESSAGE,
                error_code=e.error_code,
                error_detail=e.reason,
            )

        return AnalysisResult(
            success=True,
            content=raw_content,
            blogger=extract_blogger_info(raw_content),
        )

    @log_function_call(logger)
    async def generate(
        self, raw_content: str, blogger: Optional[BloggerInfo] = None
    ) -> AnalysisResult:
        """Second phase of the split pipeline: one generation attempt"""
        blogger = blogger or BloggerInfo()
        try:
            roast = await self.completion_provider.generate_roast(
                clean_content_for_ai(raw_content or "")
            )
        except GenerationError as e:
            logger.error(f"Generation failed: {e.message}", extra={"kind": e.kind})
            return AnalysisResult(
                success=False,
                roast=GENERATE_FALLBACK_ROAST,
                blogger=blogger,
                error=GENERATE_FAILED_MESSAGE,
                error_code=e.error_code,
                error_detail=e.message,
                is_error=True,
            )

        return AnalysisResult(success=True, roast=normalize_roast(roast), blogger=blogger)

    async def persist(
        self, url: str, blogger: BloggerInfo, roast: str
    ) -> Optional[str]:
        """Save a finished roast; return its share id or None"""
        if not self.persist_results or self.store is None:
            return None
        if is_error_roast(roast):
            logger.info("Skipping save of error-looking roast")
            return None

        try:
            record = await self.store.save_roast(url, blogger, roast)
        except PersistenceError as e:
            logger.error(f"Saving roast failed, continuing without share id: {e.message}")
            return None
        return record.share_id
