import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from citecheck.config import LLM_CONFIG, ORCHESTRATION_CONFIG, logger
from citecheck.models import Footnote, Verification, VerificationContext, sort_footnotes, unavailable
from citecheck.tools import PdfCache, ToolContext, get_pdf_cache
from citecheck.utils.rate_limiter import BackoffRateLimiter, get_rate_limiter
from .agent import ClaimVerifier
from .llm import ChatModel, GeminiChatModel
from .quick_verify import quick_verify

ProgressCallback = Callable[[List[Verification]], Awaitable[None]]


@dataclass
class OrchestratorOptions:
    concurrency: int = ORCHESTRATION_CONFIG.CONCURRENCY
    timeout_seconds: float = ORCHESTRATION_CONFIG.ITEM_TIMEOUT
    quick_timeout_seconds: float = ORCHESTRATION_CONFIG.QUICK_VERIFY_TIMEOUT
    max_iterations: int = LLM_CONFIG.MAX_ITERATIONS
    on_progress: Optional[ProgressCallback] = None
    chat_model: Optional[ChatModel] = None
    # Shared process-wide when left as None.
    rate_limiter: Optional[BackoffRateLimiter] = None
    pdf_cache: Optional[PdfCache] = None


class VerificationRun:
    """One document's worth of claim verifications.

    Workers pull the next unstarted position from a shared cursor, write the
    result into a pre-sized slot for that position, then publish progress.
    Publishing is serialized, and each publish reads the slots under the lock,
    so every callback sees a superset of what the previous one saw.
    """

    def __init__(
        self,
        footnotes: List[Footnote],
        chat_model: ChatModel,
        search_api_key: Optional[str],
        options: OrchestratorOptions,
    ):
        self.ordered = tuple(sort_footnotes(footnotes))
        self.chat_model = chat_model
        self.search_api_key = search_api_key
        self.options = options
        self.rate_limiter = options.rate_limiter or get_rate_limiter("web_search")
        self.pdf_cache = options.pdf_cache or get_pdf_cache()
        self.verifier = ClaimVerifier(chat_model, options.max_iterations)
        self.results: List[Optional[Verification]] = [None] * len(self.ordered)
        self._progress_lock = asyncio.Lock()

    def context_for(self, position: int) -> ToolContext:
        return ToolContext(
            verification=VerificationContext(
                ordered_footnotes=self.ordered,
                current_position=position,
            ),
            search_api_key=self.search_api_key,
            rate_limiter=self.rate_limiter,
            pdf_cache=self.pdf_cache,
        )

    def completed(self) -> List[Verification]:
        return [r for r in self.results if r is not None]

    async def _publish_progress(self) -> None:
        if self.options.on_progress is None:
            return
        async with self._progress_lock:
            try:
                await self.options.on_progress(self.completed())
            except Exception:
                logger.exception("Progress callback failed")

    async def _fallback(self, footnote: Footnote) -> Verification:
        timeout = self.options.timeout_seconds
        quick_timeout = self.options.quick_timeout_seconds
        try:
            return await asyncio.wait_for(quick_verify(footnote, self.chat_model), quick_timeout)
        except asyncio.TimeoutError:
            logger.warning("Quick verification timed out for footnote %s", footnote.id)
            return unavailable(
                footnote.id,
                f"Verification timed out after {timeout:g}s; quick verification also timed out "
                f"after {quick_timeout:g}s.",
            )
        except Exception as e:
            logger.error("Quick verification failed for footnote %s: %s", footnote.id, e)
            return unavailable(
                footnote.id,
                f"Verification timed out after {timeout:g}s; quick verification failed: {e}",
            )

    async def run_one(self, position: int) -> Verification:
        footnote = self.ordered[position]
        try:
            return await asyncio.wait_for(
                self.verifier.verify(footnote, self.context_for(position)),
                self.options.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Footnote %s exceeded %.0fs; falling back to quick verification",
                footnote.id,
                self.options.timeout_seconds,
            )
        return await self._fallback(footnote)

    async def _worker(self, cursor) -> None:
        for position in cursor:
            self.results[position] = await self.run_one(position)
            await self._publish_progress()

    async def run(self) -> List[Verification]:
        if not self.ordered:
            return []

        started_at = time.monotonic()
        cursor = iter(range(len(self.ordered)))
        worker_count = max(1, min(self.options.concurrency, len(self.ordered)))
        await asyncio.gather(*(self._worker(cursor) for _ in range(worker_count)))

        logger.info(
            "Verified %d footnotes in %.1fs with %d workers",
            len(self.ordered),
            time.monotonic() - started_at,
            worker_count,
        )
        return [
            r if r is not None else unavailable(self.ordered[i].id, "Verification did not complete.")
            for i, r in enumerate(self.results)
        ]


async def verify_all_footnotes(
    footnotes: List[Footnote],
    api_key: Optional[str],
    search_api_key: Optional[str] = None,
    options: Optional[OrchestratorOptions] = None,
) -> List[Verification]:
    """Verify every footnote of a document; output is in document order, one per footnote."""
    options = options or OrchestratorOptions()
    chat_model = options.chat_model or GeminiChatModel(api_key)
    run = VerificationRun(footnotes, chat_model, search_api_key, options)
    return await run.run()
