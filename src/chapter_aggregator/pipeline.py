"""Batched fetch-retry pipeline with challenge fallback and cancellation."""

import asyncio
import logging
import math
from collections import Counter
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel

from chapter_aggregator.config import Settings
from chapter_aggregator.errors import (
    AggregatorError,
    CancellationError,
    ChallengeError,
    EmptyWorkListError,
    ExtractionError,
    TransportError,
)
from chapter_aggregator.extractor.chapter import ChapterExtractor, ExtractedChapter
from chapter_aggregator.fetcher.base import BaseFetcher, FetchResult
from chapter_aggregator.fetcher.challenge import body_has_challenge_marker, is_challenge
from chapter_aggregator.settings_store import SettingsStore
from chapter_aggregator.utils.backoff import backoff_delay, cancellable_sleep, stagger_delay
from chapter_aggregator.worklist import WorkItem

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float, asyncio.Event], Awaitable[None]]


class FailureKind(str, Enum):
    """Why a chapter could not be downloaded."""

    CHALLENGE = "challenge"
    TRANSPORT = "transport"
    EXTRACTION = "extraction"
    CANCELLED = "cancelled"


class ItemSuccess(BaseModel):
    item: WorkItem
    chapter: ExtractedChapter
    attempts: int


class ItemFailure(BaseModel):
    item: WorkItem
    reason: str
    kind: FailureKind
    attempts: int = 0


FetchOutcome = ItemSuccess | ItemFailure


class ProgressEvent(BaseModel):
    """Emitted once for every chapter that reaches a final outcome."""

    completed_count: int
    total_count: int
    percentage: int
    succeeded: bool
    cancelled: bool
    item: WorkItem


class PipelineResult(BaseModel):
    """Outcome of a whole run, chapters in source order."""

    results: list[ExtractedChapter]
    failures: list[ItemFailure]
    cancelled: bool
    challenge_detected: bool = False

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


@dataclass
class PipelineRun:
    """Mutable state of one invocation of :meth:`Pipeline.run`."""

    items: list[WorkItem]
    settings: Settings
    cursor: int = 0
    results: list[ExtractedChapter] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    challenge_detected: bool = False
    active_requests: set[asyncio.Future] = field(default_factory=set)
    attempt_counts: Counter[str] = field(default_factory=Counter)
    fallback_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    fallback_ready: bool = False
    fallback_error: str | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def completed_count(self) -> int:
        return len(self.results) + len(self.failures)

    def check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise CancellationError()

    def activate_fallback(self) -> bool:
        """Switch the run to the fallback strategy; True only on the first call."""
        if self.challenge_detected:
            return False
        self.challenge_detected = True
        return True


class Pipeline:
    """Download chapters in batches, retrying and switching strategies as needed.

    Items of a batch run concurrently with a staggered start; the next batch
    starts only after every item of the current one has resolved. Failed
    fetches back off exponentially. The first anti-bot challenge switches the
    run to the fallback fetcher for good.
    """

    def __init__(
        self,
        settings: SettingsStore,
        primary: BaseFetcher,
        fallback: BaseFetcher | None = None,
        extractor: ChapterExtractor | None = None,
        on_challenge: Callable[[WorkItem], None] | None = None,
        sleep: SleepFunc = cancellable_sleep,
    ):
        self.settings = settings
        self.primary = primary
        self.fallback = fallback
        self.extractor = extractor or ChapterExtractor()
        self.on_challenge = on_challenge
        self._sleep = sleep
        self._run: PipelineRun | None = None
        self._stack: AsyncExitStack | None = None

    @property
    def running(self) -> bool:
        return self._run is not None

    @property
    def current_run(self) -> PipelineRun | None:
        return self._run

    def cancel(self) -> None:
        """Request cancellation and abort in-flight requests of the active run."""
        run = self._run
        if run is None or run.cancelled:
            return
        logger.info("Download cancellation requested")
        run.cancel_event.set()
        for request in list(run.active_requests):
            request.cancel()
        run.active_requests.clear()

    async def run(
        self,
        items: list[WorkItem],
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> PipelineResult:
        """Download every item and return chapters and failures in source order.

        Raises:
            EmptyWorkListError: If ``items`` is empty.
            RuntimeError: If another run of this pipeline is in progress.
        """
        if not items:
            raise EmptyWorkListError("No chapters to download")
        if self._run is not None:
            raise RuntimeError("A download is already in progress")

        run = PipelineRun(items=list(items), settings=self.settings.snapshot())
        self._run = run
        try:
            async with AsyncExitStack() as stack:
                self._stack = stack
                await stack.enter_async_context(self.primary)
                await self._process_batches(run, on_progress)
        finally:
            self._stack = None
            self._run = None

        logger.info(
            "Processing %s",
            "cancelled" if run.cancelled else "complete",
            extra={
                "data": {
                    "successful": len(run.results),
                    "failed": len(run.failures),
                    "total": len(run.items),
                    "cancelled": run.cancelled,
                }
            },
        )
        return PipelineResult(
            results=run.results,
            failures=run.failures,
            cancelled=run.cancelled,
            challenge_detected=run.challenge_detected,
        )

    async def _process_batches(
        self,
        run: PipelineRun,
        on_progress: Callable[[ProgressEvent], None] | None,
    ) -> None:
        size = run.settings.batch_size
        total = len(run.items)
        batch_count = math.ceil(total / size)
        logger.info("Starting to process %d chapters in batches of %d", total, size)

        for batch_no, start in enumerate(range(0, total, size), start=1):
            if run.cancelled:
                logger.info("Download cancelled during batch processing")
                break

            run.cursor = start
            batch = run.items[start : start + size]
            logger.info("Processing batch %d/%d", batch_no, batch_count)

            for outcome in await self._run_batch(run, batch):
                if isinstance(outcome, ItemSuccess):
                    run.results.append(outcome.chapter)
                else:
                    run.failures.append(outcome)
                if on_progress:
                    on_progress(self._progress_event(run, outcome))

            if start + size < total and not run.cancelled:
                try:
                    await self._sleep(run.settings.base_delay_ms / 1000, run.cancel_event)
                except CancellationError:
                    break

    async def _run_batch(self, run: PipelineRun, batch: list[WorkItem]) -> list[FetchOutcome]:
        """Run one batch concurrently; outcomes come back in batch position order."""
        tasks = {
            asyncio.ensure_future(self._process_item(run, item, position)): position
            for position, item in enumerate(batch)
        }
        done, _ = await asyncio.wait(tasks)
        placed: list[FetchOutcome | None] = [None] * len(batch)
        for task in done:
            placed[tasks[task]] = task.result()
        return [outcome for outcome in placed if outcome is not None]

    async def _process_item(self, run: PipelineRun, item: WorkItem, position: int) -> FetchOutcome:
        try:
            await self._sleep(stagger_delay(run.settings.base_delay_ms, position), run.cancel_event)
            html = await self._fetch_with_retry(run, item)
            run.check_cancelled()
            chapter = self.extractor.extract(html, item.url)
            return ItemSuccess(item=item, chapter=chapter, attempts=run.attempt_counts[item.url])
        except CancellationError as e:
            return self._failure(run, item, str(e), FailureKind.CANCELLED)
        except ChallengeError as e:
            return self._failure(run, item, str(e), FailureKind.CHALLENGE)
        except ExtractionError as e:
            return self._failure(run, item, str(e), FailureKind.EXTRACTION)
        except TransportError as e:
            return self._failure(run, item, str(e), FailureKind.TRANSPORT)
        except Exception as e:
            logger.exception("Unexpected error while processing %s", item.url)
            return self._failure(run, item, str(e) or type(e).__name__, FailureKind.TRANSPORT)

    def _failure(
        self, run: PipelineRun, item: WorkItem, reason: str, kind: FailureKind
    ) -> ItemFailure:
        logger.error(
            "Failed to process chapter: %s",
            item.title,
            extra={"data": {"url": item.url, "error": reason, "kind": kind.value}},
        )
        attempts = run.attempt_counts[item.url]
        return ItemFailure(item=item, reason=reason, kind=kind, attempts=attempts)

    async def _fetch_with_retry(self, run: PipelineRun, item: WorkItem) -> str:
        """Fetch a page body, making at most ``max_retries + 1`` attempts."""
        max_attempts = run.settings.max_retries + 1
        last_error: AggregatorError = TransportError("no attempts")

        for attempt in range(max_attempts):
            run.check_cancelled()
            fetcher = await self._active_fetcher(run)
            run.attempt_counts[item.url] += 1
            logger.info(
                "Fetching chapter: %s (attempt %d, %s)", item.url, attempt + 1, fetcher.name
            )

            result = await self._tracked_fetch(run, fetcher, item.url)
            run.check_cancelled()

            if is_challenge(result):
                last_error = ChallengeError(
                    f"Anti-bot challenge: {_describe(result)}", result.status_code
                )
                if run.activate_fallback():
                    self._notify_challenge(item)
                    continue
            elif result.success:
                return result.html
            else:
                last_error = TransportError(_describe(result), result.status_code)

            logger.error(
                "Failed to fetch %s",
                item.url,
                extra={"data": {"error": str(last_error), "attempt": attempt + 1}},
            )
            if attempt < max_attempts - 1:
                delay = backoff_delay(run.settings.base_delay_ms, attempt)
                logger.info("Retrying %s in %.1fs", item.url, delay)
                await self._sleep(delay, run.cancel_event)

        raise last_error

    async def _active_fetcher(self, run: PipelineRun) -> BaseFetcher:
        """The strategy for the next attempt; fallback once a challenge was seen."""
        if not run.challenge_detected or self.fallback is None:
            return self.primary
        if run.fallback_ready:
            return self.fallback
        async with run.fallback_lock:
            if run.fallback_error is None and not run.fallback_ready:
                if self._stack is None:
                    raise RuntimeError("Pipeline not running. Use Pipeline.run().")
                try:
                    await self._stack.enter_async_context(self.fallback)
                    run.fallback_ready = True
                    logger.info("Switched to %s fetch strategy", self.fallback.name)
                except Exception as e:
                    run.fallback_error = str(e) or type(e).__name__
                    logger.error("Fallback fetch strategy unavailable: %s", run.fallback_error)
        if run.fallback_error is not None:
            raise TransportError(f"Fallback fetch strategy unavailable: {run.fallback_error}")
        return self.fallback

    async def _tracked_fetch(self, run: PipelineRun, fetcher: BaseFetcher, url: str) -> FetchResult:
        """Run a fetch as a task that :meth:`cancel` can abort.

        A request cancelled by anything other than :meth:`cancel` comes back
        as a failed result and is retried like other transport errors.
        """
        request = asyncio.ensure_future(fetcher.fetch(url))
        run.active_requests.add(request)
        try:
            return await request
        except asyncio.CancelledError:
            if run.cancelled:
                raise CancellationError() from None
            logger.warning("Request for %s was cancelled by the %s fetcher", url, fetcher.name)
            return FetchResult(
                url=url, final_url=url, html="", status_code=0, error="Request cancelled"
            )
        finally:
            run.active_requests.discard(request)

    def _notify_challenge(self, item: WorkItem) -> None:
        logger.warning(
            "Anti-bot challenge detected on %s; using fallback strategy for the rest of the run",
            item.url,
        )
        if self.on_challenge:
            self.on_challenge(item)

    @staticmethod
    def _progress_event(run: PipelineRun, outcome: FetchOutcome) -> ProgressEvent:
        completed = run.completed_count
        total = len(run.items)
        return ProgressEvent(
            completed_count=completed,
            total_count=total,
            percentage=math.floor(completed / total * 100 + 0.5),
            succeeded=isinstance(outcome, ItemSuccess),
            cancelled=run.cancelled,
            item=outcome.item,
        )


def _describe(result: FetchResult) -> str:
    if result.error:
        return result.error
    if result.success and body_has_challenge_marker(result.html):
        return f"HTTP {result.status_code}: challenge page served instead of content"
    return f"HTTP {result.status_code}"
