"""
Purpose:
- Adaptive concurrent job queue that drives caption/translate requests against
  a provider with unknown, time-varying rate limits.
- One asyncio task per dispatched item; retries are an explicit bounded loop.

Behaviour:
- run(): one bulk run at a time. Items are dispatched in order, at most
  concurrency_limit of the run's tasks in flight, dispatch_delay between starts.
- Retryable failures back off 3000ms * 1.5^attempt. A rate limit instead waits
  15000ms + rand(0..5000ms) and clamps the run to concurrency 1 / delay 8000ms
  for the rest of the run (ratchet only, never loosened).
- stop(): cooperative. In-flight provider calls are not aborted; their results
  are dropped. Items the run touched go back to the status they had before.
- regenerate() / translate(): single-item entry points that never run an item
  twice at once and never touch the bulk run's throttle state.

All status/result changes go out through an ItemObserver.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple
import asyncio
import math
import random

from ..core.logging_config import get_logger
from ..vlm.provider import CaptionProvider, RunConfig, get_provider
from .classify import TRANSLATE_FAILED_MESSAGE, ErrorKind, classify, error_message
from .models import IN_FLIGHT, ItemObserver, ItemStatus, RunState, WorkItem

logger = get_logger("Engine")

MAX_RETRIES = 10
BACKOFF_BASE_MS = 3000
BACKOFF_FACTOR = 1.5
QUOTA_COOLDOWN_MS = 15000
QUOTA_JITTER_MS = 5000
THROTTLED_CONCURRENCY = 1
THROTTLED_DELAY_MS = 8000

SleepFn = Callable[[float], Awaitable[None]]
ProviderFactory = Callable[[RunConfig], CaptionProvider]


def backoff_ms(attempt: int) -> float:
    return BACKOFF_BASE_MS * (BACKOFF_FACTOR ** attempt)


def quota_cooldown_ms(rand: float) -> float:
    return QUOTA_COOLDOWN_MS + rand * QUOTA_JITTER_MS


@dataclass
class _Flight:
    task: "asyncio.Task[None]"
    state: RunState
    # (status, error_message) before the engine touched the item
    prior: Tuple[ItemStatus, Optional[str]]


class JobQueueEngine:
    def __init__(
        self,
        observer: ItemObserver,
        provider_factory: ProviderFactory = get_provider,
        sleep: SleepFn = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self._observer = observer
        self._provider_factory = provider_factory
        self._sleep = sleep
        self._rand = rand

        self._active = False
        self.state: Optional[RunState] = None
        # item id -> flight; shared by bulk runs and single-item entry points
        self._flights: Dict[str, _Flight] = {}
        # items accepted by the current run but not dispatched yet
        self._queued: Dict[str, Tuple[ItemStatus, Optional[str]]] = {}

    # ---- introspection ----

    @property
    def active(self) -> bool:
        return self._active

    @property
    def in_flight(self) -> frozenset:
        return frozenset(self._flights)

    @property
    def queued(self) -> frozenset:
        """Ids accepted by the current run that have not been dispatched yet."""
        return frozenset(self._queued)

    def is_busy(self, item_id: str) -> bool:
        return item_id in self._flights or item_id in self._queued

    def snapshot(self) -> dict:
        st = self.state
        return {
            "active": self._active,
            "in_flight": len(self._flights),
            "queued": len(self._queued),
            "concurrency_limit": st.concurrency_limit if st else None,
            "dispatch_delay_ms": st.dispatch_delay_ms if st else None,
            "throttled": bool(st and st.escalated),
            "cancelled": bool(st and st.cancelled),
        }

    # ---- bulk run ----

    async def run(self, items: Iterable[WorkItem], config: RunConfig) -> None:
        """
        Process items with bounded, adaptive concurrency. No-op while another run is active.
        """
        if self._active:
            logger.info("Run already active; ignoring new request")
            return

        self._active = True
        state = RunState(concurrency_limit=max(1, config.concurrency),
                         dispatch_delay_ms=max(0, config.dispatch_delay_ms))
        self.state = state

        queue: List[WorkItem] = []
        seen: Set[str] = set()
        for item in items:
            if item.id in seen or item.id in self._flights or item.status in IN_FLIGHT:
                continue
            seen.add(item.id)
            queue.append(item)

        self._queued = {}
        for item in queue:
            self._queued[item.id] = (item.status, item.error_message)
            self._observer.update_status(item.id, ItemStatus.QUEUED, None, 0)

        logger.info(
            f"Run started: {len(queue)} items, provider={config.provider}, "
            f"concurrency={state.concurrency_limit}, delay={state.dispatch_delay_ms}ms"
        )

        provider = self._provider_factory(config)
        run_tasks: Set["asyncio.Task[None]"] = set()
        try:
            for item in queue:
                if state.cancelled:
                    break

                while _live(run_tasks) >= state.concurrency_limit:
                    await asyncio.wait(set(run_tasks), return_when=asyncio.FIRST_COMPLETED)

                # stop() may have landed while we waited
                if state.cancelled:
                    break

                prior = self._queued.pop(item.id, (item.status, item.error_message))
                if item.id not in self._observer:
                    logger.info(f"Skipping {item.payload.filename}: removed before dispatch")
                    continue
                if item.id in self._flights:
                    # a single-item job got there first; it owns the item now
                    continue
                task = self._spawn(item, state, prior, self._caption_loop(item, state, provider, config))
                run_tasks.add(task)
                task.add_done_callback(run_tasks.discard)

                await self._sleep(state.dispatch_delay_ms / 1000)

            if run_tasks:
                await asyncio.wait(set(run_tasks))
        finally:
            if self.state is state:
                # only left over when the run itself was torn down mid-way
                for item_id, prior in self._queued.items():
                    self._observer.update_status(item_id, prior[0], prior[1], 0)
                self._queued = {}
                self._active = False
            logger.info(
                f"Run finished (cancelled={state.cancelled}, throttled={state.escalated}, "
                f"concurrency={state.concurrency_limit}, delay={state.dispatch_delay_ms}ms)"
            )

    def stop(self) -> None:
        """
        Cancel the current run and every single-item job. Nothing new is
        dispatched; late completions are dropped; touched items get their prior status back.

        Restoring a prior `error` or `success` is not an outcome of the cancelled
        run: it rewrites the status the item had before the run, message included,
        and the run itself emits no success/error after this point.
        """
        if self.state is not None:
            self.state.cancelled = True
        self._active = False

        for item_id, prior in list(self._queued.items()):
            self._observer.update_status(item_id, prior[0], prior[1], 0)
        self._queued = {}

        for item_id, flight in list(self._flights.items()):
            if not flight.state.cancelled:
                flight.state.cancelled = True
                self._observer.update_status(item_id, flight.prior[0], flight.prior[1], 0)
        logger.info("Processing stopped by user")

    # ---- single-item entry points ----

    async def regenerate(self, item: WorkItem, config: RunConfig) -> bool:
        """
        Re-run captioning for one item from attempt 0. Uses its own throttle
        state so an active bulk run is left untouched. False if the item is in
        flight or still waiting in the current run.
        """
        if self.is_busy(item.id) or item.status in IN_FLIGHT:
            return False
        state = RunState(concurrency_limit=max(1, config.concurrency),
                         dispatch_delay_ms=max(0, config.dispatch_delay_ms))
        provider = self._provider_factory(config)
        task = self._spawn(item, state, (item.status, item.error_message),
                           self._caption_loop(item, state, provider, config))
        await task
        return True

    async def translate(self, item: WorkItem, zh_text: str, config: RunConfig) -> bool:
        """
        Chinese -> English for one item. Single attempt, no retry loop.
        """
        if self.is_busy(item.id) or item.status in IN_FLIGHT:
            return False
        state = RunState(concurrency_limit=1, dispatch_delay_ms=0)
        provider = self._provider_factory(config)
        task = self._spawn(item, state, (item.status, item.error_message),
                           self._translate_once(item, zh_text, state, provider))
        await task
        return True

    # ---- internals ----

    def _spawn(self, item: WorkItem, state: RunState,
               prior: Tuple[ItemStatus, Optional[str]], coro) -> "asyncio.Task[None]":
        task = asyncio.ensure_future(coro)
        self._flights[item.id] = _Flight(task=task, state=state, prior=prior)

        def _release(t: "asyncio.Task[None]", item_id: str = item.id) -> None:
            flight = self._flights.get(item_id)
            if flight is not None and flight.task is t:
                del self._flights[item_id]

        task.add_done_callback(_release)
        return task

    async def _caption_loop(self, item: WorkItem, state: RunState,
                            provider: CaptionProvider, config: RunConfig) -> None:
        attempt = 0
        payload = item.payload
        while True:
            if state.cancelled:
                return

            progress = f"重试中 ({attempt}/{MAX_RETRIES})..." if attempt > 0 else None
            self._observer.update_status(item.id, ItemStatus.LOADING, progress, attempt)

            try:
                result = await provider.caption(payload.data, payload.mime_type, config.prompt)
            except Exception as exc:
                if state.cancelled:
                    return

                kind = classify(exc, credential_missing=config.credential_missing)
                if kind.retryable and attempt < MAX_RETRIES:
                    if kind is ErrorKind.RATE_LIMITED:
                        if not state.escalated:
                            logger.warning(
                                f"Rate limit hit on {payload.filename}; throttling run to "
                                f"{THROTTLED_CONCURRENCY} worker / {THROTTLED_DELAY_MS}ms"
                            )
                        state.escalate(THROTTLED_CONCURRENCY, THROTTLED_DELAY_MS)
                        delay = quota_cooldown_ms(self._rand())
                        message = f"配额保护中 ({math.ceil(delay / 1000)}s)..."
                    else:
                        delay = backoff_ms(attempt)
                        message = f"网络重试 ({math.ceil(delay / 1000)}s)..."

                    logger.info(f"Retry {attempt + 1}/{MAX_RETRIES} for {payload.filename} in {delay:.0f}ms ({kind.value})")
                    self._observer.update_status(item.id, ItemStatus.LOADING, message, attempt)
                    await self._sleep(delay / 1000)
                    if state.cancelled:
                        return
                    attempt += 1
                    continue

                logger.error(f"Processing error for {payload.filename}: {exc}")
                self._observer.update_status(item.id, ItemStatus.ERROR, error_message(kind), attempt)
                return

            if state.cancelled:
                return
            self._observer.update_result(item.id, result.en.strip(), result.zh.strip())
            self._observer.update_status(item.id, ItemStatus.SUCCESS, None, attempt)
            return

    async def _translate_once(self, item: WorkItem, zh_text: str, state: RunState,
                              provider: CaptionProvider) -> None:
        if state.cancelled:
            return
        self._observer.update_status(item.id, ItemStatus.TRANSLATING, None, 0)
        try:
            en_text = await provider.translate(zh_text)
        except Exception as exc:
            if state.cancelled:
                return
            logger.error(f"Translation error for {item.payload.filename}: {exc}")
            self._observer.update_status(item.id, ItemStatus.ERROR, TRANSLATE_FAILED_MESSAGE, 0)
            return

        if state.cancelled:
            return
        self._observer.update_result(item.id, (en_text or "").strip(), zh_text)
        self._observer.update_status(item.id, ItemStatus.SUCCESS, None, 0)


def _live(tasks: Set["asyncio.Task[None]"]) -> int:
    return sum(1 for t in tasks if not t.done())
