"""
Purpose:
- The one in-process captioning session: item store + job engine + runtime settings.
- Routers talk to this object only; it owns the background tasks it starts.
"""

from __future__ import annotations
from typing import Callable, Iterable, Optional, Set, Tuple
import asyncio
import random

from ..core.errors import AppError
from ..core.logging_config import get_logger
from ..core.runtime import RuntimeSettings, RuntimeSettingsPatch
from ..core.settings import settings
from ..jobs.engine import JobQueueEngine, ProviderFactory, SleepFn
from ..vlm.provider import RunConfig, get_provider, provider_baseline
from .export import build_zip, final_caption, txt_name
from .ingest import ingest_uploads, make_preview
from .store import ItemStore

logger = get_logger("Session")

class CaptionSession:
    def __init__(
        self,
        runtime: Optional[RuntimeSettings] = None,
        provider_factory: ProviderFactory = get_provider,
        sleep: SleepFn = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.runtime = runtime or RuntimeSettings.from_settings(settings)
        self.store = ItemStore()
        self.engine = JobQueueEngine(self.store, provider_factory=provider_factory, sleep=sleep, rand=rand)
        self._tasks: Set[asyncio.Task] = set()

    # ---- settings ----

    def update_settings(self, patch: RuntimeSettingsPatch) -> RuntimeSettings:
        self.runtime = self.runtime.apply(patch)
        return self.runtime

    def run_config(self) -> RunConfig:
        rt = self.runtime
        concurrency, delay_ms = provider_baseline(rt.provider)
        if rt.provider == "openai":
            endpoint, model = rt.openai_base_url, rt.openai_model
        else:
            endpoint, model = rt.gemini_base_url, rt.gemini_model
        return RunConfig(
            provider=rt.provider,
            prompt=rt.prompt,
            credential=rt.active_credential(),
            endpoint_url=endpoint,
            model_name=model,
            timeout_s=settings.request_timeout_s,
            concurrency=concurrency,
            dispatch_delay_ms=delay_ms,
        )

    # ---- ingest ----

    def add_uploads(self, files: Iterable[Tuple[str, Optional[str], bytes]]) -> dict:
        report = ingest_uploads(files, settings.image_extensions)
        added = []
        for payload in report.images:
            preview = make_preview(payload.data, settings.preview_max_px)
            added.append(self.store.add(payload, preview=preview))
        out = report.to_dict()
        out["items"] = [it.to_dict() for it in added]
        return out

    # ---- jobs ----

    def _background(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"Background job failed: {t.exception()!r}")

        task.add_done_callback(_done)
        return task

    def start(self) -> dict:
        """
        Caption the pending items (selected ones, else idle + error) in the background.
        """
        cfg = self.run_config()
        if cfg.credential_missing:
            if cfg.provider == "openai":
                raise AppError("请先在设置中配置 OpenAI API Key", 400)
            raise AppError("请先在设置中配置 Gemini API Key", 400)
        if self.engine.active:
            return {"started": False, "reason": "already-running", "queued": 0}

        # items a stopped run still has in flight are skipped until their call returns
        targets = [it for it in self.store.pending()
                   if not it.in_flight and not self.engine.is_busy(it.id)]
        if not targets:
            return {"started": False, "reason": "nothing-pending", "queued": 0}

        self._background(self.engine.run(targets, cfg))
        return {"started": True, "queued": len(targets)}

    def stop(self) -> None:
        self.engine.stop()

    def regenerate(self, item_id: str) -> dict:
        item = self.store.require(item_id)
        if item.in_flight or self.engine.is_busy(item_id):
            raise AppError("item is already being processed", 409)
        self._background(self.engine.regenerate(item, self.run_config()))
        return {"scheduled": True}

    def translate(self, item_id: str, zh_text: Optional[str] = None) -> dict:
        item = self.store.require(item_id)
        if item.in_flight or self.engine.is_busy(item_id):
            raise AppError("item is already being processed", 409)
        text = item.caption_zh if zh_text is None else zh_text
        if not text.strip():
            raise AppError("no Chinese text to translate", 400)
        self.store.edit_caption(item_id, zh=text)
        self._background(self.engine.translate(item, text, self.run_config()))
        return {"scheduled": True}

    def status(self) -> dict:
        return {**self.engine.snapshot(), "background_jobs": len(self._tasks), "counts": self.store.counts()}

    async def drain(self) -> None:
        """Wait for every background job this session started (tests, shutdown)."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    # ---- deletion ----

    def delete(self, item_id: str) -> None:
        self.store.delete(item_id)

    def delete_selected(self) -> int:
        # bulk deletion stops the queue first
        self.engine.stop()
        return self.store.delete_selected()

    def clear(self) -> int:
        self.engine.stop()
        return self.store.clear()

    # ---- export ----

    def caption_text(self, item_id: str) -> Tuple[str, str]:
        item = self.store.require(item_id)
        content = final_caption(item.caption_en, self.runtime.prefix, self.runtime.suffix)
        return txt_name(item.payload.filename), content

    def export_zip(self) -> bytes:
        entries = [
            (it.payload.filename, final_caption(it.caption_en, self.runtime.prefix, self.runtime.suffix))
            for it in self.store.list()
            if it.caption_en.strip()
        ]
        if not entries:
            raise AppError("没有可下载的标注内容。请先进行打标。", 400)
        return build_zip(entries)
