"""
Pytest fixtures and test helpers: tiny images, a scriptable fake provider,
an instant sleep that still yields to the event loop, and an event-recording store.
"""
import asyncio
from io import BytesIO

import pytest
from PIL import Image

from fluxtag.core.errors import ProviderError
from fluxtag.jobs.models import ImagePayload, ItemStatus
from fluxtag.services.store import ItemStore
from fluxtag.vlm.provider import CaptionProvider, CaptionResult, RunConfig


def png_bytes(size=(8, 8), color=(200, 30, 30), fmt="PNG"):
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def run_config(provider="gemini", concurrency=3, delay_ms=500, credential="test-key"):
    return RunConfig(
        provider=provider,
        prompt="describe",
        credential=credential,
        concurrency=concurrency,
        dispatch_delay_ms=delay_ms,
    )


class FakeProvider(CaptionProvider):
    """
    Provider whose answer per call is decided by `script(filename, call_no)`:
    return a CaptionResult / str, or raise. Async scripts are awaited.
    """
    name = "fake"

    def __init__(self, script=None, translate_script=None):
        super().__init__(run_config())
        self.script = script or (lambda name, n: CaptionResult(en=f" caption {name} ", zh=f" 描述 {name} "))
        self.translate_script = translate_script or (lambda text: f" english for {text} ")
        self.calls = []
        self._by_name = {}

    async def caption(self, image_bytes, mime_type, prompt):
        name = image_bytes[len(b"name:"):].decode() if image_bytes.startswith(b"name:") else "image"
        n = self._by_name.get(name, 0)
        self._by_name[name] = n + 1
        self.calls.append(name)
        out = self.script(name, n)
        if asyncio.iscoroutine(out):
            out = await out
        return out

    async def translate(self, chinese_text):
        out = self.translate_script(chinese_text)
        if asyncio.iscoroutine(out):
            out = await out
        return out


def fake_payload(name, mime="image/png"):
    # the fake provider reads the item name back out of the bytes
    return ImagePayload(filename=f"{name}.png", data=f"name:{name}".encode(), mime_type=mime)


class RecordingStore(ItemStore):
    """ItemStore that also keeps an ordered log of (item_id, status) events."""

    def __init__(self):
        super().__init__()
        self.events = []
        self.attempts = []

    def update_status(self, item_id, status, error_message=None, attempt=None):
        self.events.append((item_id, ItemStatus(status)))
        self.attempts.append((item_id, attempt))
        super().update_status(item_id, status, error_message, attempt)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def store():
    return RecordingStore()


def rate_limited(message="RESOURCE_EXHAUSTED: quota exceeded"):
    return ProviderError(message, status=429)
