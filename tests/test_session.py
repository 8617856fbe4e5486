import asyncio

import pytest

from fluxtag.core.errors import AppError
from fluxtag.core.runtime import RuntimeSettings
from fluxtag.core.settings import settings
from fluxtag.jobs.models import ItemStatus
from fluxtag.services.session import CaptionSession
from fluxtag.vlm.provider import CaptionResult

from conftest import FakeProvider, png_bytes


async def no_sleep(seconds):
    await asyncio.sleep(0)


def make_session(provider, /, **runtime):
    rt = RuntimeSettings(**{"gemini_api_key": "k", **runtime})
    return CaptionSession(runtime=rt, provider_factory=lambda cfg: provider, sleep=no_sleep)


def test_start_reports_why_nothing_started():
    gate = {}

    async def scenario():
        gate["open"] = asyncio.Event()

        async def held(name, n):
            await gate["open"].wait()
            return CaptionResult(en="done", zh="完成")

        provider.script = held
        session.add_uploads([("a.png", "image/png", png_bytes()), ("b.png", "image/png", png_bytes())])

        first = session.start()
        await asyncio.sleep(0)
        second = session.start()
        gate["open"].set()
        await session.drain()
        third = session.start()
        return first, second, third

    provider = FakeProvider()
    session = make_session(provider)
    first, second, third = asyncio.run(scenario())

    assert first == {"started": True, "queued": 2}
    assert second == {"started": False, "reason": "already-running", "queued": 0}
    assert third == {"started": False, "reason": "nothing-pending", "queued": 0}
    assert session.store.counts()["by_status"]["success"] == 2


def test_openai_without_key_is_rejected_up_front():
    session = make_session(FakeProvider(), provider="openai", openai_api_key="  ")
    session.add_uploads([("a.png", "image/png", png_bytes())])
    with pytest.raises(AppError) as info:
        session.start()
    assert info.value.code == 400
    assert "OpenAI API Key" in str(info.value)


def test_clear_stops_the_run_and_drops_late_results():
    async def scenario():
        release = asyncio.Event()

        async def held(name, n):
            await release.wait()
            return CaptionResult(en="late", zh="迟")

        provider.script = held
        session.add_uploads([("a.png", "image/png", png_bytes())])
        session.start()
        for _ in range(5):
            await asyncio.sleep(0)
        assert session.status()["in_flight"] == 1

        assert session.clear() == 1
        release.set()
        await session.drain()

    provider = FakeProvider()
    session = make_session(provider)
    asyncio.run(scenario())

    assert len(session.store) == 0
    assert session.status()["active"] is False


def test_caption_text_uses_prefix_and_suffix():
    session = make_session(FakeProvider(), prefix="tok, ", suffix=", bg")
    item = session.add_uploads([("shot.final.png", "image/png", png_bytes())])["items"][0]
    session.store.edit_caption(item["id"], en=" a cat ")
    assert session.caption_text(item["id"]) == ("shot.final.txt", "tok, a cat , bg")


def test_translate_needs_text():
    session = make_session(FakeProvider())
    item = session.add_uploads([("a.png", "image/png", png_bytes())])["items"][0]
    with pytest.raises(AppError) as info:
        session.translate(item["id"])
    assert info.value.code == 400
    assert session.store.get(item["id"]).status == ItemStatus.IDLE


def test_restart_after_stop_skips_items_still_in_flight():
    results = {}

    async def scenario():
        release = asyncio.Event()

        async def script(name, n):
            # the first two calls hang until released, later ones answer at once
            if n < 2:
                await release.wait()
            return CaptionResult(en=f"take {n}", zh="好")

        provider.script = script
        session.add_uploads([("a.png", "image/png", png_bytes()), ("b.png", "image/png", png_bytes())])
        session.start()
        while len(session.engine.in_flight) < 2:
            await asyncio.sleep(0)

        session.stop()
        session.add_uploads([("c.png", "image/png", png_bytes())])
        results["restart"] = session.start()
        release.set()
        await session.drain()
        results["stale"] = [it.status for it in session.store.list()]

        results["again"] = session.start()
        await session.drain()

    provider = FakeProvider()
    session = make_session(provider)
    asyncio.run(scenario())

    assert results["restart"] == {"started": True, "queued": 1}
    assert results["stale"] == [ItemStatus.IDLE, ItemStatus.IDLE, ItemStatus.SUCCESS]
    assert results["again"] == {"started": True, "queued": 2}
    assert all(it.status == ItemStatus.SUCCESS for it in session.store.list())
    assert len(provider.calls) == 5


def test_regenerate_of_queued_item_is_conflict(monkeypatch):
    monkeypatch.setattr(settings, "gemini_concurrency", 1)

    async def scenario():
        release = asyncio.Event()

        async def script(name, n):
            await release.wait()
            return CaptionResult(en="x", zh="x")

        provider.script = script
        a, b = session.add_uploads([("a.png", "image/png", png_bytes()),
                                    ("b.png", "image/png", png_bytes())])["items"]
        session.start()
        while session.store.get(a["id"]).status != ItemStatus.LOADING:
            await asyncio.sleep(0)

        assert session.store.get(b["id"]).status == ItemStatus.QUEUED
        for call in (lambda: session.regenerate(b["id"]), lambda: session.translate(b["id"], "文字")):
            with pytest.raises(AppError) as info:
                call()
            assert info.value.code == 409

        release.set()
        await session.drain()

    provider = FakeProvider()
    session = make_session(provider)
    asyncio.run(scenario())
    assert len(provider.calls) == 2
