import pytest

from fluxtag.core.errors import AppError
from fluxtag.jobs.models import ItemStatus, PreviewHandle
from fluxtag.services.store import ItemStore

from conftest import fake_payload


@pytest.fixture
def filled():
    s = ItemStore()
    a = s.add(fake_payload("alpha"))
    b = s.add(fake_payload("beta"))
    c = s.add(fake_payload("gamma"))
    a.caption_en, a.caption_zh = "A Red Cat on a mat", "红猫"
    b.caption_en, b.caption_zh = "a blue dog", "蓝狗"
    return s, a, b, c


def test_counts_and_progress(filled):
    s, a, b, c = filled
    s.update_status(a.id, ItemStatus.SUCCESS)
    s.update_status(b.id, ItemStatus.ERROR, "生成失败")
    counts = s.counts()
    assert counts["total"] == 3
    assert counts["by_status"]["success"] == 1
    assert counts["pending"] == 2
    assert counts["progress_percent"] == 67
    assert ItemStore().counts()["progress_percent"] == 0


def test_pending_prefers_selection(filled):
    s, a, b, c = filled
    s.update_status(a.id, ItemStatus.SUCCESS)
    assert s.pending() == [b, c]
    s.toggle_select(a.id)
    assert s.pending() == [a]


def test_search(filled):
    s, a, b, c = filled
    assert s.list("red cat") == [a]
    assert s.list("狗") == [b]
    assert s.list("GAMMA") == [c]
    assert s.list("") == [a, b, c]


def test_select_all_toggles(filled):
    s, a, b, c = filled
    assert s.select_all() is True
    assert all(it.selected for it in (a, b, c))
    assert s.select_all() is False
    assert not any(it.selected for it in (a, b, c))


def test_batch_replace_skips_in_flight(filled):
    s, a, b, c = filled
    b.caption_en = "a blue dog on a mat"
    s.update_status(b.id, ItemStatus.LOADING)
    assert s.batch_replace(" on a mat", "") == 1
    assert a.caption_en == "A Red Cat"
    assert b.caption_en == "a blue dog on a mat"


def test_captions_read_only_while_loading(filled):
    s, a, _b, _c = filled
    s.update_status(a.id, ItemStatus.LOADING)
    with pytest.raises(AppError) as info:
        s.edit_caption(a.id, en="new")
    assert info.value.code == 409
    s.update_status(a.id, ItemStatus.SUCCESS)
    assert s.edit_caption(a.id, en="new").caption_en == "new"
    assert a.caption_zh == "红猫"


def test_events_for_unknown_ids_are_ignored():
    s = ItemStore()
    s.update_status("missing", ItemStatus.SUCCESS)
    s.update_result("missing", "en", "zh")
    assert len(s) == 0
    with pytest.raises(AppError) as info:
        s.require("missing")
    assert info.value.code == 404


def test_preview_released_once_on_delete():
    s = ItemStore()
    preview = PreviewHandle(data=b"thumb")
    calls = []
    original = preview.release
    preview.release = lambda: (calls.append(1), original())
    item = s.add(fake_payload("x"), preview=preview)

    s.delete(item.id)
    s.delete_many([item.id])
    s.clear()

    assert calls == [1]
    assert preview.released and preview.data == b""


def test_delete_selected_and_clear(filled):
    s, a, b, c = filled
    s.toggle_select(a.id)
    s.toggle_select(c.id)
    assert s.delete_selected() == 2
    assert s.list() == [b]
    assert s.clear() == 1
    assert len(s) == 0
