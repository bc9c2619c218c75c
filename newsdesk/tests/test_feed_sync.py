# newsdesk/tests/test_feed_sync.py
import json
import threading
import time

import pytest

from newsdesk.ai import prompts
from newsdesk.errors import UniqueConstraintError
from newsdesk.extractor.feed_extractor import FeedExtractor
from newsdesk.tracker.feed_sync import FeedSynchronizer
from newsdesk.tests.fakes import LONG_TEXT, FakeGenerator, FakeReader


def _items_answer(*urls):
    return json.dumps({"items": [{"title": f"Notícia {u}", "url": u} for u in urls]})


def _by_source(mapping):
    """Resposta do extrator escolhida pela URL base presente no prompt."""
    def answer(user_prompt):
        for base, urls in mapping.items():
            if f"URL BASE: {base}\n" in user_prompt:
                return _items_answer(*urls)
        return '{"items": []}'
    return answer


def _sync(store, pages, answer, **kw):
    reader = FakeReader(pages)
    generator = FakeGenerator({prompts.EXTRACT_SYSTEM: answer})
    return FeedSynchronizer(reader, FeedExtractor(generator), store, **kw), reader


def test_sync_is_idempotent(store):
    source = store.create_source(1, "Site A", "https://a.test/news")
    sync, _ = _sync(store, {source.url: LONG_TEXT},
                    _items_answer("https://a.test/1", "https://a.test/2", "https://a.test/3"))

    first = sync.sync_all([source])
    assert (first.items_found, first.items_new, first.items_duplicate) == (3, 3, 0)

    second = sync.sync_all([source])
    assert (second.items_found, second.items_new, second.items_duplicate) == (3, 0, 3)
    assert store.list_feed_items()[1] == 3
    assert sync.last_updated is not None


def test_sync_partial_failure_is_isolated(store):
    a = store.create_source(1, "A", "https://a.test")
    b = store.create_source(1, "B", "https://b.test")
    c = store.create_source(1, "C", "https://c.test")
    sync, _ = _sync(
        store,
        {a.url: LONG_TEXT, b.url: RuntimeError("reader fora do ar"), c.url: LONG_TEXT},
        _by_source({"https://a.test": ["https://a.test/1"], "https://c.test": ["https://c.test/1", "https://c.test/2"]}),
    )

    stats = sync.sync_all([a, b, c])

    assert stats.sources_processed == 2
    assert stats.sources_errored == 1
    assert stats.items_new == 3
    assert [(e.source_id, e.title) for e in stats.errors] == [(b.id, "B")]
    assert "reader fora do ar" in stats.errors[0].error
    assert "3 novos itens" in stats.message


def test_sync_short_content_counts_as_error(store):
    source = store.create_source(1, "Curto", "https://curto.test")
    sync, _ = _sync(store, {source.url: "pouco texto"}, _items_answer("https://curto.test/1"))

    stats = sync.sync_all([source])

    assert stats.sources_errored == 1
    assert "Conteúdo insuficiente" in stats.errors[0].error
    assert store.list_feed_items()[1] == 0


def test_sync_extraction_failure_counts_as_error(store):
    source = store.create_source(1, "A", "https://a.test")
    sync, _ = _sync(store, {source.url: LONG_TEXT}, "resposta sem json")
    stats = sync.sync_all([source])
    assert (stats.sources_processed, stats.sources_errored) == (0, 1)


def test_sync_duplicate_url_within_same_run(store):
    a = store.create_source(1, "A", "https://a.test")
    b = store.create_source(1, "B", "https://b.test")
    shared = "https://agencia.test/materia"
    sync, _ = _sync(store, {a.url: LONG_TEXT, b.url: LONG_TEXT}, _items_answer(shared))

    stats = sync.sync_all([a, b])

    assert (stats.items_found, stats.items_new, stats.items_duplicate) == (2, 1, 1)
    # persistência segue a ordem das fontes: o primeiro a salvar é A
    assert store.find_feed_item_by_url(shared).source_id == a.id


def test_sync_unique_violation_counts_as_duplicate(store, monkeypatch):
    source = store.create_source(1, "A", "https://a.test")
    sync, _ = _sync(store, {source.url: LONG_TEXT}, _items_answer("https://a.test/1", "https://a.test/2"))

    original = store.create_feed_item

    def racing_insert(source_id, item):
        if item.url == "https://a.test/1":
            raise UniqueConstraintError("feed_items", "url", item.url)
        return original(source_id, item)

    monkeypatch.setattr(store, "create_feed_item", racing_insert)
    stats = sync.sync_all([source])

    assert (stats.items_new, stats.items_duplicate) == (1, 1)
    assert stats.sources_errored == 0


def test_sync_respects_batch_concurrency(store):
    sources = [store.create_source(1, f"S{i}", f"https://s{i}.test") for i in range(7)]
    lock = threading.Lock()
    state = {"running": 0, "peak": 0}

    def slow_page(url):
        with lock:
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
        time.sleep(0.05)
        with lock:
            state["running"] -= 1
        return LONG_TEXT

    sync, reader = _sync(store, {s.url: slow_page for s in sources}, '{"items": []}', batch_concurrency=3)
    stats = sync.sync_all(sources)

    assert stats.sources_processed == 7
    assert 1 <= state["peak"] <= 3
    assert len(reader.calls) == 7


def test_sync_canonicalizes_urls_when_enabled(store):
    source = store.create_source(1, "A", "https://a.test")
    sync, _ = _sync(
        store, {source.url: LONG_TEXT},
        _items_answer("https://A.test/n/1/?utm_source=x", "https://a.test/n/1#topo"),
        canonicalize_urls=True,
    )
    stats = sync.sync_all([source])
    assert (stats.items_new, stats.items_duplicate) == (1, 1)
    assert store.find_feed_item_by_url("https://a.test/n/1") is not None


def test_sync_without_sources_returns_empty_stats(store):
    sync, _ = _sync(store, {}, '{"items": []}')
    stats = sync.sync_all([])
    assert stats.sources_processed == stats.sources_errored == stats.items_found == 0
    assert stats.message == "Busca concluída. Nenhum item encontrado."


def test_invalid_batch_concurrency():
    with pytest.raises(ValueError):
        FeedSynchronizer(FakeReader(), FeedExtractor(FakeGenerator()), store=None, batch_concurrency=0)


def test_sync_errors_of_sources_with_same_title_are_kept(store):
    first = store.create_source(1, "Portal", "https://um.test")
    second = store.create_source(2, "Portal", "https://dois.test")
    sync, _ = _sync(store, {first.url: RuntimeError("falha 1"), second.url: RuntimeError("falha 2")},
                    '{"items": []}')

    stats = sync.sync_all([first, second])

    assert stats.sources_errored == 2
    assert [(e.source_id, e.error) for e in stats.errors] == [(first.id, "falha 1"), (second.id, "falha 2")]
