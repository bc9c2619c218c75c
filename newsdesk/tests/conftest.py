# newsdesk/tests/conftest.py
import random

import pytest

from newsdesk.storage.repository import JsonRecordStore
from newsdesk.tests.fakes import FakeGenerator, FakeObjectStore, FakeReader, FakeSession

PLACEHOLDER = "https://cdn.test/placeholder.jpg"


@pytest.fixture()
def store(tmp_path):
    # Banco JSON em arquivo temporário vazio
    return JsonRecordStore(str(tmp_path / "newsdesk_db.json"))


@pytest.fixture()
def reader():
    return FakeReader()


@pytest.fixture()
def generator():
    return FakeGenerator()


@pytest.fixture()
def object_store():
    return FakeObjectStore()


@pytest.fixture()
def app(monkeypatch, store, reader, generator, object_store):
    # Patches para impedir network/scheduler no startup
    from newsdesk.api import main as api_main
    from newsdesk.ai.chat import ChatAssistant
    from newsdesk.extractor.feed_extractor import FeedExtractor
    from newsdesk.images.cover_image import CoverImageResolver
    from newsdesk.pautas.suggester import PautaSuggester
    from newsdesk.posts.orchestrator import PostGenerator
    from newsdesk.tracker.feed_sync import FeedSynchronizer

    class DummyScheduler:
        def add_job(self, *a, **k): pass
        def start(self): pass
        def shutdown(self, wait=False): pass

    resolver = CoverImageResolver(object_store, PLACEHOLDER, session=FakeSession())
    monkeypatch.setattr(api_main, "scheduler", DummyScheduler(), raising=True)
    monkeypatch.setattr(api_main, "store", store, raising=True)
    monkeypatch.setattr(api_main, "synchronizer",
                        FeedSynchronizer(reader, FeedExtractor(generator), store), raising=True)
    monkeypatch.setattr(api_main, "post_generator",
                        PostGenerator(reader, generator, resolver, store, rng=random.Random(1)), raising=True)
    monkeypatch.setattr(api_main, "suggester", PautaSuggester(reader, generator, store), raising=True)
    monkeypatch.setattr(api_main, "chat_assistant", ChatAssistant(reader, generator), raising=True)
    return api_main.app


@pytest.fixture()
def client(app):
    from fastapi.testclient import TestClient
    # Usa contexto para garantir lifespan mas com patches aplicados
    with TestClient(app) as c:
        yield c
