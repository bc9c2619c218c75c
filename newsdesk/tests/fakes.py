# newsdesk/tests/fakes.py
# Dublês dos serviços externos (reader, IA, object store, HTTP) usados pelos testes.
import threading

import requests

from newsdesk.ai import BaseTextGenerator
from newsdesk.errors import FetchError
from newsdesk.feeds.base import BaseReader
from newsdesk.images.object_store import BaseObjectStore

LONG_TEXT = "Conteúdo de teste com tamanho suficiente para passar do mínimo exigido. " * 5


class FakeReader(BaseReader):
    """Mapa url -> texto (ou exceção, ou callable). URL desconhecida levanta FetchError."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(f"sem conteúdo para {url}")
        if isinstance(page, Exception):
            raise page
        if callable(page):
            return page(url)
        return page


class FakeGenerator(BaseTextGenerator):
    """
    Respostas por system prompt (prompts.EXTRACT_SYSTEM, ARTICLE_SYSTEM, ...).
    Valor pode ser str, Exception ou callable(user_prompt) -> str.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def complete(self, system_prompt, user_prompt, temperature=0.7, max_tokens=2000):
        self.calls.append((system_prompt, user_prompt))
        answer = self.responses.get(system_prompt)
        if answer is None:
            raise AssertionError(f"chamada inesperada ao gerador: {system_prompt[:40]}")
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(user_prompt)
        return answer

    def count(self, system_prompt):
        return sum(1 for s, _ in self.calls if s == system_prompt)


class FakeObjectStore(BaseObjectStore):
    def __init__(self):
        self.uploads = []

    def upload(self, data, content_type):
        self.uploads.append((data, content_type))
        return f"https://bucket.s3.sa-east-1.amazonaws.com/posts/auto-{len(self.uploads)}.jpg"


class FakeResponse:
    """
    Resposta em streaming. Com `stall`, depois do primeiro chunk a leitura fica parada até
    `stall` segundos ou até close(), como um servidor que parou de mandar bytes.
    """

    def __init__(self, status_code=200, body=b"", headers=None, encoding="ISO-8859-1", chunk_size=1024, stall=None):
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
        self.encoding = encoding
        self.chunk_size = chunk_size
        self.stall = stall
        self.closed = threading.Event()

    def iter_content(self, chunk_size=1024):
        for i in range(0, len(self.body), self.chunk_size):
            if i and self.stall is not None and self.closed.wait(self.stall):
                raise requests.exceptions.ChunkedEncodingError("conexão fechada durante a leitura")
            yield self.body[i:i + self.chunk_size]

    def close(self):
        self.closed.set()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Sessão HTTP falsa: url -> FakeResponse (ou exceção). URL desconhecida responde 404."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        response = self.routes.get(url)
        if response is None:
            return FakeResponse(status_code=404)
        if isinstance(response, Exception):
            raise response
        return response
