"""
Variantes de "brief" aceitas pelo gerador de posts.

Cada variante só sabe montar o material de entrada (assunto, resumo, textos das fontes e a
fonte usada para a imagem de capa); o pipeline de geração é o mesmo para todas.
"""

import logging
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import List, NamedTuple, Optional, Sequence

from newsdesk.errors import ContentUnavailableError, ValidationError
from newsdesk.feeds.base import BaseReader, FetchedContent
from newsdesk.storage.models import FeedItem, Pauta

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 100
_URL_RE = re.compile(r"https?://[^\s]+")


class CollectedContent(NamedTuple):
    subject: str
    summary: str
    contents: List[str]
    image_source: Optional[FetchedContent] = None


def fetch_all(reader: BaseReader, urls: Sequence[str], max_workers: int = 4) -> List[Optional[FetchedContent]]:
    """Busca todas as URLs em paralelo; falhas individuais viram None (mesma ordem de entrada)."""
    if not urls:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(len(urls), max_workers))) as ex:
        futures = [ex.submit(reader.fetch_with_markdown, url) for url in urls]
        results: List[Optional[FetchedContent]] = []
        for url, fut in zip(urls, futures):
            try:
                results.append(fut.result())
            except Exception as e:
                logger.warning("[post] Erro ao buscar %s: %s", url, e)
                results.append(None)
    return results


class Brief(ABC):
    @abstractmethod
    def collect(self, reader: BaseReader, max_workers: int = 4) -> CollectedContent:
        pass


class FeedItemBrief(Brief):
    def __init__(self, item: FeedItem):
        self.item = item

    def collect(self, reader: BaseReader, max_workers: int = 4) -> CollectedContent:
        fetched = fetch_all(reader, [self.item.url], max_workers)[0]
        if fetched is None or len(fetched.content) < MIN_CONTENT_CHARS:
            raise ContentUnavailableError("Não foi possível obter conteúdo da notícia")
        return CollectedContent(
            subject=self.item.title,
            summary=self.item.summary or self.item.title,
            contents=[fetched.content],
            image_source=fetched,
        )


class PautaBrief(Brief):
    def __init__(self, pauta: Pauta):
        self.pauta = pauta

    def collect(self, reader: BaseReader, max_workers: int = 4) -> CollectedContent:
        urls = [s.url for s in self.pauta.sources]
        valid = [f for f in fetch_all(reader, urls, max_workers) if f is not None and f.content]
        if not valid:
            raise ContentUnavailableError("Não foi possível obter conteúdo de nenhuma fonte")
        logger.info("[post] %d/%d conteúdos obtidos para a pauta %r", len(valid), len(urls), self.pauta.subject)
        return CollectedContent(
            subject=self.pauta.subject,
            summary=self.pauta.summary,
            contents=[f.content for f in valid],
            image_source=valid[0],
        )


class PromptBrief(Brief):
    """Prompt livre; a primeira URL encontrada no texto é usada como fonte."""

    def __init__(self, prompt: str):
        if not prompt or not prompt.strip():
            raise ValidationError("O prompt é obrigatório e não pode estar vazio")
        self.prompt = prompt
        self.urls = _URL_RE.findall(prompt)
        self.clean_prompt = _URL_RE.sub("", prompt).strip()

    def collect(self, reader: BaseReader, max_workers: int = 4) -> CollectedContent:
        main_url = self.urls[0] if self.urls else None
        fetched = fetch_all(reader, [main_url], max_workers)[0] if main_url else None

        text = None
        if fetched is not None and len(fetched.content) > MIN_CONTENT_CHARS:
            text = fetched.content
        elif main_url:
            logger.warning("[post] Conteúdo da URL indisponível ou curto, usando o prompt como conteúdo")

        subject = self.clean_prompt or (f"Conteúdo de {main_url}" if main_url else "Post gerado")
        summary = self.clean_prompt or (text[:200] if text else subject)
        return CollectedContent(
            subject=subject,
            summary=summary,
            contents=[text] if text else [self.prompt],
            image_source=fetched,
        )
