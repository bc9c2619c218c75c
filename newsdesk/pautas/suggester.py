import logging
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, Field

from newsdesk.ai import BaseTextGenerator, parse_json_payload
from newsdesk.ai import prompts
from newsdesk.errors import ContentUnavailableError
from newsdesk.feeds.base import BaseReader
from newsdesk.posts.briefs import fetch_all
from newsdesk.storage.base import RecordStore
from newsdesk.storage.models import PautaSource, Source
from newsdesk.utils.url_utils import is_absolute_http_url

logger = logging.getLogger(__name__)

SOURCE_CHAR_LIMIT = 5000


class SuggestedPauta(BaseModel):
    subject: str
    summary: str
    sources: List[PautaSource] = Field(default_factory=list)


def _parse_suggestion(raw: Any) -> Optional[SuggestedPauta]:
    if not isinstance(raw, dict):
        return None
    subject = raw.get("assunto")
    summary = raw.get("resumo")
    if not isinstance(subject, str) or not subject.strip() or not isinstance(summary, str):
        return None
    sources = []
    for fonte in raw.get("fontes") or []:
        if isinstance(fonte, dict) and is_absolute_http_url(fonte.get("url")):
            sources.append(PautaSource(name=str(fonte.get("nome") or fonte["url"]).strip(), url=fonte["url"].strip()))
    return SuggestedPauta(subject=subject.strip(), summary=summary.strip(), sources=sources)


class PautaSuggester:
    """Lê as fontes cadastradas e pede à IA sugestões de pauta dos últimos dias."""

    def __init__(self, reader: BaseReader, generator: BaseTextGenerator, store: RecordStore, fetch_workers: int = 3):
        self.reader = reader
        self.generator = generator
        self.store = store
        self.fetch_workers = fetch_workers

    def suggest(self, sources: Sequence[Source]) -> List[SuggestedPauta]:
        logger.info("[pautas] Processando %d fontes...", len(sources))
        fetched = fetch_all(self.reader, [s.url for s in sources], self.fetch_workers)
        contents = [(s.title, s.url, f.content[:SOURCE_CHAR_LIMIT])
                    for s, f in zip(sources, fetched) if f is not None]
        if not contents:
            raise ContentUnavailableError("Não foi possível obter conteúdo de nenhuma fonte")

        raw = self.generator.complete(prompts.PAUTAS_SYSTEM, prompts.build_pautas_prompt(contents),
                                      temperature=0.3, max_tokens=4000)
        payload = parse_json_payload(raw)
        entries = payload.get("pautas") if isinstance(payload, dict) else payload
        suggestions = [p for p in map(_parse_suggestion, entries or []) if p is not None]
        logger.info("[pautas] %d pautas sugeridas pela IA", len(suggestions))
        return suggestions

    def create_suggestions(self, owner_id: int, sources: Sequence[Source]) -> int:
        created = 0
        for suggestion in self.suggest(sources):
            try:
                self.store.create_pauta(owner_id, suggestion.subject, suggestion.summary, suggestion.sources)
                created += 1
            except Exception as e:
                logger.error("[pautas] Erro ao salvar pauta %r: %s", suggestion.subject, e)
        return created
