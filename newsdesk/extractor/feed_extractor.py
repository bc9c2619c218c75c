import logging
from typing import Any, Dict, List, Optional

from newsdesk.ai import BaseTextGenerator, parse_json_payload
from newsdesk.ai import prompts
from newsdesk.errors import ExtractionError, MalformedResponseError
from newsdesk.storage.models import ExtractedItem
from newsdesk.utils.tz_utils import parse_timestamp
from newsdesk.utils.url_utils import is_absolute_http_url, origin_of, resolve_url

logger = logging.getLogger(__name__)

DEFAULT_CHAR_BUDGET = 30_000


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class FeedExtractor:
    """
    Transforma o texto de uma página de listagem em itens estruturados
    (title, url, summary?, imageUrl?, publishedAt?) usando o serviço de geração de texto.
    """

    def __init__(self, generator: BaseTextGenerator, char_budget: int = DEFAULT_CHAR_BUDGET):
        self.generator = generator
        self.char_budget = char_budget

    def extract(self, source_url: str, source_title: str, text: str, limit: int = 10) -> List[ExtractedItem]:
        base_url = origin_of(source_url)
        prompt = prompts.build_extract_prompt(source_title, base_url, text[:self.char_budget], limit)

        logger.info("[extract] Extraindo até %d notícias de %s...", limit, source_title)
        raw = self.generator.complete(prompts.EXTRACT_SYSTEM, prompt, temperature=0.2, max_tokens=4000)
        try:
            payload = parse_json_payload(raw)
        except MalformedResponseError as e:
            raise ExtractionError(f"Resposta inválida ao extrair itens de {source_title}: {e.message}") from e

        items = self.normalize_items(payload, base_url, limit)
        logger.info("[extract] %d notícias extraídas de %s", len(items), source_title)
        return items

    @staticmethod
    def normalize_items(payload: Any, base_url: str, limit: int) -> List[ExtractedItem]:
        if isinstance(payload, dict):
            raw_items = payload.get("items") or []
        elif isinstance(payload, list):
            raw_items = payload
        else:
            raw_items = []
        if not isinstance(raw_items, list):
            return []

        valid: List[ExtractedItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            item = FeedExtractor._normalize_item(raw, base_url)
            if item is not None:
                valid.append(item)
        return valid[:limit]

    @staticmethod
    def _normalize_item(raw: Dict[str, Any], base_url: str) -> Optional[ExtractedItem]:
        title = _clean(raw.get("title"))
        url = _clean(raw.get("url"))
        if not title or not url:
            return None

        resolved = resolve_url(url, base_url)
        if not is_absolute_http_url(resolved):
            logger.warning("[extract] URL inválida ignorada: %s", url)
            return None

        return ExtractedItem(
            title=title,
            url=resolved,
            summary=_clean(raw.get("summary")),
            image_url=_clean(raw.get("imageUrl")),
            published_at=parse_timestamp(raw.get("publishedAt")),
        )
