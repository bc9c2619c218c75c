import logging
import random
import re
from typing import Callable, Dict, Iterable, List, Optional

from newsdesk.ai import BaseTextGenerator, parse_json_payload, pick_persona, strip_code_fences
from newsdesk.ai import prompts
from newsdesk.config import Settings
from newsdesk.errors import GenerationError, MalformedResponseError, NotFoundError, StorageError, UniqueConstraintError
from newsdesk.feeds.base import BaseReader
from newsdesk.images.cover_image import CoverImageResolver
from newsdesk.posts.briefs import Brief, CollectedContent, FeedItemBrief, PautaBrief, PromptBrief
from newsdesk.posts.slug import slugify, unique_slug
from newsdesk.storage.base import RecordStore
from newsdesk.storage.models import POST_STATUS_DRAFT, Post
from newsdesk.utils.tz_utils import utcnow

logger = logging.getLogger(__name__)

ARTICLE_FIELDS = ("titulo", "chamada", "conteudo")
MAX_TAG_LENGTH = 50

_LEADING_INT_RE = re.compile(r"^-?\d+")


def parse_category_id(raw: str, valid_ids: Iterable[int]) -> Optional[int]:
    """Resposta esperada: ID numérico puro ou "null". Qualquer outra coisa vira None."""
    text = strip_code_fences(raw).replace('"', "").replace("'", "").strip()
    if not text or text.lower() == "null":
        return None
    match = _LEADING_INT_RE.match(text)
    if not match:
        logger.warning("[post] Resposta da IA não é um número válido: %r", text)
        return None
    category_id = int(match.group(0))
    if category_id not in set(valid_ids):
        logger.warning("[post] Categoria ID %d não existe nas categorias disponíveis", category_id)
        return None
    return category_id


def parse_tag_names(raw: str, count: int) -> List[str]:
    payload = parse_json_payload(raw)
    if isinstance(payload, dict):
        payload = payload.get("tags")
    if not isinstance(payload, list):
        raise MalformedResponseError("Resposta de tags não contém uma lista")

    names: List[str] = []
    for tag in payload:
        if not isinstance(tag, str):
            continue
        name = tag.strip().lower()
        if 0 < len(name) <= MAX_TAG_LENGTH and name not in names:
            names.append(name)
    return names[:count]


class PostGenerator:
    """
    Gera um rascunho de post a partir de um brief (item do feed, pauta ou prompt livre).

    Etapas: conteúdo das fontes -> texto da matéria (fatal) -> imagem de capa -> categoria ->
    tags -> slug único -> persistência como RASCUNHO. Imagem, categoria e tags degradam
    sem interromper a geração.
    """

    def __init__(
        self,
        reader: BaseReader,
        generator: BaseTextGenerator,
        image_resolver: CoverImageResolver,
        store: RecordStore,
        rng: Optional[random.Random] = None,
        tag_count: int = 5,
        slug_insert_attempts: int = 5,
        fetch_workers: int = 4,
        clock: Callable = utcnow,
    ):
        self.reader = reader
        self.generator = generator
        self.image_resolver = image_resolver
        self.store = store
        self.rng = rng or random.Random()
        self.tag_count = tag_count
        self.slug_insert_attempts = slug_insert_attempts
        self.fetch_workers = fetch_workers
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, reader: BaseReader, generator: BaseTextGenerator,
                      image_resolver: CoverImageResolver, store: RecordStore,
                      rng: Optional[random.Random] = None) -> "PostGenerator":
        return cls(
            reader=reader,
            generator=generator,
            image_resolver=image_resolver,
            store=store,
            rng=rng,
            tag_count=settings.tag_count,
            slug_insert_attempts=settings.slug_insert_attempts,
            fetch_workers=settings.batch_concurrency,
        )

    # ---------- Gatilhos ----------
    def convert_feed_item(self, item_id: int, owner_id: int) -> Post:
        item = self.store.get_feed_item(item_id)
        if item is None:
            raise NotFoundError("Feed item não encontrado")
        return self.generate_draft(FeedItemBrief(item), owner_id)

    def convert_pauta(self, pauta_id: int, owner_id: int) -> Post:
        pauta = self.store.get_pauta(pauta_id)
        if pauta is None:
            raise NotFoundError("Pauta não encontrada")
        return self.generate_draft(PautaBrief(pauta), owner_id)

    def generate_from_prompt(self, prompt: str, owner_id: int) -> Post:
        return self.generate_draft(PromptBrief(prompt), owner_id)

    # ---------- Pipeline ----------
    def generate_draft(self, brief: Brief, owner_id: int) -> Post:
        collected = brief.collect(self.reader, self.fetch_workers)
        logger.info("[post] Gerando post: %r (%d fonte(s))", collected.subject, len(collected.contents))

        article = self.generate_article(collected)
        image_url = self.resolve_image(collected)
        category_id = self.categorize(article["titulo"], article["conteudo"], owner_id)
        tag_ids = self.resolve_tags(self.generate_tag_names(article["titulo"], article["conteudo"]), owner_id)

        post = self._persist(
            owner_id=owner_id,
            title=article["titulo"],
            subtitle=article["chamada"],
            content=article["conteudo"],
            status=POST_STATUS_DRAFT,
            featured=False,
            category_id=category_id,
            tag_ids=tag_ids,
            images=[image_url],
            published_at=self.clock(),
        )
        logger.info("[post] Post criado com sucesso! ID: %s, slug: %s", post.id, post.slug)
        return post

    def generate_article(self, collected: CollectedContent) -> Dict[str, str]:
        persona = pick_persona(self.rng)
        prompt = prompts.build_article_prompt(collected.subject, collected.summary, collected.contents, persona)
        logger.info("[post] Gerando matéria com IA (persona: %s)...", persona.name)
        raw = self.generator.complete(prompts.ARTICLE_SYSTEM, prompt, temperature=0.7, max_tokens=2000)

        data = parse_json_payload(raw)
        if not isinstance(data, dict):
            raise GenerationError("Resposta da IA não é um objeto JSON")
        missing = [f for f in ARTICLE_FIELDS if not isinstance(data.get(f), str) or not data[f].strip()]
        if missing:
            raise GenerationError(
                f"Resposta da IA não contém todos os campos necessários ({', '.join(ARTICLE_FIELDS)}): "
                f"faltando {', '.join(missing)}"
            )
        return {f: data[f].strip() for f in ARTICLE_FIELDS}

    def resolve_image(self, collected: CollectedContent) -> str:
        source = collected.image_source
        if source is None:
            return self.image_resolver.placeholder_url
        return self.image_resolver.resolve(source.url, source.markdown)

    def categorize(self, title: str, content: str, owner_id: int) -> Optional[int]:
        try:
            categories = self.store.list_categories(owner_id) or self.store.list_categories(None)
            if not categories:
                return None
            prompt = prompts.build_category_prompt(title, content, [(c.id, c.name) for c in categories])
            raw = self.generator.complete(prompts.CATEGORY_SYSTEM, prompt, temperature=0.3, max_tokens=10)
            category_id = parse_category_id(raw, [c.id for c in categories])
        except Exception as e:
            logger.error("[post] Erro ao categorizar post (continuando sem categoria): %s", e)
            return None
        logger.info("[post] Categoria determinada: %s", category_id)
        return category_id

    def generate_tag_names(self, title: str, content: str) -> List[str]:
        try:
            prompt = prompts.build_tags_prompt(title, content, self.tag_count)
            raw = self.generator.complete(prompts.TAGS_SYSTEM, prompt, temperature=0.7, max_tokens=200)
            names = parse_tag_names(raw, self.tag_count)
        except Exception as e:
            logger.error("[post] Erro ao gerar tags (continuando sem tags): %s", e)
            return []
        logger.info("[post] %d tags geradas: %s", len(names), ", ".join(names))
        return names

    def resolve_tags(self, names: List[str], owner_id: int) -> List[int]:
        tag_ids: List[int] = []
        for name in names:
            try:
                tag = self.store.find_tag(name, owner_id)
                if tag is None:
                    try:
                        tag = self.store.create_tag(name, owner_id)
                        logger.info("[post] Tag criada: %s", name)
                    except UniqueConstraintError:
                        tag = self.store.find_tag(name, owner_id)
                if tag is not None and tag.id not in tag_ids:
                    tag_ids.append(tag.id)
            except Exception as e:
                logger.warning("[post] Erro ao processar tag %r: %s", name, e)
        return tag_ids

    def _persist(self, **fields) -> Post:
        base = slugify(fields["title"])
        for _ in range(max(1, self.slug_insert_attempts)):
            slug = unique_slug(self.store, base)
            try:
                return self.store.create_post(slug=slug, **fields)
            except UniqueConstraintError as e:
                if e.field != "slug":
                    raise StorageError(str(e)) from e
                # outro post levou o slug entre a consulta e a inserção
                logger.warning("[post] Slug %s ocupado durante a inserção, tentando de novo", slug)
        raise StorageError(f"Não foi possível reservar um slug único para {base!r}")
