import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, NamedTuple, Optional, Sequence

from newsdesk.config import Settings
from newsdesk.errors import FetchError, UniqueConstraintError
from newsdesk.extractor.feed_extractor import FeedExtractor
from newsdesk.feeds.base import BaseReader
from newsdesk.storage.base import RecordStore
from newsdesk.storage.models import ExtractedItem, Source, SourceError, SyncStats
from newsdesk.utils.url_utils import canonicalize_url

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 100


class SourceResult(NamedTuple):
    source: Source
    items: List[ExtractedItem]
    error: Optional[str] = None


class FeedSynchronizer:
    """
    Sincroniza as fontes cadastradas: busca o conteúdo (reader), extrai itens (IA) e
    persiste apenas URLs ainda desconhecidas.

    Fontes são processadas em lotes de `batch_concurrency`; dentro do lote rodam em paralelo
    e a falha de uma não cancela as demais. A persistência de um lote só começa depois que
    todas as buscas do lote terminaram.
    """

    def __init__(
        self,
        reader: BaseReader,
        extractor: FeedExtractor,
        store: RecordStore,
        batch_concurrency: int = 3,
        extract_limit: int = 10,
        canonicalize_urls: bool = False,
    ):
        if batch_concurrency < 1:
            raise ValueError("batch_concurrency deve ser >= 1")
        self.reader = reader
        self.extractor = extractor
        self.store = store
        self.batch_concurrency = batch_concurrency
        self.extract_limit = extract_limit
        self.canonicalize_urls = canonicalize_urls
        self.last_updated: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: Settings, reader: BaseReader, extractor: FeedExtractor,
                      store: RecordStore) -> "FeedSynchronizer":
        return cls(
            reader=reader,
            extractor=extractor,
            store=store,
            batch_concurrency=settings.batch_concurrency,
            extract_limit=settings.extract_limit,
            canonicalize_urls=settings.canonicalize_feed_urls,
        )

    # ---------- Etapa por fonte (roda em thread) ----------
    def fetch_source(self, source: Source) -> List[ExtractedItem]:
        logger.info("[sync] Processando fonte: %s", source.title)
        content = self.reader.fetch(source.url)
        if not content or len(content) < MIN_CONTENT_CHARS:
            raise FetchError(f"Conteúdo insuficiente retornado para {source.title}")
        return self.extractor.extract(source.url, source.title, content, limit=self.extract_limit)

    def _run_batch(self, batch: Sequence[Source]) -> List[SourceResult]:
        with ThreadPoolExecutor(max_workers=len(batch)) as ex:
            futures = [ex.submit(self.fetch_source, source) for source in batch]
            results: List[SourceResult] = []
            # aguarda todas; cada exceção fica isolada na sua fonte
            for source, fut in zip(batch, futures):
                try:
                    results.append(SourceResult(source, fut.result() or []))
                except Exception as e:
                    logger.error("[sync] Falha na fonte %s: %s", source.title, e)
                    results.append(SourceResult(source, [], str(e)))
        return results

    # ---------- Persistência (sequencial) ----------
    def _persist(self, result: SourceResult, stats: SyncStats):
        for item in result.items:
            if self.canonicalize_urls:
                item = item.model_copy(update={"url": canonicalize_url(item.url)})

            if self.store.find_feed_item_by_url(item.url) is not None:
                stats.items_duplicate += 1
                continue
            try:
                created = self.store.create_feed_item(result.source.id, item)
            except UniqueConstraintError:
                # inserção concorrente da mesma URL: mesma coisa que duplicata
                stats.items_duplicate += 1
                logger.info("[sync] Duplicado ignorado: %s", item.url)
                continue
            except Exception as e:
                logger.error("[sync] Erro ao salvar item %r: %s", item.title, e)
                continue
            stats.items_new += 1
            logger.info("[sync] Novo item salvo (ID: %s): %s", created.id, item.title[:50])

    def sync_all(self, sources: Sequence[Source]) -> SyncStats:
        stats = SyncStats()
        sources = list(sources)
        started = time.time()

        for start in range(0, len(sources), self.batch_concurrency):
            batch = sources[start:start + self.batch_concurrency]
            logger.info("[sync] Processando lote %d (%d fontes)",
                        start // self.batch_concurrency + 1, len(batch))

            for result in self._run_batch(batch):
                if result.error:
                    stats.sources_errored += 1
                    stats.errors.append(SourceError(source_id=result.source.id, title=result.source.title,
                                                    error=result.error))
                    continue
                stats.sources_processed += 1
                stats.items_found += len(result.items)
                self._persist(result, stats)

        self.last_updated = time.time()
        logger.info(
            "[sync] Concluído em %.2fs: %d/%d fontes processadas, %d com erro, %d encontrados, %d novos, %d duplicados",
            self.last_updated - started, stats.sources_processed, len(sources), stats.sources_errored,
            stats.items_found, stats.items_new, stats.items_duplicate,
        )
        return stats
