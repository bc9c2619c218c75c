"""
Sincroniza todas as fontes ativas e imprime um relatório.

Uso (cron / job agendado):
    python -m newsdesk.scripts.update_feed
"""

import logging
import sys

from newsdesk.ai import OpenAITextGenerator
from newsdesk.config import Settings
from newsdesk.extractor.feed_extractor import FeedExtractor
from newsdesk.feeds import JinaReader
from newsdesk.storage.repository import JsonRecordStore
from newsdesk.tracker.feed_sync import FeedSynchronizer

logger = logging.getLogger("newsdesk.update_feed")


def run(settings: Settings) -> int:
    store = JsonRecordStore(settings.db_path)
    extractor = FeedExtractor(OpenAITextGenerator.from_settings(settings), char_budget=settings.extract_char_budget)
    synchronizer = FeedSynchronizer.from_settings(settings, JinaReader.from_settings(settings), extractor, store)

    sources = store.list_sources(active=True)
    logger.info("[sync] Encontradas %d fontes ativas", len(sources))
    if not sources:
        logger.info("[sync] Nenhuma fonte ativa encontrada.")
        return 0

    stats = synchronizer.sync_all(sources)

    logger.info("=" * 60)
    logger.info("RELATÓRIO FINAL")
    logger.info("Fontes processadas: %d", stats.sources_processed)
    logger.info("Fontes com erro:    %d", stats.sources_errored)
    logger.info("Itens encontrados:  %d", stats.items_found)
    logger.info("Itens novos:        %d", stats.items_new)
    logger.info("Itens duplicados:   %d", stats.items_duplicate)
    for err in stats.errors:
        logger.info("  - %s (#%d): %s", err.title, err.source_id, err.error)
    logger.info("=" * 60)
    return stats.items_new


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        run(Settings.from_env())
    except Exception as e:
        logger.exception("[sync] Erro fatal: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
