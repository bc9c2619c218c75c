from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

from newsdesk.storage.models import (
    Category,
    ExtractedItem,
    FeedItem,
    Pauta,
    PautaSource,
    Post,
    Source,
    Tag,
)


class RecordStore(ABC):
    """
    Contrato do armazenamento de registros consumido pelo pipeline.

    Restrições de unicidade obrigatórias: FeedItem.url, Post.slug e (owner_id, name)
    para Tag e Category. Violações levantam UniqueConstraintError.
    """

    # ---------- Fontes ----------
    @abstractmethod
    def create_source(self, owner_id: int, title: str, url: str, active: bool = True) -> Source:
        pass

    @abstractmethod
    def get_source(self, source_id: int) -> Optional[Source]:
        pass

    @abstractmethod
    def list_sources(self, owner_id: Optional[int] = None, active: Optional[bool] = None) -> List[Source]:
        pass

    @abstractmethod
    def update_source(self, source_id: int, **fields) -> Optional[Source]:
        pass

    @abstractmethod
    def delete_source(self, source_id: int) -> bool:
        pass

    # ---------- Feed ----------
    @abstractmethod
    def get_feed_item(self, item_id: int) -> Optional[FeedItem]:
        pass

    @abstractmethod
    def find_feed_item_by_url(self, url: str) -> Optional[FeedItem]:
        pass

    @abstractmethod
    def create_feed_item(self, source_id: int, item: ExtractedItem) -> FeedItem:
        pass

    @abstractmethod
    def list_feed_items(
        self,
        source_ids: Optional[Iterable[int]] = None,
        read: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[FeedItem], int]:
        pass

    @abstractmethod
    def set_feed_item_read(self, item_id: int, read: bool = True) -> bool:
        pass

    @abstractmethod
    def mark_all_feed_items_read(self, source_ids: Optional[Iterable[int]] = None) -> int:
        pass

    @abstractmethod
    def delete_feed_item(self, item_id: int) -> bool:
        pass

    @abstractmethod
    def delete_feed_items(self, item_ids: Iterable[int]) -> int:
        pass

    # ---------- Pautas ----------
    @abstractmethod
    def create_pauta(self, owner_id: int, subject: str, summary: str, sources: List[PautaSource]) -> Pauta:
        pass

    @abstractmethod
    def get_pauta(self, pauta_id: int) -> Optional[Pauta]:
        pass

    @abstractmethod
    def list_pautas(self, owner_id: Optional[int] = None) -> List[Pauta]:
        pass

    @abstractmethod
    def set_pauta_read(self, pauta_id: int, read: bool = True) -> bool:
        pass

    @abstractmethod
    def delete_pauta(self, pauta_id: int) -> bool:
        pass

    # ---------- Categorias / Tags ----------
    @abstractmethod
    def create_category(self, name: str, owner_id: Optional[int] = None) -> Category:
        pass

    @abstractmethod
    def list_categories(self, owner_id: Optional[int] = None) -> List[Category]:
        pass

    @abstractmethod
    def find_tag(self, name: str, owner_id: Optional[int] = None) -> Optional[Tag]:
        pass

    @abstractmethod
    def create_tag(self, name: str, owner_id: Optional[int] = None) -> Tag:
        pass

    # ---------- Posts ----------
    @abstractmethod
    def post_slug_exists(self, slug: str) -> bool:
        pass

    @abstractmethod
    def create_post(self, **fields) -> Post:
        pass

    @abstractmethod
    def get_post(self, post_id: int) -> Optional[Post]:
        pass
