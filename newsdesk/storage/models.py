from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

POST_STATUS_DRAFT = "RASCUNHO"


class Source(BaseModel):
    id: int
    owner_id: int
    title: str
    url: str
    active: bool = True


class FeedItem(BaseModel):
    id: int
    source_id: int
    title: str
    url: str  # chave única de deduplicação
    summary: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    read: bool = False
    created_at: Optional[datetime] = None


class PautaSource(BaseModel):
    name: str
    url: str


class Pauta(BaseModel):
    id: int
    owner_id: int
    subject: str
    summary: str
    sources: List[PautaSource] = Field(default_factory=list)
    read: bool = False
    created_at: Optional[datetime] = None


class Category(BaseModel):
    id: int
    owner_id: Optional[int] = None
    name: str


class Tag(BaseModel):
    id: int
    owner_id: Optional[int] = None
    name: str


class Post(BaseModel):
    id: int
    owner_id: int
    title: str
    subtitle: str  # "chamada"
    content: str   # HTML
    slug: str
    status: str = POST_STATUS_DRAFT
    featured: bool = False
    category_id: Optional[int] = None
    tag_ids: List[int] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ExtractedItem(BaseModel):
    """Item estruturado devolvido pelo extrator, ainda não persistido."""
    title: str
    url: str
    summary: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None


class SourceError(BaseModel):
    source_id: int
    title: str
    error: str


class SyncStats(BaseModel):
    sources_processed: int = 0
    sources_errored: int = 0
    items_found: int = 0
    items_new: int = 0
    items_duplicate: int = 0
    errors: List[SourceError] = Field(default_factory=list)

    @property
    def message(self) -> str:
        if self.items_new > 0:
            return f"{self.items_new} novos itens de feed foram adicionados!"
        if self.items_duplicate > 0:
            return f"Nenhum item novo encontrado. {self.items_duplicate} itens já existiam."
        if self.sources_processed > 0:
            return (f"Busca concluída. {self.sources_processed} fonte(s) processada(s), "
                    "mas nenhum item novo foi encontrado.")
        if self.sources_errored > 0:
            return f"Busca concluída. {self.sources_errored} fonte(s) com erro."
        return "Busca concluída. Nenhum item encontrado."
