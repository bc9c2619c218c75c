import json
import os
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from newsdesk.errors import StorageError, UniqueConstraintError
from newsdesk.storage.base import RecordStore
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

M = TypeVar("M", bound=BaseModel)

TABLES = ("sources", "feed_items", "pautas", "categories", "tags", "posts")


def _empty_db() -> Dict:
    return {"_seq": {t: 0 for t in TABLES}, **{t: [] for t in TABLES}}


class JsonRecordStore(RecordStore):
    """
    Implementação de referência do RecordStore: um único arquivo JSON protegido por lock.
    Cada operação carrega, altera e salva o arquivo inteiro (volume pequeno).
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = RLock()
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    # ---------- I/O ----------
    def _load(self) -> Dict:
        if not os.path.exists(self.path):
            return _empty_db()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Banco JSON corrompido em {self.path}: {e}") from e
        db = _empty_db()
        if isinstance(raw, dict):
            db.update(raw)
            db["_seq"] = {**_empty_db()["_seq"], **raw.get("_seq", {})}
        return db

    def _save(self, db: Dict):
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(db, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StorageError(f"Falha ao salvar banco JSON: {e}") from e

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _insert(self, table: str, model: Type[M], data: Dict, unique: Optional[Callable[[Dict], Tuple]] = None,
                unique_field: str = "") -> M:
        with self._lock:
            db = self._load()
            if unique is not None:
                key = unique(data)
                if any(unique(row) == key for row in db[table]):
                    raise UniqueConstraintError(table, unique_field, key if len(key) > 1 else key[0])
            db["_seq"][table] += 1
            obj = model(id=db["_seq"][table], **data)
            db[table].append(obj.model_dump(mode="json"))
            self._save(db)
            return obj

    def _get(self, table: str, model: Type[M], row_id: int) -> Optional[M]:
        with self._lock:
            db = self._load()
        row = next((r for r in db[table] if r["id"] == row_id), None)
        return model(**row) if row else None

    def _all(self, table: str, model: Type[M]) -> List[M]:
        with self._lock:
            db = self._load()
        return [model(**r) for r in db[table]]

    def _update(self, table: str, model: Type[M], row_id: int, **fields) -> Optional[M]:
        with self._lock:
            db = self._load()
            for i, row in enumerate(db[table]):
                if row["id"] == row_id:
                    obj = model(**{**row, **fields})
                    db[table][i] = obj.model_dump(mode="json")
                    self._save(db)
                    return obj
        return None

    def _delete(self, table: str, ids: Iterable[int]) -> int:
        wanted = set(ids)
        with self._lock:
            db = self._load()
            before = len(db[table])
            db[table] = [r for r in db[table] if r["id"] not in wanted]
            removed = before - len(db[table])
            if removed:
                self._save(db)
            return removed

    # ---------- Fontes ----------
    def create_source(self, owner_id: int, title: str, url: str, active: bool = True) -> Source:
        return self._insert("sources", Source, {"owner_id": owner_id, "title": title, "url": url, "active": active})

    def get_source(self, source_id: int) -> Optional[Source]:
        return self._get("sources", Source, source_id)

    def list_sources(self, owner_id: Optional[int] = None, active: Optional[bool] = None) -> List[Source]:
        sources = self._all("sources", Source)
        if owner_id is not None:
            sources = [s for s in sources if s.owner_id == owner_id]
        if active is not None:
            sources = [s for s in sources if s.active == active]
        return sorted(sources, key=lambda s: s.id)

    def update_source(self, source_id: int, **fields) -> Optional[Source]:
        return self._update("sources", Source, source_id, **fields)

    def delete_source(self, source_id: int) -> bool:
        return self._delete("sources", [source_id]) > 0

    # ---------- Feed ----------
    def get_feed_item(self, item_id: int) -> Optional[FeedItem]:
        return self._get("feed_items", FeedItem, item_id)

    def find_feed_item_by_url(self, url: str) -> Optional[FeedItem]:
        return next((i for i in self._all("feed_items", FeedItem) if i.url == url), None)

    def create_feed_item(self, source_id: int, item: ExtractedItem) -> FeedItem:
        data = {"source_id": source_id, **item.model_dump(), "read": False, "created_at": self._now()}
        return self._insert("feed_items", FeedItem, data, unique=lambda r: (r["url"],), unique_field="url")

    def list_feed_items(
        self,
        source_ids: Optional[Iterable[int]] = None,
        read: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[FeedItem], int]:
        items = self._all("feed_items", FeedItem)
        if source_ids is not None:
            wanted = set(source_ids)
            items = [i for i in items if i.source_id in wanted]
        if read is not None:
            items = [i for i in items if i.read == read]
        if search:
            term = search.lower()
            items = [i for i in items if term in i.title.lower() or term in (i.summary or "").lower()]
        # mais recentes primeiro (publicação, depois criação)
        items.sort(key=lambda i: (i.published_at or i.created_at or datetime.min.replace(tzinfo=timezone.utc), i.id),
                   reverse=True)
        total = len(items)
        start = max(page - 1, 0) * limit
        return items[start:start + limit], total

    def set_feed_item_read(self, item_id: int, read: bool = True) -> bool:
        return self._update("feed_items", FeedItem, item_id, read=read) is not None

    def mark_all_feed_items_read(self, source_ids: Optional[Iterable[int]] = None) -> int:
        wanted = set(source_ids) if source_ids is not None else None
        with self._lock:
            db = self._load()
            changed = 0
            for row in db["feed_items"]:
                if row["read"] or (wanted is not None and row["source_id"] not in wanted):
                    continue
                row["read"] = True
                changed += 1
            if changed:
                self._save(db)
            return changed

    def delete_feed_item(self, item_id: int) -> bool:
        return self._delete("feed_items", [item_id]) > 0

    def delete_feed_items(self, item_ids: Iterable[int]) -> int:
        return self._delete("feed_items", item_ids)

    # ---------- Pautas ----------
    def create_pauta(self, owner_id: int, subject: str, summary: str, sources: List[PautaSource]) -> Pauta:
        data = {
            "owner_id": owner_id,
            "subject": subject,
            "summary": summary,
            "sources": [s.model_dump() for s in sources],
            "read": False,
            "created_at": self._now(),
        }
        return self._insert("pautas", Pauta, data)

    def get_pauta(self, pauta_id: int) -> Optional[Pauta]:
        return self._get("pautas", Pauta, pauta_id)

    def list_pautas(self, owner_id: Optional[int] = None) -> List[Pauta]:
        pautas = self._all("pautas", Pauta)
        if owner_id is not None:
            pautas = [p for p in pautas if p.owner_id == owner_id]
        return sorted(pautas, key=lambda p: p.id, reverse=True)

    def set_pauta_read(self, pauta_id: int, read: bool = True) -> bool:
        return self._update("pautas", Pauta, pauta_id, read=read) is not None

    def delete_pauta(self, pauta_id: int) -> bool:
        return self._delete("pautas", [pauta_id]) > 0

    # ---------- Categorias / Tags ----------
    def create_category(self, name: str, owner_id: Optional[int] = None) -> Category:
        return self._insert("categories", Category, {"name": name, "owner_id": owner_id},
                            unique=lambda r: (r["owner_id"], r["name"]), unique_field="(owner_id, name)")

    def list_categories(self, owner_id: Optional[int] = None) -> List[Category]:
        return [c for c in self._all("categories", Category) if c.owner_id == owner_id]

    def find_tag(self, name: str, owner_id: Optional[int] = None) -> Optional[Tag]:
        return next((t for t in self._all("tags", Tag) if t.name == name and t.owner_id == owner_id), None)

    def create_tag(self, name: str, owner_id: Optional[int] = None) -> Tag:
        return self._insert("tags", Tag, {"name": name, "owner_id": owner_id},
                            unique=lambda r: (r["owner_id"], r["name"]), unique_field="(owner_id, name)")

    # ---------- Posts ----------
    def post_slug_exists(self, slug: str) -> bool:
        return any(p.slug == slug for p in self._all("posts", Post))

    def create_post(self, **fields) -> Post:
        fields.setdefault("created_at", self._now())
        return self._insert("posts", Post, fields, unique=lambda r: (r["slug"],), unique_field="slug")

    def get_post(self, post_id: int) -> Optional[Post]:
        return self._get("posts", Post, post_id)
