import re
import unicodedata

from newsdesk.storage.base import RecordStore

EMPTY_SLUG = "post"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """'Ação & Reação!' -> 'acao-reacao'. Título sem nenhum caractere útil vira 'post'."""
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    ascii_text = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _NON_ALNUM_RE.sub("-", ascii_text).strip("-")
    return slug or EMPTY_SLUG


def unique_slug(store: RecordStore, base: str) -> str:
    """Primeiro slug livre entre base, base-1, base-2, ... consultando o store a cada tentativa."""
    candidate = base
    counter = 1
    while store.post_slug_exists(candidate):
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate
