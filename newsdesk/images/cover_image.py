"""
Resolução da imagem de capa de uma matéria.

Estratégias, na ordem (a primeira que encontrar vence):
  1. og:image do HTML bruto da página (todas as ocorrências, em ordem de documento)
  2. primeira imagem referenciada no markdown do reader (![alt](url) ou <img src=...>)

As candidatas passam por um filtro heurístico de logos/branding. A imagem escolhida é
baixada (tipo, tamanho e tempo limitados) e reenviada ao object store. Qualquer falha
devolve a URL do placeholder: resolve() nunca levanta exceção.
"""

import codecs
import logging
import re
import socket
import threading
from html import unescape
from typing import List, Optional, Tuple

import requests

from newsdesk.config import Settings
from newsdesk.errors import ImageError
from newsdesk.images.object_store import BaseObjectStore
from newsdesk.utils.url_utils import is_absolute_http_url, resolve_url

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif")

# Palavras-chave que indicam logos/branding
LOGO_KEYWORDS = ("logo", "brand", "cropped", "icon", "favicon", "avatar", "thumbnail-", "-96x96", "-48x48", "-32x32")

# Padrões de URL conhecidos de logos
URL_BLACKLIST = (
    re.compile(r"cropped-.*-removebg-preview", re.IGNORECASE),
    re.compile(r"logo.*\.(png|jpg|jpeg|svg)", re.IGNORECASE),
    re.compile(r"favicon", re.IGNORECASE),
    re.compile(r"icon.*\.(png|jpg|jpeg|svg)", re.IGNORECASE),
)

_DIMENSIONS_RE = re.compile(r"-(\d+)x(\d+)\.(png|jpg|jpeg|webp)$", re.IGNORECASE)
_META_TAG_RE = re.compile(r"<meta\b[^>]*>", re.IGNORECASE)
_ATTR_RE = re.compile(r"""([\w:-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_MD_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(([^)]+)\)")
_HTML_IMG_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)

_CHUNK_SIZE = 16 * 1024
_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
}


_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.IGNORECASE)


def declared_charset(content_type: Optional[str]) -> str:
    """Charset declarado no Content-Type; sem declaração (ou inválido) vale UTF-8."""
    match = _CHARSET_RE.search(content_type or "")
    if not match:
        return "utf-8"
    try:
        return codecs.lookup(match.group(1)).name
    except LookupError:
        return "utf-8"


def _abort(response):
    # shutdown acorda um recv bloqueado em outra thread; close sozinho não
    connection = getattr(getattr(response, "raw", None), "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is not None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("[image] Socket já encerrado: %s", e)
    response.close()


def is_likely_logo(image_url: Optional[str]) -> bool:
    if not image_url:
        return True

    for pattern in URL_BLACKLIST:
        if pattern.search(image_url):
            logger.debug("[image] URL bloqueada por padrão: %s", image_url)
            return True

    url_lower = image_url.lower()
    for keyword in LOGO_KEYWORDS:
        if keyword in url_lower:
            logger.debug("[image] URL parece ser logo (contém %r): %s", keyword, image_url)
            return True

    # dimensões no nome do arquivo (ex: -300x114.png): logos são pequenos ou muito largos/altos
    match = _DIMENSIONS_RE.search(image_url)
    if match:
        width, height = int(match.group(1)), int(match.group(2))
        if width < 200 or height < 200 or (width / height) > 5 or (width / height) < 0.2:
            logger.debug("[image] Dimensões suspeitas (%dx%d): %s", width, height, image_url)
            return True

    return False


def resolve_image_url(url: str, base_url: str) -> Optional[str]:
    url = unescape(url or "").strip()  # atributos HTML chegam com &amp; etc.
    if not url:
        return None
    resolved = resolve_url(url, base_url)
    return resolved if is_absolute_http_url(resolved) else None


def extract_og_images(html: str, base_url: str) -> List[str]:
    """Todas as og:image do HTML, em ordem de documento (property/name antes ou depois de content)."""
    found: List[str] = []
    for tag in _META_TAG_RE.findall(html or ""):
        attrs = {name.lower(): dq or sq for name, dq, sq in _ATTR_RE.findall(tag)}
        key = (attrs.get("property") or attrs.get("name") or "").strip().lower()
        if key != "og:image":
            continue
        resolved = resolve_image_url(attrs.get("content") or "", base_url)
        if resolved:
            found.append(resolved)
    return found


def extract_markdown_images(markdown: str, base_url: str) -> List[str]:
    found: List[str] = []
    for target in _MD_IMAGE_RE.findall(markdown or ""):
        # ![alt](url "title") e ![alt](<url>)
        parts = target.strip().split()
        url = parts[0].strip("<>") if parts else ""
        resolved = resolve_image_url(url, base_url)
        if resolved:
            found.append(resolved)
    for url in _HTML_IMG_RE.findall(markdown or ""):
        resolved = resolve_image_url(url, base_url)
        if resolved:
            found.append(resolved)
    return found


def select_candidate(candidates: List[str], fallback_to_logo: bool = True) -> Optional[str]:
    """
    Nenhuma candidata: None. Uma só: é usada mesmo que pareça logo.
    Várias: primeira que não parece logo; se todas parecem, a primeira (ou None com fallback desligado).
    """
    if not candidates:
        return None

    if len(candidates) == 1:
        if is_likely_logo(candidates[0]):
            logger.info("[image] Única imagem encontrada parece ser logo, mas será usada: %s", candidates[0])
        return candidates[0]

    valid = [url for url in candidates if not is_likely_logo(url)]
    if valid:
        return valid[0]

    if fallback_to_logo:
        logger.warning("[image] Todas as %d imagens parecem ser logos, usando a primeira: %s",
                       len(candidates), candidates[0])
        return candidates[0]
    logger.warning("[image] Todas as %d imagens parecem ser logos, descartadas", len(candidates))
    return None


class CoverImageResolver:
    def __init__(
        self,
        object_store: BaseObjectStore,
        placeholder_url: str,
        html_timeout: float = 15.0,
        download_timeout: float = 30.0,
        max_image_bytes: int = 5 * 1024 * 1024,
        max_html_bytes: int = 1024 * 1024,
        fallback_to_logo: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self.object_store = object_store
        self.placeholder_url = placeholder_url
        self.html_timeout = html_timeout
        self.download_timeout = download_timeout
        self.max_image_bytes = max_image_bytes
        self.max_html_bytes = max_html_bytes
        self.fallback_to_logo = fallback_to_logo
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings, object_store: BaseObjectStore,
                      session: Optional[requests.Session] = None) -> "CoverImageResolver":
        return cls(
            object_store=object_store,
            placeholder_url=settings.placeholder_image_url,
            html_timeout=settings.html_fetch_timeout,
            download_timeout=settings.image_download_timeout,
            max_image_bytes=settings.max_image_bytes,
            max_html_bytes=settings.max_html_bytes,
            fallback_to_logo=settings.fallback_to_logo,
            session=session,
        )

    # ---------- HTTP ----------
    def _read_body(self, response, limit: int, timeout: float, label: str) -> bytes:
        """Lê o corpo com limite de tamanho e prazo total; o timer fecha a conexão mesmo sem chunk chegando."""
        expired = threading.Event()

        def _expire():
            expired.set()
            _abort(response)

        timer = threading.Timer(timeout, _expire)
        timer.daemon = True
        timer.start()
        body = bytearray()
        try:
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                if expired.is_set():
                    break
                body.extend(chunk)
                if len(body) > limit:
                    raise ImageError(f"{label} muito grande: {len(body) / 1024 / 1024:.2f}MB")
        except Exception as e:
            if expired.is_set():
                raise ImageError(f"Timeout ao baixar {label.lower()} ({timeout:.0f}s)") from e
            raise
        finally:
            timer.cancel()
        if expired.is_set():
            raise ImageError(f"Timeout ao baixar {label.lower()} ({timeout:.0f}s)")
        return bytes(body)

    def fetch_html(self, url: str) -> str:
        try:
            with self.session.get(url, headers=_HEADERS, stream=True, timeout=self.html_timeout) as response:
                if response.status_code != 200:
                    raise ImageError(f"HTTP {response.status_code} ao buscar HTML de {url}")
                body = self._read_body(response, self.max_html_bytes, self.html_timeout, "HTML")
                encoding = declared_charset(response.headers.get("content-type"))
        except requests.RequestException as e:
            raise ImageError(f"Erro ao buscar HTML de {url}: {e}") from e
        return body.decode(encoding, errors="replace")

    def download_image(self, image_url: str) -> Tuple[bytes, str]:
        logger.info("[image] Fazendo download da imagem: %s", image_url)
        try:
            with self.session.get(image_url, headers=_HEADERS, stream=True, timeout=self.download_timeout) as response:
                if response.status_code != 200:
                    raise ImageError(f"HTTP {response.status_code}: Não foi possível baixar a imagem")

                raw_type = response.headers.get("content-type", "") or ""
                content_type = raw_type.split(";")[0].strip().lower()
                if not any(allowed in content_type for allowed in ALLOWED_MIME_TYPES):
                    raise ImageError(f"Tipo de arquivo não permitido: {raw_type}")

                try:
                    declared = int(response.headers.get("content-length") or 0)
                except ValueError:
                    declared = 0
                if declared > self.max_image_bytes:
                    raise ImageError(f"Imagem muito grande: {declared / 1024 / 1024:.2f}MB")

                data = self._read_body(response, self.max_image_bytes, self.download_timeout, "Imagem")
        except requests.RequestException as e:
            raise ImageError(f"Erro ao baixar imagem: {e}") from e

        logger.info("[image] Imagem baixada: %.2fKB, tipo: %s", len(data) / 1024, content_type)
        return data, content_type

    # ---------- Estratégias ----------
    def find_image_url(self, page_url: str, markdown: Optional[str] = None) -> Optional[str]:
        try:
            html = self.fetch_html(page_url)
            og_image = select_candidate(extract_og_images(html, page_url), self.fallback_to_logo)
            if og_image:
                logger.info("[image] og:image encontrado: %s", og_image)
                return og_image
            logger.info("[image] og:image não encontrado: %s", page_url)
        except ImageError as e:
            logger.warning("[image] Erro ao buscar og:image: %s", e)

        if markdown:
            md_image = select_candidate(extract_markdown_images(markdown, page_url), self.fallback_to_logo)
            if md_image:
                logger.info("[image] Imagem encontrada no markdown: %s", md_image)
                return md_image

        return None

    def resolve(self, page_url: Optional[str], markdown: Optional[str] = None) -> str:
        """Retorna a URL da imagem no object store ou a URL do placeholder. Nunca levanta."""
        if not page_url:
            return self.placeholder_url
        try:
            image_url = self.find_image_url(page_url, markdown)
            if not image_url:
                logger.info("[image] Nenhuma imagem encontrada, usando placeholder")
                return self.placeholder_url
            data, content_type = self.download_image(image_url)
            return self.object_store.upload(data, content_type)
        except Exception as e:
            logger.error("[image] Erro ao processar imagem, usando placeholder: %s", e)
            return self.placeholder_url
