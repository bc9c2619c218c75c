import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from newsdesk.config import Settings
from newsdesk.errors import FetchError
from .base import BaseReader

logger = logging.getLogger(__name__)

# ---------- HTTP session global com pool (sem retry: retentativas são decisão de quem chama) ----------
_SESSION = requests.Session()
_ADAPTER = HTTPAdapter(pool_connections=20, pool_maxsize=50, max_retries=0)
_SESSION.mount("https://", _ADAPTER)
_SESSION.mount("http://", _ADAPTER)
_SESSION.headers.update({"User-Agent": "newsdesk/1.0 (+https://localhost)"})


class JinaReader(BaseReader):
    """Busca o conteúdo de uma URL via Jina AI Reader (https://r.jina.ai/<url>)."""

    def __init__(self, base_url: str = "https://r.jina.ai/", timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.session = session or _SESSION

    @classmethod
    def from_settings(cls, settings: Settings) -> "JinaReader":
        return cls(base_url=settings.reader_base_url, timeout=settings.reader_timeout)

    def fetch(self, url: str) -> str:
        logger.info("[reader] Buscando conteúdo: %s", url)
        try:
            response = self.session.get(self.base_url + url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Falha ao buscar conteúdo de {url}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise FetchError(f"Reader retornou status {response.status_code} para {url}")

        text = response.text
        logger.info("[reader] Conteúdo obtido (%d chars): %s", len(text), url)
        return text
