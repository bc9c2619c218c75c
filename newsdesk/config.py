import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# ---------- Defaults (podem ser sobrescritos via .env) ----------
DEFAULT_READER_BASE_URL = "https://r.jina.ai/"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_PLACEHOLDER_IMAGE_URL = "https://cms-news-2025.s3.sa-east-1.amazonaws.com/placeholder.jpg"
DEFAULT_DB_PATH = os.path.join(os.path.dirname(__file__), "storage", "data", "newsdesk_db.json")

BATCH_CONCURRENCY = 3                 # fontes buscadas em paralelo por lote
HTML_FETCH_TIMEOUT = 15.0             # segundos
IMAGE_DOWNLOAD_TIMEOUT = 30.0         # segundos
MAX_IMAGE_BYTES = 5 * 1024 * 1024     # 5MB
MAX_HTML_BYTES = 1024 * 1024          # 1MB
EXTRACT_CHAR_BUDGET = 30_000
EXTRACT_LIMIT = 10
TAG_COUNT = 5
SYNC_INTERVAL_MINUTES = 60


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


class Settings(BaseModel):
    # Serviços externos
    reader_base_url: str = DEFAULT_READER_BASE_URL
    reader_timeout: float = 30.0
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: Optional[str] = None

    # Pipeline
    batch_concurrency: int = BATCH_CONCURRENCY
    html_fetch_timeout: float = HTML_FETCH_TIMEOUT
    image_download_timeout: float = IMAGE_DOWNLOAD_TIMEOUT
    max_image_bytes: int = MAX_IMAGE_BYTES
    max_html_bytes: int = MAX_HTML_BYTES
    extract_char_budget: int = EXTRACT_CHAR_BUDGET
    extract_limit: int = EXTRACT_LIMIT
    tag_count: int = TAG_COUNT
    slug_insert_attempts: int = 5
    placeholder_image_url: str = DEFAULT_PLACEHOLDER_IMAGE_URL
    fallback_to_logo: bool = True         # se todas as candidatas parecem logo, usa a primeira
    canonicalize_feed_urls: bool = False

    # Object store (S3)
    aws_s3_bucket: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_key_prefix: str = "posts/"

    # Persistência / agendamento
    db_path: str = DEFAULT_DB_PATH
    sync_interval_minutes: int = SYNC_INTERVAL_MINUTES

    @classmethod
    def from_env(cls, load_env: bool = True, dotenv_override: bool = True) -> "Settings":
        """Cria Settings lendo as variáveis do ambiente (e do .env, se existir)."""
        if load_env:
            load_dotenv(override=dotenv_override)
        return cls(
            reader_base_url=os.getenv("READER_BASE_URL", DEFAULT_READER_BASE_URL),
            reader_timeout=_env_float("READER_TIMEOUT", 30.0),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            batch_concurrency=_env_int("BATCH_CONCURRENCY", BATCH_CONCURRENCY),
            html_fetch_timeout=_env_float("HTML_FETCH_TIMEOUT", HTML_FETCH_TIMEOUT),
            image_download_timeout=_env_float("IMAGE_DOWNLOAD_TIMEOUT", IMAGE_DOWNLOAD_TIMEOUT),
            max_image_bytes=_env_int("MAX_IMAGE_BYTES", MAX_IMAGE_BYTES),
            max_html_bytes=_env_int("MAX_HTML_BYTES", MAX_HTML_BYTES),
            extract_char_budget=_env_int("EXTRACT_CHAR_BUDGET", EXTRACT_CHAR_BUDGET),
            extract_limit=_env_int("EXTRACT_LIMIT", EXTRACT_LIMIT),
            tag_count=_env_int("TAG_COUNT", TAG_COUNT),
            placeholder_image_url=os.getenv("PLACEHOLDER_IMAGE_URL", DEFAULT_PLACEHOLDER_IMAGE_URL),
            fallback_to_logo=_env_bool("FALLBACK_TO_LOGO", True),
            canonicalize_feed_urls=_env_bool("CANONICALIZE_FEED_URLS", False),
            aws_s3_bucket=os.getenv("AWS_S3_BUCKET") or None,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            s3_key_prefix=os.getenv("S3_KEY_PREFIX", "posts/"),
            db_path=os.getenv("NEWSDESK_DB_PATH", DEFAULT_DB_PATH),
            sync_interval_minutes=_env_int("SYNC_INTERVAL_MINUTES", SYNC_INTERVAL_MINUTES),
        )
