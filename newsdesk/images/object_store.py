import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from newsdesk.config import Settings
from newsdesk.errors import ObjectStoreError

logger = logging.getLogger(__name__)

MIME_TO_EXT = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def extension_for(content_type: str) -> str:
    return MIME_TO_EXT.get((content_type or "").split(";")[0].strip().lower(), ".jpg")


def build_object_key(content_type: str, prefix: str = "posts/", now_ms: Optional[int] = None,
                     rng: Optional[random.Random] = None) -> str:
    """Chave resistente a colisão: timestamp em ms + sufixo aleatório + extensão do content-type."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = (rng or random).randrange(10**9)
    return f"{prefix}auto-{now_ms}-{suffix}{extension_for(content_type)}"


class BaseObjectStore(ABC):
    @abstractmethod
    def upload(self, data: bytes, content_type: str) -> str:
        """Grava os bytes e devolve a URL pública estável do objeto."""


class S3ObjectStore(BaseObjectStore):
    def __init__(self, bucket: Optional[str], region: str = "us-east-1", prefix: str = "posts/", client=None):
        self.bucket = bucket
        self.region = region
        self.prefix = prefix
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ObjectStore":
        return cls(bucket=settings.aws_s3_bucket, region=settings.aws_region, prefix=settings.s3_key_prefix)

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region)
        return self._client

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload(self, data: bytes, content_type: str) -> str:
        if not self.bucket:
            raise ObjectStoreError("AWS_S3_BUCKET não configurado")

        key = build_object_key(content_type, prefix=self.prefix)
        logger.info("[s3] Fazendo upload para S3: %s", key)
        try:
            # sem ACL: o bucket deve ter política pública
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"Erro ao fazer upload para S3: {e}") from e

        url = self.public_url(key)
        logger.info("[s3] Imagem enviada para S3: %s", url)
        return url
