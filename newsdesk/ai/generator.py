import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import openai
from openai import OpenAI

from newsdesk.config import Settings
from newsdesk.errors import GenerationConfigError, GenerationError

logger = logging.getLogger(__name__)


class BaseTextGenerator(ABC):
    @abstractmethod
    def complete(self, system_prompt: str, user_prompt: str, temperature: float = 0.7,
                 max_tokens: int = 2000) -> str:
        """Retorna o texto bruto gerado (pode conter JSON embrulhado em ```)."""

    def chat(self, system_prompt: str, messages: List[Dict[str, str]], temperature: float = 0.7,
             max_tokens: int = 2000) -> str:
        """
        Conversa com histórico (`role` user/assistant/system + `content`).
        Sem suporte nativo, o histórico vira uma transcrição num único prompt.
        """
        labels = {"user": "Usuário", "assistant": "Assistente", "system": "Contexto"}
        transcript = "\n\n".join(f"{labels.get(m['role'], m['role'])}: {m['content']}" for m in messages)
        return self.complete(system_prompt, transcript, temperature=temperature, max_tokens=max_tokens)


class OpenAITextGenerator(BaseTextGenerator):
    """
    Serviço de geração de texto via API de chat completions da OpenAI
    (ou qualquer endpoint compatível, via base_url).
    """

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini", base_url: Optional[str] = None,
                 timeout: float = 120.0):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self._client: Optional[OpenAI] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAITextGenerator":
        return cls(api_key=settings.openai_api_key, model=settings.openai_model, base_url=settings.openai_base_url)

    @property
    def client(self) -> OpenAI:
        if not self.api_key:
            raise GenerationConfigError("OPENAI_API_KEY não configurada no .env")
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout, max_retries=0)
        return self._client

    def complete(self, system_prompt: str, user_prompt: str, temperature: float = 0.7,
                 max_tokens: int = 2000) -> str:
        return self._create([{"role": "user", "content": user_prompt}], system_prompt, temperature, max_tokens)

    def chat(self, system_prompt: str, messages: List[Dict[str, str]], temperature: float = 0.7,
             max_tokens: int = 2000) -> str:
        history = [{"role": m["role"], "content": m["content"]} for m in messages]
        return self._create(history, system_prompt, temperature, max_tokens)

    def _create(self, messages: List[Dict[str, str]], system_prompt: str, temperature: float, max_tokens: int) -> str:
        client = self.client
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            logger.error("[ai] Erro na requisição OpenAI: %s", e)
            raise GenerationError(f"Falha no serviço de geração de texto: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("Serviço de geração de texto retornou resposta vazia")
        return content
