import logging
from typing import Any, Dict, List, Optional

from newsdesk.ai import prompts
from newsdesk.ai.generator import BaseTextGenerator
from newsdesk.errors import ValidationError
from newsdesk.feeds.base import BaseReader

logger = logging.getLogger(__name__)

CHAT_ROLES = ("user", "assistant")


def normalize_history(messages: Any) -> List[Dict[str, str]]:
    """Valida o histórico vindo do cliente: lista não vazia de {role: user|assistant, content: str}."""
    if not isinstance(messages, (list, tuple)) or not messages:
        raise ValidationError("Histórico de mensagens é obrigatório")
    history = []
    for message in messages:
        if hasattr(message, "model_dump"):
            message = message.model_dump()
        if not isinstance(message, dict) or message.get("role") not in CHAT_ROLES:
            raise ValidationError("Mensagem inválida no histórico")
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Mensagem vazia no histórico")
        history.append({"role": message["role"], "content": content})
    return history


class ChatAssistant:
    """
    Chat do editor com a IA. Na primeira mensagem, se vier uma URL, a página é lida
    e entra como contexto; falha na leitura não impede a resposta.
    """

    def __init__(self, reader: BaseReader, generator: BaseTextGenerator,
                 context_chars: int = prompts.CHAT_CONTEXT_CHARS, temperature: float = 0.7, max_tokens: int = 2000):
        self.reader = reader
        self.generator = generator
        self.context_chars = context_chars
        self.temperature = temperature
        self.max_tokens = max_tokens

    def fetch_context(self, url: str) -> Optional[str]:
        try:
            logger.info("[chat] Buscando contexto de %s", url)
            return self.reader.fetch(url)
        except Exception as e:
            logger.warning("[chat] Erro ao buscar contexto da URL %s: %s", url, e)
            return None

    def reply(self, messages: Any, url: Optional[str] = None) -> str:
        history = normalize_history(messages)

        # contexto só no começo da conversa; depois ele já está no histórico do cliente
        context = None
        if url and len(history) <= 1:
            context = self.fetch_context(url)
        if context:
            history.insert(0, {"role": "system",
                               "content": prompts.build_chat_context(context, url, self.context_chars)})

        return self.generator.chat(prompts.CHAT_SYSTEM, history,
                                   temperature=self.temperature, max_tokens=self.max_tokens).strip()
