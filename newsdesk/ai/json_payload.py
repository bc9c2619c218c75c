"""
Utilitários para extrair o payload JSON das respostas do serviço de geração de texto.

O modelo às vezes embrulha o JSON em blocos ```json ... ``` ou acrescenta texto
antes/depois; os marcadores são removidos antes do parse.
"""

import json
import re
from typing import Any

from newsdesk.errors import MalformedResponseError

_FENCE_RE = re.compile(r"```(?:json)?\n?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def _outermost_block(text: str) -> str:
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text
    start = min(starts)
    close = "}" if text[start] == "{" else "]"
    end = text.rfind(close)
    return text[start:end + 1] if end > start else text


def parse_json_payload(text: str) -> Any:
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(_outermost_block(cleaned), strict=False)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Resposta da IA não é um JSON válido: {e}; resposta: {cleaned[:300]!r}") from e
