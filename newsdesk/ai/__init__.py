from .generator import BaseTextGenerator, OpenAITextGenerator
from .json_payload import parse_json_payload, strip_code_fences
from .personas import Persona, pick_persona

__all__ = [
    "BaseTextGenerator",
    "OpenAITextGenerator",
    "parse_json_payload",
    "strip_code_fences",
    "Persona",
    "pick_persona",
]
