# newsdesk/tests/test_json_payload.py
import pytest

from newsdesk.ai import parse_json_payload, strip_code_fences
from newsdesk.errors import MalformedResponseError


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("```\n[1]\n```") == "[1]"
    assert strip_code_fences(None) == ""


@pytest.mark.parametrize("raw,expected", [
    ('{"a": 1}', {"a": 1}),
    ('```JSON\n{"a": [1, 2]}\n```', {"a": [1, 2]}),
    ('Claro! Segue o JSON:\n{"items": []}\nQualquer dúvida, avise.', {"items": []}),
    ('Resposta: ["x", "y"]', ["x", "y"]),
    ('{"conteudo": "<p>linha\nquebrada</p>"}', {"conteudo": "<p>linha\nquebrada</p>"}),
])
def test_parse_json_payload(raw, expected):
    assert parse_json_payload(raw) == expected


@pytest.mark.parametrize("raw", ["", "sem json aqui", '{"a": ', "null null"])
def test_parse_json_payload_invalid(raw):
    with pytest.raises(MalformedResponseError):
        parse_json_payload(raw)
