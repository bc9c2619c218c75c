# newsdesk/ai/prompts.py

from typing import Iterable, List, Sequence, Tuple

from newsdesk.ai.personas import Persona

# ================================
# System prompts (um por tarefa)
# ================================
EXTRACT_SYSTEM = ("Você é um parser de notícias especializado. "
                  "Sempre responda em JSON válido com array de items extraídos.")

ARTICLE_SYSTEM = ("Você é um redator profissional de notícias em português. "
                  "Sempre responda em JSON válido com titulo, chamada e conteudo.")

CATEGORY_SYSTEM = ("Você é um editor especializado. "
                   "Sempre responda apenas com o ID numérico da categoria ou \"null\".")

TAGS_SYSTEM = "Você é um editor especializado. Sempre responda em JSON válido com array de tags."

PAUTAS_SYSTEM = "Você é um editor de notícias especializado. Sempre responda em JSON válido."

CHAT_SYSTEM = ("Você é um assistente de redação de um portal de notícias. "
               "Responda em português, de forma objetiva, ajudando o editor a pesquisar, "
               "resumir e escrever matérias. Não invente fatos que não estejam no contexto.")

# limites de contexto enviados ao modelo
ARTICLE_SOURCE_CHARS = 3000
CLASSIFY_CONTENT_CHARS = 2000
CHAT_CONTEXT_CHARS = 8000


def build_extract_prompt(source_title: str, base_url: str, text: str, limit: int) -> str:
    return f"""Você é um parser de notícias especializado em extrair informações estruturadas de páginas de listagem de notícias.

FONTE: {source_title}
URL BASE: {base_url}

CONTEÚDO DA PÁGINA:
{text}

TAREFA:
Analise o conteúdo acima e extraia as {limit} notícias mais recentes encontradas na página.

Para cada notícia, extraia:
1. **title** (obrigatório): O título da notícia
2. **url** (obrigatório): Link completo para a notícia
3. **summary** (opcional): Resumo/subtítulo se disponível
4. **imageUrl** (opcional): URL da imagem de capa se encontrada
5. **publishedAt** (opcional): Data de publicação em ISO 8601 (YYYY-MM-DDTHH:mm:ss.sssZ)

REGRAS:
- Extraia APENAS notícias reais, não menus, links de navegação ou anúncios
- Se a URL for relativa (ex: /news/artigo), combine com a URL base: {base_url}
- Não invente informações - se não encontrar, deixe o campo null
- Retorne no máximo {limit} itens

FORMATO DE RESPOSTA (JSON):
{{
  "items": [
    {{
      "title": "Título da notícia",
      "url": "https://exemplo.com/noticia-completa",
      "summary": "Resumo ou subtítulo",
      "imageUrl": "https://exemplo.com/imagem.jpg",
      "publishedAt": "2025-01-15T10:30:00.000Z"
    }}
  ]
}}

Retorne APENAS o JSON, sem texto adicional."""


def build_article_prompt(subject: str, summary: str, contents: Sequence[str], persona: Persona) -> str:
    sources = "\n".join(
        f"\n--- Fonte {i} ---\n{c[:ARTICLE_SOURCE_CHARS]}\n" for i, c in enumerate(contents, start=1)
    )
    return f"""
PAUTA:
Assunto: {subject}
Resumo: {summary}

CONTEÚDO DAS FONTES:
{sources}

# PERSONA
Atue como {persona.name} e especialista no assunto da pauta. Seu objetivo não é apenas relatar,
mas analisar e contextualizar a informação para o leitor.
TOM DE VOZ: {persona.voice}

# TAREFA
Produza uma reportagem profunda e original em português (PT-BR) baseada na pauta fornecida.

# DIRETRIZES DE CONTEÚDO
1. ANALISE O IMPACTO: explique por que isso importa e quem é afetado.
2. CONTEXTO HISTÓRICO: adicione um parágrafo sobre o que aconteceu antes.
3. ESTRUTURA RICA: use subtítulos (H2, H3): O Fato, Análise, Impacto no Setor e Perspectivas Futuras.
4. TAMANHO: entre 600 e 1200 palavras.
5. LINGUAGEM: evite clichês ("no mundo de hoje", "em constante evolução").
6. SAIBA MAIS: finalize com um bloco "Saiba Mais" com links oficiais ou relevantes.

FORMATO DA NOTÍCIA:
- Título chamativo e profissional
- Chamada (subtítulo) de 1-2 frases
- Conteúdo completo em HTML (use tags <p>, <h2>, <strong>, <em>, etc.)

FORMATO DE RESPOSTA (JSON):
{{
  "titulo": "Título em português",
  "chamada": "Subtítulo em português",
  "conteudo": "<p>Conteúdo completo em HTML...</p>"
}}

Retorne APENAS o JSON, sem texto adicional."""


def build_category_prompt(title: str, content: str, categories: Iterable[Tuple[int, str]]) -> str:
    listing = "\n".join(f"- ID {cid}: {name}" for cid, name in categories)
    return f"""Você é um editor especializado em categorização de notícias.

TÍTULO DA NOTÍCIA:
{title}

CONTEÚDO DA NOTÍCIA:
{content[:CLASSIFY_CONTENT_CHARS]}

CATEGORIAS DISPONÍVEIS:
{listing}

TAREFA:
Analise o título e o conteúdo e determine qual categoria é mais adequada.
Retorne APENAS o ID numérico da categoria escolhida (exemplo: 7).

FORMATO DE RESPOSTA:
Apenas o número do ID ou "null", sem texto adicional."""


def build_tags_prompt(title: str, content: str, count: int) -> str:
    return f"""Você é um editor especializado.

TÍTULO DA NOTÍCIA:
{title}

CONTEÚDO DA NOTÍCIA:
{content[:CLASSIFY_CONTENT_CHARS]}

TAREFA:
Gere {count} tags relevantes relacionadas ao conteúdo da notícia.
As tags devem ser palavras-chave importantes, nomes de pessoas, eventos e termos técnicos,
em português, minúsculas e sem acentos (ex: "edm", "festival", "house music").

FORMATO DE RESPOSTA (JSON):
["tag1", "tag2", "tag3"]

Retorne APENAS o JSON, sem texto adicional."""


def build_pautas_prompt(contents: List[Tuple[str, str, str]]) -> str:
    blocks = "".join(f"## Fonte {i}: {title}\nURL: {url}\n\n{text}\n\n---\n"
                     for i, (title, url, text) in enumerate(contents, start=1))
    return f"""Você é um editor de notícias.

Analise os seguintes conteúdos de sites de notícias e gere sugestões de pauta para os últimos 7 dias.

CONTEÚDOS:
{blocks}

INSTRUÇÕES:
- Identifique as notícias mais recentes de cada fonte (até 7 dias).
- Envie no máximo 40 sugestões no total, variando assuntos e fontes.
- Se o mesmo assunto aparecer em mais de uma fonte, junte em uma única sugestão marcada com [IMPORTANTE] no começo do assunto.
- Para cada sugestão forneça assunto (título curto), resumo (2-3 frases) e fontes (nome e URL).

FORMATO DE RESPOSTA (JSON):
{{
  "pautas": [
    {{
      "assunto": "Grammy 2026: Skrillex concorre em 2 categorias",
      "resumo": "Foram divulgados os indicados do Grammy 2026.",
      "fontes": [{{"nome": "House Mag", "url": "https://housemag.com.br/..."}}]
    }}
  ]
}}

IMPORTANTE: Retorne APENAS o JSON, sem texto adicional."""


def build_chat_context(content: str, url: str, limit: int = CHAT_CONTEXT_CHARS) -> str:
    return f"""O editor compartilhou a página abaixo como contexto da conversa.
Use este conteúdo para responder; se a pergunta não for sobre ele, responda normalmente.

URL: {url}

CONTEÚDO:
{content[:limit]}"""
