import random
from typing import NamedTuple, Union


class Persona(NamedTuple):
    name: str
    voice: str


PERSONAS = (
    Persona(
        "Jornalista Sênior",
        "Jornalismo investigativo/executivo. Tom direto e autoritário, termos técnicos, "
        "sem adjetivos genéricos como \"incrível\" ou \"fantástico\".",
    ),
    Persona(
        "Crítico Especialista",
        "Analítico e opinativo com base em fatos. Contextualiza a cena, compara com lançamentos "
        "e eventos anteriores e aponta o que é relevante para quem acompanha o setor.",
    ),
    Persona(
        "Repórter de Bastidores",
        "Narrativo e próximo do leitor, sem perder a precisão. Destaca pessoas, datas e "
        "detalhes de bastidores; frases curtas e voz ativa.",
    ),
    Persona(
        "Editor de Mercado",
        "Foco em impacto econômico e de indústria: números, contratos, plataformas e tendências. "
        "Linguagem sóbria e objetiva.",
    ),
)


def pick_persona(rng: Union[random.Random, int, None] = None) -> Persona:
    """Escolhe o tom de voz da matéria a partir de uma fonte de aleatoriedade injetada."""
    if not isinstance(rng, random.Random):
        rng = random.Random(rng)
    return PERSONAS[rng.randrange(len(PERSONAS))]
