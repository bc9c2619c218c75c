from abc import ABC, abstractmethod
from typing import NamedTuple


class FetchedContent(NamedTuple):
    url: str
    content: str
    markdown: str


class BaseReader(ABC):
    @abstractmethod
    def fetch(self, url: str) -> str:
        """Retorna uma versão em texto/markdown limpo da página. Falhas levantam FetchError."""

    def fetch_with_markdown(self, url: str) -> FetchedContent:
        # o reader já devolve markdown: o mesmo texto serve de conteúdo e de fonte de imagens
        text = self.fetch(url)
        return FetchedContent(url=url, content=text, markdown=text)
