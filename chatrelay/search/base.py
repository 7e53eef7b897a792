from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from pydantic import BaseModel

NO_RESULTS_TEXT = "No search results found."


class SearchResult(BaseModel):
    """Single web search hit, only kept for the duration of one turn"""

    title: str = ""
    url: str = ""
    snippet: str = ""
    source_engine: Optional[str] = None


def render_context(results: Sequence[SearchResult]) -> str:
    """Render results as one prompt-ready text block.

    Every result is numbered and carries its title, snippet and URL so the
    model can cite it. An empty list renders an explicit sentinel instead of
    an empty string.
    """
    if not results:
        return NO_RESULTS_TEXT

    blocks = []
    for index, result in enumerate(results, start=1):
        parts = [
            f"## Source {index}",
            f"**Title**: {result.title}",
            f"**Content**: {result.snippet}",
            f"**URL**: {result.url}",
        ]
        if result.source_engine:
            parts.append(f"**Engine**: {result.source_engine}")
        parts.append("")
        blocks.append("\n".join(parts))
    return "\n".join(blocks)


class BaseSearchProvider(ABC):
    """Abstract base for web search backends"""

    @abstractmethod
    async def search(self, query: str, limit: int = 5) -> List[SearchResult]:
        """Return at most ``limit`` results, best first"""
        pass

    def render_context(self, results: Sequence[SearchResult]) -> str:
        return render_context(results)
