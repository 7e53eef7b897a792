"""Web search backends for turn augmentation."""

from chatrelay.search.base import NO_RESULTS_TEXT, BaseSearchProvider, SearchResult, render_context
from chatrelay.search.searxng import SearXNGSearch

__all__ = ["BaseSearchProvider", "SearchResult", "SearXNGSearch", "render_context", "NO_RESULTS_TEXT"]
