"""Prompt templates for the web-search decision protocol."""

import re
from typing import Optional

SEARCH_NEEDED_PATTERN = re.compile(
    r"<\|search_needed\|>\s*yes\s*<\|/search_needed\|>", re.IGNORECASE
)
SEARCH_QUERY_PATTERN = re.compile(
    r"<\|search_query\|>(?P<query>.*?)<\|/search_query\|>", re.DOTALL | re.IGNORECASE
)

SEARCH_DECISION_ADDENDUM = """

Web Search Available: You can search the web for current information.

IMPORTANT: If the user explicitly asks to search the web (e.g., "search for...", "look up online..."), you MUST use web search.

Analyze the user's question and decide:
1. Does this require current/real-time information?
2. Did the user explicitly request a web search?
3. Can you answer with your existing knowledge?

If search is needed, respond ONLY with:
<|search_needed|>yes<|/search_needed|>
<|search_query|>your optimized search query here<|/search_query|>

If NO search needed, respond normally."""

SEARCH_AUGMENTATION_TEMPLATE = """

The user asked: "{question}"

Search Results for "{query}":

{context}

Use these search results to answer the user's question accurately. Cite sources by their number and URL where relevant."""


def build_decision_prompt(system_prompt: str) -> str:
    """System prompt asking the model whether a web search is required."""
    return (system_prompt or "") + SEARCH_DECISION_ADDENDUM


def build_augmented_prompt(system_prompt: str, question: str, query: str, context: str) -> str:
    """System prompt embedding the question, the query used and the rendered results."""
    return (system_prompt or "") + SEARCH_AUGMENTATION_TEMPLATE.format(
        question=question, query=query, context=context
    )


def extract_search_query(decision_text: str) -> Optional[str]:
    """Return the requested query when the decision output carries the sentinel.

    Both the ``search_needed`` flag and a non-empty ``search_query`` must be
    present; anything else means the model answered directly.
    """
    if not SEARCH_NEEDED_PATTERN.search(decision_text or ""):
        return None
    match = SEARCH_QUERY_PATTERN.search(decision_text)
    if not match:
        return None
    query = match.group("query").strip()
    return query or None
