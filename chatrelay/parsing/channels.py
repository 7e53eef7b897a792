"""Recover reasoning and final-answer channels from raw model output.

Models separate hidden reasoning from the answer in incompatible ways:
explicit channel tokens (``<|channel|>analysis<|message|>...``), a bare
leading ``analysis`` word glued to free text, or nothing at all. The rules
below are tried in priority order and the first match wins. Anything
ambiguous falls back to treating the whole text as the answer; parsing
never raises.
"""

import re
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

ParseRule = Literal["channel", "preamble", "fallback"]

REASONING_CHANNELS = {"analysis"}
FINAL_CHANNELS = {"final"}

# Preamble heuristic thresholds
PREAMBLE_MAX_RATIO = 0.65

_CONTROL_TOKEN = re.compile(r"<\|[^|\n]{1,64}\|>")
_NAME_AFTER_TOKEN = re.compile(
    r"<\|(?:start|channel)\|>[ \t]*(?:assistant|analysis|final|commentary)(?=[\s<]|$)",
    re.IGNORECASE,
)
_XML_TAG = re.compile(
    r"</?(?:channel|message|start|end|final|analysis|assistant)>", re.IGNORECASE
)
_ARTIFACTS = ("**意味**",)

_CHANNEL_BLOCK = re.compile(
    r"<\|channel\|>[ \t]*(?P<name>\w+)"
    r"(?:(?!<\|(?:channel|message)\|>).)*?"
    r"<\|message\|>(?P<body>.*?)"
    r"(?=<\|(?:end|return|call|start|channel)\|>|\Z)",
    re.DOTALL | re.IGNORECASE,
)
_LEGACY_ANALYSIS = re.compile(
    r"<\|analysis\|>(?P<body>.*?)<\|(?:message|final|end)\|>", re.DOTALL | re.IGNORECASE
)

# Lowercase and usually glued to the next word, e.g. "analysisThe user ..."
_BARE_ANALYSIS_CUE = re.compile(r"^analysis[:\s]*")
_OPENER_CUE = re.compile(
    r"^(?:The user|User (?:says|wants|asks|writes)|We have|We need|The question)\b",
    re.IGNORECASE,
)
_BLANK_LINE = re.compile(r"\r?\n[ \t]*\r?\n")
_REASONING_KEYWORDS = re.compile(
    r"\b(?:user|respond|conversation|means|should|probably|writes|says|wants|greeting)",
    re.IGNORECASE,
)


class ParsedResponse(BaseModel):
    """Display form of a raw completion. Derived on demand, never stored."""

    model_config = ConfigDict(frozen=True)

    reasoning_segments: List[str] = Field(default_factory=list)
    final_text: str = ""
    rule: ParseRule = "fallback"

    @property
    def degraded(self) -> bool:
        """True when no structure was recognized and the raw text is shown as-is"""
        return self.rule == "fallback"

    @property
    def has_reasoning(self) -> bool:
        return bool(self.reasoning_segments)

    def reasoning_text(self, separator: str = "\n\n") -> str:
        return separator.join(self.reasoning_segments)


def _cleanup_once(text: str) -> str:
    cleaned = _NAME_AFTER_TOKEN.sub("", text)
    cleaned = _CONTROL_TOKEN.sub("", cleaned)
    cleaned = _XML_TAG.sub("", cleaned)
    for artifact in _ARTIFACTS:
        cleaned = cleaned.replace(artifact, "")
    return cleaned.strip()


def cleanup(text: str) -> str:
    """Strip control tokens, channel tags and stray artifacts for display.

    Idempotent and never lengthens its input.
    """
    previous = None
    cleaned = text or ""
    # Removing one token can splice the halves of another together
    while cleaned != previous:
        previous = cleaned
        cleaned = _cleanup_once(cleaned)
    return cleaned


def _without_spans(content: str, spans: List[Tuple[int, int]]) -> str:
    pieces = []
    cursor = 0
    for start, end in spans:
        pieces.append(content[cursor:start])
        cursor = end
    pieces.append(content[cursor:])
    return "".join(pieces)


def _parse_channels(content: str) -> Optional[ParsedResponse]:
    blocks = list(_CHANNEL_BLOCK.finditer(content))
    reasoning_blocks = [b for b in blocks if b.group("name").lower() in REASONING_CHANNELS]
    final_blocks = [b for b in blocks if b.group("name").lower() in FINAL_CHANNELS]

    if reasoning_blocks or final_blocks:
        segments = [cleanup(b.group("body")) for b in reasoning_blocks]
        if final_blocks:
            finals = [cleanup(b.group("body")) for b in final_blocks]
            final_text = "\n\n".join(f for f in finals if f)
        else:
            spans = [b.span() for b in reasoning_blocks]
            final_text = cleanup(_without_spans(content, spans))
        return ParsedResponse(
            reasoning_segments=[s for s in segments if s], final_text=final_text, rule="channel"
        )

    legacy = list(_LEGACY_ANALYSIS.finditer(content))
    if legacy:
        segments = [cleanup(m.group("body")) for m in legacy]
        final_text = cleanup(_without_spans(content, [m.span() for m in legacy]))
        return ParsedResponse(
            reasoning_segments=[s for s in segments if s], final_text=final_text, rule="channel"
        )
    return None


def _find_break(body: str) -> Optional[Tuple[str, str]]:
    blank = _BLANK_LINE.search(body)
    if blank:
        return body[: blank.start()], body[blank.end() :]

    newline = body.find("\n")
    if newline == -1:
        return None
    rest = body[newline + 1 :]
    # A following line that opens like reasoning means the preamble continues
    lead = rest.lstrip()
    if _OPENER_CUE.match(lead) or _BARE_ANALYSIS_CUE.match(lead):
        return None
    return body[:newline], rest


def _parse_preamble(content: str) -> Optional[ParsedResponse]:
    text = content.strip()
    cue = _BARE_ANALYSIS_CUE.match(text)
    if cue:
        body = text[cue.end() :]
    elif _OPENER_CUE.match(text):
        body = text
    else:
        return None

    split = _find_break(body)
    if split is None:
        return None
    span, rest = split[0].strip(), split[1].strip()
    if not span or not rest:
        return None
    if len(span) >= len(text) * PREAMBLE_MAX_RATIO:
        return None
    if not _REASONING_KEYWORDS.search(span):
        return None

    reasoning = cleanup(span)
    final_text = cleanup(rest)
    if not final_text:
        return None
    return ParsedResponse(
        reasoning_segments=[reasoning] if reasoning else [], final_text=final_text, rule="preamble"
    )


def parse_response(content: str) -> ParsedResponse:
    """Split raw model output into reasoning segments and the final answer."""
    content = content or ""
    parsed = _parse_channels(content)
    if parsed is None:
        parsed = _parse_preamble(content)
    if parsed is None:
        parsed = ParsedResponse(final_text=cleanup(content), rule="fallback")
    return parsed
