"""Response channel parsing for display."""

from chatrelay.parsing.channels import ParsedResponse, cleanup, parse_response

__all__ = ["ParsedResponse", "cleanup", "parse_response"]
