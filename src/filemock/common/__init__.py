"""
filemock Common Utilities

Shared utilities and helpers used across filemock modules.
"""

from .utils import safe_json_parse, decode_body, get_header, parse_query, stringify_value

__all__ = [
    'safe_json_parse',
    'decode_body',
    'get_header',
    'parse_query',
    'stringify_value',
]
