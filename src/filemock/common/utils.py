"""
filemock Common Utilities

Shared helpers for request decoding and template value formatting.
"""

import json
from typing import List, Dict, Any, Optional, Union
from urllib.parse import parse_qs

# Constants for body size limiting
MAX_BODY_SIZE = 1024 * 1024  # 1 MB


def safe_json_parse(json_string: Union[str, bytes, None], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(raw_body, default={})
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def decode_body(raw: bytes, max_bytes: int = MAX_BODY_SIZE) -> Any:
    """
    Decode an inbound request body for use in templates.

    JSON payloads are parsed into Python objects so that jsonpath selectors
    can address them. Anything else is returned as UTF-8 text. An empty body
    becomes an empty dict.

    Args:
        raw: Raw bytes of the request body
        max_bytes: Maximum number of bytes to decode

    Returns:
        Parsed JSON value, decoded text, or {} for an empty body
    """
    if not raw:
        return {}

    text = raw[:max_bytes].decode('utf-8', errors='replace')
    parsed = safe_json_parse(text)
    if parsed is None:
        return text
    return parsed


def get_header(headers: Dict[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    if name in headers:
        return headers[name]

    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def parse_query(query_string: str) -> Dict[str, Union[str, List[str]]]:
    """
    Parse a raw query string.

    Single-valued parameters map to a string, repeated parameters to a list.

    Example:
        parse_query('a=1&b=2&b=3')  # {'a': '1', 'b': ['2', '3']}
    """
    parsed = parse_qs(query_string, keep_blank_values=True)
    return {
        key: values[0] if len(values) == 1 else values
        for key, values in parsed.items()
    }


def stringify_value(value: Any) -> str:
    """
    Render an arbitrary value as template output.

    Containers are emitted as JSON, None as an empty string, booleans in
    lower case.
    """
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)
