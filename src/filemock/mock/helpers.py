"""
filemock Handlebars Helpers

Value-generation directives usable inside mock definitions:

- now: current time, shifted and formatted with moment-style tokens
- randomValue: random strings and UUIDs
- capture: values pulled from the inbound request
- num_between: random integer in an inclusive range
- file: reference a file to stream as the response body
- code: structured status/headers/body override

Directives are bound to a RenderContext for each render. Problems with the
data a mock author supplies are logged and rendered as a readable message or
a safe default, so a broken fixture still produces a response.
"""

import json
import logging
import random
import re
import string
import uuid
from dataclasses import dataclass, fields
from functools import partial
from pathlib import Path
from typing import Dict, Any, Optional, Callable, ClassVar

import arrow
import yaml
from jsonpath_ng.ext import parse as jsonpath_parse
from pybars import strlist

from ..common import stringify_value
from .context import RenderContext
from .errors import CodeDirectiveError

# Marker emitted by {{file}}; the compiler turns it into a file response
FILE_HELPER_MARKER = 'camouflage_file_helper'

# Discriminator emitted by {{#code}}
RESPONSE_TYPE_KEY = 'CamouflageResponseType'
CODE_RESPONSE_TYPE = 'code'
OVERRIDE_FIELDS = ('status', 'headers', 'body')

DEFAULT_NOW_FORMAT = 'YYYY-MM-DD hh:mm:ss'
DEFAULT_RANDOM_LENGTH = 16
DEFAULT_RANDOM_TYPE = 'ALPHANUMERIC'

NO_MATCH = 'No match found.'

CHARSETS = {
    'ALPHANUMERIC': string.ascii_letters + string.digits,
    'ALPHANUMERIC_UPPER': string.ascii_uppercase + string.digits,
    'ALPHABETIC': string.ascii_letters,
    'ALPHABETIC_UPPER': string.ascii_uppercase,
    'NUMERIC': string.digits,
}

# moment.js duration units and their shorthands -> arrow shift() keywords
OFFSET_UNITS = {
    'y': 'years', 'year': 'years', 'years': 'years',
    'Q': 'quarters', 'quarter': 'quarters', 'quarters': 'quarters',
    'M': 'months', 'month': 'months', 'months': 'months',
    'w': 'weeks', 'week': 'weeks', 'weeks': 'weeks',
    'd': 'days', 'day': 'days', 'days': 'days',
    'h': 'hours', 'hour': 'hours', 'hours': 'hours',
    'm': 'minutes', 'minute': 'minutes', 'minutes': 'minutes',
    's': 'seconds', 'second': 'seconds', 'seconds': 'seconds',
    'ms': 'milliseconds', 'millisecond': 'milliseconds', 'milliseconds': 'milliseconds',
}

logger = logging.getLogger("filemock.mock.helpers")


def _to_int(value: Any) -> Optional[int]:
    """Coerce a hash argument to int, None when it is not an integer."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _to_bound(value: Any) -> Optional[int]:
    """Like _to_int, but decimal bounds are truncated ('1.5' -> 1)."""
    result = _to_int(value)
    if result is not None or value is None or isinstance(value, bool):
        return result
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == 'true'


class _HashArgs:
    """Builds a directive record from Handlebars hash arguments."""

    ALIASES: ClassVar[Dict[str, str]] = {}

    @classmethod
    def from_hash(cls, kwargs: Dict[str, Any], log: Optional[logging.Logger] = None):
        log = log or logger
        names = {f.name for f in fields(cls)}
        values = {}
        for key, value in kwargs.items():
            name = cls.ALIASES.get(key, key)
            if name in names:
                values[name] = value
            else:
                log.debug(f"Ignoring unknown argument '{key}' for {cls.__name__}")
        return cls(**values)


@dataclass
class NowArgs(_HashArgs):
    """Arguments of {{now}}. ``format`` also accepts ``epoch`` and ``unix``."""

    format: str = DEFAULT_NOW_FORMAT
    offset: Optional[str] = None


@dataclass
class RandomValueArgs(_HashArgs):
    """Arguments of {{randomValue}}."""

    length: Any = DEFAULT_RANDOM_LENGTH
    type: str = DEFAULT_RANDOM_TYPE
    uppercase: Any = False


@dataclass
class CaptureArgs(_HashArgs):
    """
    Arguments of {{capture}}.

    ``from`` selects the request part: query and headers need ``key``, path
    needs ``regex``, body needs ``using`` (regex or jsonpath) and ``selector``.
    """

    ALIASES: ClassVar[Dict[str, str]] = {'from': 'source'}

    source: Optional[str] = None
    key: Optional[str] = None
    regex: Optional[str] = None
    using: Optional[str] = None
    selector: Optional[str] = None


@dataclass
class NumBetweenArgs(_HashArgs):
    """Arguments of {{num_between}}; both bounds are inclusive."""

    lower: Any = None
    upper: Any = None


@dataclass
class FileArgs(_HashArgs):
    """Arguments of {{file}}."""

    path: Optional[str] = None


@dataclass
class CodeArgs(_HashArgs):
    """Hash arguments of {{#code}}; they win over values in the block."""

    status: Any = None
    body: Any = None


def _apply_offset(current: arrow.Arrow, offset: str, log: logging.Logger) -> arrow.Arrow:
    parts = str(offset).split()
    if len(parts) != 2:
        log.warning(f"Ignoring offset '{offset}', expected '<amount> <unit>'")
        return current

    amount_text, unit_text = parts
    unit = OFFSET_UNITS.get(unit_text) or OFFSET_UNITS.get(unit_text.lower())
    try:
        amount = float(amount_text)
    except ValueError:
        unit = None
    if unit is None:
        log.warning(f"Ignoring offset '{offset}', unknown amount or unit")
        return current

    if unit == 'milliseconds':
        unit, amount = 'microseconds', amount * 1000
    if amount.is_integer():
        amount = int(amount)

    try:
        return current.shift(**{unit: amount})
    except (TypeError, ValueError) as e:
        log.warning(f"Ignoring offset '{offset}': {e}")
        return current


def now_helper(context: RenderContext, this, *args, **kwargs) -> str:
    """{{now format="..." offset="<amount> <unit>"}}"""
    params = NowArgs.from_hash(kwargs, context.logger)
    current = arrow.now()
    if params.offset is not None:
        current = _apply_offset(current, params.offset, context.logger)

    if params.format == 'epoch':
        return str(int(current.float_timestamp * 1000))
    if params.format == 'unix':
        return str(current.int_timestamp)
    return current.format(str(params.format))


def random_value_helper(context: RenderContext, this, *args, **kwargs) -> str:
    """{{randomValue length=16 type="ALPHANUMERIC" uppercase=false}}"""
    params = RandomValueArgs.from_hash(kwargs, context.logger)
    value_type = str(params.type).upper()

    if value_type == 'UUID':
        return str(uuid.uuid4())

    if _to_bool(params.uppercase) and 'ALPHA' in value_type:
        value_type = value_type + '_UPPER'

    chars = CHARSETS.get(value_type)
    if chars is None:
        context.logger.error(f"Unsupported randomValue type: {params.type}")
        return f"Unsupported randomValue type: {params.type}"

    length = _to_int(params.length)
    if length is None or length < 0:
        context.logger.error(f"Invalid randomValue length: {params.length}")
        return f"Invalid randomValue length: {params.length}"

    return ''.join(random.choice(chars) for _ in range(length))


def _search(pattern: str, text: str, log: logging.Logger) -> str:
    """First capture group of ``pattern`` in ``text`` (whole match without groups)."""
    try:
        match = re.search(pattern, text)
    except re.error as e:
        log.error(f"Invalid regex {pattern}: {e}")
        return f"Invalid regex: {pattern}"

    if not match:
        log.debug(f"No match found for specified regex {pattern}")
        return NO_MATCH
    return match.group(1) if match.lastindex else match.group(0)


def _query_jsonpath(selector: str, data: Any, log: logging.Logger) -> str:
    try:
        matches = jsonpath_parse(selector).find(data)
    except Exception as e:
        log.error(f"Invalid jsonpath {selector}: {e}")
        return f"Invalid jsonpath: {selector}"

    values = [match.value for match in matches]
    if not values:
        log.debug(f"No match found for specified jsonpath {selector}")
        return NO_MATCH

    result = ','.join(stringify_value(value) for value in values)
    # Selected objects and arrays are JSON and must not be HTML-escaped
    if any(isinstance(value, (dict, list)) for value in values):
        return strlist([result])
    return result


def capture_helper(context: RenderContext, this, *args, **kwargs) -> Optional[str]:
    """{{capture from="query|headers|path|body" ...}}"""
    params = CaptureArgs.from_hash(kwargs, context.logger)
    request = context.request
    log = context.logger

    if params.source in ('query', 'headers'):
        if params.key is None:
            log.debug(f"No key specified for capture from {params.source}")
            return f"Please specify a key with {params.source}"
        if params.source == 'query':
            return stringify_value(request.query.get(params.key))
        return stringify_value(request.header(params.key))

    if params.source == 'path':
        if params.regex is None:
            log.debug("No regex specified for capture from path")
            return "Please specify a regex with path"
        return _search(params.regex, request.path, log)

    if params.source == 'body':
        if params.using is None or params.selector is None:
            log.debug("No selector or using values specified for capture from body")
            return "Please specify using and selector fields."
        if params.using == 'regex':
            body = request.body if isinstance(request.body, str) else json.dumps(request.body, indent=2)
            return _search(params.selector, body, log)
        if params.using == 'jsonpath':
            return _query_jsonpath(params.selector, request.body, log)
        log.debug(f"Unsupported capture method: {params.using}")
        return None

    return None


def num_between_helper(context: RenderContext, this, *args, **kwargs) -> int:
    """{{num_between lower=1 upper=10}}"""
    params = NumBetweenArgs.from_hash(kwargs, context.logger)
    if params.lower is None or params.upper is None:
        context.logger.error("lower or upper value not specified.")
        return 0

    lower, upper = _to_bound(params.lower), _to_bound(params.upper)
    if lower is None or upper is None:
        context.logger.error(f"lower and upper must be integers, got {params.lower!r} and {params.upper!r}")
        return 0
    if lower > upper:
        context.logger.error("lower value cannot be greater than upper value.")
        return 0

    return random.randint(lower, upper)


def file_helper(context: RenderContext, this, *args, **kwargs):
    """{{file path="..."}}"""
    params = FileArgs.from_hash(kwargs, context.logger)
    if params.path is None:
        context.logger.error("File path not specified.")
        return None

    resolved = Path(str(params.path)).resolve()
    # Directories exist too, but cannot be streamed as a response body
    if not resolved.is_file():
        context.logger.debug(f"File not found: {resolved}")
        return None
    return strlist([f"{FILE_HELPER_MARKER};{resolved}"])


def build_code_response(
    source: str,
    params: Optional[CodeArgs] = None,
    log: Optional[logging.Logger] = None
) -> Dict[str, Any]:
    """
    Build a tagged response override from the text of a {{#code}} block.

    The block holds a YAML (or JSON) mapping restricted to status, headers
    and body.

    Args:
        source: Rendered block content
        params: Hash arguments of the block
        log: Logger for ignored keys

    Returns:
        Override dict carrying the ``CamouflageResponseType`` discriminator

    Raises:
        CodeDirectiveError: If the block does not describe a valid override
    """
    log = log or logger
    params = params or CodeArgs()

    try:
        data = yaml.safe_load(source) if source.strip() else {}
    except yaml.YAMLError as e:
        raise CodeDirectiveError(f"code block is not valid YAML or JSON: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise CodeDirectiveError(f"code block must describe a mapping, got {type(data).__name__}")

    ignored = [key for key in data if key not in OVERRIDE_FIELDS]
    if ignored:
        log.warning(f"Ignoring unsupported code block fields: {', '.join(map(str, ignored))}")

    override = {key: data[key] for key in OVERRIDE_FIELDS if key in data}
    if params.status is not None:
        override['status'] = params.status
    if params.body is not None:
        override['body'] = params.body

    if 'status' in override and _to_int(override['status']) is None:
        raise CodeDirectiveError(f"code block status must be an integer, got {override['status']!r}")
    if 'headers' in override and not isinstance(override['headers'], dict):
        raise CodeDirectiveError("code block headers must be a mapping")

    override[RESPONSE_TYPE_KEY] = CODE_RESPONSE_TYPE
    return override


def code_helper(context: RenderContext, this, options, *args, **kwargs):
    """{{#code status=201}} headers: ... body: ... {{/code}}"""
    params = CodeArgs.from_hash(kwargs, context.logger)
    source = str(options['fn'](this))
    override = build_code_response(source, params, context.logger)
    return strlist([json.dumps(override, default=str)])


DEFAULT_HELPERS: Dict[str, Callable] = {
    'now': now_helper,
    'randomValue': random_value_helper,
    'capture': capture_helper,
    'num_between': num_between_helper,
    'file': file_helper,
    'code': code_helper,
}


class HelperRegistry:
    """
    Named Handlebars directives.

    A directive is a callable ``fn(context, this, *args, **kwargs)``. ``bind``
    fixes the RenderContext and yields the helper mapping pybars expects.

    Example:
        registry = HelperRegistry()
        registry.register('shout', lambda context, this, text: text.upper())
        helpers = registry.bind(RenderContext(request))
    """

    def __init__(self, include_defaults: bool = True):
        self._helpers: Dict[str, Callable] = {}
        if include_defaults:
            for name, helper in DEFAULT_HELPERS.items():
                self.register(name, helper)

    def register(self, name: str, helper: Callable):
        """Register (or replace) a directive."""
        self._helpers[name] = helper

    def names(self):
        return sorted(self._helpers)

    def __contains__(self, name: str) -> bool:
        return name in self._helpers

    def bind(self, context: RenderContext) -> Dict[str, Callable]:
        """Helpers for one render, each receiving ``context`` first."""
        return {name: partial(helper, context) for name, helper in self._helpers.items()}
