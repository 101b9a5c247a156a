"""
filemock Mock Response Compiler

Turns a ``.mock`` definition into a ParsedResponse.

A definition looks like a raw HTTP response:

    HTTP/1.1 201 Created
    Content-Type: application/json
    Response-Delay: 100

    {"id": "{{randomValue type='UUID'}}"}

Rendering happens in two passes. The whole file is rendered first, because
whether a line belongs to the headers or the body depends on the rendered
text. The rendered text is then split into status, headers and body, and the
body is either a structured override produced by {{#code}}, a file reference
produced by {{file}}, or a template that gets a second render.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional, Union

from pybars import Compiler, PybarsError

from .context import RenderContext
from .errors import MockError, DefinitionFormatError, TemplateRenderError
from .helpers import HelperRegistry, FILE_HELPER_MARKER, RESPONSE_TYPE_KEY, CODE_RESPONSE_TYPE

# Status used when a definition has no status line
DEFAULT_STATUS = 404

RESPONSE_DELAY_HEADER = 'Response-Delay'

STATUS_LINE_PATTERN = re.compile(r'(?<=HTTP/\d).*?\s+(\d{3})', re.IGNORECASE)
FILE_MARKER_PATTERN = re.compile(re.escape(FILE_HELPER_MARKER) + r';([^;]+)')
WHITESPACE_PATTERN = re.compile(r'\s+')

# pybars emits hash arguments as Python keyword arguments, so `from=` cannot
# reach a helper verbatim
HASH_FROM_PATTERN = re.compile(r'(\{\{[^}]*?\s)from=')
HASH_FROM_REPLACEMENT = r'\1source='

# Parser states
HEADER = 'HEADER'
BODY = 'BODY'


@dataclass
class ParsedResponse:
    """Response produced from a mock definition, ready to be sent."""

    status: int = DEFAULT_STATUS
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ''
    file_path: Optional[str] = None
    delay_ms: int = 0
    kind: str = 'template'  # template, code, file, default

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'status': self.status,
            'headers': dict(self.headers),
            'body': self.body,
            'file_path': self.file_path,
            'delay_ms': self.delay_ms,
            'kind': self.kind
        }


def normalize_body(raw_body: str) -> str:
    """
    Collapse whitespace and split the first literal triple braces.

    ``{{{`` and ``}}}`` left over after the first render would be read as
    raw-output tags by the second render.
    """
    body = WHITESPACE_PATTERN.sub(' ', raw_body).strip()
    body = body.replace('{{{', '{ {{', 1)
    body = body.replace('}}}', '}} }', 1)
    return body


def rewrite_hash_keywords(source: str) -> str:
    """Rename the ``from=`` hash argument of every tag to ``source=``."""
    return HASH_FROM_PATTERN.sub(HASH_FROM_REPLACEMENT, source)


class MockCompiler:
    """
    Compiles mock definition files into responses.

    Compiled templates are cached by source text; the cache evicts the oldest
    entry when full.

    Example:
        compiler = MockCompiler()
        context = RenderContext(MockRequest('GET', '/users/42'))
        response = compiler.compile_file(Path('mocks/users/__/GET.mock'), context)
        print(response.status, response.body)
    """

    def __init__(
        self,
        helpers: Optional[HelperRegistry] = None,
        cache_enabled: bool = True,
        cache_max_size: int = 1000
    ):
        """
        Initialize compiler.

        Args:
            helpers: Directive registry (defaults to the built-in directives)
            cache_enabled: Cache compiled templates
            cache_max_size: Maximum cache entries (FIFO eviction)
        """
        self.helpers = helpers or HelperRegistry()
        self.logger = logging.getLogger("filemock.mock.compiler")
        self._compiler = Compiler()

        self.cache_enabled = cache_enabled
        self.cache_max_size = cache_max_size
        self.cache: Dict[str, Any] = {}
        self.cache_hits = 0
        self.cache_misses = 0

    def _get_template(self, source: str):
        if self.cache_enabled:
            if source in self.cache:
                self.cache_hits += 1
                return self.cache[source]
            self.cache_misses += 1

        template = self._compiler.compile(rewrite_hash_keywords(source))

        if self.cache_enabled and self.cache_max_size > 0:
            if len(self.cache) >= self.cache_max_size:
                oldest_key = next(iter(self.cache))
                del self.cache[oldest_key]
            self.cache[source] = template

        return template

    def clear_cache(self) -> int:
        """Drop all compiled templates, returning how many were dropped."""
        size = len(self.cache)
        self.cache.clear()
        self.cache_hits = 0
        self.cache_misses = 0
        return size

    def render(self, source: str, context: RenderContext) -> str:
        """
        Render template source against a RenderContext.

        Raises:
            TemplateRenderError: If Handlebars cannot compile or render the source
            CodeDirectiveError: If a {{#code}} block is malformed
        """
        try:
            template = self._get_template(source)
            return str(template(context.template_data(), helpers=self.helpers.bind(context)))
        except MockError:
            raise
        except PybarsError as e:
            raise TemplateRenderError(f"Template error: {e}") from e
        except Exception as e:
            # pybars compiles templates to Python; bad tags surface as SyntaxError and friends
            self.logger.error(f"Failed to render template: {e}")
            raise TemplateRenderError(f"Template error: {type(e).__name__}: {e}") from e

    def compile_file(self, mock_file: Union[str, Path], context: RenderContext) -> ParsedResponse:
        """
        Read, render and parse a mock definition file.

        Args:
            mock_file: Path to the ``.mock`` file
            context: Request data for this render

        Returns:
            ParsedResponse

        Raises:
            DefinitionFormatError: If the status line is malformed
            TemplateRenderError: If a template pass fails
            CodeDirectiveError: If a {{#code}} block is malformed
        """
        mock_file = Path(mock_file)
        source = mock_file.read_text(encoding='utf-8')
        self.logger.debug(f"Compiling {mock_file}")

        try:
            return self.compile(source, context)
        except MockError as e:
            e.mock_file = str(mock_file)
            raise

    def compile(self, source: str, context: RenderContext) -> ParsedResponse:
        """Render and parse mock definition source."""
        rendered = self.render(source, context)
        return self.parse(rendered, context)

    def parse(self, rendered: str, context: RenderContext) -> ParsedResponse:
        """
        Parse rendered definition text into a response.

        Lines before the first blank line are the status line and headers,
        everything after it is the body.
        """
        response = ParsedResponse()
        state = HEADER
        body_lines = []

        for line in rendered.splitlines():
            if state == BODY:
                body_lines.append(line)
                continue

            if not line.strip():
                state = BODY
                continue

            if line.startswith('HTTP'):
                match = STATUS_LINE_PATTERN.search(line)
                if not match:
                    self.logger.error(f"Response code should be valid string: {line}")
                    raise DefinitionFormatError(f"Response code should be valid string: {line}")
                response.status = int(match.group(1))
                self.logger.debug(f"Response Status set to {response.status}")
                continue

            name, separator, value = line.partition(':')
            if not separator:
                self.logger.warning(f"Skipping header line without ':' - {line}")
                continue

            name, value = name.strip(), value.strip()
            if name == RESPONSE_DELAY_HEADER:
                response.delay_ms = self._parse_delay(value)
                self.logger.debug(f"Delay Set {response.delay_ms}")
            else:
                response.headers[name] = value
                self.logger.debug(f"Headers Set {name}: {value}")

        body = normalize_body(''.join(body_lines))
        return self._finalize(response, body, context)

    def _parse_delay(self, value: str) -> int:
        try:
            delay = int(float(value))
        except ValueError:
            self.logger.warning(f"Invalid {RESPONSE_DELAY_HEADER} value '{value}', using 0")
            return 0
        return max(delay, 0)

    def _finalize(self, response: ParsedResponse, body: str, context: RenderContext) -> ParsedResponse:
        override = self._parse_override(body)
        if override is not None:
            return self._apply_override(response, override)

        file_match = FILE_MARKER_PATTERN.search(body)
        if file_match:
            response.kind = 'file'
            response.file_path = file_match.group(1).strip()
            self.logger.debug(f"Generated file response {response.file_path}")
            return response

        response.kind = 'template'
        response.body = self.render(body, context)
        self.logger.debug(f"Generated Response {response.body}")
        return response

    def _parse_override(self, body: str) -> Optional[Dict[str, Any]]:
        """The structured override in ``body``, or None for any other body."""
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, ValueError) as e:
            self.logger.debug(f"Body is not a structured override: {e}")
            return None

        if isinstance(payload, dict) and payload.get(RESPONSE_TYPE_KEY) == CODE_RESPONSE_TYPE:
            return payload
        return None

    def _apply_override(self, response: ParsedResponse, override: Dict[str, Any]) -> ParsedResponse:
        response.kind = 'code'

        status = override.get('status')
        if status:
            try:
                response.status = int(status)
            except (TypeError, ValueError):
                self.logger.warning(f"Ignoring invalid override status {status!r}")

        headers = override.get('headers')
        if isinstance(headers, dict):
            for name, value in headers.items():
                response.headers[str(name)] = str(value)

        body = override.get('body')
        if body is None:
            response.body = ''
        elif isinstance(body, (dict, list)):
            response.body = json.dumps(body)
        else:
            response.body = str(body)

        self.logger.debug(f"Generated Response {response.body}")
        return response
