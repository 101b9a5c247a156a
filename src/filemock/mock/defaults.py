"""
filemock Default Response Policy

Response used when no mock definition exists for a request. A mock tree may
override it with ``<mockRoot>/__/GET.mock``; otherwise a fixed 404 is sent
without any templating.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .compiler import MockCompiler, ParsedResponse
from .context import RenderContext
from .resolver import WILDCARD_DIR, MOCK_FILE_SUFFIX

DEFAULT_STATUS = 404
DEFAULT_BODY = '{"error": "Not Found"}'
DEFAULT_HEADERS = {'content-type': 'application/json'}


def not_found_response() -> ParsedResponse:
    """The built-in 404 response."""
    return ParsedResponse(
        status=DEFAULT_STATUS,
        headers=dict(DEFAULT_HEADERS),
        body=DEFAULT_BODY,
        kind='default'
    )


class DefaultResponsePolicy:
    """
    Fallback for requests without a mock definition.

    Example:
        policy = DefaultResponsePolicy('./mocks', compiler)
        response = policy.respond(context)
    """

    def __init__(self, mock_dir: Union[str, Path], compiler: Optional[MockCompiler] = None):
        self.mock_dir = Path(mock_dir).resolve()
        self.compiler = compiler or MockCompiler()
        self.logger = logging.getLogger("filemock.mock.defaults")

    @property
    def override_file(self) -> Path:
        return self.mock_dir / WILDCARD_DIR / f"GET{MOCK_FILE_SUFFIX}"

    def has_override(self) -> bool:
        return self.override_file.is_file()

    def respond(self, context: RenderContext) -> ParsedResponse:
        """Global override when present, otherwise the built-in 404."""
        if self.has_override():
            self.logger.debug("Found a custom global override for default response. Sending custom default response.")
            return self.compiler.compile_file(self.override_file, context)

        self.logger.debug("No custom global override for default response. Sending default response.")
        return not_found_response()
