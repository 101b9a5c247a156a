"""
filemock Mock Engine

Per-request flow: resolve the request path to a directory, load
``<METHOD>.mock`` from it and compile it, or fall back to the default
response policy.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .compiler import MockCompiler, ParsedResponse
from .context import MockRequest, RenderContext
from .defaults import DefaultResponsePolicy
from .resolver import WildcardResolver


class MockEngine:
    """
    Produces responses for requests from a mock directory tree.

    Example:
        engine = MockEngine('./mocks')
        response = engine.get_response(MockRequest('GET', '/users/42'))
    """

    def __init__(
        self,
        mock_dir: Union[str, Path],
        compiler: Optional[MockCompiler] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize engine.

        Args:
            mock_dir: Root of the mock tree
            compiler: MockCompiler instance (will create if None)
            logger: Logger handed to templates (defaults to ``filemock.mock``)
        """
        self.mock_dir = Path(mock_dir).resolve()
        self.compiler = compiler or MockCompiler()
        self.logger = logger or logging.getLogger("filemock.mock")
        self.resolver = WildcardResolver(self.mock_dir)
        self.defaults = DefaultResponsePolicy(self.mock_dir, self.compiler)

    def resolve(self, request: MockRequest) -> Path:
        """Directory matched by the request path."""
        return self.resolver.resolve(request.path)

    def mock_file_for(self, request: MockRequest) -> Path:
        return self.resolver.mock_file(request.path, request.method)

    def get_response(self, request: MockRequest) -> ParsedResponse:
        """
        Build the response for a request.

        Raises:
            MockError: If the matched definition cannot be rendered
        """
        context = RenderContext(request=request, logger=self.logger)
        mock_file = self.mock_file_for(request)

        if mock_file.is_file():
            self.logger.debug(f"Using mock file {mock_file}")
            return self.compiler.compile_file(mock_file, context)

        self.logger.warning(f"No suitable mock file found: {mock_file}")
        return self.defaults.respond(context)
