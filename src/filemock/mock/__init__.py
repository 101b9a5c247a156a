"""
filemock Mock Module

Mock HTTP server functionality for serving responses from ``.mock`` files.

This module provides:
- FastAPI-based mock server
- Wildcard directory resolver
- Handlebars-based mock response compiler and directives
- Default (404) response policy
"""

from .server import MockServer, MockConfig, MockMetrics, create_mock_server
from .engine import MockEngine
from .resolver import WildcardResolver, get_wildcard_path, WILDCARD_DIR
from .compiler import MockCompiler, ParsedResponse
from .context import MockRequest, RenderContext
from .defaults import DefaultResponsePolicy, not_found_response
from .helpers import HelperRegistry
from .errors import MockError, DefinitionFormatError, TemplateRenderError, CodeDirectiveError

__all__ = [
    # Server
    'MockServer',
    'MockConfig',
    'MockMetrics',
    'create_mock_server',

    # Engine
    'MockEngine',
    'WildcardResolver',
    'get_wildcard_path',
    'WILDCARD_DIR',
    'MockCompiler',
    'ParsedResponse',
    'MockRequest',
    'RenderContext',
    'DefaultResponsePolicy',
    'not_found_response',
    'HelperRegistry',

    # Errors
    'MockError',
    'DefinitionFormatError',
    'TemplateRenderError',
    'CodeDirectiveError',
]

__version__ = '1.0.0'
