"""
filemock Render Context

Per-request data handed to every Handlebars render: the inbound request and
the logger that directives report to.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Union

from ..common import get_header


@dataclass
class MockRequest:
    """Inbound HTTP request as seen by mock templates."""

    method: str
    path: str
    protocol: str = "http"
    http_version: str = "1.1"
    query: Dict[str, Union[str, List[str]]] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = field(default_factory=dict)

    def __post_init__(self):
        self.method = self.method.upper()
        if not self.path.startswith('/'):
            self.path = '/' + self.path

    def header(self, name: str) -> Optional[str]:
        """Get a request header, ignoring case."""
        return get_header(self.headers, name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary exposed to templates as ``request``."""
        return {
            'method': self.method,
            'path': self.path,
            'protocol': self.protocol,
            'httpVersion': self.http_version,
            'query': self.query,
            'headers': self.headers,
            'body': self.body
        }


@dataclass
class RenderContext:
    """One render's worth of request data and logging sink."""

    request: MockRequest
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("filemock.mock"))

    def template_data(self) -> Dict[str, Any]:
        """Root data object for Handlebars templates."""
        return {
            'request': self.request.to_dict(),
            'logger': self.logger
        }
