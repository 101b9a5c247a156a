"""
filemock Mock Server

FastAPI-based HTTP mock server that serves responses from ``.mock`` files.

Features:
- Wildcard directory matching (``__`` matches any path segment)
- Handlebars-templated definitions with request-aware directives
- Per-response delays, file responses and structured overrides
- Admin API for inspection, metrics and cache control
"""

from __future__ import annotations  # Enable forward references for type hints

import asyncio
import time
from pathlib import Path
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field, fields
from datetime import datetime
import logging

import yaml

try:
    from fastapi import FastAPI, Request, Response
    from fastapi.responses import JSONResponse, FileResponse
    import uvicorn
    FASTAPI_AVAILABLE = True
except ImportError:
    FASTAPI_AVAILABLE = False

from .compiler import MockCompiler, ParsedResponse
from .context import MockRequest
from .engine import MockEngine
from .errors import MockError
from ..common import decode_body, parse_query


@dataclass
class MockConfig:
    """Configuration for mock server behavior."""

    # Mock tree
    mock_dir: str = "./mocks"

    # Template cache
    cache_enabled: bool = True  # Cache compiled Handlebars templates
    cache_max_size: int = 1000  # Maximum cache entries (FIFO eviction when full)

    # Server options
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "info"

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'MockConfig':
        """Load configuration from YAML file."""
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MockConfig':
        """Create configuration from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class MockMetrics:
    """Track mock server metrics."""

    total_requests: int = 0
    served_requests: int = 0  # Answered from a mock file
    default_responses: int = 0  # Answered by the default response policy
    failed_requests: int = 0  # Mock file could not be rendered
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'served_requests': self.served_requests,
            'default_responses': self.default_responses,
            'failed_requests': self.failed_requests,
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


class MockServer:
    """
    FastAPI-based mock server for ``.mock`` definition trees.

    Example:
        # Serve ./mocks on the default port
        server = MockServer('./mocks')
        server.start()

        # With custom config
        config = MockConfig(port=9090, cache_enabled=False)
        server = MockServer('./mocks', config=config)
        server.start()
    """

    def __init__(
        self,
        mock_dir: Optional[str] = None,
        config: Optional[MockConfig] = None,
        engine: Optional[MockEngine] = None
    ):
        """
        Initialize mock server.

        Args:
            mock_dir: Root of the mock tree (overrides config.mock_dir)
            config: Optional MockConfig for server behavior
            engine: Optional MockEngine instance (will create if None)
        """
        if not FASTAPI_AVAILABLE:
            raise ImportError("FastAPI is required for mock server. Install with: pip install fastapi uvicorn")

        self.config = config or MockConfig()
        if mock_dir is not None:
            self.config.mock_dir = str(mock_dir)

        self.mock_dir = Path(self.config.mock_dir)
        if not self.mock_dir.is_dir():
            raise FileNotFoundError(f"Mock directory not found: {self.mock_dir}")

        self.metrics = MockMetrics()
        self.live_requests: List[Dict[str, Any]] = []  # Store recent requests for live dashboard
        self.live_requests_limit = 100  # Keep last 100 requests

        self.logger = logging.getLogger("filemock.mock")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        self.engine = engine or MockEngine(
            self.mock_dir,
            compiler=MockCompiler(
                cache_enabled=self.config.cache_enabled,
                cache_max_size=self.config.cache_max_size
            ),
            logger=self.logger
        )
        self.logger.info(f"Serving mocks from {self.engine.mock_dir}")

        # Setup FastAPI app
        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="filemock",
            description="Mock HTTP server serving responses from .mock definition files",
            version="1.0.0"
        )

        # Admin API routes
        if self.config.admin_enabled:
            @app.get(f"{self.config.admin_prefix}/metrics")
            async def get_metrics():
                """Get server metrics."""
                return JSONResponse(content=self.metrics.to_dict())

            @app.get(f"{self.config.admin_prefix}/live")
            async def get_live_requests():
                """Get recent requests for live debugging."""
                return JSONResponse(content={
                    'total': len(self.live_requests),
                    'limit': self.live_requests_limit,
                    'requests': list(reversed(self.live_requests))  # Most recent first
                })

            @app.get(f"{self.config.admin_prefix}/config")
            async def get_config():
                """Get current configuration."""
                return JSONResponse(content=self.config.to_dict())

            @app.post(f"{self.config.admin_prefix}/reset")
            async def reset_metrics():
                """Reset metrics."""
                self.metrics = MockMetrics()
                return JSONResponse(content={'status': 'reset'})

            @app.get(f"{self.config.admin_prefix}/resolve")
            async def resolve_path(path: str = "/", method: str = "GET"):
                """Show which directory and mock file a request would use."""
                request = MockRequest(method=method, path=path)
                mock_file = self.engine.mock_file_for(request)
                return JSONResponse(content={
                    'path': request.path,
                    'method': request.method,
                    'directory': str(mock_file.parent),
                    'mock_file': str(mock_file),
                    'exists': mock_file.is_file(),
                    'global_default': self.engine.defaults.has_override()
                })

            @app.get(f"{self.config.admin_prefix}/cache")
            async def get_cache_stats():
                """Get template cache statistics and configuration."""
                compiler = self.engine.compiler
                lookups = compiler.cache_hits + compiler.cache_misses
                return JSONResponse(content={
                    'enabled': compiler.cache_enabled,
                    'max_size': compiler.cache_max_size,
                    'current_size': len(compiler.cache),
                    'hits': compiler.cache_hits,
                    'misses': compiler.cache_misses,
                    'hit_rate': compiler.cache_hits / lookups if lookups > 0 else 0.0
                })

            @app.delete(f"{self.config.admin_prefix}/cache")
            async def clear_cache():
                """Clear the template cache."""
                return JSONResponse(content={
                    'status': 'cleared',
                    'entries_cleared': self.engine.compiler.clear_cache()
                })

        # Main catch-all route for mocking
        @app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"])
        async def mock_request(request: Request, path: str):
            """Handle incoming requests and serve mock responses."""
            return await self._handle_request(request)

        return app

    async def _build_mock_request(self, request: Request) -> MockRequest:
        """Convert a FastAPI request into the request exposed to templates."""
        body = await request.body()
        return MockRequest(
            method=request.method,
            path=request.url.path,
            protocol=request.url.scheme,
            http_version=request.scope.get('http_version', '1.1'),
            query=parse_query(request.url.query),
            headers=dict(request.headers),
            body=decode_body(body)
        )

    async def _handle_request(self, request: Request) -> Response:
        """
        Handle incoming request and serve mock response.

        Args:
            request: FastAPI Request object

        Returns:
            FastAPI Response built from the matching mock definition
        """
        start_time = time.time()
        self.metrics.total_requests += 1

        mock_request = await self._build_mock_request(request)
        self.logger.debug(f"Incoming: {mock_request.method} {mock_request.path}")

        try:
            parsed = self.engine.get_response(mock_request)
        except MockError as e:
            self.metrics.failed_requests += 1
            self.logger.error(f"Failed to render mock for {mock_request.method} {mock_request.path}: {e}")
            response = JSONResponse(content=e.to_dict(), status_code=500)
            self._track_live(mock_request, response.status_code, 'error', start_time)
            return response

        if parsed.kind == 'default':
            self.metrics.default_responses += 1
        else:
            self.metrics.served_requests += 1

        # Delay travels with the response, so concurrent requests never share it
        if parsed.delay_ms > 0:
            await asyncio.sleep(parsed.delay_ms / 1000)

        response = self._create_response(parsed)
        self._track_live(mock_request, response.status_code, parsed.kind, start_time)
        return response

    def _create_response(self, parsed: ParsedResponse) -> Response:
        """
        Create FastAPI Response from a parsed mock response.

        Args:
            parsed: ParsedResponse from the engine

        Returns:
            FastAPI Response (FileResponse for file responses)
        """
        # Filter headers that FastAPI shouldn't set manually
        headers_to_skip = {'content-length', 'transfer-encoding', 'connection'}
        filtered_headers = {
            k: v for k, v in parsed.headers.items()
            if k.lower() not in headers_to_skip
        }

        if parsed.kind == 'file' and parsed.file_path:
            return FileResponse(
                parsed.file_path,
                status_code=parsed.status,
                headers=filtered_headers
            )

        return Response(
            content=parsed.body,
            status_code=parsed.status,
            headers=filtered_headers
        )

    def _track_live(self, request: MockRequest, status: int, kind: str, start_time: float):
        """Track request for live dashboard (FIFO with limit)."""
        if len(self.live_requests) >= self.live_requests_limit:
            self.live_requests.pop(0)

        self.live_requests.append({
            'timestamp': datetime.now().isoformat(),
            'method': request.method,
            'path': request.path,
            'kind': kind,
            'response_status': status,
            'response_time_ms': round((time.time() - start_time) * 1000, 2)
        })

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the mock server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print(f"🚀 filemock server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Mock directory: {self.engine.mock_dir}")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/metrics")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_mock_server(
    mock_dir: str,
    host: str = "127.0.0.1",
    port: int = 8080,
    log_level: str = "info",
    admin_enabled: bool = True,
    cache_enabled: bool = True,
    cache_max_size: int = 1000
) -> MockServer:
    """
    Convenience function to create and configure a mock server.

    Args:
        mock_dir: Root of the mock tree
        host: Host to bind to
        port: Port to bind to
        log_level: Log level (debug, info, warning, error)
        admin_enabled: Enable the admin API
        cache_enabled: Cache compiled templates
        cache_max_size: Maximum template cache entries

    Returns:
        Configured MockServer instance

    Example:
        server = create_mock_server('./mocks', port=8080)
        server.start()
    """
    config = MockConfig(
        mock_dir=mock_dir,
        host=host,
        port=port,
        log_level=log_level,
        admin_enabled=admin_enabled,
        cache_enabled=cache_enabled,
        cache_max_size=cache_max_size
    )

    return MockServer(config=config)
