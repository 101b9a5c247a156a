"""
filemock CLI

Command-line interface for the filemock server.

Commands:
    serve       - Start mock HTTP server
    resolve     - Show which mock file a request would use
    render      - Render the response for a request without starting a server

Examples:
    # Serve ./mocks on port 8080
    filemock serve --mock-dir ./mocks --port 8080

    # Check where GET /users/42 is resolved
    filemock resolve /users/42 --mock-dir ./mocks

    # Render a response offline
    filemock render /users/42 --method POST --body '{"name": "Jane"}'
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional

from .context import MockRequest
from .engine import MockEngine
from .errors import MockError
from .server import MockServer, MockConfig
from ..common import decode_body, parse_query


def _pairs(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse key=value arguments."""
    result = {}
    for pair in values or []:
        if '=' in pair:
            key, value = pair.split('=', 1)
            result[key] = value
    return result


def _build_request(args) -> MockRequest:
    query_string = '&'.join(args.query or [])
    return MockRequest(
        method=args.method,
        path=args.path,
        query=parse_query(query_string),
        headers=_pairs(args.header),
        body=decode_body(args.body.encode('utf-8') if args.body else b'')
    )


def cmd_serve(args):
    """
    Start the mock server.

    Args:
        args: Parsed command-line arguments
    """
    if args.config:
        try:
            config = MockConfig.from_yaml(args.config)
        except Exception as e:
            print(f"❌ Failed to load config: {e}")
            sys.exit(1)
    else:
        config = MockConfig()

    # CLI flags win over the config file
    if args.mock_dir:
        config.mock_dir = args.mock_dir
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.log_level:
        config.log_level = args.log_level
    if args.no_admin:
        config.admin_enabled = False
    if args.no_cache:
        config.cache_enabled = False
    if args.cache_size is not None:
        config.cache_max_size = args.cache_size

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if config.cache_enabled:
        print(f"💾 Template caching enabled (max size: {config.cache_max_size})")
    else:
        print(f"💾 Template caching disabled")

    try:
        server = MockServer(config=config)
    except Exception as e:
        print(f"❌ Failed to create mock server: {e}")
        sys.exit(1)

    # Start server (blocking)
    try:
        server.start()
    except KeyboardInterrupt:
        print("\n\n👋 Mock server stopped")


def cmd_resolve(args):
    """
    Print the directory and mock file matched by a request path.

    Args:
        args: Parsed command-line arguments
    """
    engine = MockEngine(args.mock_dir)
    request = MockRequest(method=args.method, path=args.path)
    mock_file = engine.mock_file_for(request)

    print(f"🔍 {request.method} {request.path}")
    print(f"   Directory: {mock_file.parent}")
    print(f"   Mock file: {mock_file}")

    if mock_file.is_file():
        print(f"   ✅ Mock file exists")
    elif engine.defaults.has_override():
        print(f"   ⚠️  Mock file missing, global default {engine.defaults.override_file} will be used")
    else:
        print(f"   ⚠️  Mock file missing, built-in 404 will be used")


def cmd_render(args):
    """
    Render the response for a request and print it.

    Args:
        args: Parsed command-line arguments
    """
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    engine = MockEngine(args.mock_dir)
    request = _build_request(args)

    try:
        response = engine.get_response(request)
    except MockError as e:
        print(f"❌ Failed to render mock: {e}")
        if e.mock_file:
            print(f"   Mock file: {e.mock_file}")
        sys.exit(1)

    print(f"Status: {response.status}")
    for name, value in response.headers.items():
        print(f"{name}: {value}")
    if response.delay_ms:
        print(f"Response-Delay: {response.delay_ms}")
    print()
    if response.kind == 'file':
        print(f"<file {response.file_path}>")
    else:
        print(response.body)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="filemock - file-driven HTTP mock server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve a mock tree
  %(prog)s serve --mock-dir ./mocks --port 8080

  # Show where a request is resolved
  %(prog)s resolve /users/42 --method GET

  # Render a response offline
  %(prog)s render /users/42 --query page=2 --header Authorization=token
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start mock HTTP server')
    serve_parser.add_argument('-d', '--mock-dir', help='Mock directory (default: ./mocks)')
    serve_parser.add_argument('-c', '--config', help='YAML configuration file')
    serve_parser.add_argument('--host', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, help='Port to bind (default: 8080)')
    serve_parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')
    serve_parser.add_argument('--no-cache', action='store_true', help='Disable template caching')
    serve_parser.add_argument('--cache-size', type=int, help='Maximum cache entries (default: 1000)')

    # --- RESOLVE command ---
    resolve_parser = subparsers.add_parser('resolve', help='Show which mock file a request uses')
    resolve_parser.add_argument('path', help='Request path, e.g. /users/42')
    resolve_parser.add_argument('-m', '--method', default='GET', help='HTTP method (default: GET)')
    resolve_parser.add_argument('-d', '--mock-dir', default='./mocks', help='Mock directory (default: ./mocks)')

    # --- RENDER command ---
    render_parser = subparsers.add_parser('render', help='Render the response for a request')
    render_parser.add_argument('path', help='Request path, e.g. /users/42')
    render_parser.add_argument('-m', '--method', default='GET', help='HTTP method (default: GET)')
    render_parser.add_argument('-d', '--mock-dir', default='./mocks', help='Mock directory (default: ./mocks)')
    render_parser.add_argument('-q', '--query', nargs='+', help='Query parameters (key=value)')
    render_parser.add_argument('-H', '--header', nargs='+', help='Request headers (key=value)')
    render_parser.add_argument('-b', '--body', help='Request body')
    render_parser.add_argument('--verbose', action='store_true', help='Show debug logging')

    # Parse arguments
    args = parser.parse_args(argv)

    # Dispatch to command handler
    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'resolve':
        cmd_resolve(args)
    elif args.command == 'render':
        cmd_render(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
