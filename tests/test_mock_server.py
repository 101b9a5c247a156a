"""
Tests for filemock Mock Server

Tests the FastAPI-based mock server including:
- Server initialization and configuration
- Serving responses from the mock tree
- Response delays and file responses
- Error responses for malformed definitions
- Admin API endpoints
"""

import time
from pathlib import Path
from unittest.mock import patch, AsyncMock

import pytest

try:
    from fastapi.testclient import TestClient
    FASTAPI_AVAILABLE = True
except ImportError:
    FASTAPI_AVAILABLE = False

from filemock.mock.server import (
    MockConfig,
    MockMetrics,
    MockServer,
    create_mock_server
)


pytestmark = pytest.mark.skipif(not FASTAPI_AVAILABLE, reason="FastAPI not installed")


def write_mock(root: Path, relative: str, content: str) -> Path:
    mock_file = root / relative
    mock_file.parent.mkdir(parents=True, exist_ok=True)
    mock_file.write_text(content)
    return mock_file


@pytest.fixture
def mock_dir(tmp_path):
    """Create a mock tree for the server."""
    write_mock(
        tmp_path, 'users/__/GET.mock',
        'HTTP/1.1 200 OK\n'
        'Content-Type: application/json\n'
        '\n'
        '{"id": {{capture from="path" regex="/users/(\\d+)"}}, "page": {{capture from="query" key="page"}} }\n'
    )
    write_mock(
        tmp_path, 'users/POST.mock',
        'HTTP/1.1 201 Created\n'
        'Content-Type: text/plain\n'
        'X-Request-Id: {{capture from="headers" key="X-Request-Id"}}\n'
        '\n'
        'created {{capture from="body" using="jsonpath" selector="$.user.name"}}\n'
    )
    write_mock(
        tmp_path, 'slow/GET.mock',
        'HTTP/1.1 200 OK\n'
        'Response-Delay: 100\n'
        '\n'
        'finally\n'
    )
    write_mock(tmp_path, 'broken/GET.mock', 'HTTP/1.1 OK\n\nbody\n')
    return tmp_path


class TestMockConfig:
    """Test MockConfig dataclass."""

    def test_default_config(self):
        """Test default configuration values."""
        config = MockConfig()

        assert config.mock_dir == './mocks'
        assert config.host == '127.0.0.1'
        assert config.port == 8080
        assert config.cache_enabled is True
        assert config.admin_enabled is True

    def test_from_dict_ignores_unknown_keys(self):
        """Test unknown keys are ignored."""
        config = MockConfig.from_dict({'port': 9090, 'unknown': True})

        assert config.port == 9090
        assert not hasattr(config, 'unknown')

    def test_from_yaml(self, tmp_path):
        """Test loading configuration from YAML."""
        config_file = tmp_path / 'filemock.yaml'
        config_file.write_text('mock_dir: ./api\nport: 9000\ncache_enabled: false\n')

        config = MockConfig.from_yaml(str(config_file))

        assert config.mock_dir == './api'
        assert config.port == 9000
        assert config.cache_enabled is False

    def test_from_empty_yaml(self, tmp_path):
        """Test empty YAML gives defaults."""
        config_file = tmp_path / 'filemock.yaml'
        config_file.write_text('')

        config = MockConfig.from_yaml(str(config_file))

        assert config == MockConfig()

    def test_to_dict(self):
        """Test converting config to dictionary."""
        data = MockConfig(port=9090).to_dict()

        assert data['port'] == 9090
        assert data['admin_prefix'] == '/__admin__'


class TestMockMetrics:
    """Test MockMetrics dataclass."""

    def test_metrics_initialization(self):
        """Test initializing metrics."""
        metrics = MockMetrics()

        assert metrics.total_requests == 0
        assert metrics.served_requests == 0
        assert metrics.default_responses == 0
        assert metrics.failed_requests == 0

    def test_metrics_to_dict(self):
        """Test converting metrics to dictionary."""
        metrics = MockMetrics(total_requests=10, served_requests=7, default_responses=2, failed_requests=1)

        data = metrics.to_dict()

        assert data['total_requests'] == 10
        assert data['served_requests'] == 7
        assert data['failed_requests'] == 1
        assert 'uptime_seconds' in data


class TestMockServer:
    """Test MockServer class."""

    def test_server_initialization(self, mock_dir):
        """Test initializing mock server."""
        server = MockServer(str(mock_dir))

        assert server.engine.mock_dir == mock_dir.resolve()
        assert server.config.mock_dir == str(mock_dir)

    def test_mock_dir_not_found(self, tmp_path):
        """Test a missing mock directory."""
        with pytest.raises(FileNotFoundError):
            MockServer(str(tmp_path / 'missing'))

    def test_cache_config_passed_to_compiler(self, mock_dir):
        """Test cache settings reach the compiler."""
        config = MockConfig(cache_enabled=False, cache_max_size=5)

        server = MockServer(str(mock_dir), config=config)

        assert server.engine.compiler.cache_enabled is False
        assert server.engine.compiler.cache_max_size == 5

    def test_get_app(self, mock_dir):
        """Test getting FastAPI app instance."""
        server = MockServer(str(mock_dir))
        app = server.get_app()

        assert app is not None
        assert hasattr(app, 'routes')


class TestMockServerResponses:
    """Test responses served from the mock tree."""

    def test_wildcard_response(self, mock_dir):
        """Test path and query capture in a wildcard definition."""
        client = TestClient(MockServer(str(mock_dir)).app)

        response = client.get('/users/42?page=3')

        assert response.status_code == 200
        assert response.headers['content-type'] == 'application/json'
        assert response.json() == {'id': 42, 'page': 3}

    def test_post_with_headers_and_body(self, mock_dir):
        """Test header and jsonpath body capture."""
        client = TestClient(MockServer(str(mock_dir)).app)

        response = client.post(
            '/users',
            json={'user': {'name': 'Jane'}},
            headers={'X-Request-Id': 'req-1'}
        )

        assert response.status_code == 201
        assert response.headers['x-request-id'] == 'req-1'
        assert response.text == 'created Jane'

    def test_default_not_found(self, mock_dir):
        """Test unmatched requests get the built-in 404."""
        client = TestClient(MockServer(str(mock_dir)).app)

        response = client.get('/nowhere')

        assert response.status_code == 404
        assert response.json() == {'error': 'Not Found'}

    def test_malformed_definition(self, mock_dir):
        """Test a malformed definition gives a 500 with details."""
        server = MockServer(str(mock_dir))
        client = TestClient(server.app)

        response = client.get('/broken')

        assert response.status_code == 500
        data = response.json()
        assert data['error'] == 'DefinitionFormatError'
        assert data['mock_file'].endswith('GET.mock')
        assert server.metrics.failed_requests == 1

    def test_invalid_template_counts_as_failure(self, mock_dir):
        """Test a tag that cannot compile gives a 500 with details."""
        write_mock(mock_dir, 'keyword/GET.mock', 'HTTP/1.1 200 OK\n\n{{randomValue class="x"}}\n')
        server = MockServer(str(mock_dir))
        client = TestClient(server.app)

        response = client.get('/keyword')

        assert response.status_code == 500
        assert response.json()['error'] == 'TemplateRenderError'
        assert server.metrics.failed_requests == 1

    def test_file_response(self, mock_dir, tmp_path_factory):
        """Test the file directive streams the file."""
        asset = tmp_path_factory.mktemp('assets') / 'data.txt'
        asset.write_text('file contents')
        write_mock(
            mock_dir, 'download/GET.mock',
            f'HTTP/1.1 200 OK\nContent-Type: text/plain\n\n{{{{file path="{asset}"}}}}\n'
        )
        client = TestClient(MockServer(str(mock_dir)).app)

        response = client.get('/download')

        assert response.status_code == 200
        assert response.text == 'file contents'

    def test_delay_measured(self, mock_dir):
        """Test Response-Delay holds the response."""
        client = TestClient(MockServer(str(mock_dir)).app)

        started = time.perf_counter()
        response = client.get('/slow')
        elapsed = time.perf_counter() - started

        assert response.status_code == 200
        assert response.text == 'finally'
        assert elapsed >= 0.1

    @patch('filemock.mock.server.asyncio.sleep', new_callable=AsyncMock)
    def test_delay_applied(self, mock_sleep, mock_dir):
        """Test that delay is applied to responses."""
        client = TestClient(MockServer(str(mock_dir)).app)

        client.get('/slow')

        mock_sleep.assert_any_call(0.1)  # 100ms = 0.1s


class TestMockServerEndpoints:
    """Test admin API endpoints."""

    def test_admin_metrics_endpoint(self, mock_dir):
        """Test metrics count served and default responses."""
        client = TestClient(MockServer(str(mock_dir)).app)

        client.get('/users/1?page=1')
        client.get('/nowhere')
        response = client.get('/__admin__/metrics')

        assert response.status_code == 200
        data = response.json()
        assert data['total_requests'] == 2
        assert data['served_requests'] == 1
        assert data['default_responses'] == 1

    def test_admin_config_endpoint(self, mock_dir):
        """Test admin config endpoint."""
        client = TestClient(MockServer(str(mock_dir)).app)

        response = client.get('/__admin__/config')

        assert response.status_code == 200
        assert response.json()['mock_dir'] == str(mock_dir)

    def test_admin_reset_metrics(self, mock_dir):
        """Test resetting metrics."""
        server = MockServer(str(mock_dir))
        client = TestClient(server.app)
        client.get('/nowhere')

        response = client.post('/__admin__/reset')

        assert response.json() == {'status': 'reset'}
        assert server.metrics.total_requests == 0

    def test_admin_live_requests(self, mock_dir):
        """Test recent requests are listed most recent first."""
        client = TestClient(MockServer(str(mock_dir)).app)
        client.get('/users/1?page=1')
        client.get('/nowhere')

        data = client.get('/__admin__/live').json()

        assert data['total'] == 2
        assert data['requests'][0]['path'] == '/nowhere'
        assert data['requests'][0]['kind'] == 'default'
        assert data['requests'][1]['response_status'] == 200

    def test_admin_resolve(self, mock_dir):
        """Test resolving a path through the admin API."""
        client = TestClient(MockServer(str(mock_dir)).app)

        data = client.get('/__admin__/resolve', params={'path': '/users/42', 'method': 'get'}).json()

        assert data['method'] == 'GET'
        assert data['exists'] is True
        assert data['mock_file'] == str(mock_dir.resolve() / 'users' / '__' / 'GET.mock')
        assert data['global_default'] is False

    def test_cache_stats_and_clear(self, mock_dir):
        """Test cache statistics and clearing."""
        client = TestClient(MockServer(str(mock_dir)).app)
        client.get('/slow')
        client.get('/slow')

        stats = client.get('/__admin__/cache').json()
        assert stats['enabled'] is True
        assert stats['hits'] > 0
        assert stats['current_size'] > 0

        cleared = client.delete('/__admin__/cache').json()
        assert cleared['status'] == 'cleared'
        assert cleared['entries_cleared'] == stats['current_size']

    def test_admin_disabled(self, mock_dir):
        """Test admin routes fall through to the mock tree when disabled."""
        config = MockConfig(admin_enabled=False)
        client = TestClient(MockServer(str(mock_dir), config=config).app)

        response = client.get('/__admin__/metrics')

        assert response.status_code == 404
        assert response.json() == {'error': 'Not Found'}


class TestCreateMockServer:
    """Test create_mock_server convenience function."""

    def test_create_mock_server(self, mock_dir):
        """Test creating a configured server."""
        server = create_mock_server(str(mock_dir), port=9090, cache_enabled=False)

        assert isinstance(server, MockServer)
        assert server.config.port == 9090
        assert server.config.cache_enabled is False
