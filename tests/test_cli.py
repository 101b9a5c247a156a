"""
Tests for filemock CLI

Tests the resolve and render commands without starting a server.
"""

import pytest

from filemock.mock.cli import main


@pytest.fixture
def mock_dir(tmp_path):
    mock_file = tmp_path / 'users' / '__' / 'GET.mock'
    mock_file.parent.mkdir(parents=True)
    mock_file.write_text(
        'HTTP/1.1 200 OK\n'
        'Content-Type: text/plain\n'
        'Response-Delay: 50\n'
        '\n'
        'page {{capture from="query" key="page"}} for {{capture from="headers" key="X-Tenant"}}\n'
    )
    broken = tmp_path / 'broken' / 'GET.mock'
    broken.parent.mkdir()
    broken.write_text('HTTP/1.1 OK\n\nbody\n')
    return tmp_path


class TestResolveCommand:
    """Test the resolve command."""

    def test_existing_mock_file(self, mock_dir, capsys):
        """Test resolving to an existing mock file."""
        main(['resolve', '/users/42', '--mock-dir', str(mock_dir)])

        output = capsys.readouterr().out
        assert 'GET /users/42' in output
        assert str(mock_dir.resolve() / 'users' / '__' / 'GET.mock') in output
        assert 'Mock file exists' in output

    def test_missing_mock_file(self, mock_dir, capsys):
        """Test resolving to a missing mock file."""
        main(['resolve', '/orders', '--method', 'post', '--mock-dir', str(mock_dir)])

        output = capsys.readouterr().out
        assert 'POST /orders' in output
        assert 'built-in 404 will be used' in output

    def test_missing_with_global_default(self, mock_dir, capsys):
        """Test the global default is reported."""
        default = mock_dir / '__' / 'GET.mock'
        default.parent.mkdir()
        default.write_text('HTTP/1.1 404\n\nmissing\n')

        main(['resolve', '/users/42', '-m', 'DELETE', '-d', str(mock_dir)])

        assert 'global default' in capsys.readouterr().out


class TestRenderCommand:
    """Test the render command."""

    def test_render_response(self, mock_dir, capsys):
        """Test rendering with query and headers."""
        main([
            'render', '/users/42',
            '--mock-dir', str(mock_dir),
            '--query', 'page=2',
            '--header', 'X-Tenant=acme'
        ])

        output = capsys.readouterr().out
        assert 'Status: 200' in output
        assert 'Content-Type: text/plain' in output
        assert 'Response-Delay: 50' in output
        assert 'page 2 for acme' in output

    def test_render_default(self, mock_dir, capsys):
        """Test rendering an unmatched path."""
        main(['render', '/nowhere', '--mock-dir', str(mock_dir)])

        output = capsys.readouterr().out
        assert 'Status: 404' in output
        assert '{"error": "Not Found"}' in output

    def test_render_error_exits(self, mock_dir, capsys):
        """Test malformed definitions exit with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            main(['render', '/broken', '--mock-dir', str(mock_dir)])

        assert exc_info.value.code == 1
        assert 'Failed to render mock' in capsys.readouterr().out


class TestMain:
    """Test CLI dispatch."""

    def test_no_command(self, capsys):
        """Test running without a command prints help and exits."""
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1
