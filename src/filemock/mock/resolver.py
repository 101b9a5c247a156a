"""
filemock Wildcard Path Resolver

Maps a request path onto the mock directory tree. Every path segment prefers
a literal directory of the same name and falls back to the reserved ``__``
directory. Resolution never backtracks: once a branch is taken it is kept even
if a deeper segment fails to match.

Example:
    mocks/
      users/
        __/GET.mock        <- GET /users/42
        me/GET.mock        <- GET /users/me
      __/GET.mock          <- global default response
"""

from pathlib import Path
from typing import List, Union

# Reserved directory name matching any single path segment
WILDCARD_DIR = '__'
MOCK_FILE_SUFFIX = '.mock'

# Segments that must never be taken literally
_UNSAFE_SEGMENTS = {'.', '..'}


def split_path(request_path: str) -> List[str]:
    """Non-empty segments of a request path."""
    return [step for step in request_path.split('/') if step]


def get_wildcard_path(request_path: str, mock_dir: Union[str, Path]) -> Path:
    """
    Resolve the most specific directory for a request path.

    Args:
        request_path: URL path of the request, e.g. ``/users/42``
        mock_dir: Root of the mock tree

    Returns:
        Matched directory. It may not exist when a segment matched neither a
        literal directory nor ``__``.
    """
    current = Path(mock_dir).resolve()

    for step in split_path(request_path):
        candidate = current / step
        if step not in _UNSAFE_SEGMENTS and candidate.is_dir():
            current = candidate
            continue

        wildcard = current / WILDCARD_DIR
        if wildcard.exists():
            current = wildcard
            continue

        current = candidate
        break

    return current


class WildcardResolver:
    """
    Resolves requests to mock definition files under a mock root.

    Example:
        resolver = WildcardResolver('./mocks')
        resolver.resolve('/users/42')             # ./mocks/users/__
        resolver.mock_file('/users/42', 'get')    # ./mocks/users/__/GET.mock
    """

    def __init__(self, mock_dir: Union[str, Path]):
        self.mock_dir = Path(mock_dir).resolve()

    def resolve(self, request_path: str) -> Path:
        return get_wildcard_path(request_path, self.mock_dir)

    def mock_file(self, request_path: str, method: str) -> Path:
        """Path of the ``<METHOD>.mock`` file for a request."""
        return self.resolve(request_path) / f"{method.upper()}{MOCK_FILE_SUFFIX}"
