"""
filemock mock errors

Failures that abort rendering of a single mock definition. The server turns
any of these into a 500 response; user-data problems inside directives never
raise and are not represented here.
"""


class MockError(Exception):
    """Base class for errors raised while rendering a mock definition."""

    def __init__(self, message: str, mock_file: str = None):
        super().__init__(message)
        self.message = message
        self.mock_file = mock_file

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'error': type(self).__name__,
            'detail': self.message,
            'mock_file': self.mock_file
        }


class DefinitionFormatError(MockError):
    """The status line of a mock definition could not be parsed."""


class TemplateRenderError(MockError):
    """Handlebars failed to compile or render a mock definition."""


class CodeDirectiveError(MockError):
    """A ``{{#code}}`` block did not describe a valid response override."""
