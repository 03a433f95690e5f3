"""
Exceptions raised by the taste pipeline.

Each carries the HTTP status the adapter answers with.
"""

from typing import Optional


class TasteAgentError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(TasteAgentError):
    """Missing or malformed request fields."""
    status_code = 400


class ConfigurationError(TasteAgentError):
    """Upstream credentials are not configured."""
    status_code = 500


class UpstreamParseError(TasteAgentError):
    """The model reply could not be parsed into the expected shape."""
    status_code = 500

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw
