from typing import Any, Dict, Optional


class SearchGateError(Exception):
    """Base error carrying a message and structured details"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.__class__.__name__, "message": self.message, "details": self.details}


class ConfigError(SearchGateError):
    """Declarative search configuration is incomplete or inconsistent"""


class ValidationError(SearchGateError):
    """Request failed schema validation or references an unknown type"""


class EngineError(SearchGateError):
    """Search engine returned an error status or could not be reached"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None, cause: Optional[BaseException] = None):
        super().__init__(message, details)
        self.status_code = status_code
        self.cause = cause


class CacheError(SearchGateError):
    """Cache store failure; never surfaces past the cache service"""
