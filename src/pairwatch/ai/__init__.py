"""AI client and suggestion service."""

from .client import AIClient, ClientSettings
from .suggestion_service import SuggestionService, SuggestionServiceError, SuggestionSource

__all__ = [
    "AIClient",
    "ClientSettings",
    "SuggestionService",
    "SuggestionServiceError",
    "SuggestionSource",
]
