"""
Grounded Search - Custom Exceptions
"""

from typing import Any, Optional


class GroundedSearchError(Exception):
    """Base exception for all retrieval system errors."""

    def __init__(
        self,
        message: str,
        code: str = "GROUNDED_SEARCH_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Ingestion Exceptions
# =============================================================================

class IngestionError(GroundedSearchError):
    """Base exception for errors raised by ingestion-side collaborators."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code="INGESTION_ERROR", details=details)


class EmbeddingError(IngestionError):
    """Raised when embedding generation fails."""
    pass


# =============================================================================
# Retrieval Exceptions
# =============================================================================

class RetrievalError(GroundedSearchError):
    """Base exception for retrieval errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code="RETRIEVAL_ERROR", details=details)


class VectorStoreError(RetrievalError):
    """Raised when the nearest-neighbor lookup fails."""
    pass


class KeywordSearchError(RetrievalError):
    """Raised when the full-text or substring lookup fails."""
    pass


class SearchError(RetrievalError):
    """Raised when a search operation cannot produce any result."""
    pass


class QueryExpansionError(RetrievalError):
    """Raised when expanded queries cannot be turned into a query vector."""
    pass


class CacheError(GroundedSearchError):
    """Raised when the result cache is misconfigured."""

    def __init__(self, message: str):
        super().__init__(message, code="CACHE_ERROR")


# =============================================================================
# Validation Exceptions
# =============================================================================

class ValidationError(GroundedSearchError):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field": field} if field else {}
        )


# =============================================================================
# Configuration Exceptions
# =============================================================================

class ConfigurationError(GroundedSearchError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str):
        super().__init__(message, code="CONFIGURATION_ERROR")
