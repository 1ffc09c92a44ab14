"""Custom exceptions for docstore commons resources."""


class DocstoreCommonsError(Exception):
    """Base exception for this package."""


class MissingDependencyError(DocstoreCommonsError):
    """Raised when an optional dependency is required but not installed."""
