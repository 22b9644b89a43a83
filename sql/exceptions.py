"""
=====================================
Exceptions raised by the SQL package.
=====================================

Every failure the builder reports is raised synchronously from the call
that caused it, so a malformed statement never reaches a database.

Classes:
    QueryBuilderError: Base class for all builder failures
    ValidationError: Malformed or missing input to a builder method
    InvalidStateError: Illegal statement-kind transition
    ConfigurationError: Builder used without a required collaborator
    UnsupportedKindError: Rendering requested for an unknown statement kind
"""


class QueryBuilderError(Exception):
    """Base exception for query construction errors."""
    pass


class ValidationError(QueryBuilderError):
    """Exception raised when a builder method receives invalid input.

    Covers empty table names, non-string columns, inconsistent insert
    rows, negative pagination values and empty update payloads.
    """
    pass


class InvalidStateError(QueryBuilderError):
    """Exception raised for illegal statement-kind transitions.

    Raised when a statement kind is established twice, when set() is
    called on a non-UPDATE builder, or when build() is called before
    any statement kind was chosen.
    """
    pass


class ConfigurationError(QueryBuilderError):
    """Exception raised when exec() is called without an executor."""
    pass


class UnsupportedKindError(QueryBuilderError):
    """Exception raised when no renderer exists for a statement kind."""
    pass
