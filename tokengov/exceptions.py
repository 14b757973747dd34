"""
tokengov Exceptions

Package-wide exception classes. Governance decision errors live in
``tokengov.governance.errors`` and derive from ``TokenGovException``.
"""


class TokenGovException(Exception):
    """Base exception for tokengov."""
    pass


class ConfigurationError(TokenGovException):
    """Configuration error."""
    pass


class StorageError(TokenGovException):
    """Key-value store error."""
    pass
