"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class ConfigurationError(DomainError):
    """Required configuration is missing or malformed."""


class DecryptionError(DomainError):
    """Stored credential could not be decrypted.

    The message is always generic and never carries key or plaintext material.
    """

    def __init__(self, message: str = "Failed to decrypt token"):
        super().__init__(message)


class NoRefreshTokenError(DomainError):
    """Linked account has no refresh token and must be reconnected."""

    def __init__(self, message: str = "No refresh token available. Please reconnect your bank account."):
        super().__init__(message)


def account_not_found(account_id: str) -> str:
    """Return message for missing linked account."""
    return f"Linked account {account_id} not found"


def property_not_found(property_id: str) -> str:
    """Return message for missing property."""
    return f"Property {property_id} not found"


def rule_not_found(rule_id: str) -> str:
    """Return message for missing matching rule."""
    return f"Matching rule {rule_id} not found"


def duplicate_external_id(external_id: str, account_id: str) -> str:
    """Return message for a raw transaction that already exists."""
    return f"Transaction with external_id '{external_id}' already exists for account {account_id}"


def sync_in_progress(account_id: str) -> str:
    """Return message when a sync is already running for an account."""
    return f"Sync already in progress for account {account_id}"


def oauth_config_missing(*variables: str) -> str:
    """Return message for missing upstream OAuth settings."""
    return f"Upstream OAuth configuration missing: set {' and '.join(variables)}"
