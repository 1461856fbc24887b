"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested transaction, category or rule does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class LockedError(DomainError):
    """Attempted to re-categorize a locked transaction."""


class PersistenceError(DomainError):
    """Reading or writing a snapshot failed."""


def transaction_not_found(transaction_id: str) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def category_not_found(category_id: str) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_path_not_found(path: str) -> str:
    """Return message for missing category by path."""
    return f"Category '{path}' not found"


def transaction_locked(transaction_id: str) -> str:
    """Return message for a locked transaction."""
    return (
        f"Transaction {transaction_id} is locked and cannot be re-categorized. "
        "Unlock it first."
    )


def category_protected(name: str) -> str:
    """Return message when a system category is targeted for deletion."""
    return f"Category '{name}' is a system category and cannot be deleted"
