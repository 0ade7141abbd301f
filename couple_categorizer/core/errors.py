"""
Categorizer Errors

Exception taxonomy shared by the alias resolver and its stores.
Predictions never raise these; they are reserved for alias management.
"""
from typing import Optional


class CategorizerError(Exception):
    """Base exception for the categorization engine."""
    pass


class ValidationError(CategorizerError):
    """Blank or missing merchant, alias, or couple identifier."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"{field} is required")


class ConflictError(CategorizerError):
    """
    Alias uniqueness violation.

    `axis` is either 'ocr_merchant' (the raw merchant already has an alias)
    or 'user_alias' (the display name is already taken within the couple).
    """

    OCR_MERCHANT = 'ocr_merchant'
    USER_ALIAS = 'user_alias'

    _MESSAGES = {
        OCR_MERCHANT: 'An alias for this OCR merchant already exists',
        USER_ALIAS: 'This alias name is already in use',
    }

    def __init__(self, axis: str, message: Optional[str] = None):
        self.axis = axis
        super().__init__(message or self._MESSAGES.get(axis, 'Alias conflict'))


class NotFoundError(CategorizerError):
    """Delete/update targeting an alias id that does not exist for the couple."""
    pass


class StoreUnavailableError(CategorizerError):
    """Transient backend failure (connection lost, retries exhausted)."""
    pass
