"""
FormSheet Errors - Exception taxonomy for the submission pipeline

Every error carries a user-facing ``message``. The coordinator copies that
message into the wire response; tracebacks only go to the logs.
"""

from typing import Optional


class FormSheetError(Exception):
    """Base class for all FormSheet errors."""

    default_message = "Erreur interne"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class LockTimeoutError(FormSheetError):
    """The store-wide exclusive lock was not acquired within the bound."""

    default_message = "Le service est occupé, veuillez réessayer"


class ParseError(FormSheetError):
    """The request body is present but cannot be decoded."""

    default_message = "Impossible de parser les données du formulaire"


class SchemaInvalidError(FormSheetError):
    """The header row is empty after a heal attempt, or an empty schema was projected."""

    default_message = "Headers array is invalid or empty"


class StoreError(FormSheetError):
    """The backing store could not be read or written."""

    default_message = "Impossible d'accéder au tableau des réponses"


class NotificationDeliveryError(FormSheetError):
    """An email notification could not be delivered (never fatal)."""

    default_message = "Échec de l'envoi de la notification"
