"""
HTTP exceptions and the mapping from engine errors to status codes
"""

from fastapi import status

from character.exceptions import (
    CharacterForgeError,
    CharacterInvariantError,
    CharacterNotFoundError,
    IncompleteDataError,
    InvalidChoiceError,
    InvalidRestRequestError,
)


class CharacterForgeHTTPException(Exception):
    """Base for errors raised directly by the HTTP layer"""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
                 error: str = "internal_server_error"):
        self.message = message
        self.status_code = status_code
        self.error = error
        super().__init__(message)


class SystemNotReadyException(CharacterForgeHTTPException):
    """Raised when a request arrives before the rule set and session are loaded"""

    def __init__(self, message: str = "Service is still starting up"):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, "system_not_ready")


class ImportValidationException(CharacterForgeHTTPException):
    """Raised when an import payload contains invalid character records"""

    def __init__(self, message: str, violations=None):
        self.violations = list(violations or [])
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_import")


# Engine error -> (status code, error code); first match in order wins
ENGINE_ERROR_STATUS = [
    (CharacterNotFoundError, status.HTTP_404_NOT_FOUND, "character_not_found"),
    (IncompleteDataError, status.HTTP_422_UNPROCESSABLE_ENTITY, "incomplete_data"),
    (InvalidRestRequestError, status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_rest_request"),
    (InvalidChoiceError, status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_choice"),
    (CharacterInvariantError, status.HTTP_500_INTERNAL_SERVER_ERROR, "character_invariant_violated"),
]


def engine_error_status(exc: CharacterForgeError) -> tuple:
    """
    Resolve the HTTP status and error code for an engine exception

    Returns:
        (status_code, error_code)
    """
    for error_class, status_code, error_code in ENGINE_ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code, error_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "rules_engine_error"
