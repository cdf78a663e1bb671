"""
Exceptions personnalisées pour l'API TopLedger Research
"""
from typing import Any, Optional
from fastapi import HTTPException


class ResearchException(Exception):
    """Exception de base pour l'application"""
    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class APIException(ResearchException):
    """Exception pour les erreurs d'API externe (TopLedger, OpenAI)"""
    def __init__(self, service: str, message: str, status_code: Optional[int] = None, details: Optional[Any] = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} API Error: {message}", details)


class ValidationException(ResearchException):
    """Exception pour les erreurs de validation"""
    def __init__(self, field: str, message: str, value: Optional[Any] = None):
        self.field = field
        self.value = value
        super().__init__(f"Validation error on {field}: {message}", {"field": field, "value": value})


class ConfigurationException(ResearchException):
    """Exception pour les erreurs de configuration (clé API manquante, etc.)"""
    pass


class DataException(ResearchException):
    """Exception pour les données introuvables ou inexploitables"""
    def __init__(self, source: str, message: str, details: Optional[Any] = None):
        self.source = source
        super().__init__(f"Data error from {source}: {message}", details)


def create_http_exception(exc: ResearchException, status_code: int = 400) -> HTTPException:
    """Convertit une exception personnalisée en HTTPException"""
    return HTTPException(
        status_code=status_code,
        detail={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "details": exc.details
        }
    )


# Codes d'erreur standards
class ErrorCodes:
    # API Errors
    API_UNAVAILABLE = 502
    API_TIMEOUT = 504
    API_RATE_LIMIT = 429

    # Validation Errors
    INVALID_INPUT = 400
    MISSING_PARAMETER = 422

    # Configuration Errors
    MISSING_CONFIG = 500
    INVALID_CONFIG = 500

    # Data Errors
    DATA_NOT_FOUND = 404
