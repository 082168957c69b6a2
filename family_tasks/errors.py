"""Error taxonomy for reminder delivery."""
from typing import Any, Dict, Optional

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException


class NotificationError(Exception):
    """Base error for the notification subsystem."""

    default_code: Optional[str] = None
    default_status: Optional[int] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.status = status if status is not None else self.default_status
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code}


class ConfigurationError(NotificationError):
    """System-level misconfiguration, e.g. missing gateway credentials."""

    default_code = "CONFIG_ERROR"
    default_status = 500


class ValidationError(NotificationError):
    """Bad input for a single message (missing or malformed phone number)."""

    default_code = "VALIDATION_ERROR"
    default_status = 400


class NotFoundError(NotificationError):
    """A referenced user, task or notification does not exist."""

    default_code = "NOT_FOUND"
    default_status = 404


class ProviderError(NotificationError):
    """The external gateway rejected or failed the send."""

    default_code = "PROVIDER_ERROR"
    default_status = 502

    @property
    def ledger_text(self) -> str:
        """Error text as stored on the delivery ledger."""
        return f"{self.code}: {self.message}"

    @classmethod
    def from_exception(cls, error: Exception) -> "ProviderError":
        """
        Convert an SDK or transport exception into a ProviderError.

        Args:
            error: Exception raised while talking to the gateway

        Returns:
            ProviderError carrying the provider's machine-readable code
        """
        if isinstance(error, TwilioRestException):
            code = str(error.code) if error.code is not None else cls.default_code
            return cls(
                error.msg or str(error),
                code=code,
                status=error.status or cls.default_status,
                details={"uri": error.uri},
            )
        if isinstance(error, requests.Timeout):
            return cls(str(error) or "gateway request timed out", code="timeout", status=504)
        if isinstance(error, (requests.RequestException, TwilioException)):
            return cls(str(error), code=cls.default_code)
        return cls(str(error))
