"""
Consistent error handling for the credential vault.

Every failure surfaced by this package carries a stable, machine-checkable
code. Secret values are NEVER included in messages or details; only
structural paths, key-source names and record identifiers are.

Standard HTTP status codes:
- 400: Bad Request (bad input, malformed payload, loose credentials)
- 500: Internal Server Error (key configuration, decryption)
- 503: Service Unavailable (vault persistence not wired up)
"""

import enum
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    """Stable error codes."""
    KEY_MISSING = "CRYPTO_KEY_MISSING"
    PRIMARY_KEY_INVALID = "ENCRYPTION_KEY_INVALID"
    PREVIOUS_KEY_INVALID = "ENCRYPTION_KEY_PREVIOUS_INVALID"
    KEY_MISMATCH = "CRYPTO_KEY_MISMATCH"
    PREVIOUS_KEY_MISMATCH = "CRYPTO_KEY_PREVIOUS_MISMATCH"
    NO_KEY_CONFIGURED = "ENCRYPTION_KEY_NOT_CONFIGURED"
    MALFORMED_PAYLOAD = "ENCRYPTED_PAYLOAD_MALFORMED"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    VAULT_UNAVAILABLE = "CREDENTIAL_VAULT_UNAVAILABLE"
    BAD_INPUT = "CREDENTIAL_VAULT_BAD_INPUT"
    SECRET_REQUIRED = "CREDENTIAL_SECRET_REQUIRED"
    LOOSE_CREDENTIAL_BLOCKED = "LOOSE_CREDENTIAL_BLOCKED"


class AppError(Exception):
    """
    Base application error with consistent error shape.

    All custom errors should inherit from this class.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to API error response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class KeyConfigurationError(AppError):
    """Encryption key configuration is missing, invalid or ambiguous."""

    def __init__(self, code: ErrorCode, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class CipherError(AppError):
    """Base class for encrypt/decrypt failures."""
    pass


class MalformedPayloadError(CipherError):
    """Encrypted payload is not a valid IV || tag || ciphertext frame (400)."""

    def __init__(self, message: str = "Invalid encrypted payload"):
        super().__init__(
            code=ErrorCode.MALFORMED_PAYLOAD,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class DecryptionFailedError(CipherError):
    """Every candidate key failed to authenticate the payload."""

    def __init__(self, attempted_sources: Optional[list[str]] = None):
        super().__init__(
            code=ErrorCode.DECRYPTION_FAILED,
            message="Failed to decrypt payload with any configured key",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"attempted_sources": attempted_sources or []},
        )


class CredentialVaultError(AppError):
    """Credential vault input or availability error."""

    _STATUS = {
        ErrorCode.VAULT_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
        ErrorCode.BAD_INPUT: status.HTTP_400_BAD_REQUEST,
        ErrorCode.SECRET_REQUIRED: status.HTTP_400_BAD_REQUEST,
    }

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(
            code=code,
            message=message,
            status_code=self._STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        )


class LooseCredentialError(AppError):
    """Plaintext credential found under a sensitive key (400)."""

    def __init__(self, context: str, paths: list[str]):
        super().__init__(
            code=ErrorCode.LOOSE_CREDENTIAL_BLOCKED,
            message=f"Plaintext credential not allowed in {context}: {', '.join(paths)}",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"context": context, "paths": list(paths)},
        )
        self.context = context
        self.paths = list(paths)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError with its status code. Stack traces are never returned."""
    logger.warning(
        "Application error",
        extra={
            "error_code": exc.code,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Install the AppError handler on a FastAPI application."""
    app.add_exception_handler(AppError, app_error_handler)
