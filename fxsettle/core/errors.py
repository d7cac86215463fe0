"""
Error Classification

Typed errors for typed-data construction, signing, assembly and delivery.
Errors are classified as recoverable (safe to retry) or unrecoverable
(the caller must fix its input or inspect a backend rejection).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for retry decisions."""

    NETWORK = "network"                # Network/connectivity issues
    TIMEOUT = "timeout"                # Operation timed out
    VALIDATION = "validation"          # Malformed or incomplete input
    AUTHENTICATION = "authentication"  # Keys, credentials
    PROVIDER = "provider"              # External service rejected the request
    CONTRACT = "contract"              # On-chain or delivery-side rejection
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False
    retry_after_seconds: Optional[float] = None
    suggested_action: Optional[str] = None
    provider: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "recoverable": self.recoverable,
            "retryAfterSeconds": self.retry_after_seconds,
            "suggestedAction": self.suggested_action,
            "provider": self.provider,
            "details": self.details,
        }


class SettlementError(Exception):
    """Root of every error raised by fxsettle."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, context: Optional[ErrorContext] = None):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext(category=self.category)

    @property
    def recoverable(self) -> bool:
        return self.context.recoverable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            **self.context.to_dict(),
        }


class RecoverableError(SettlementError):
    """
    Base class for errors that can be retried.

    Nothing on-chain changed, so re-running the failed step is safe.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retry_after: Optional[float] = None,
        context: Optional[ErrorContext] = None,
    ):
        self.category = category
        self.retry_after = retry_after
        super().__init__(
            message,
            context or ErrorContext(
                category=category,
                recoverable=True,
                retry_after_seconds=retry_after,
            ),
        )


class UnrecoverableError(SettlementError):
    """
    Base class for errors that cannot be retried without changing the input.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        self.category = category
        super().__init__(
            message,
            context or ErrorContext(category=category, recoverable=False),
        )


# Construction-time errors
class InvalidTypedData(UnrecoverableError):
    """Typed data is structurally invalid (unknown primary type, malformed value)."""

    def __init__(self, message: str = "Invalid typed data", path: Optional[str] = None):
        self.path = path
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                suggested_action="Fix the typed data before signing",
                details={"path": path} if path else {},
            ),
        )


class IncompleteTypedData(UnrecoverableError):
    """A required typed-data field is missing."""

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = path
        super().__init__(
            message or f"Missing required typed-data field: {path}",
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                suggested_action="Supply the missing field",
                details={"path": path},
            ),
        )


class TypeSchemaConflict(UnrecoverableError):
    """Two definitions of the same type name disagree on their field layout."""

    def __init__(
        self,
        type_name: str,
        expected: Optional[Any] = None,
        actual: Optional[Any] = None,
    ):
        self.type_name = type_name
        super().__init__(
            f"Conflicting field layout for type {type_name}",
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                suggested_action="Use the canonical on-chain struct layout",
                details={"type": type_name, "expected": expected, "actual": actual},
            ),
        )


class InvalidFundingModeCombination(UnrecoverableError):
    """The (role, fundingMode, tradeIds) triple has no settlement operation."""

    def __init__(self, axis: str, message: str):
        self.axis = axis
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                details={"axis": axis},
            ),
        )


class AbiAssemblyError(UnrecoverableError):
    """A contract-call parameter could not be assembled."""

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = path
        super().__init__(
            message or f"Missing ABI parameter: {path}",
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                suggested_action="Check the signed permit or trade details",
                details={"path": path},
            ),
        )


# Signing errors
class SigningBackendUnavailable(RecoverableError):
    """The signing service could not be reached or failed transiently."""

    def __init__(
        self,
        message: str = "Signing backend unavailable",
        provider: Optional[str] = None,
        retry_after: float = 1.0,
    ):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            retry_after=retry_after,
            context=ErrorContext(
                category=ErrorCategory.NETWORK,
                recoverable=True,
                retry_after_seconds=retry_after,
                provider=provider,
                suggested_action="Re-sign; nothing changed on-chain",
            ),
        )


class InvalidPrivateKey(UnrecoverableError):
    """The supplied private key cannot be used for signing."""

    def __init__(self, message: str = "Invalid private key"):
        super().__init__(
            message,
            category=ErrorCategory.AUTHENTICATION,
            context=ErrorContext(
                category=ErrorCategory.AUTHENTICATION,
                recoverable=False,
                suggested_action="Provide a 32-byte hex private key",
            ),
        )


class EnvelopeRejected(UnrecoverableError):
    """The remote signer refused the envelope."""

    def __init__(
        self,
        message: str = "Envelope rejected by signing backend",
        status_code: Optional[int] = None,
        detail: Optional[Any] = None,
        provider: Optional[str] = None,
    ):
        self.status_code = status_code
        self.detail = detail
        super().__init__(
            message,
            category=ErrorCategory.PROVIDER,
            context=ErrorContext(
                category=ErrorCategory.PROVIDER,
                recoverable=False,
                provider=provider,
                suggested_action="Fix the envelope or credentials before signing again",
                details={"statusCode": status_code, "detail": detail},
            ),
        )


# Service errors
class ServiceUnavailable(RecoverableError):
    """An external service could not be reached or returned a server error."""

    def __init__(self, service: str, message: Optional[str] = None, status_code: Optional[int] = None):
        self.service = service
        self.status_code = status_code
        super().__init__(
            message or f"{service} unavailable",
            category=ErrorCategory.NETWORK,
            retry_after=5.0,
            context=ErrorContext(
                category=ErrorCategory.NETWORK,
                recoverable=True,
                retry_after_seconds=5.0,
                provider=service,
                suggested_action="Retry the step",
                details={"statusCode": status_code} if status_code else {},
            ),
        )


class ServiceRequestError(UnrecoverableError):
    """An external service answered with an error body; passed through verbatim."""

    def __init__(self, service: str, status_code: int, detail: Any, message: Optional[str] = None):
        self.service = service
        self.status_code = status_code
        self.detail = detail
        super().__init__(
            message or f"{service} returned HTTP {status_code}",
            category=ErrorCategory.PROVIDER,
            context=ErrorContext(
                category=ErrorCategory.PROVIDER,
                recoverable=False,
                provider=service,
                details={"statusCode": status_code, "detail": detail},
            ),
        )


class ContractRejection(UnrecoverableError):
    """Delivery was rejected by the contract or the submission service."""

    def __init__(
        self,
        detail: Any,
        message: str = "Delivery rejected",
        backend: Optional[str] = None,
        status_code: Optional[int] = None,
        tx_hash: Optional[str] = None,
    ):
        self.detail = detail
        self.backend = backend
        self.status_code = status_code
        self.tx_hash = tx_hash
        super().__init__(
            message,
            category=ErrorCategory.CONTRACT,
            context=ErrorContext(
                category=ErrorCategory.CONTRACT,
                recoverable=False,
                provider=backend,
                details={"statusCode": status_code, "txHash": tx_hash, "detail": detail},
            ),
        )


class WorkflowStepError(UnrecoverableError):
    """A workflow step was invoked out of order or without its required input."""

    def __init__(self, step: str, reason: str):
        self.step = step
        self.reason = reason
        super().__init__(
            f"Cannot run step {step}: {reason}",
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                details={"step": step, "reason": reason},
            ),
        )
