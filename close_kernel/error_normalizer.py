"""
Error normalization for foreign failures.

Responsibility:
    Converts anything raised across a boundary (kernel errors, driver
    exceptions, strings, error mappings from remote calls) into a single
    ``BusinessError`` record carrying an ErrorCode and its policy metadata.

Architecture position:
    Kernel -- depends only on close_kernel.exceptions.  Kernel errors keep
    the code they were raised with; message-pattern matching is used only
    for errors that arrive without one.

Invariants enforced:
    - Messages are sanitized before they leave the process: emails,
      card-like and SSN-like numbers, credential assignments and
      stack-trace lines become ``[REDACTED]``.
    - Messages are truncated to 500 characters.
    - An unclassifiable error maps to UNKNOWN_ERROR, never to None.

Audit relevance:
    The finalize workflow stores the normalized, sanitized message on the
    failed job record.  Raw exception text is never persisted.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from close_kernel.exceptions import (
    CloseKernelError,
    ErrorCategory,
    ErrorCode,
    ErrorSeverity,
)

MAX_MESSAGE_LENGTH = 500
REDACTED = "[REDACTED]"

# First match wins; order matters.
_ERROR_PATTERNS: tuple[tuple[re.Pattern[str], ErrorCode], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), code)
    for pattern, code in (
        (r"currency mismatch", ErrorCode.CURRENCY_MISMATCH),
        (r"unsupported currency", ErrorCode.INVALID_CURRENCY),
        (r"invalid currency", ErrorCode.INVALID_CURRENCY),
        (r"safe integer", ErrorCode.OVERFLOW),
        (r"cannot sum empty", ErrorCode.EMPTY_COLLECTION),
        (r"vat rate", ErrorCode.INVALID_VAT_RATE),
        (r"negative amount", ErrorCode.NEGATIVE_AMOUNT_NOT_ALLOWED),
        (r"invalid amount", ErrorCode.INVALID_AMOUNT),
        (r"invalid date", ErrorCode.INVALID_DATE_FORMAT),
        (r"date format", ErrorCode.INVALID_DATE_FORMAT),
        (r"yyyy-mm-dd", ErrorCode.INVALID_DATE_FORMAT),
        (r"must not be empty", ErrorCode.MISSING_REQUIRED_FIELD),
        (r"required", ErrorCode.MISSING_REQUIRED_FIELD),
        (r"out of range", ErrorCode.VALUE_OUT_OF_RANGE),
        (r"between 0 and 100", ErrorCode.VALUE_OUT_OF_RANGE),
        (r"invalid format", ErrorCode.INVALID_FORMAT),
        (r"invalid invoice number", ErrorCode.INVALID_INVOICE_NUMBER),
        (r"finalized", ErrorCode.PERIOD_FINALIZED),
        (r"locked", ErrorCode.PERIOD_LOCKED),
        (r"invalid.*transition", ErrorCode.INVALID_STATUS_TRANSITION),
        (r"not allowed", ErrorCode.OPERATION_NOT_ALLOWED),
        (r"tolerance.*exceeded", ErrorCode.TOLERANCE_EXCEEDED),
        (r"balance.*(mismatch|not match)", ErrorCode.BALANCE_MISMATCH),
        (r"unmatched.*transaction", ErrorCode.UNMATCHED_TRANSACTIONS),
        (r"unmatched.*invoice", ErrorCode.UNMATCHED_INVOICES),
        (r"duplicate.*match", ErrorCode.DUPLICATE_MATCH),
        (r"not found", ErrorCode.REFERENCE_NOT_FOUND),
        (r"duplicate", ErrorCode.DUPLICATE_ENTRY),
        (r"integrity", ErrorCode.INTEGRITY_VIOLATION),
        (r"schema", ErrorCode.SCHEMA_MISMATCH),
        (r"divi(de|sion).*zero", ErrorCode.DIVISION_BY_ZERO),
        (r"overflow", ErrorCode.OVERFLOW),
        (r"precision", ErrorCode.PRECISION_LOSS),
        (r"rounding", ErrorCode.ROUNDING_ERROR),
        (r"export.*fail", ErrorCode.EXPORT_FAILED),
        (r"no data.*export", ErrorCode.NO_DATA_TO_EXPORT),
        (r"export.*size", ErrorCode.EXPORT_SIZE_EXCEEDED),
    )
)

_SENSITIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b"),
    re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
    re.compile(r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b"),
    re.compile(r"\bpassword\s*[:=]\s*\S+", re.IGNORECASE),
    re.compile(r"\btoken\s*[:=]\s*\S+", re.IGNORECASE),
    re.compile(r"\bapi[_-]?key\s*[:=]\s*\S+", re.IGNORECASE),
    re.compile(r"\bsecret\s*[:=]\s*\S+", re.IGNORECASE),
    re.compile(r"at\s+[\w.]+\s+\([^)]+:\d+:\d+\)"),
    re.compile(r"^\s*at\s+.+$", re.MULTILINE),
    re.compile(r'^\s*File ".+", line \d+.*$', re.MULTILINE),
)

_REPEATED_REDACTIONS = re.compile(r"(\[REDACTED\]\s*)+")


@dataclass(frozen=True, slots=True)
class BusinessError:
    """Serializable, sanitized description of one failure."""

    code: ErrorCode
    message: str
    details: dict[str, str | int | float | bool] = field(default_factory=dict)
    cause: dict[str, str] | None = None

    @property
    def ref(self) -> str:
        return self.code.spec.ref

    @property
    def category(self) -> ErrorCategory:
        return self.code.spec.category

    @property
    def severity(self) -> ErrorSeverity:
        return self.code.spec.severity

    @property
    def recoverable(self) -> bool:
        return self.code.spec.recoverable

    @property
    def retryable(self) -> bool:
        return self.code.spec.retryable

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "code": self.code.value,
            "ref": self.ref,
            "category": self.category.value,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "retryable": self.retryable,
            "message": self.message,
        }
        if self.details:
            out["details"] = dict(self.details)
        if self.cause:
            out["cause"] = dict(self.cause)
        return out


def create_business_error(
    code: ErrorCode,
    message: str | None = None,
    details: Mapping[str, str | int | float | bool] | None = None,
) -> BusinessError:
    return BusinessError(
        code=code,
        message=message or code.spec.default_message,
        details=dict(details or {}),
    )


def infer_code(message: str) -> ErrorCode:
    """Classify a free-text message; UNKNOWN_ERROR when nothing matches."""
    for pattern, code in _ERROR_PATTERNS:
        if pattern.search(message):
            return code
    return ErrorCode.UNKNOWN_ERROR


def sanitize_message(message: str) -> str:
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(REDACTED, sanitized)
    if len(sanitized) > MAX_MESSAGE_LENGTH:
        sanitized = sanitized[:MAX_MESSAGE_LENGTH] + "..."
    if REDACTED in sanitized:
        sanitized = _REPEATED_REDACTIONS.sub(REDACTED + " ", sanitized)
    return sanitized.strip()


def _primitive_details(values: Mapping[str, Any], skip: tuple[str, ...]) -> dict[str, Any]:
    details: dict[str, Any] = {}
    for key, value in values.items():
        if not isinstance(key, str) or key.startswith("_") or key in skip:
            continue
        if isinstance(value, str):
            details[key] = sanitize_message(value)
        elif isinstance(value, (bool, int, float)):
            details[key] = value
    return details


def normalize_error(error: object) -> BusinessError:
    """
    Normalize any raised or reported error into a BusinessError.

    Preconditions:
        ``error`` is anything: a BusinessError, an exception, a string, a
        mapping with ``message``/``error``/``code`` keys, or another object.

    Postconditions:
        Returns a BusinessError whose message is sanitized.  Kernel errors
        keep their own code; others are classified by message.
    """
    if isinstance(error, BusinessError):
        return error

    if isinstance(error, CloseKernelError):
        message = sanitize_message(str(error))
        return BusinessError(
            code=error.code,
            message=message,
            details=_primitive_details(vars(error), skip=("args", "code")),
            cause={"code": type(error).__name__, "message": message},
        )

    if isinstance(error, BaseException):
        raw = str(error) or type(error).__name__
        message = sanitize_message(raw)
        return BusinessError(
            code=infer_code(raw),
            message=message,
            cause={"code": type(error).__name__, "message": message},
        )

    if isinstance(error, str):
        return BusinessError(code=infer_code(error), message=sanitize_message(error))

    if isinstance(error, Mapping):
        raw = error.get("message")
        if not isinstance(raw, str):
            raw = error.get("error") if isinstance(error.get("error"), str) else "An error occurred"
        raw_code = error.get("code")
        code = (
            ErrorCode(raw_code)
            if isinstance(raw_code, str) and raw_code in ErrorCode.__members__
            else infer_code(raw)
        )
        return BusinessError(
            code=code,
            message=sanitize_message(raw),
            details=_primitive_details(error, skip=("message", "stack", "code")),
        )

    return create_business_error(
        ErrorCode.UNKNOWN_ERROR,
        details={"originalType": type(error).__name__},
    )
