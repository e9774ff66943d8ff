"""
Typed Exception Hierarchy for the Close Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure raised inside the kernel or the engines is tagged with its
``ErrorCode`` at the throw site.  Callers catch by type and read structured
attributes; nobody parses message strings.  Message-pattern matching is
reserved for foreign failures (driver errors, third-party exceptions) and
lives in ``close_kernel.error_normalizer``.

Each code carries policy metadata:

    category     VALIDATION | CALCULATION | RECONCILIATION | STATE | DATA |
                 EXPORT | INTERNAL
    severity     INFO | WARNING | ERROR | CRITICAL
    recoverable  the user can fix the input and try again
    retryable    the same call may succeed later without changes
    ref          short reference used in support tickets (V100, C200, ...)

The flags are data for UI messaging and retry policy.  They never decide
control flow inside the kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CloseKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- InvalidFormatError
    |   +-- InvalidDateError
    |   +-- InvalidCurrencyError
    |   +-- InvalidAmountError
    |   +-- InvalidVatRateError
    |   +-- InvalidPeriodError
    |   +-- EmptyCollectionError
    |
    +-- CalculationError
    |   +-- CurrencyMismatchError
    |   +-- AmountOverflowError
    |
    +-- StateError
    |   +-- InvalidStatusTransitionError
    |   +-- ConcurrentModificationError
    |
    +-- DataError
    |   +-- MalformedEventError
    |   +-- ReferenceNotFoundError
    |   +-- DuplicateEntryError
    |   |   +-- JobAlreadyExistsError
    |   +-- ImmutabilityViolationError
    |
    +-- ExportError
        +-- NoDataToExportError
        +-- ExportFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Ref  | Code                        | Severity
----------------|------|-----------------------------|----------
Validation      | V100 | INVALID_INPUT               | WARNING
                | V101 | MISSING_REQUIRED_FIELD      | WARNING
                | V102 | INVALID_FORMAT              | WARNING
                | V103 | VALUE_OUT_OF_RANGE          | WARNING
                | V104 | INVALID_DATE_FORMAT         | WARNING
                | V105 | INVALID_CURRENCY            | WARNING
                | V106 | INVALID_AMOUNT              | WARNING
                | V107 | INVALID_INVOICE_NUMBER      | WARNING
                | V108 | INVALID_VAT_RATE            | WARNING
                | V109 | INVALID_PERIOD              | WARNING
                | V110 | EMPTY_COLLECTION            | WARNING
----------------|------|-----------------------------|----------
Calculation     | C200 | CURRENCY_MISMATCH           | ERROR
                | C201 | OVERFLOW                    | ERROR
                | C202 | DIVISION_BY_ZERO            | ERROR
                | C203 | PRECISION_LOSS              | WARNING
                | C204 | ROUNDING_ERROR              | WARNING
                | C205 | NEGATIVE_AMOUNT_NOT_ALLOWED | WARNING
                | C206 | CALCULATION_FAILED          | ERROR
----------------|------|-----------------------------|----------
Reconciliation  | R300 | BALANCE_MISMATCH            | WARNING
                | R301 | UNMATCHED_TRANSACTIONS      | WARNING
                | R302 | UNMATCHED_INVOICES          | WARNING
                | R303 | TOLERANCE_EXCEEDED          | WARNING
                | R304 | DUPLICATE_MATCH             | ERROR
                | R305 | MATCH_NOT_FOUND             | WARNING
                | R306 | RECONCILIATION_INCOMPLETE   | WARNING
                | R307 | PERIOD_NOT_READY            | WARNING
----------------|------|-----------------------------|----------
State           | S400 | INVALID_STATUS_TRANSITION   | ERROR
                | S401 | PERIOD_FINALIZED            | ERROR
                | S402 | PERIOD_LOCKED               | WARNING
                | S403 | OPERATION_NOT_ALLOWED       | WARNING
                | S404 | CONCURRENT_MODIFICATION     | WARNING
----------------|------|-----------------------------|----------
Data            | D500 | DATA_CORRUPTION             | CRITICAL
                | D501 | SCHEMA_MISMATCH             | ERROR
                | D502 | INTEGRITY_VIOLATION         | ERROR
                | D503 | REFERENCE_NOT_FOUND         | ERROR
                | D504 | DUPLICATE_ENTRY             | WARNING
----------------|------|-----------------------------|----------
Export          | E600 | EXPORT_FAILED               | ERROR
                | E601 | INVALID_EXPORT_FORMAT       | WARNING
                | E602 | NO_DATA_TO_EXPORT           | INFO
                | E603 | EXPORT_SIZE_EXCEEDED        | WARNING
----------------|------|-----------------------------|----------
Internal        | I900 | INTERNAL_ERROR              | CRITICAL
                | I999 | UNKNOWN_ERROR               | ERROR

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        total = Amount.sum(amounts)
    except CurrencyMismatchError as e:
        report(code=e.code, left=e.left, right=e.right)
    except CloseKernelError as e:
        if e.retryable:
            schedule_retry()
        raise
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    VALIDATION = "VALIDATION"
    CALCULATION = "CALCULATION"
    RECONCILIATION = "RECONCILIATION"
    STATE = "STATE"
    DATA = "DATA"
    EXPORT = "EXPORT"
    INTERNAL = "INTERNAL"


class ErrorSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCode(str, Enum):
    """Closed enumeration of every business error kind."""

    # Validation
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_FORMAT = "INVALID_FORMAT"
    VALUE_OUT_OF_RANGE = "VALUE_OUT_OF_RANGE"
    INVALID_DATE_FORMAT = "INVALID_DATE_FORMAT"
    INVALID_CURRENCY = "INVALID_CURRENCY"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_INVOICE_NUMBER = "INVALID_INVOICE_NUMBER"
    INVALID_VAT_RATE = "INVALID_VAT_RATE"
    INVALID_PERIOD = "INVALID_PERIOD"
    EMPTY_COLLECTION = "EMPTY_COLLECTION"

    # Calculation
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    OVERFLOW = "OVERFLOW"
    DIVISION_BY_ZERO = "DIVISION_BY_ZERO"
    PRECISION_LOSS = "PRECISION_LOSS"
    ROUNDING_ERROR = "ROUNDING_ERROR"
    NEGATIVE_AMOUNT_NOT_ALLOWED = "NEGATIVE_AMOUNT_NOT_ALLOWED"
    CALCULATION_FAILED = "CALCULATION_FAILED"

    # Reconciliation
    BALANCE_MISMATCH = "BALANCE_MISMATCH"
    UNMATCHED_TRANSACTIONS = "UNMATCHED_TRANSACTIONS"
    UNMATCHED_INVOICES = "UNMATCHED_INVOICES"
    TOLERANCE_EXCEEDED = "TOLERANCE_EXCEEDED"
    DUPLICATE_MATCH = "DUPLICATE_MATCH"
    MATCH_NOT_FOUND = "MATCH_NOT_FOUND"
    RECONCILIATION_INCOMPLETE = "RECONCILIATION_INCOMPLETE"
    PERIOD_NOT_READY = "PERIOD_NOT_READY"

    # State
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    PERIOD_FINALIZED = "PERIOD_FINALIZED"
    PERIOD_LOCKED = "PERIOD_LOCKED"
    OPERATION_NOT_ALLOWED = "OPERATION_NOT_ALLOWED"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

    # Data
    DATA_CORRUPTION = "DATA_CORRUPTION"
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"
    INTEGRITY_VIOLATION = "INTEGRITY_VIOLATION"
    REFERENCE_NOT_FOUND = "REFERENCE_NOT_FOUND"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Export
    EXPORT_FAILED = "EXPORT_FAILED"
    INVALID_EXPORT_FORMAT = "INVALID_EXPORT_FORMAT"
    NO_DATA_TO_EXPORT = "NO_DATA_TO_EXPORT"
    EXPORT_SIZE_EXCEEDED = "EXPORT_SIZE_EXCEEDED"

    # Internal
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    @property
    def spec(self) -> ErrorSpec:
        return ERROR_SPECS[self]


@dataclass(frozen=True, slots=True)
class ErrorSpec:
    """Policy metadata attached to one ErrorCode."""

    ref: str
    category: ErrorCategory
    severity: ErrorSeverity
    recoverable: bool
    retryable: bool
    default_message: str


def _spec(
    ref: str,
    category: ErrorCategory,
    severity: ErrorSeverity,
    recoverable: bool,
    retryable: bool,
    default_message: str,
) -> ErrorSpec:
    return ErrorSpec(ref, category, severity, recoverable, retryable, default_message)


_V, _C, _R = ErrorCategory.VALIDATION, ErrorCategory.CALCULATION, ErrorCategory.RECONCILIATION
_S, _D, _E, _I = ErrorCategory.STATE, ErrorCategory.DATA, ErrorCategory.EXPORT, ErrorCategory.INTERNAL
_INFO, _WARN = ErrorSeverity.INFO, ErrorSeverity.WARNING
_ERR, _CRIT = ErrorSeverity.ERROR, ErrorSeverity.CRITICAL

ERROR_SPECS: dict[ErrorCode, ErrorSpec] = {
    ErrorCode.INVALID_INPUT: _spec("V100", _V, _WARN, True, False, "Invalid input provided"),
    ErrorCode.MISSING_REQUIRED_FIELD: _spec("V101", _V, _WARN, True, False, "A required field is missing"),
    ErrorCode.INVALID_FORMAT: _spec("V102", _V, _WARN, True, False, "Invalid format"),
    ErrorCode.VALUE_OUT_OF_RANGE: _spec("V103", _V, _WARN, True, False, "Value is out of acceptable range"),
    ErrorCode.INVALID_DATE_FORMAT: _spec("V104", _V, _WARN, True, False, "Invalid date format. Use YYYY-MM-DD"),
    ErrorCode.INVALID_CURRENCY: _spec("V105", _V, _WARN, True, False, "Unsupported currency code"),
    ErrorCode.INVALID_AMOUNT: _spec("V106", _V, _WARN, True, False, "Invalid amount value"),
    ErrorCode.INVALID_INVOICE_NUMBER: _spec("V107", _V, _WARN, True, False, "Invalid invoice number format"),
    ErrorCode.INVALID_VAT_RATE: _spec("V108", _V, _WARN, True, False, "VAT rate must be between 0 and 100"),
    ErrorCode.INVALID_PERIOD: _spec("V109", _V, _WARN, True, False, "Invalid period specification"),
    ErrorCode.EMPTY_COLLECTION: _spec("V110", _V, _WARN, True, False, "Collection cannot be empty"),
    ErrorCode.CURRENCY_MISMATCH: _spec("C200", _C, _ERR, False, False, "Cannot operate on amounts with different currencies"),
    ErrorCode.OVERFLOW: _spec("C201", _C, _ERR, False, False, "Calculation resulted in overflow"),
    ErrorCode.DIVISION_BY_ZERO: _spec("C202", _C, _ERR, False, False, "Cannot divide by zero"),
    ErrorCode.PRECISION_LOSS: _spec("C203", _C, _WARN, True, False, "Calculation may have precision loss"),
    ErrorCode.ROUNDING_ERROR: _spec("C204", _C, _WARN, True, False, "Rounding produced unexpected result"),
    ErrorCode.NEGATIVE_AMOUNT_NOT_ALLOWED: _spec("C205", _C, _WARN, True, False, "Negative amounts are not allowed for this operation"),
    ErrorCode.CALCULATION_FAILED: _spec("C206", _C, _ERR, False, False, "Calculation failed"),
    ErrorCode.BALANCE_MISMATCH: _spec("R300", _R, _WARN, True, False, "Bank and invoice totals do not match"),
    ErrorCode.UNMATCHED_TRANSACTIONS: _spec("R301", _R, _WARN, True, False, "Some bank transactions are unmatched"),
    ErrorCode.UNMATCHED_INVOICES: _spec("R302", _R, _WARN, True, False, "Some invoices are unmatched"),
    ErrorCode.TOLERANCE_EXCEEDED: _spec("R303", _R, _WARN, True, False, "Balance difference exceeds tolerance"),
    ErrorCode.DUPLICATE_MATCH: _spec("R304", _R, _ERR, True, False, "Duplicate match detected"),
    ErrorCode.MATCH_NOT_FOUND: _spec("R305", _R, _WARN, True, False, "Match not found"),
    ErrorCode.RECONCILIATION_INCOMPLETE: _spec("R306", _R, _WARN, True, False, "Reconciliation is incomplete"),
    ErrorCode.PERIOD_NOT_READY: _spec("R307", _R, _WARN, True, False, "Period is not ready for finalization"),
    ErrorCode.INVALID_STATUS_TRANSITION: _spec("S400", _S, _ERR, False, False, "Invalid status transition"),
    ErrorCode.PERIOD_FINALIZED: _spec("S401", _S, _ERR, False, False, "Cannot modify finalized period"),
    ErrorCode.PERIOD_LOCKED: _spec("S402", _S, _WARN, False, True, "Period is currently locked"),
    ErrorCode.OPERATION_NOT_ALLOWED: _spec("S403", _S, _WARN, False, False, "Operation not allowed in current state"),
    ErrorCode.CONCURRENT_MODIFICATION: _spec("S404", _S, _WARN, True, True, "Data was modified by another process"),
    ErrorCode.DATA_CORRUPTION: _spec("D500", _D, _CRIT, False, False, "Data integrity check failed"),
    ErrorCode.SCHEMA_MISMATCH: _spec("D501", _D, _ERR, False, False, "Data schema version mismatch"),
    ErrorCode.INTEGRITY_VIOLATION: _spec("D502", _D, _ERR, False, False, "Data integrity constraint violated"),
    ErrorCode.REFERENCE_NOT_FOUND: _spec("D503", _D, _ERR, False, False, "Referenced data not found"),
    ErrorCode.DUPLICATE_ENTRY: _spec("D504", _D, _WARN, True, False, "Duplicate entry detected"),
    ErrorCode.EXPORT_FAILED: _spec("E600", _E, _ERR, True, True, "Export failed"),
    ErrorCode.INVALID_EXPORT_FORMAT: _spec("E601", _E, _WARN, True, False, "Invalid export format requested"),
    ErrorCode.NO_DATA_TO_EXPORT: _spec("E602", _E, _INFO, True, False, "No data available to export"),
    ErrorCode.EXPORT_SIZE_EXCEEDED: _spec("E603", _E, _WARN, True, False, "Export size exceeds limit"),
    ErrorCode.INTERNAL_ERROR: _spec("I900", _I, _CRIT, False, False, "An unexpected error occurred"),
    ErrorCode.UNKNOWN_ERROR: _spec("I999", _I, _ERR, False, False, "An unknown error occurred"),
}


class CloseKernelError(Exception):
    """
    Base exception for all close kernel errors.

    Subclasses pin ``code`` as a class attribute.  The base class accepts an
    explicit ``code`` for the rare throw site without a dedicated subclass.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str | None = None, *, code: ErrorCode | None = None):
        if code is not None:
            self.code = code
        super().__init__(message or self.code.spec.default_message)

    @property
    def message(self) -> str:
        return str(self)

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


# Validation


class ValidationError(CloseKernelError):
    """Base exception for rejected input."""

    code: ErrorCode = ErrorCode.INVALID_INPUT


class MissingFieldError(ValidationError):
    code: ErrorCode = ErrorCode.MISSING_REQUIRED_FIELD

    def __init__(self, field: str, context: str | None = None):
        self.field = field
        self.context = context
        where = f" on {context}" if context else ""
        super().__init__(f"Field '{field}' is required{where}")


class InvalidFormatError(ValidationError):
    code: ErrorCode = ErrorCode.INVALID_FORMAT

    def __init__(self, value: object, expected: str):
        self.value = value
        self.expected = expected
        super().__init__(f"Invalid format: {value!r} (expected {expected})")


class InvalidDateError(ValidationError):
    code: ErrorCode = ErrorCode.INVALID_DATE_FORMAT

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid date {value!r}: expected YYYY-MM-DD")


class InvalidCurrencyError(ValidationError):
    code: ErrorCode = ErrorCode.INVALID_CURRENCY

    def __init__(self, currency: object):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency!r}")


class InvalidAmountError(ValidationError):
    code: ErrorCode = ErrorCode.INVALID_AMOUNT

    def __init__(self, value: object, reason: str = "not an integer number of cents"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class InvalidVatRateError(ValidationError):
    code: ErrorCode = ErrorCode.INVALID_VAT_RATE

    def __init__(self, rate: object):
        self.rate = rate
        super().__init__(f"Invalid VAT rate {rate!r}: must be between 0 and 100")


class InvalidPeriodError(ValidationError):
    code: ErrorCode = ErrorCode.INVALID_PERIOD

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid period {value!r}: {reason}")


class EmptyCollectionError(ValidationError):
    code: ErrorCode = ErrorCode.EMPTY_COLLECTION

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"Cannot sum empty collection of {what}")


# Calculation


class CalculationError(CloseKernelError):
    """Base exception for arithmetic failures."""

    code: ErrorCode = ErrorCode.CALCULATION_FAILED


class CurrencyMismatchError(CalculationError):
    code: ErrorCode = ErrorCode.CURRENCY_MISMATCH

    def __init__(self, left: str, right: str):
        self.left = left
        self.right = right
        super().__init__(f"Currency mismatch: {left} vs {right}")


class AmountOverflowError(CalculationError):
    """Amount left the exactly-representable integer range."""

    code: ErrorCode = ErrorCode.OVERFLOW

    def __init__(self, value: int):
        self.value = value
        super().__init__(f"Amount {value} exceeds the safe integer range")


# State


class StateError(CloseKernelError):
    """Base exception for illegal lifecycle moves."""

    code: ErrorCode = ErrorCode.OPERATION_NOT_ALLOWED


class InvalidStatusTransitionError(StateError):
    code: ErrorCode = ErrorCode.INVALID_STATUS_TRANSITION

    def __init__(self, entity: str, from_status: str | None, to_status: str):
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition for {entity}: {from_status} -> {to_status}"
        )


class ConcurrentModificationError(StateError):
    """A conditional update lost against another writer."""

    code: ErrorCode = ErrorCode.CONCURRENT_MODIFICATION

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} was modified by another process")


# Data


class DataError(CloseKernelError):
    """Base exception for stored data that cannot be used as-is."""

    code: ErrorCode = ErrorCode.DATA_CORRUPTION


class MalformedEventError(DataError):
    """An event payload is missing a field its entity needs."""

    code: ErrorCode = ErrorCode.SCHEMA_MISMATCH

    def __init__(self, event_id: str, event_type: str, field: str):
        self.event_id = event_id
        self.event_type = event_type
        self.field = field
        super().__init__(
            f"Event {event_id} ({event_type}) does not match its schema: "
            f"missing or invalid '{field}'"
        )


class ReferenceNotFoundError(DataError):
    code: ErrorCode = ErrorCode.REFERENCE_NOT_FOUND

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class DuplicateEntryError(DataError):
    code: ErrorCode = ErrorCode.DUPLICATE_ENTRY

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"Duplicate {entity}: {entity_id}")


class JobAlreadyExistsError(DuplicateEntryError):
    """Lost the conditional create of a finalization job."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("finalization job", job_id)


class ImmutabilityViolationError(DataError):
    code: ErrorCode = ErrorCode.INTEGRITY_VIOLATION

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Integrity violation on {entity_type} {entity_id}: {reason}"
        )


# Export


class ExportError(CloseKernelError):
    code: ErrorCode = ErrorCode.EXPORT_FAILED


class NoDataToExportError(ExportError):
    code: ErrorCode = ErrorCode.NO_DATA_TO_EXPORT

    def __init__(self, artifact: str):
        self.artifact = artifact
        super().__init__(f"No data to export for {artifact}")


class ExportFailedError(ExportError):
    code: ErrorCode = ErrorCode.EXPORT_FAILED

    def __init__(self, artifact: str, reason: str):
        self.artifact = artifact
        self.reason = reason
        super().__init__(f"Export failed for {artifact}: {reason}")
