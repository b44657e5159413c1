from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_CONFIGURATION = ErrorDefinition(
        "INVALID_CONFIGURATION",
        "Configuration is invalid",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    NOT_FOUND = ErrorDefinition("NOT_FOUND", "Resource not found", status.HTTP_404_NOT_FOUND)
    INVALID_QUANTITY = ErrorDefinition(
        "INVALID_QUANTITY",
        "Quantity is out of range",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    NOTHING_SELECTED = ErrorDefinition(
        "NOTHING_SELECTED",
        "No return lines selected",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    RETURN_REASON_REQUIRED = ErrorDefinition(
        "RETURN_REASON_REQUIRED",
        "A reason is required for every returned line",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    RETURN_NOT_STARTED = ErrorDefinition(
        "RETURN_NOT_STARTED",
        "No invoice is loaded for return",
        status.HTTP_409_CONFLICT,
    )
    INSUFFICIENT_PAYMENT = ErrorDefinition(
        "INSUFFICIENT_PAYMENT",
        "Tendered amount is less than the total",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    EMPTY_CART = ErrorDefinition("EMPTY_CART", "Cart is empty", status.HTTP_422_UNPROCESSABLE_ENTITY)
    DISCOUNT_EXCEEDS_SUBTOTAL = ErrorDefinition(
        "DISCOUNT_EXCEEDS_SUBTOTAL",
        "Discount exceeds the amount it applies to",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    SUBMISSION_FAILED = ErrorDefinition(
        "SUBMISSION_FAILED",
        "Invoice submission failed",
        status.HTTP_502_BAD_GATEWAY,
    )
    LEDGER_UNAVAILABLE = ErrorDefinition(
        "LEDGER_UNAVAILABLE",
        "Sales ledger unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code
