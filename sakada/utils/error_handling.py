"""
Error Handling Module for Sakada Cash Advance

This module provides centralized error handling with:
- Custom exception hierarchy
- Standardized error responses
- Error logging
- Database error translation
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configure logging
logger = logging.getLogger("sakada.errors")

# Starlette renamed the 422 constant; the code itself is stable
UNPROCESSABLE_STATUS = 422

# Largest value a NUMERIC(10,2) column holds
MAX_AMOUNT = Decimal("99999999.99")
CENT = Decimal("0.01")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""
    
    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_HIERARCHY = "INVALID_HIERARCHY"
    
    # Authentication/Authorization Errors (401/403)
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    
    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    CASH_ADVANCE_NOT_FOUND = "CASH_ADVANCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    INVALID_STATE = "INVALID_STATE"
    
    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    BALANCE_EXCEEDED = "BALANCE_EXCEEDED"
    OUTSTANDING_BALANCE = "OUTSTANDING_BALANCE"
    
    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    AUDIT_BYPASS_BLOCKED = "AUDIT_BYPASS_BLOCKED"
    
    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""
    
    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Malformed or out-of-range input"""
    
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=UNPROCESSABLE_STATUS,
            details=details,
            field=field,
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""
    
    def __init__(self, amount: Any, field: str = "amount", message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid amount: {amount}. Amount must be a positive number.",
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_value": str(amount)},
        )


class HierarchyException(ValidationException):
    """Supervisor assignment would break the organization tree"""
    
    def __init__(self, employee_id: Union[str, UUID], supervisor_id: Union[str, UUID], message: str):
        super().__init__(
            message=message,
            field="supervisor_id",
            code=ErrorCode.INVALID_HIERARCHY,
            details={"employee_id": str(employee_id), "supervisor_id": str(supervisor_id)},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""
    
    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class UserNotFoundException(NotFoundException):
    """User not found"""
    
    def __init__(self, user_id: Optional[Union[str, UUID]] = None, username: Optional[str] = None):
        if username:
            super().__init__(
                resource_type="User",
                message=f"User '{username}' not found",
                code=ErrorCode.USER_NOT_FOUND,
            )
        else:
            super().__init__(
                resource_type="User",
                resource_id=user_id,
                code=ErrorCode.USER_NOT_FOUND,
            )


class EmployeeNotFoundException(NotFoundException):
    """Employee not found"""
    
    def __init__(self, employee_id: Union[str, UUID]):
        super().__init__(
            resource_type="Employee",
            resource_id=employee_id,
            code=ErrorCode.EMPLOYEE_NOT_FOUND,
        )


class CashAdvanceNotFoundException(NotFoundException):
    """Cash advance not found"""
    
    def __init__(self, advance_id: Union[str, UUID]):
        super().__init__(
            resource_type="CashAdvance",
            resource_id=advance_id,
            code=ErrorCode.CASH_ADVANCE_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""
    
    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
            original_error=original_error,
        )


class InvalidStateException(ConflictException):
    """Requested transition is not legal from the current status"""
    
    def __init__(
        self,
        resource_type: str,
        resource_id: Union[str, UUID],
        current_status: Any,
        attempted_action: str,
    ):
        current = getattr(current_status, "value", current_status)
        super().__init__(
            message=f"Cannot {attempted_action} {resource_type} '{resource_id}' in status {current}",
            resource_type=resource_type,
            code=ErrorCode.INVALID_STATE,
            details={
                "resource_id": str(resource_id),
                "current_status": current,
                "attempted_action": attempted_action,
            },
        )
        self.current_status = current
        self.attempted_action = attempted_action


class ConstraintViolationException(ConflictException):
    """Uniqueness or foreign-key violation surfaced by the persistence layer"""
    
    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            resource_type=resource_type,
            code=ErrorCode.CONSTRAINT_VIOLATION,
            details=details,
            original_error=original_error,
        )
    
    @classmethod
    def from_integrity_error(cls, exc: IntegrityError, resource_type: Optional[str] = None):
        error_str = str(exc.orig).lower() if exc.orig else str(exc).lower()
        if "unique" in error_str or "duplicate" in error_str:
            message = "A record with this value already exists"
        elif "foreign key" in error_str:
            message = "Referenced record does not exist or is still referenced"
        else:
            message = "Data integrity constraint violated"
        return cls(message, resource_type=resource_type, original_error=exc)


class DuplicateEntryException(ConstraintViolationException):
    """Duplicate entry exception"""
    
    def __init__(
        self,
        resource_type: str,
        field: str,
        value: str,
    ):
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            resource_type=resource_type,
            details={"field": field, "value": value},
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""
    
    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=UNPROCESSABLE_STATUS,
            details=_details,
        )


class BalanceException(BusinessRuleException):
    """Payment or completion would violate the amount-vs-payments invariant"""
    
    def __init__(
        self,
        advance_id: Union[str, UUID],
        principal: Decimal,
        total_paid: Decimal,
        attempted_amount: Optional[Decimal] = None,
    ):
        remaining = principal - total_paid
        if attempted_amount is not None:
            message = (
                f"Payment of {attempted_amount:,.2f} exceeds remaining balance "
                f"{remaining:,.2f} on cash advance '{advance_id}'"
            )
            rule = "PAYMENTS_WITHIN_PRINCIPAL"
            code = ErrorCode.BALANCE_EXCEEDED
        else:
            message = (
                f"Cash advance '{advance_id}' still has an outstanding balance of {remaining:,.2f}"
            )
            rule = "FULL_REPAYMENT_REQUIRED"
            code = ErrorCode.OUTSTANDING_BALANCE
        super().__init__(
            message=message,
            rule=rule,
            code=code,
            details={
                "resource_id": str(advance_id),
                "principal": str(principal),
                "total_paid": str(total_paid),
                "remaining_balance": str(remaining),
                "attempted_amount": str(attempted_amount) if attempted_amount is not None else None,
            },
        )
        self.remaining_balance = remaining


# ============================================================================
# Database Exceptions
# ============================================================================

class DatabaseException(AppException):
    """Database error exception"""
    
    def __init__(
        self,
        message: str = "A database error occurred",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
        )


class AuditBypassException(DatabaseException):
    """Write to an audited table that would skip the audit trail"""
    
    def __init__(self, table_name: str):
        super().__init__(
            message=f"Direct write to audited table '{table_name}' is not allowed; "
                    "modify rows through the ORM so each change is audited",
            code=ErrorCode.AUDIT_BYPASS_BLOCKED,
        )
        self.table_name = table_name


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details
    
    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    logger.error(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )
    
    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }
    
    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    
    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )
    
    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    
    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )
    
    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=UNPROCESSABLE_STATUS,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    
    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = UNPROCESSABLE_STATUS
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = UNPROCESSABLE_STATUS
    
    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )
    
    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )
    
    # Don't expose internal error details
    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================================================
# Utility Functions
# ============================================================================

def validate_amount(amount: Any, field: str = "amount", allow_zero: bool = False) -> Decimal:
    """Validate a monetary amount and return it as a two-place Decimal"""
    if isinstance(amount, bool):
        raise InvalidAmountException(amount, field)
    try:
        value = Decimal(str(amount))
    except (TypeError, ValueError, InvalidOperation):
        raise InvalidAmountException(amount, field)
    if not value.is_finite() or value < 0 or (not allow_zero and value == 0):
        raise InvalidAmountException(amount, field)
    if value > MAX_AMOUNT:
        raise InvalidAmountException(amount, field)
    # Sub-cent amounts are refused rather than rounded
    if value != value.quantize(CENT):
        raise InvalidAmountException(amount, field)
    return value.quantize(CENT)


# Export all exceptions for easy importing
__all__ = [
    # Base
    "AppException",
    "ErrorCode",
    
    # Validation
    "ValidationException",
    "InvalidAmountException",
    "HierarchyException",
    
    # Resource
    "NotFoundException",
    "UserNotFoundException",
    "EmployeeNotFoundException",
    "CashAdvanceNotFoundException",
    "ConflictException",
    "InvalidStateException",
    "ConstraintViolationException",
    "DuplicateEntryException",
    
    # Business Logic
    "BusinessRuleException",
    "BalanceException",
    
    # Database
    "DatabaseException",
    "AuditBypassException",
    
    # Handlers
    "setup_exception_handlers",
    "create_error_response",
    
    # Utilities
    "validate_amount",
]
