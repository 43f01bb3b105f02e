"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Balance / ledger
  3xxx: Pricing / resource billing
  4xxx: Commission / settlement
  9xxx: System
"""

from decimal import Decimal


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class NotFoundError(AppError):
    """Marker base for every 'row absent' error."""


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class PermissionDeniedError(AppError):
    def __init__(self, detail: str = "Permission denied") -> None:
        super().__init__(1006, detail, 403)


# --- 2xxx: Balance ---

class InsufficientBalanceError(AppError):
    def __init__(
        self,
        required: Decimal,
        available: Decimal,
        code: int = 2001,
        label: str = "balance",
    ) -> None:
        super().__init__(
            code,
            f"Insufficient {label}: required {required}, available {available}",
            422,
        )
        self.required = required
        self.available = available


class BalanceNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Balance not found for user {user_id}", 404)


class BalanceAccountInactiveError(AppError):
    def __init__(self, user_id: str, status: str) -> None:
        super().__init__(2003, f"Balance account of user {user_id} is {status}", 422)


class InsufficientReservedBalanceError(InsufficientBalanceError):
    def __init__(self, required: Decimal, available: Decimal) -> None:
        super().__init__(required, available, code=2004, label="pre-deducted balance")


class InsufficientFrozenAmountError(InsufficientBalanceError):
    def __init__(self, required: Decimal, available: Decimal) -> None:
        super().__init__(required, available, code=2006, label="frozen amount")


class BillNotFoundError(NotFoundError):
    def __init__(self, bill_id: str) -> None:
        super().__init__(2005, f"Billing record not found: {bill_id}", 404)


# --- 3xxx: Pricing / resource billing ---

class PriceConfigNotFoundError(NotFoundError):
    def __init__(self, business_type: str) -> None:
        super().__init__(3001, f"Price config not found: {business_type}", 404)


class InsufficientQuotaError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            3002,
            f"Insufficient balance to create another marketing instance for user {user_id}",
            422,
        )


class ResourceNotFoundError(NotFoundError):
    def __init__(self, resource_id: str) -> None:
        super().__init__(3003, f"Billed resource not found: {resource_id}", 404)


class DuplicateResourceError(AppError):
    def __init__(self, resource_id: str) -> None:
        super().__init__(3004, f"Resource already registered: {resource_id}", 409)


# --- 4xxx: Commission / settlement ---

class InsufficientCommissionError(AppError):
    def __init__(self, required: Decimal, available: Decimal) -> None:
        super().__init__(
            4001,
            f"Insufficient commission: required {required}, available {available}",
            422,
        )


class SettlementNotFoundError(NotFoundError):
    def __init__(self, settlement_id: str) -> None:
        super().__init__(4002, f"Settlement not found: {settlement_id}", 404)


class InvalidStateTransitionError(AppError):
    def __init__(self, settlement_id: str, status: str, action: str) -> None:
        super().__init__(
            4003,
            f"Settlement {settlement_id} in status {status} cannot be {action}",
            409,
        )


class CommissionAccountInactiveError(AppError):
    def __init__(self, agent_user_id: str, status: str) -> None:
        super().__init__(4004, f"Commission account of {agent_user_id} is {status}", 422)


# --- 9xxx: System ---

class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9001, detail, 422)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ConcurrencyConflictError(AppError):
    def __init__(self, resource: str, attempts: int) -> None:
        super().__init__(
            9003,
            f"Concurrent modification of {resource}; gave up after {attempts} attempts",
            409,
        )


class ExternalDependencyError(AppError):
    def __init__(self, dependency: str, detail: str) -> None:
        super().__init__(9004, f"{dependency} unavailable: {detail}", 503)
