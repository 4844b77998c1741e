"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidOrderNumberError(DomainException):
    """Order number failed the Luhn checksum"""

    pass


class OrderBelongsToAnotherUserError(DomainException):
    """Order number is already registered by a different user"""

    pass


class InvalidStatusTransitionError(DomainException):
    """Order status change is not allowed by the lifecycle"""

    pass


class InvalidWithdrawalError(DomainException):
    """Withdrawal payload is malformed (e.g. non-positive sum)"""

    pass


class InsufficientFundsError(DomainException):
    """Withdrawal would make the balance negative"""

    pass


class WithdrawalAlreadyExistsError(DomainException):
    """A withdrawal has already been recorded under this order number"""

    pass


class BalanceNotFoundError(DomainException):
    """User has no balance row; every registered user should have one"""

    pass


class UserAlreadyExistsError(DomainException):
    """Login is already taken"""

    pass


class InvalidCredentialsError(DomainException):
    """Unknown login or wrong password"""

    pass


class InvalidTokenError(DomainException):
    """Access token is malformed, expired or has a bad signature"""

    pass


class StorageError(DomainException):
    """Database operation failed"""

    pass


class AccrualOracleError(DomainException):
    """Accrual service returned an error, timed out or sent malformed data"""

    pass


class AccrualRateLimitedError(AccrualOracleError):
    """Accrual service asked us to back off"""

    def __init__(self, retry_after: float, message: str | None = None):
        super().__init__(message or f"Accrual service rate limited, retry after {retry_after}s")
        self.retry_after = retry_after


class LedgerConflictError(DomainException):
    """Another reconciler credited some of the selected orders first"""

    pass
