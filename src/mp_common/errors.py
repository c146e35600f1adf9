"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Account / balance
  3xxx: Listing / stock
  4xxx: Attachment
  8xxx: Input validation
  9xxx: System / store
"""


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


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "User already registered", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Incorrect login", 401)


class UnauthorizedError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Not logged in", 401)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Admin privileges required") -> None:
        super().__init__(1007, detail, 403)


# --- 2xxx: Account ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient funds: required {required} cents, available {available} cents",
            422,
        )


class AccountNotFoundError(AppError):
    def __init__(self, account_id: int | str) -> None:
        super().__init__(2002, f"Account not found: {account_id}", 404)


class RecipientNotFoundError(AppError):
    def __init__(self, username: str) -> None:
        super().__init__(2003, f"Recipient does not exist: {username}", 404)


class SelfTransferError(AppError):
    def __init__(self) -> None:
        super().__init__(2004, "Cannot transfer to yourself", 422)


# --- 3xxx: Listing ---

class ListingNotFoundError(AppError):
    def __init__(self, listing_id: int) -> None:
        super().__init__(3001, f"Item not found: {listing_id}", 404)


class InsufficientStockError(AppError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            3002,
            f"Not enough items in stock: requested {requested}, available {available}",
            422,
        )


class InvalidAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3003, f"Invalid amount: {detail}", 422)


# --- 4xxx: Attachment ---

class AttachmentUnavailableError(AppError):
    def __init__(self, attachment_ids: list[int]) -> None:
        self.attachment_ids = attachment_ids
        joined = ", ".join(str(i) for i in attachment_ids)
        super().__init__(
            4001,
            f"Following attachments could not be used: {joined}. Try uploading them again.",
            422,
        )


class UnsupportedAttachmentError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4002, detail, 422)


# --- 8xxx: Validation ---

class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(8001, detail, 422)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class StoreConflictError(AppError):
    """Transaction aborted by the store's isolation checks. Retryable."""

    def __init__(self) -> None:
        super().__init__(9003, "Concurrent update conflict, please retry", 409)


class StoreUnavailableError(AppError):
    def __init__(self, detail: str = "Database unavailable") -> None:
        super().__init__(9004, detail, 503)


class StoreTimeoutError(AppError):
    def __init__(self, seconds: float) -> None:
        super().__init__(9005, f"Transaction exceeded {seconds:g}s deadline, please retry", 503)


class FeatureUnavailableError(AppError):
    def __init__(self) -> None:
        super().__init__(9006, "Feature only available in debug builds", 404)
