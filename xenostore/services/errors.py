"""Coupon rejections and storage failures, each with a stable error_type for the frontend."""


class CouponError(Exception):
    """Business rejection: the coupon does not apply. Recoverable, rendered as a 4xx body."""

    error_type = "COUPON_ERROR"
    status_code = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"success": False, "error_type": self.error_type, "message": self.message, **self.context}


class InvalidCode(CouponError):
    error_type = "INVALID_CODE"
    status_code = 404


class CouponInactive(CouponError):
    error_type = "COUPON_INACTIVE"


class CouponExpired(CouponError):
    error_type = "COUPON_EXPIRED"


class UsageLimitReached(CouponError):
    error_type = "USAGE_LIMIT_REACHED"


class UserNotEligible(CouponError):
    error_type = "USER_NOT_ELIGIBLE"


class UserLimitReached(CouponError):
    error_type = "USER_LIMIT_REACHED"


class ProductNotEligible(CouponError):
    error_type = "PRODUCT_NOT_ELIGIBLE"


class CouponNotFound(CouponError):
    error_type = "COUPON_NOT_FOUND"
    status_code = 404


class UserLimitExceeded(CouponError):
    error_type = "USER_LIMIT_EXCEEDED"


class TotalLimitExceeded(CouponError):
    error_type = "TOTAL_LIMIT_EXCEEDED"


class DuplicateUsage(CouponError):
    error_type = "DUPLICATE_USAGE"


class StorageUnavailable(Exception):
    """Infrastructure failure (database down, commit failed). Not a statement about the coupon."""

    error_type = "STORAGE_UNAVAILABLE"
    status_code = 503

    def __init__(self, message: str = "Coupon service is temporarily unavailable. Please try again."):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error_type": self.error_type, "message": self.message}


class UsageConflict(StorageUnavailable):
    """The coupon kept changing under record-usage; safe to retry with the same order id."""

    error_type = "USAGE_CONFLICT"
    status_code = 409
