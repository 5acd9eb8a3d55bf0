# backend/modules/loyalty/exceptions.py

"""
Voucher errors carrying a machine readable ``reason`` in their details.
"""

from typing import Any, Dict, Optional

from fastapi import status

from core.error_handling import APIError


class RedemptionError(APIError):
    reason = "redemption_failed"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=self.status_code,
            details={"reason": self.reason, **(details or {})},
        )


class VoucherNotFoundError(RedemptionError):
    reason = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class CodeExpiredError(RedemptionError):
    reason = "code_expired"
    status_code = status.HTTP_410_GONE


class VoucherExpiredError(RedemptionError):
    reason = "voucher_expired"
    status_code = status.HTTP_410_GONE


class AlreadyRedeemedError(RedemptionError):
    reason = "already_redeemed"
    status_code = status.HTTP_409_CONFLICT


class WrongBranchError(RedemptionError):
    reason = "wrong_branch"
    status_code = status.HTTP_403_FORBIDDEN


class WrongRestaurantError(RedemptionError):
    reason = "wrong_restaurant"
    status_code = status.HTTP_403_FORBIDDEN


class InsufficientCreditsError(RedemptionError):
    reason = "insufficient_credits"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, required: int, available: int, credit_source: str):
        super().__init__(
            f"You need {required} {credit_source} credit(s) but only have {available}",
            details={"required": required, "available": available, "credit_source": credit_source},
        )


class DuplicateRegistrationVoucherError(RedemptionError):
    reason = "registration_voucher_exists"
    status_code = status.HTTP_409_CONFLICT


class VoucherTypeUnavailableError(RedemptionError):
    reason = "voucher_type_unavailable"
    status_code = status.HTTP_409_CONFLICT
