# backend/tests/factories/__init__.py

"""
Shared test factories for the loyalty backend.
"""

from .base import BaseFactory
from .auth import UserFactory, AdminUserFactory, TEST_PASSWORD
from .restaurant import RestaurantFactory, BranchFactory, PortalUserFactory
from .loyalty import (
    PointsBalanceFactory,
    VoucherTypeFactory,
    VoucherFactory,
    DinerInvitationFactory,
)

__all__ = [
    'BaseFactory',
    'UserFactory',
    'AdminUserFactory',
    'TEST_PASSWORD',
    'RestaurantFactory',
    'BranchFactory',
    'PortalUserFactory',
    'PointsBalanceFactory',
    'VoucherTypeFactory',
    'VoucherFactory',
    'DinerInvitationFactory',
]
