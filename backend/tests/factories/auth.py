# backend/tests/factories/auth.py

import factory
from factory import Faker, Sequence

from core.auth import get_password_hash
from modules.auth.models import User, UserType
from .base import BaseFactory

TEST_PASSWORD = "correct-horse-42"


class UserFactory(BaseFactory):
    """Diner accounts."""

    class Meta:
        model = User

    email = Sequence(lambda n: f"diner{n}@example.com")
    name = Faker("first_name")
    last_name = Faker("last_name")
    phone = Sequence(lambda n: f"0821{n:06d}")
    user_type = UserType.DINER.value
    password_hash = factory.LazyFunction(lambda: get_password_hash(TEST_PASSWORD))


class AdminUserFactory(UserFactory):
    """Restaurant portal accounts."""

    email = Sequence(lambda n: f"admin{n}@example.com")
    phone = None
    user_type = UserType.RESTAURANT_ADMIN.value
