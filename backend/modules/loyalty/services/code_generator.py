# backend/modules/loyalty/services/code_generator.py

import re
import secrets
import string
from typing import Callable, Optional

CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_PREFIX = "VCH"


def code_prefix(restaurant_name: Optional[str]) -> str:
    """First four letters or digits of the restaurant name, upper-cased."""
    cleaned = re.sub(r"[^A-Za-z0-9]", "", restaurant_name or "").upper()
    return cleaned[:4] or DEFAULT_PREFIX


def random_suffix(length: int, alphabet: str = CODE_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


class VoucherCodeGenerator:
    """
    Generates voucher codes like ``BURG-7K2Q9X``.

    ``exists`` is asked about every candidate; the unique constraint on the
    column still guards against a concurrent insert of the same code.
    """

    def __init__(self, exists: Callable[[str], bool], length: int = 6, max_attempts: int = 10):
        self.exists = exists
        self.length = length
        self.max_attempts = max_attempts

    def candidates(self, restaurant_name: Optional[str]):
        prefix = code_prefix(restaurant_name)
        for _ in range(self.max_attempts):
            code = f"{prefix}-{random_suffix(self.length)}"
            if not self.exists(code):
                yield code

    def generate(self, restaurant_name: Optional[str]) -> Optional[str]:
        return next(self.candidates(restaurant_name), None)


def presentation_code(length: int) -> str:
    """Short numeric code a diner shows at the till."""
    return random_suffix(length, string.digits)
