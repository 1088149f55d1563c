"""Password hashing, verification and generation."""

import logging
import secrets
import string

from passlib.context import CryptContext

from cms_auth.config import settings
from cms_auth.exceptions import ValidationError

logger = logging.getLogger(__name__)

SYMBOLS = "!@#$%^&*"
PASSWORD_ALPHABET = string.ascii_letters + string.digits + SYMBOLS
MIN_GENERATED_LENGTH = 12


def build_context(rounds: int = None) -> CryptContext:
    """bcrypt context; the salt and cost are embedded in every hash."""
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=rounds or settings.BCRYPT_ROUNDS,
    )


class PasswordService:
    """One-way salted password hashing backed by passlib's bcrypt."""

    def __init__(self, context: CryptContext = None, min_length: int = None):
        self.context = context or build_context()
        self.min_length = min_length or settings.PASSWORD_MIN_LENGTH

    def hash(self, plaintext: str) -> str:
        if not plaintext:
            raise ValidationError("Password is required")
        return self.context.hash(plaintext)

    def verify(self, plaintext: str, stored_hash: str) -> bool:
        """Check a password; a missing or malformed stored hash is a mismatch."""
        if not plaintext or not stored_hash:
            return False
        try:
            return self.context.verify(plaintext, stored_hash)
        except (ValueError, TypeError) as e:
            logger.warning(f"Stored password hash could not be verified: {type(e).__name__}")
            return False

    def dummy_verify(self):
        """Spend one verification's worth of time when there is no user to check."""
        self.context.dummy_verify()

    def validate_strength(self, password: str):
        """Reject empty or too-short passwords."""
        if not password or not password.strip():
            raise ValidationError("Password is required")
        if len(password) < self.min_length:
            raise ValidationError(
                f"Password must be at least {self.min_length} characters",
                errors=["password"],
            )

    @staticmethod
    def generate_password(length: int = None) -> str:
        """
        Generate a random printable-ASCII password.

        The result always mixes upper case, lower case, digits and symbols.
        """
        length = length or settings.RESET_PASSWORD_LENGTH
        if length < MIN_GENERATED_LENGTH:
            raise ValidationError(f"Generated passwords must be at least {MIN_GENERATED_LENGTH} characters")

        while True:
            candidate = "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
            if (
                any(c.islower() for c in candidate)
                and any(c.isupper() for c in candidate)
                and any(c.isdigit() for c in candidate)
                and any(c in SYMBOLS for c in candidate)
            ):
                return candidate
