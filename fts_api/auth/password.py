"""
Password hashing with Argon2id.

Argon2id is used because it is:
- Memory-hard (resists GPU/ASIC attacks)
- Side-channel resistant (id variant)
- Salted per hash, so the same password never hashes the same way twice

The work factor is fixed for the lifetime of the process. Stored hashes
created with other parameters are upgraded on the next successful login.
"""

import re
import secrets
import string

from argon2 import PasswordHasher as Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from starlette.concurrency import run_in_threadpool

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


class PasswordHasher:
    """One-way salted hashing and verification of plaintext passwords."""

    def __init__(
        self,
        time_cost: int = 3,        # Number of iterations
        memory_cost: int = 65536,  # 64 MB memory usage
        parallelism: int = 4,      # Number of parallel threads
    ):
        self._ph = Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=32,
            salt_len=16,
        )

    def hash(self, password: str) -> str:
        """
        Hash a password using Argon2id.

        Returns the encoded hash (algorithm, params, salt and digest).
        """
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """
        Verify a password against its hash.

        Returns False on mismatch or on a malformed hash; never raises.
        """
        try:
            return self._ph.verify(password_hash, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError):
            # Hash is malformed - treat as verification failure
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        """Check whether a stored hash was made with other parameters."""
        try:
            return self._ph.check_needs_rehash(password_hash)
        except InvalidHashError:
            return True

    async def hash_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash, password)

    async def verify_async(self, password: str, password_hash: str) -> bool:
        return await run_in_threadpool(self.verify, password, password_hash)


def generate_temp_password(length: int = 16) -> str:
    """
    Generate a secure temporary password.

    Used for:
    - Users created by a super admin without an initial password
    - The bootstrap super admin account
    """
    if length < 12:
        length = 12

    # Ensure at least one of each required character type
    password = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice("!@#$%^&*"),
    ]

    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    password.extend(secrets.choice(alphabet) for _ in range(length - 4))

    secrets.SystemRandom().shuffle(password)

    return "".join(password)


def validate_password_strength(password: str) -> tuple[bool, list[str]]:
    """
    Validate password meets minimum requirements.

    Requirements:
    - 8 to 128 characters
    - At least one letter
    - At least one digit

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []

    if len(password) < PASSWORD_MIN_LENGTH:
        issues.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")

    if len(password) > PASSWORD_MAX_LENGTH:
        issues.append(f"Password must not exceed {PASSWORD_MAX_LENGTH} characters")

    if not re.search(r"[A-Za-z]", password):
        issues.append("Password must contain at least one letter")

    if not re.search(r"\d", password):
        issues.append("Password must contain at least one digit")

    return len(issues) == 0, issues
