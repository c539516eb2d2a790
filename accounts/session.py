"""session.py — Local accounts and the current-session pointer.

Two independent records live in storage: the user directory (``users``) and
the signed-in user (``auth``). Passwords are kept as salted bcrypt hashes;
directory entries written by older builds with a cleartext ``password`` still
log in and are upgraded to a hash on the spot.

Usage::

    auth = AuthStore(storage)
    await auth.restore()
    user = await auth.signup("ana@example.com", "secret1", "Ana")
    await auth.logout()
    user = await auth.login("ANA@example.com", "secret1")
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

import bcrypt

from data.schemas import StoredUser, User
from data.storage import JsonStorage
from errors import DuplicateEmail, FormError, InvalidCredentials, StorageError

logger = logging.getLogger(__name__)

AUTH_KEY = "auth"
USERS_KEY = "users"

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
MAX_PASSWORD_BYTES = 72


# ── Form validation ───────────────────────────────────────────────────────────

def validate_login_form(email: str, password: str) -> None:
    if not email.strip() or not password.strip():
        raise FormError("Please fill in all fields")


def validate_signup_form(
    name: str,
    email: str,
    password: str,
    confirm_password: Optional[str] = None,
    min_length: int = 6,
) -> None:
    """
    Check a signup form the way the signup screen does.

    ``confirm_password`` is optional so API clients that don't collect it can
    skip that check.

    Raises:
        FormError: with the message to show next to the form.
    """
    if not name.strip() or not email.strip() or not password.strip():
        raise FormError("Please fill in all fields")
    if confirm_password is not None and password != confirm_password:
        raise FormError("Passwords do not match")
    if len(password) < min_length:
        raise FormError(f"Password must be at least {min_length} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise FormError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


# ── Password hashing ──────────────────────────────────────────────────────────

def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("ascii"))


def _check_stored(user: StoredUser, password: str) -> bool:
    if user.password_hash is not None:
        return verify_password(password, user.password_hash)
    return user.password is not None and user.password == password


# ── Store ─────────────────────────────────────────────────────────────────────

class AuthStore:
    """
    Sign-up, login and the persisted current session.

    Args:
        storage:       Backing key-value store.
        bcrypt_rounds: Cost factor for new password hashes.
    """

    def __init__(self, storage: JsonStorage, bcrypt_rounds: int = 12) -> None:
        self._storage = storage
        self._rounds = bcrypt_rounds
        self._user: Optional[User] = None

    def current_session(self) -> Optional[User]:
        return self._user

    async def restore(self) -> Optional[User]:
        """Load the persisted session, if any. Call once at startup."""
        stored = await self._storage.get_item(AUTH_KEY)
        self._user = User.model_validate(stored) if stored is not None else None
        if self._user is not None:
            logger.info("Restored session for user '%s'.", self._user.id)
        return self._user

    async def signup(self, email: str, password: str, name: str) -> User:
        """
        Create an account and sign it in.

        Raises:
            DuplicateEmail: another account already uses *email* (any case).
        """
        users = await self._load_users()
        if _find_by_email(users, email) is not None:
            raise DuplicateEmail(email)

        password_hash = await asyncio.to_thread(hash_password, password, self._rounds)
        new_user = StoredUser(
            id=uuid.uuid4().hex,
            email=email,
            name=name,
            created_at=datetime.now(timezone.utc).isoformat(),
            password_hash=password_hash,
        )
        users.append(new_user)
        await self._save_users(users)
        logger.info("Created user '%s'.", new_user.id)
        return await self._open_session(new_user.to_user())

    async def login(self, email: str, password: str) -> User:
        """
        Sign in with an existing account.

        Raises:
            InvalidCredentials: unknown email or wrong password.
        """
        users = await self._load_users()
        found = _find_by_email(users, email)
        if found is None or not await asyncio.to_thread(_check_stored, found, password):
            logger.info("Rejected login attempt.")
            raise InvalidCredentials()

        if found.password_hash is None:
            await self._upgrade_legacy(users, found, password)
        return await self._open_session(found.to_user())

    async def logout(self) -> None:
        await self._storage.remove_item(AUTH_KEY)
        if self._user is not None:
            logger.info("Signed out user '%s'.", self._user.id)
        self._user = None

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _open_session(self, user: User) -> User:
        await self._storage.set_item(AUTH_KEY, user.to_json())
        self._user = user
        return user

    async def _load_users(self) -> list[StoredUser]:
        stored = await self._storage.get_item(USERS_KEY)
        if stored is None:
            return []
        if not isinstance(stored, list):
            raise StorageError(USERS_KEY, "user directory is not a list")
        return [StoredUser.model_validate(item) for item in stored]

    async def _save_users(self, users: list[StoredUser]) -> None:
        await self._storage.set_item(USERS_KEY, [u.to_json() for u in users])

    async def _upgrade_legacy(self, users: list[StoredUser], found: StoredUser, password: str) -> None:
        password_hash = await asyncio.to_thread(hash_password, password, self._rounds)
        upgraded = found.model_copy(update={"password_hash": password_hash, "password": None})
        await self._save_users([upgraded if u.id == found.id else u for u in users])
        logger.info("Upgraded cleartext credentials for user '%s'.", found.id)


def _find_by_email(users: list[StoredUser], email: str) -> Optional[StoredUser]:
    wanted = email.lower()
    for user in users:
        if user.email.lower() == wanted:
            return user
    return None
