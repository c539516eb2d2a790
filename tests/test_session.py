import pytest

from accounts.session import (
    AUTH_KEY,
    USERS_KEY,
    AuthStore,
    validate_login_form,
    validate_signup_form,
)
from errors import DuplicateEmail, FormError, InvalidCredentials


@pytest.fixture
def auth(storage):
    return AuthStore(storage, bcrypt_rounds=4)


@pytest.mark.asyncio
async def test_signup_opens_session_and_hashes_password(auth, storage):
    user = await auth.signup("Ana@Example.com", "secret1", "Ana")

    assert auth.current_session() == user
    assert await storage.get_item(AUTH_KEY) == user.to_json()

    (stored,) = await storage.get_item(USERS_KEY)
    assert stored["email"] == "Ana@Example.com"
    assert "password" not in stored
    assert stored["passwordHash"] != "secret1"
    assert stored["passwordHash"].startswith("$2")


@pytest.mark.asyncio
async def test_duplicate_email_is_case_insensitive(auth):
    await auth.signup("ana@example.com", "secret1", "Ana")

    with pytest.raises(DuplicateEmail):
        await auth.signup("ANA@EXAMPLE.COM", "other12", "Impostor")


@pytest.mark.asyncio
async def test_login_logout_cycle(auth, storage):
    created = await auth.signup("ana@example.com", "secret1", "Ana")
    await auth.logout()

    assert auth.current_session() is None
    assert await storage.get_item(AUTH_KEY) is None

    user = await auth.login("ANA@example.com", "secret1")
    assert user == created
    assert auth.current_session() == created


@pytest.mark.asyncio
@pytest.mark.parametrize("email, password", [
    ("ana@example.com", "wrong-password"),
    ("nobody@example.com", "secret1"),
])
async def test_bad_credentials(auth, email, password):
    await auth.signup("ana@example.com", "secret1", "Ana")
    await auth.logout()

    with pytest.raises(InvalidCredentials) as info:
        await auth.login(email, password)
    assert info.value.message == "Invalid email or password"
    assert auth.current_session() is None


@pytest.mark.asyncio
async def test_session_survives_restart(auth, storage):
    user = await auth.signup("ana@example.com", "secret1", "Ana")

    fresh = AuthStore(storage, bcrypt_rounds=4)
    assert fresh.current_session() is None
    assert await fresh.restore() == user
    assert fresh.current_session() == user


@pytest.mark.asyncio
async def test_legacy_cleartext_record_logs_in_and_is_upgraded(auth, storage):
    await storage.set_item(USERS_KEY, [{
        "id": "1717000000000",
        "email": "old@example.com",
        "password": "hunter22",
        "name": "Old Timer",
        "createdAt": "2024-05-29T16:26:40.000Z",
    }])

    user = await auth.login("old@example.com", "hunter22")
    assert user.id == "1717000000000"

    (stored,) = await storage.get_item(USERS_KEY)
    assert "password" not in stored
    assert stored["passwordHash"].startswith("$2")

    await auth.logout()
    assert (await auth.login("old@example.com", "hunter22")).id == "1717000000000"
    with pytest.raises(InvalidCredentials):
        await auth.login("old@example.com", "wrong")


@pytest.mark.parametrize("kwargs, message", [
    ({"name": " ", "email": "a@b.c", "password": "secret1"}, "Please fill in all fields"),
    ({"name": "Ana", "email": "", "password": "secret1"}, "Please fill in all fields"),
    ({"name": "Ana", "email": "a@b.c", "password": "secret1", "confirm_password": "secret2"},
     "Passwords do not match"),
    ({"name": "Ana", "email": "a@b.c", "password": "abc"}, "Password must be at least 6 characters"),
])
def test_signup_form_validation(kwargs, message):
    with pytest.raises(FormError) as info:
        validate_signup_form(**kwargs)
    assert info.value.message == message


def test_valid_signup_form_passes():
    validate_signup_form("Ana", "a@b.c", "secret1", "secret1")
    validate_signup_form("Ana", "a@b.c", "secret1")


def test_login_form_requires_both_fields():
    with pytest.raises(FormError):
        validate_login_form("a@b.c", "   ")
    validate_login_form("a@b.c", "x")
