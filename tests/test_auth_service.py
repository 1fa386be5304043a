import re

import pytest

from barbaros.services.auth_service import AuthService, Identity, public_client


@pytest.fixture
def auth(db):
    return AuthService(db)


def register(auth, email="jane@example.com", password="s3cret!"):
    return auth.register_client("Jane", "Doe", email, "555-0100", password)


def test_register_client(auth):
    client = register(auth)

    assert re.fullmatch(r"C\d{8}", client["client_id"])
    assert "password_hash" not in client
    assert client["email"] == "jane@example.com"


@pytest.mark.parametrize("missing", ["first_name", "last_name", "email", "phone_number", "password"])
def test_register_requires_every_field(auth, missing):
    fields = dict(first_name="Jane", last_name="Doe", email="jane@example.com",
                  phone_number="555-0100", password="s3cret!")
    fields[missing] = "  "

    with pytest.raises(ValueError, match="All fields are required"):
        auth.register_client(**fields)


def test_register_rejects_taken_email(auth):
    register(auth)

    with pytest.raises(ValueError, match="Email already in use"):
        register(auth, email="JANE@example.com")


def test_client_login(auth):
    client = register(auth)

    identity = auth.authenticate("Jane@Example.com", "s3cret!")

    assert identity == Identity(client["id"], "client", "client", "Jane Doe", "jane@example.com")
    assert not identity.is_admin
    assert auth.client_model.get_by_id(client["id"])["last_login"] is not None


def test_wrong_password_or_unknown_user(auth):
    register(auth)

    assert auth.authenticate("jane@example.com", "nope") is None
    assert auth.authenticate("nobody@example.com", "s3cret!") is None
    assert auth.authenticate("jane@example.com", "s3cret!", user_type="admin") is None
    assert auth.authenticate("jane@example.com", "s3cret!", user_type="robot") is None


def test_inactive_client_cannot_login(auth):
    client = register(auth)
    auth.client_model.update(client["id"], account_active=False)

    assert auth.authenticate("jane@example.com", "s3cret!") is None


def test_admin_login(auth):
    admin = auth.create_admin("owner", "letmein", "Olga Owner", "owner", "olga@example.com")

    identity = auth.authenticate("olga@example.com", "letmein", user_type="admin")

    assert "password_hash" not in admin
    assert identity.is_admin
    assert identity.role == "owner"
    assert identity.user_id == admin["id"]


def test_require_admin(staff, client_identity):
    AuthService.require_admin(staff)

    with pytest.raises(PermissionError, match="Unauthorized"):
        AuthService.require_admin(client_identity)
    with pytest.raises(PermissionError):
        AuthService.require_admin(None)


def test_public_client_strips_hash():
    assert public_client(None) is None
    assert public_client({"id": "x", "password_hash": "h"}) == {"id": "x"}
