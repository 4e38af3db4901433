"""
Tests for accounts, credentials and the authorization table.
"""

from datetime import datetime, timedelta

import jwt
import pytest

from shared.config import Settings
from shared.data_store import DataStore
from shared.errors import AuthError, ForbiddenError, NotFoundError, ValidationError
from shared.image_host import ImageUpload, MockImageHost
from shared.models import Role, User
from workflows.services.accounts import (
    OPERATION_ROLES,
    AccountService,
    authorize,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


@pytest.fixture
def accounts(data_store: DataStore, image_host: MockImageHost, settings: Settings) -> AccountService:
    return AccountService(data_store=data_store, image_host=image_host, settings=settings)


@pytest.fixture
def registered(accounts: AccountService) -> User:
    user, _ = accounts.register("Rosa Lim", "rosa.lim@gmail.com", "brushes1")
    return user


class TestAuthorize:
    """Tests for the role table."""

    def test_no_user(self):
        with pytest.raises(AuthError) as excinfo:
            authorize(None, "orders.read")

        assert excinfo.value.status_code == 401

    def test_role_not_allowed(self, data_store: DataStore, maria_id: str):
        with pytest.raises(ForbiddenError) as excinfo:
            authorize(data_store.get_user(maria_id), "push_tokens.cleanup")

        assert excinfo.value.status_code == 403

    def test_admin_cannot_register_push_token(self, data_store: DataStore, admin_id: str):
        with pytest.raises(ForbiddenError):
            authorize(data_store.get_user(admin_id), "push_token.register")

    def test_allowed(self, data_store: DataStore, admin_id: str):
        admin = data_store.get_user(admin_id)

        assert authorize(admin, "orders.manage") is admin

    def test_unknown_operation(self, data_store: DataStore, admin_id: str):
        with pytest.raises(KeyError):
            authorize(data_store.get_user(admin_id), "orders.teleport")

    def test_every_operation_allows_someone(self):
        assert all(OPERATION_ROLES.values())


class TestCredentials:
    """Tests for password hashing and tokens."""

    def test_hash_and_verify(self):
        hashed = hash_password("secret1")

        assert hashed != "secret1"
        assert verify_password("secret1", hashed)
        assert not verify_password("secret2", hashed)
        assert not verify_password("secret1", None)

    def test_token_round_trip(self, settings: Settings):
        token = create_access_token("user-001", settings)

        assert decode_access_token(token, settings) == "user-001"

    def test_expired_token(self, settings: Settings):
        token = create_access_token("user-001", settings, now=datetime.utcnow() - timedelta(days=30))

        with pytest.raises(AuthError):
            decode_access_token(token, settings)

    def test_wrong_secret(self, settings: Settings):
        token = jwt.encode({"sub": "user-001"}, "other-secret", algorithm="HS256")

        with pytest.raises(AuthError):
            decode_access_token(token, settings)

    def test_authenticate_missing_token(self, accounts: AccountService):
        with pytest.raises(AuthError):
            accounts.authenticate(None)

    def test_authenticate_deleted_user(self, accounts: AccountService, settings: Settings):
        with pytest.raises(AuthError):
            accounts.authenticate(create_access_token("user-999", settings))


class TestRegistration:
    """Tests for sign-up and login."""

    def test_register_returns_working_token(self, accounts: AccountService):
        user, token = accounts.register("Rosa Lim", "rosa.lim@gmail.com", "brushes1")

        assert user.role == Role.USER.value
        assert user.password_hash != "brushes1"
        assert accounts.authenticate(token).id == user.id

    def test_register_with_avatar(self, accounts: AccountService, image_host: MockImageHost, jpeg: ImageUpload):
        user, _ = accounts.register("Rosa Lim", "rosa.lim@gmail.com", "brushes1", avatar=jpeg)

        assert user.avatar.public_id.startswith("avatars/")
        assert "w_150" in user.avatar.url

    def test_duplicate_email(self, accounts: AccountService):
        with pytest.raises(ValidationError) as excinfo:
            accounts.register("Other Maria", "MARIA.SANTOS@gmail.com", "brushes1")

        assert excinfo.value.message == "Email is already registered"

    def test_short_password(self, accounts: AccountService):
        with pytest.raises(ValidationError):
            accounts.register("Rosa Lim", "rosa.lim@gmail.com", "abc")

    def test_password_over_72_bytes(self, accounts: AccountService, data_store: DataStore):
        with pytest.raises(ValidationError) as excinfo:
            accounts.register("Rosa Lim", "rosa.lim@gmail.com", "x" * 100)

        assert "72 bytes" in excinfo.value.message
        assert data_store.get_user_by_email("rosa.lim@gmail.com") is None

    def test_multibyte_password_counts_bytes(self, accounts: AccountService):
        with pytest.raises(ValidationError):
            accounts.register("Rosa Lim", "rosa.lim@gmail.com", "\u00f1" * 40)

    def test_login_with_overlong_password_is_rejected(self, accounts: AccountService, registered: User):
        with pytest.raises(AuthError):
            accounts.login("rosa.lim@gmail.com", "x" * 100)

    def test_invalid_email(self, accounts: AccountService):
        with pytest.raises(ValidationError):
            accounts.register("Rosa Lim", "not-an-email", "brushes1")

    def test_login(self, accounts: AccountService, registered: User):
        user, token = accounts.login("rosa.lim@gmail.com", "brushes1")

        assert user.id == registered.id
        assert accounts.authenticate(token).id == registered.id

    def test_login_wrong_password(self, accounts: AccountService, registered: User):
        with pytest.raises(AuthError) as excinfo:
            accounts.login("rosa.lim@gmail.com", "wrong-one")

        assert excinfo.value.message == "Invalid Email or Password"

    def test_login_missing_fields(self, accounts: AccountService):
        with pytest.raises(ValidationError):
            accounts.login("rosa.lim@gmail.com", None)

    def test_fixture_users_cannot_log_in_without_password(self, accounts: AccountService):
        with pytest.raises(AuthError):
            accounts.login("maria.santos@gmail.com", "anything")


class TestProfile:
    """Tests for self-service profile changes."""

    def test_update_name(self, accounts: AccountService, data_store: DataStore, registered: User):
        accounts.update_profile(registered.id, name="Rosa M. Lim")

        stored = data_store.get_user(registered.id)
        assert stored.name == "Rosa M. Lim"
        # Password still works after a profile change
        assert verify_password("brushes1", stored.password_hash)

    def test_update_email_to_taken_one(self, accounts: AccountService, registered: User):
        with pytest.raises(ValidationError):
            accounts.update_profile(registered.id, email="juan.delacruz@gmail.com")

    def test_new_avatar_replaces_old(self, accounts: AccountService, image_host: MockImageHost, maria_id: str, jpeg: ImageUpload):
        user = accounts.update_profile(maria_id, avatar=jpeg)

        assert image_host.destroyed == ["avatars/maria"]
        assert user.avatar.public_id == "avatars/img-0001"

    def test_failed_delete_of_old_avatar_still_saves_profile(self, data_store: DataStore, settings: Settings, maria_id: str, jpeg: ImageUpload):
        accounts = AccountService(data_store=data_store, image_host=MockImageHost(fail_destroy=True), settings=settings)

        accounts.update_profile(maria_id, avatar=jpeg)

        assert data_store.get_user(maria_id).avatar.public_id == "avatars/img-0001"

    def test_update_password(self, accounts: AccountService, registered: User):
        accounts.update_password(registered.id, "brushes1", "canvas22")

        user, _ = accounts.login("rosa.lim@gmail.com", "canvas22")
        assert user.id == registered.id

    def test_update_password_wrong_old(self, accounts: AccountService, registered: User):
        with pytest.raises(ValidationError) as excinfo:
            accounts.update_password(registered.id, "nope-nope", "canvas22")

        assert excinfo.value.message == "Old password is incorrect."

    def test_update_password_too_long(self, accounts: AccountService, registered: User):
        with pytest.raises(ValidationError):
            accounts.update_password(registered.id, "brushes1", "x" * 73)

        user, _ = accounts.login("rosa.lim@gmail.com", "brushes1")
        assert user.id == registered.id


class TestAdministration:
    """Tests for admin user management."""

    def test_list_users(self, accounts: AccountService):
        assert len(accounts.list_users()) == 7

    def test_get_unknown_user(self, accounts: AccountService):
        with pytest.raises(NotFoundError):
            accounts.get_user("user-999")

    def test_promoting_to_admin_clears_push_token(self, accounts: AccountService, data_store: DataStore, maria_id: str):
        accounts.update_user(maria_id, role="admin")

        maria = data_store.get_user(maria_id)
        assert maria.role == Role.ADMIN.value
        assert maria.push_token is None

    def test_invalid_role(self, accounts: AccountService, maria_id: str):
        with pytest.raises(ValidationError):
            accounts.update_user(maria_id, role="superuser")
