"""
Accounts: registration, credentials, profiles and the authorization table.

Passwords are stored as bcrypt hashes. Access tokens are HS256 JWTs carrying
the user id in `sub`; the server keeps no session state, so logout is a no-op
on this side.

Authorization is declarative: every protected operation has an entry in
OPERATION_ROLES, and `authorize` is the only place that compares roles.
Ownership (a user reading their own orders) is checked by the service that
owns the resource.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

import bcrypt
import jwt
from pydantic import ValidationError as PydanticValidationError

from shared.config import Settings, get_settings
from shared.data_store import DataStore, get_data_store
from shared.errors import AuthError, ForbiddenError, NotFoundError, ValidationError
from shared.image_host import (
    AVATAR_FOLDER,
    AVATAR_IMAGE_WIDTH,
    ImageHost,
    ImageUpload,
    MockImageHost,
    validate_uploads,
)
from shared.models import Role, User

logger = logging.getLogger("accounts")


JWT_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes and newer releases reject anything longer
MAX_PASSWORD_BYTES = 72


# =============================================================================
# Authorization
# =============================================================================

ANY_ROLE = frozenset({Role.USER.value, Role.ADMIN.value})
ADMIN_ONLY = frozenset({Role.ADMIN.value})
USER_ONLY = frozenset({Role.USER.value})

OPERATION_ROLES: dict[str, frozenset[str]] = {
    # Accounts
    "profile.read": ANY_ROLE,
    "profile.update": ANY_ROLE,
    "password.update": ANY_ROLE,
    "users.list": ADMIN_ONLY,
    "users.read": ADMIN_ONLY,
    "users.update": ADMIN_ONLY,
    # Catalog
    "catalog.manage": ADMIN_ONLY,
    "reviews.write": ANY_ROLE,
    "reviews.delete": ADMIN_ONLY,
    # Orders
    "orders.create": ANY_ROLE,
    "orders.read": ANY_ROLE,
    "orders.update_status": ANY_ROLE,
    "orders.manage": ADMIN_ONLY,
    # Push tokens and notifications
    "push_token.register": USER_ONLY,
    "push_token.status": ANY_ROLE,
    "push_tokens.cleanup": ADMIN_ONLY,
    "notifications.read": ANY_ROLE,
    "notifications.promote": ADMIN_ONLY,
    "notifications.order_update": ADMIN_ONLY,
    "notifications.delete": ADMIN_ONLY,
}


def authorize(user: Optional[User], operation: str) -> User:
    """
    Check that `user` may perform `operation`.

    Raises:
        AuthError: If there is no authenticated user
        ForbiddenError: If the user's role is not allowed
        KeyError: If the operation is not registered
    """
    allowed = OPERATION_ROLES[operation]
    if user is None:
        raise AuthError("Login first to access this resource")
    if user.role not in allowed:
        logger.warning(f"User {user.id} ({user.role}) denied {operation}")
        raise ForbiddenError(f"Role ({user.role}) is not allowed to access this resource")
    return user


# =============================================================================
# Credentials
# =============================================================================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash or len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_access_token(
    user_id: str,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> str:
    """Sign an access token for `user_id`."""
    settings = settings or get_settings()
    issued = now or datetime.utcnow()
    payload = {
        "sub": user_id,
        "iat": issued,
        "exp": issued + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> str:
    """
    Return the user id carried by a valid token.

    Raises:
        AuthError: If the token is malformed, badly signed or expired
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        raise AuthError("Invalid or expired token") from e
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid or expired token")
    return user_id


class AccountService:
    """
    User accounts and credentials.

    Example:
        accounts = AccountService(data_store, image_host)
        user, token = accounts.register("Maria", "maria@gmail.com", "secret1")
        same_user = accounts.authenticate(token)
    """

    def __init__(
        self,
        data_store: Optional[DataStore] = None,
        image_host: Optional[ImageHost] = None,
        settings: Optional[Settings] = None,
    ):
        self.data_store = data_store or get_data_store()
        self.image_host = image_host or MockImageHost()
        self.settings = settings or get_settings()

    def issue_token(self, user: User) -> str:
        # Signed against wall-clock time, which is what decoding checks `exp` against
        return create_access_token(user.id, self.settings)

    def authenticate(self, token: Optional[str]) -> User:
        """
        Resolve a bearer token to its user.

        Raises:
            AuthError: If the token is missing or invalid, or the user is gone
        """
        if not token:
            raise AuthError("Login first to access this resource")
        user = self.data_store.get_user(decode_access_token(token, self.settings))
        if user is None:
            raise AuthError("Invalid or expired token")
        return user

    # =========================================================================
    # Self-service
    # =========================================================================

    def register(
        self,
        name: str,
        email: str,
        password: str,
        avatar: Optional[ImageUpload] = None,
    ) -> tuple[User, str]:
        """
        Create a regular user account and sign them in.

        Raises:
            ValidationError: On invalid fields, a password of the wrong length or a
                taken email
            GatewayError: If the avatar upload fails
        """
        self._check_password(password)
        try:
            user = User(name=name, email=email, role=Role.USER)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        if self.data_store.get_user_by_email(user.email) is not None:
            raise ValidationError("Email is already registered")

        if avatar is not None:
            validate_uploads([avatar], max_files=1)
            user.avatar = self.image_host.upload(avatar, folder=AVATAR_FOLDER, width=AVATAR_IMAGE_WIDTH)

        user.password_hash = hash_password(password)
        self.data_store.save_user(user)
        logger.info(f"Registered user {user.id} ({user.email})")
        return user, self.issue_token(user)

    def login(self, email: Optional[str], password: Optional[str]) -> tuple[User, str]:
        """
        Raises:
            ValidationError: If either credential is missing
            AuthError: If they do not match an account
        """
        if not email or not password:
            raise ValidationError("Please enter email & password")

        user = self.data_store.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info(f"Failed login for {email}")
            raise AuthError("Invalid Email or Password")

        logger.info(f"User {user.id} logged in")
        return user, self.issue_token(user)

    def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[ImageUpload] = None,
    ) -> User:
        """
        Change name, email and/or avatar. A new avatar replaces the old one on
        the image host.
        """
        user = self.get_user(user_id)
        updated = self._apply_fields(user, {"name": name, "email": email})

        if avatar is not None:
            validate_uploads([avatar], max_files=1)
            updated.avatar = self.image_host.upload(avatar, folder=AVATAR_FOLDER, width=AVATAR_IMAGE_WIDTH)
            if user.avatar is not None:
                self.image_host.discard([user.avatar.public_id])

        self.data_store.save_user(updated)
        logger.info(f"Profile updated for user {user_id}")
        return updated

    def update_password(self, user_id: str, old_password: Optional[str], new_password: Optional[str]) -> tuple[User, str]:
        """
        Raises:
            ValidationError: If a password is missing, the old one is wrong, or
                the new one is too short or too long
        """
        if not old_password or not new_password:
            raise ValidationError("Please provide both old and new passwords.")

        user = self.get_user(user_id)
        if not verify_password(old_password, user.password_hash):
            raise ValidationError("Old password is incorrect.")

        self._check_password(new_password)
        user.password_hash = hash_password(new_password)
        self.data_store.save_user(user)
        logger.info(f"Password changed for user {user_id}")
        return user, self.issue_token(user)

    # =========================================================================
    # Administration
    # =========================================================================

    def list_users(self) -> list[User]:
        return self.data_store.get_users()

    def get_user(self, user_id: str) -> User:
        user = self.data_store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User not found with id: {user_id}")
        return user

    def update_user(
        self,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[str] = None,
    ) -> User:
        """Admin update of name, email and role."""
        user = self.get_user(user_id)
        updated = self._apply_fields(user, {"name": name, "email": email, "role": role})
        if updated.role != Role.USER and updated.push_token:
            # Admins never hold push tokens
            updated.clear_push_token()
        self.data_store.save_user(updated)
        logger.info(f"User {user_id} updated by admin: role={updated.role}")
        return updated

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_password(self, password: Optional[str]) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Your password must be at least {MIN_PASSWORD_LENGTH} characters")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Your password cannot be longer than {MAX_PASSWORD_BYTES} bytes")

    def _apply_fields(self, user: User, fields: dict[str, Any]) -> User:
        """Validate `fields` merged over `user`; keeps the password hash."""
        changes = {k: v for k, v in fields.items() if v is not None}

        new_email = changes.get("email")
        if new_email and new_email.lower() != user.email.lower():
            if self.data_store.get_user_by_email(new_email) is not None:
                raise ValidationError("Email is already registered")

        merged = user.model_dump()
        merged.update(changes)
        try:
            updated = User(**merged)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e
        updated.password_hash = user.password_hash
        return updated
