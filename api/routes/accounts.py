"""
Account routes: registration, login, profile and user administration.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from api.dependencies import get_account_service, requires
from api.schemas import CamelRequest
from api.submissions import read_submission
from shared.models import User
from workflows.services.accounts import AccountService

router = APIRouter(tags=["Accounts"])


class LoginRequest(CamelRequest):
    email: Optional[str] = None
    password: Optional[str] = None


class PasswordUpdateRequest(CamelRequest):
    old_password: Optional[str] = None
    password: Optional[str] = None


class UserUpdateRequest(CamelRequest):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


def _first(uploads):
    return uploads[0] if uploads else None


@router.post("/register", status_code=201)
async def register(request: Request, accounts: AccountService = Depends(get_account_service)):
    """Create an account. Multipart with an optional `avatar` file, or JSON."""
    fields, uploads = await read_submission(request, "avatar")
    user, token = await run_in_threadpool(
        accounts.register,
        name=fields.get("name"),
        email=fields.get("email"),
        password=fields.get("password"),
        avatar=_first(uploads),
    )
    return {"success": True, "user": user.to_json(), "token": token}


@router.post("/login")
def login(body: LoginRequest, accounts: AccountService = Depends(get_account_service)):
    user, token = accounts.login(body.email, body.password)
    return {"success": True, "user": user.to_json(), "token": token}


@router.get("/logout")
def logout():
    # Tokens are stateless; the client discards its copy
    return {"success": True, "message": "Logged out"}


@router.get("/me")
def get_profile(user: User = Depends(requires("profile.read"))):
    return {"success": True, "user": user.to_json()}


@router.put("/me/update")
async def update_profile(
    request: Request,
    user: User = Depends(requires("profile.update")),
    accounts: AccountService = Depends(get_account_service),
):
    fields, uploads = await read_submission(request, "avatar")
    updated = await run_in_threadpool(
        accounts.update_profile,
        user.id,
        name=fields.get("name"),
        email=fields.get("email"),
        avatar=_first(uploads),
    )
    return {"success": True, "user": updated.to_json()}


@router.put("/password/update")
def update_password(
    body: PasswordUpdateRequest,
    user: User = Depends(requires("password.update")),
    accounts: AccountService = Depends(get_account_service),
):
    updated, token = accounts.update_password(user.id, body.old_password, body.password)
    return {
        "success": True,
        "message": "Password updated successfully",
        "user": updated.to_json(),
        "token": token,
    }


# =============================================================================
# Administration
# =============================================================================

@router.get("/admin/users")
def list_users(
    admin: User = Depends(requires("users.list")),
    accounts: AccountService = Depends(get_account_service),
):
    return {"success": True, "users": [u.to_json() for u in accounts.list_users()]}


@router.get("/admin/user/{user_id}")
def get_user(
    user_id: str,
    admin: User = Depends(requires("users.read")),
    accounts: AccountService = Depends(get_account_service),
):
    return {"success": True, "user": accounts.get_user(user_id).to_json()}


@router.put("/admin/user/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdateRequest,
    admin: User = Depends(requires("users.update")),
    accounts: AccountService = Depends(get_account_service),
):
    updated = accounts.update_user(user_id, name=body.name, email=body.email, role=body.role)
    return {"success": True, "user": updated.to_json()}
