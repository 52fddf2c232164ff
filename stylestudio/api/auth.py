"""
Authentication and user administration endpoints
"""
from typing import List
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from stylestudio.api.dependencies import get_current_user, get_storage, require_admin
from stylestudio.api.schemas import (
    CreateUserRequest, LoginRequest, MessageResponse, TokenResponse, UserIdRequest, UserResponse
)
from stylestudio.api.security import create_access_token, hash_password, verify_password
from stylestudio.config.settings import settings
from stylestudio.database.records import UserRecord
from stylestudio.database.repository import Storage

logger = logging.getLogger(__name__)

router = APIRouter()


async def ensure_admin_user(storage: Storage) -> None:
    """Create the bootstrap admin from ADMIN_EMAIL / ADMIN_PASSWORD if missing"""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        return
    if await storage.get_user_by_email(settings.ADMIN_EMAIL) is not None:
        return
    await storage.create_user({
        "email": settings.ADMIN_EMAIL,
        "password_hash": hash_password(settings.ADMIN_PASSWORD),
        "role": "admin",
    })
    logger.info(f"Bootstrap admin {settings.ADMIN_EMAIL} created")


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, storage: Storage = Depends(get_storage)):
    """Exchange email and password for a bearer token"""
    user = await storage.get_user_by_email(request.email)
    if user is None or not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled")

    await storage.update_user_last_login(user.id)
    logger.info(f"User {user.email} logged in")
    return TokenResponse(
        access_token=create_access_token(user.id),
        user=UserResponse.model_validate(user)
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(user: UserRecord = Depends(get_current_user)):
    """Tokens are stateless; the client discards its token"""
    logger.info(f"User {user.email} logged out")
    return MessageResponse(message="Logged out")


@router.get("/user", response_model=UserResponse)
async def current_user(user: UserRecord = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.post("/admin/create-user", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    admin: UserRecord = Depends(require_admin),
    storage: Storage = Depends(get_storage)
):
    if await storage.get_user_by_email(request.email) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A user with this email already exists")
    user = await storage.create_user({
        "email": request.email,
        "password_hash": hash_password(request.password),
        "role": request.role,
    })
    logger.info(f"Admin {admin.email} created user {user.email} ({user.role})")
    return UserResponse.model_validate(user)


@router.get("/admin/users", response_model=List[UserResponse])
async def list_users(_: UserRecord = Depends(require_admin), storage: Storage = Depends(get_storage)):
    return [UserResponse.model_validate(user) for user in await storage.list_users()]


async def _load_other_user(storage: Storage, admin: UserRecord, user_id: str) -> UserRecord:
    user = await storage.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot change their own account here")
    return user


@router.post("/admin/toggle-user-status", response_model=UserResponse)
async def toggle_user_status(
    request: UserIdRequest,
    admin: UserRecord = Depends(require_admin),
    storage: Storage = Depends(get_storage)
):
    user = await _load_other_user(storage, admin, request.user_id)
    updated = await storage.update_user(user.id, {"is_active": not user.is_active})
    logger.info(f"Admin {admin.email} set {user.email} active={updated.is_active}")
    return UserResponse.model_validate(updated)


@router.post("/admin/elevate-user", response_model=UserResponse)
async def elevate_user(
    request: UserIdRequest,
    admin: UserRecord = Depends(require_admin),
    storage: Storage = Depends(get_storage)
):
    user = await _load_other_user(storage, admin, request.user_id)
    updated = await storage.update_user(user.id, {"role": "admin"})
    logger.info(f"Admin {admin.email} elevated {user.email} to admin")
    return UserResponse.model_validate(updated)
