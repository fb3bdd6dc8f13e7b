"""
api/routes/v1/users.py -- Profile and user directory endpoints.

Routes:
  GET   /api/v1/users/me          -- caller's profile
  PATCH /api/v1/users/me          -- update caller's full_name / bio
  GET   /api/v1/users             -- list accounts (admin), ?role= filter
  GET   /api/v1/users/{user_id}   -- one account (admin)

Email, role, and password are not editable here: role is fixed at
registration and the password changes only through the reset flow.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import ProfilePatch, UserResponse
from auth.dependencies import get_current_user
from auth.models import Role, User
from core.errors import NotFoundError

router = APIRouter(prefix="/api/v1", tags=["Users"])


@router.get("/users/me", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.patch("/users/me", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfilePatch,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Update profile fields that were sent. An empty body is a no-op."""
    store = request.app.state.user_store
    updates = body.model_dump(exclude_unset=True)
    store.update_profile(current_user.id, **updates)
    return UserResponse.from_user(store.get_by_id(current_user.id))


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, role: Optional[Role] = None) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in request.app.state.user_store.list_users(role)]


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int) -> UserResponse:
    user = request.app.state.user_store.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return UserResponse.from_user(user)
