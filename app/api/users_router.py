"""User endpoints: register under a restaurant, login, current user."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.schemas import CamelModel
from app.db.dependencies import get_current_user, get_identity
from app.services import IdentityService


router = APIRouter(prefix="/api/users", tags=["users"])


class RegisterRequest(CamelModel):
    username: str
    email: str
    password: str
    restaurant_name: str
    restaurant_code: str


class RegisterResponse(CamelModel):
    message: str
    user_id: str
    restaurant_id: str
    is_owner: bool


class LoginRequest(CamelModel):
    username: str
    password: str
    restaurant_name: str


class LoginResponse(CamelModel):
    message: str
    user_id: str
    username: str
    restaurant_id: str
    restaurant_name: str
    access_token: str
    token_type: str


class UserResponse(CamelModel):
    id: str
    username: str
    email: str
    restaurant_id: str


@router.post("/register", response_model=RegisterResponse, status_code=201, summary="Register a user")
async def register_user(
    request: RegisterRequest,
    identity: IdentityService = Depends(get_identity),
):
    """
    Register a user under a restaurant.

    If the restaurant does not exist yet it is created with the given code
    and the user becomes its owner. If it exists, the code must match.
    """
    result = identity.register(
        username=request.username,
        email=request.email,
        password=request.password,
        restaurant_name=request.restaurant_name,
        restaurant_code=request.restaurant_code,
    )
    return RegisterResponse(message="User registered successfully.", **result)


@router.post("/login", response_model=LoginResponse, summary="Login and get JWT token")
async def login_user(
    request: LoginRequest,
    identity: IdentityService = Depends(get_identity),
):
    """Authenticate a user of a restaurant and return session info."""
    session_info = identity.login(request.username, request.password, request.restaurant_name)
    return LoginResponse(message="Login successful.", **session_info)


@router.get("/me", response_model=UserResponse, summary="Current user from bearer token")
async def read_current_user(current_user: Dict[str, Any] = Depends(get_current_user)):
    return UserResponse(
        id=current_user["id"],
        username=current_user["username"],
        email=current_user["email"],
        restaurant_id=current_user["restaurant_id"],
    )
