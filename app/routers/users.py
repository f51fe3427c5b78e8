from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.schemas.users import STAFF_ROLES, UserCreate, UserResponse
from app.services.hashing import hasher
from app.services.tokens import TokenError, token_issuer
from app.services.users import UserConflictError, user_store

router = APIRouter(prefix="/users", tags=["users"])
me_router = APIRouter(prefix="/user", tags=["users"])


def get_current_user(authorization: str | None = Header(default=None)) -> UserResponse:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header",
        )
    try:
        token_data = token_issuer.decode_session_token(token)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    user = user_store.get(token_data.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def require_staff(user: UserResponse = Depends(get_current_user)) -> UserResponse:
    if user.role not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


@me_router.get("/me", response_model=UserResponse)
def get_me(user: UserResponse = Depends(get_current_user)) -> UserResponse:
    return user


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: int, _: UserResponse = Depends(get_current_user)) -> UserResponse:
    user = user_store.get(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate, _: UserResponse = Depends(require_staff)
) -> UserResponse:
    if user_store.find_by_email(payload.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email",
        )
    try:
        return user_store.create(
            name=payload.name,
            email=payload.email,
            password_hash=hasher.hash(payload.password),
            role=payload.role,
            email_verified=True,
        )
    except UserConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
