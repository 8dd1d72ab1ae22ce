import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field

from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.core.security import create_access_token, get_current_user, hash_password, verify_password
from app.models.user import User, UserRole
from app.routers.views import user_view
from app.services.store import LearningStore, get_store

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None


class MeResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    xp: int
    level: int
    streak: int


class RegisterRequest(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    password: str


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user_id=str(user.id), role=user.role.value),
        expires_in=int(settings.jwt_access_token_minutes) * 60,
    )


@router.post("/register", response_model=TokenResponse)
def register(
    payload: RegisterRequest,
    store: LearningStore = Depends(get_store),
    _: object = rate_limit(key_prefix="auth_register", limit=10, window_seconds=60),
):
    if not settings.allow_public_register:
        raise HTTPException(status_code=403, detail="registration disabled")

    if len(payload.password or "") < int(settings.password_min_length or 0):
        raise HTTPException(status_code=400, detail="password too short")

    if store.get_user_by_email(payload.email) is not None:
        raise HTTPException(status_code=409, detail="user already exists")

    user = store.add_user(
        User(
            email=str(payload.email).strip().lower(),
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            role=UserRole.student,
            xp=0,
            level=1,
            streak=0,
            password_hash=hash_password(payload.password),
        )
    )
    store.commit()
    logger.info("user registered id=%s", user.id)
    return _token_response(user)


@router.post("/token", response_model=TokenResponse)
def token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    store: LearningStore = Depends(get_store),
    _: object = rate_limit(key_prefix="auth_token", limit=20, window_seconds=60),
):
    user = store.get_user_by_email(form_data.username)
    if user is None or not user.is_active or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="invalid credentials")
    return _token_response(user)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return user_view(user)
