import logging
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.database import get_db
from filevault.api.deps import get_current_user, get_token_service
from filevault.models.user import User
from filevault.services.auth import credential_store
from filevault.services.tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter()


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str


class TokenResponse(UserResponse):
    token: str


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    user = await credential_store.register(db, data.username, data.email, data.password)

    return TokenResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        token=tokens.issue(user.id),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    user = await credential_store.verify(db, data.username, data.password)
    logger.info("User %s logged in", user.id)

    return TokenResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        token=tokens.issue(user.id),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return UserResponse(
        id=current_user.id,
        username=current_user.username,
        email=current_user.email,
    )
