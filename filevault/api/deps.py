from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from filevault.database import get_db
from filevault.errors import Unauthorized
from filevault.models.user import User
from filevault.services.auth import credential_store
from filevault.services.files import FileService
from filevault.services.tokens import TokenService

security = HTTPBearer(auto_error=False)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    if not credentials:
        raise Unauthorized("Not authorized, no token")

    user_id = tokens.verify(credentials.credentials)

    user = await credential_store.get_user_by_id(db, user_id)
    if not user:
        raise Unauthorized("Not authorized, user not found")

    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[User]:
    if not credentials:
        return None
    return await get_current_user(credentials, db, tokens)


async def get_reader(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[User]:
    """Requester for read-only routes; anonymous only if the app allows it."""
    if request.app.state.settings.ALLOW_ANONYMOUS_PUBLIC_READS:
        return await get_current_user_optional(credentials, db, tokens)
    return await get_current_user(credentials, db, tokens)
