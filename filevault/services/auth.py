import logging
from typing import Optional
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from filevault.errors import Conflict, Unauthorized
from filevault.models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

class CredentialStore:

    @staticmethod
    def hash_password(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain: str, hashed: str) -> bool:
        return pwd_context.verify(plain, hashed)

    @staticmethod
    async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def register(db: AsyncSession, username: str, email: str, password: str) -> User:
        if await CredentialStore.get_user_by_username(db, username):
            raise Conflict("Username already exists")
        if await CredentialStore.get_user_by_email(db, email):
            raise Conflict("E-mail already exists")

        user = User(
            username=username,
            email=email,
            password_hash=CredentialStore.hash_password(password),
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same name
            await db.rollback()
            raise Conflict("Username or e-mail already exists")
        await db.refresh(user)
        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return user

    @staticmethod
    async def verify(db: AsyncSession, username: str, password: str) -> User:
        user = await CredentialStore.get_user_by_username(db, username)
        if not user or not CredentialStore.verify_password(password, user.password_hash):
            raise Unauthorized("Invalid username or password")
        return user

credential_store = CredentialStore()
