"""
Identity provider for the back-office: password accounts, bearer tokens
and the admin/user role claim the routers authorize on.
"""
import structlog
from fastapi import HTTPException, status
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.security import ADMIN_ROLE, USER_ROLE, create_user_token

from .models import User
from .repository import UserRepository
from .schemas import RoleUpdate, TokenResponse, UserCreate, UserLogin

logger = structlog.get_logger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthService:

    @staticmethod
    def _hash_password(password: str) -> str:
        return _pwd_context.hash(password)

    @staticmethod
    def _verify_password(plain: str, hashed: str) -> bool:
        return _pwd_context.verify(plain, hashed)

    @staticmethod
    async def register(db: AsyncSession, data: UserCreate) -> User:
        email = data.email.lower()
        existing = await UserRepository.get_by_email(db, email)
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already registered",
            )
        role = ADMIN_ROLE if email in settings.BOOTSTRAP_ADMIN_EMAILS else USER_ROLE
        user = User(
            email=email,
            hashed_password=AuthService._hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=role,
        )
        user = await UserRepository.create(db, user)
        logger.info("user_registered", user_id=user.id, role=role)
        return user

    @staticmethod
    async def login(db: AsyncSession, data: UserLogin) -> TokenResponse:
        user = await UserRepository.get_by_email(db, data.email)
        if not user or not AuthService._verify_password(data.password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is disabled",
            )
        token = create_user_token(user.id, user.role)
        return TokenResponse(access_token=token)

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: str) -> User:
        user = await UserRepository.get_by_id(db, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user

    @staticmethod
    async def set_role(db: AsyncSession, user_id: str, data: RoleUpdate) -> User:
        user = await AuthService.get_user_by_id(db, user_id)
        user.role = data.role
        user = await UserRepository.update(db, user)
        logger.info("user_role_changed", user_id=user.id, role=user.role)
        return user
