import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import generate_password_hash, check_password_hash

from app.database import get_db
from app.exceptions import AuthError
from app.models.progress import utcnow
from app.models.user import User
from app.schemas.user import RegisterRequest, LoginRequest, AuthResponse, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@router.post("/register", response_model=AuthResponse)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    if not data.email or not data.name or not data.password:
        raise HTTPException(400, "Email, name, and password are required")

    email = _normalize_email(data.email)
    result = await db.execute(select(User.id).where(User.email == email))
    if result.first() is not None:
        raise AuthError("User already exists", status_code=409)

    user = User(
        email=email,
        name=data.name.strip(),
        password_hash=generate_password_hash(data.password, method="pbkdf2:sha256"),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        await db.rollback()
        raise AuthError("User already exists", status_code=409)
    await db.refresh(user)
    logger.info(f"Registered user {user.id}")
    # No merge of guest progress into the new account.
    return AuthResponse(message="User created successfully", user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == _normalize_email(data.email)))
    user = result.scalar_one_or_none()
    if user is None or not check_password_hash(user.password_hash, data.password):
        raise AuthError("Invalid email or password")

    user.last_login = utcnow()
    await db.commit()
    await db.refresh(user)
    return AuthResponse(message="Login successful", user=UserResponse.model_validate(user))
