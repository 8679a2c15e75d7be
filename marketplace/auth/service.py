import hmac
import logging
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from ..common import database
from ..common.config import settings
from ..common.errors import ValidationFailed
from ..common.redis_client import get_redis
from ..notifications import dispatcher
from .model import Role, User
from .passwords import generate_reset_code, hash_password, verify_password
from .schemas import RegisterIn

_logger = logging.getLogger(__name__)


def reset_code_key(email: str) -> str:
    return f"password-reset:{email.strip().lower()}"


def reset_attempts_key(email: str) -> str:
    return f"password-reset-attempts:{email.strip().lower()}"


async def _find_user(session, **filters) -> Optional[User]:
    stmt = sa.select(User)
    for column, value in filters.items():
        stmt = stmt.where(sa.func.lower(getattr(User, column)) == value.strip().lower())
    res = await session.execute(stmt)
    return res.scalars().first()


async def register_user(data: RegisterIn) -> User:
    async with database.get_session() as session:
        if await _find_user(session, username=data.username):
            raise ValidationFailed("Username already exists", fields=[{"field": "username", "message": "taken"}])
        if await _find_user(session, email=data.email):
            raise ValidationFailed("Email already exists", fields=[{"field": "email", "message": "taken"}])
        user = User(
            username=data.username,
            password=hash_password(data.password),
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            company=data.company,
            role=data.role,
            is_seller=data.role == Role.SELLER.value,
            # buyers are approved immediately, sellers wait for an admin
            is_approved=data.role == Role.BUYER.value,
        )
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ValidationFailed("Username or email already exists") from None
        _logger.info("User registered | user_id=%s role=%s", user.id, user.role)
        return user


async def authenticate(username: str, password: str) -> Optional[User]:
    async with database.get_session() as session:
        user = await _find_user(session, username=username)
    if user is None or not verify_password(password, user.password):
        return None
    return user


async def request_password_reset(email: str) -> None:
    """Store a short-lived reset code and email it. Silent for unknown emails."""
    async with database.get_session() as session:
        user = await _find_user(session, email=email)
    if user is None:
        _logger.info("Password reset requested for unknown email")
        return
    code = generate_reset_code()
    r = await get_redis()
    await r.set(reset_code_key(user.email), code, ex=settings.RESET_CODE_TTL_SECONDS)
    await r.delete(reset_attempts_key(user.email))
    dispatcher.dispatch("password_reset", {"to": user.email, "code": code})
    _logger.info("Password reset code issued | user_id=%s", user.id)


async def _record_failed_reset(r, email: str) -> None:
    """Count a wrong code; the stored code is burned once the limit is hit."""
    attempts_key = reset_attempts_key(email)
    attempts = await r.incr(attempts_key)
    if attempts == 1:
        await r.expire(attempts_key, settings.RESET_CODE_TTL_SECONDS)
    if attempts >= settings.RESET_CODE_MAX_ATTEMPTS:
        await r.delete(reset_code_key(email), attempts_key)
        _logger.warning("Password reset code burned after %s failed attempts", attempts)


async def confirm_password_reset(email: str, code: str, new_password: str) -> None:
    r = await get_redis()
    key = reset_code_key(email)
    stored = await r.get(key)
    if stored is None or not hmac.compare_digest(stored.encode(), code.encode()):
        if stored is not None:
            await _record_failed_reset(r, email)
        raise ValidationFailed("Invalid or expired reset code", fields=[{"field": "code", "message": "invalid"}])
    async with database.get_session() as session:
        async with session.begin():
            user = await _find_user(session, email=email)
            if user is None:
                raise ValidationFailed("Invalid or expired reset code")
            user.password = hash_password(new_password)
    await r.delete(key, reset_attempts_key(email))
    _logger.info("Password reset completed | user_id=%s", user.id)
