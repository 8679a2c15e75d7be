from functools import wraps
from typing import Optional

from quart import g, session

from ..common import database
from ..common.errors import Forbidden, Unauthorized
from .model import User

SESSION_USER_KEY = "user_id"


async def load_current_user() -> Optional[User]:
    user_id = session.get(SESSION_USER_KEY)
    if user_id is None:
        return None
    return await database.fetch_user(int(user_id))


def login_required(fn):
    @wraps(fn)
    async def wrapper(*args, **kwargs):
        user = await load_current_user()
        if user is None:
            raise Unauthorized("Authentication required")
        g.user = user
        return await fn(*args, **kwargs)

    return wrapper


def roles_required(*roles: str):
    def decorator(fn):
        @wraps(fn)
        @login_required
        async def wrapper(*args, **kwargs):
            if g.user.role not in roles:
                raise Forbidden(f"Requires role: {', '.join(roles)}")
            return await fn(*args, **kwargs)

        return wrapper

    return decorator
