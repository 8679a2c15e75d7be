from quart import Blueprint, g, jsonify, request, session

from ..common.errors import Unauthorized
from ..common.validation import parse_body
from .guards import SESSION_USER_KEY, login_required
from .schemas import LoginIn, RegisterIn, ResetConfirmIn, ResetRequestIn
from .service import authenticate, confirm_password_reset, register_user, request_password_reset

bp = Blueprint("auth", __name__, url_prefix="/api")


@bp.post("/register")
async def register():
    data = parse_body(RegisterIn, await request.get_json(silent=True))
    user = await register_user(data)
    session[SESSION_USER_KEY] = user.id
    return jsonify(user.to_dict()), 201


@bp.post("/login")
async def login():
    data = parse_body(LoginIn, await request.get_json(silent=True))
    user = await authenticate(data.username, data.password)
    if user is None:
        raise Unauthorized("Invalid username or password")
    session[SESSION_USER_KEY] = user.id
    return jsonify(user.to_dict())


@bp.post("/logout")
async def logout():
    session.clear()
    return jsonify({"ok": True})


@bp.get("/user")
@login_required
async def current_user():
    return jsonify(g.user.to_dict())


@bp.post("/password-reset/request")
async def password_reset_request():
    data = parse_body(ResetRequestIn, await request.get_json(silent=True))
    await request_password_reset(data.email)
    return "", 204


@bp.post("/password-reset/confirm")
async def password_reset_confirm():
    data = parse_body(ResetConfirmIn, await request.get_json(silent=True))
    await confirm_password_reset(data.email, data.code, data.password)
    return "", 204
