# storefront/auth/routes.py
import secrets
import uuid
from datetime import timedelta

from flask import request, current_app
from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token, jwt_required

from . import bp
from ..errors import AuthError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..model import User, RefreshToken
from ..services.mailer import send_otp
from ..utils.api import ok, err
from ..utils.decorators import current_user_id
from ..utils.parsing import text_field, utcnow


# --- helper: create & persist a token pair ---
def _issue_tokens(user_id: int):
    access_token = create_access_token(identity=str(user_id))
    refresh_token_str = uuid.uuid4().hex
    refresh_row = RefreshToken(
        user_id=user_id,
        token=refresh_token_str,
        expires_at=utcnow() + timedelta(days=current_app.config["REFRESH_TOKEN_TTL_DAYS"]),
    )
    db.session.add(refresh_row)
    return access_token, refresh_token_str


def _otp_user(data):
    email = text_field(data, "email").lower()
    otp = str(data.get("otp") or "").strip()
    if not email or not otp:
        raise ValidationError("Email and OTP are required")
    user = User.query.filter_by(email=email).first()
    if (
        not user
        or not user.password_reset_otp
        or not secrets.compare_digest(user.password_reset_otp, otp)
        or not user.password_reset_expires
        or user.password_reset_expires < utcnow()
    ):
        raise ValidationError("Invalid or expired OTP")
    return user


@bp.post("/signup")
def signup():
    data = request.get_json(silent=True) or {}
    name = text_field(data, "name")
    email = text_field(data, "email").lower()
    phone = text_field(data, "phone_number") or None
    password = text_field(data, "password", strip=False)

    if len(name) < 2:
        raise ValidationError("Name is required")
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if len(password) < 6:
        raise ValidationError("Password required, min 6 chars")

    if User.query.filter_by(email=email).first():
        raise ConflictError("Email already registered")
    if phone and User.query.filter_by(phone_number=phone).first():
        raise ConflictError("Phone number already registered")

    # Bootstrap: very first account becomes admin
    is_first_user = db.session.query(User.id).count() == 0
    user = User(
        name=name,
        email=email,
        phone_number=phone,
        password_hash=generate_password_hash(password),
        role="admin" if is_first_user else "user",
    )
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("user %s signed up (role=%s)", user.id, user.role)

    return ok("Account created successfully", data={"user": user.as_dict()}, status_code=201)


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = text_field(data, "email").lower()
    phone = text_field(data, "phone_number")
    password = text_field(data, "password", strip=False)
    if not (email or phone) or not password:
        raise ValidationError("Email or phone number and password are required")

    if email:
        user = User.query.filter_by(email=email).first()
    else:
        user = User.query.filter_by(phone_number=phone).first()
    if not user or not check_password_hash(user.password_hash, password):
        raise AuthError("Invalid credentials")
    if not user.is_active:
        raise AuthError("Account is disabled")

    access_token, token_str = _issue_tokens(user.id)
    user.last_login = utcnow()
    db.session.commit()

    return ok(
        "You've logged in successfully",
        data={
            "user": user.as_dict(),
            "token": access_token,
            "refresh_token": token_str,
        },
    )


@bp.post("/logout")
@jwt_required()
def logout():
    RefreshToken.query.filter_by(user_id=current_user_id()).delete()
    db.session.commit()
    return ok("Logged out")


@bp.post("/refresh-token")
def refresh_token():
    data = request.get_json(silent=True) or {}
    token_str = text_field(data, "refresh_token")
    if not token_str:
        raise ValidationError("refresh_token is required")

    refresh_row = RefreshToken.query.filter_by(token=token_str).first()
    if not refresh_row or refresh_row.expires_at < utcnow():
        raise AuthError("Invalid or expired refresh token")

    user_id = refresh_row.user_id

    # ROTATE: the presented token is single-use
    db.session.delete(refresh_row)
    db.session.flush()

    new_access, new_refresh = _issue_tokens(user_id)
    db.session.commit()

    return ok("Token refreshed", data={"token": new_access, "refresh_token": new_refresh})


@bp.post("/forgot-password")
def forgot_password():
    data = request.get_json(silent=True) or {}
    email = text_field(data, "email").lower()
    if not email:
        raise ValidationError("Email is required")
    user = User.query.filter_by(email=email).first()
    if not user:
        raise NotFoundError("User not found")

    ttl = current_app.config["OTP_TTL_MINUTES"]
    user.password_reset_otp = f"{secrets.randbelow(900000) + 100000}"
    user.password_reset_expires = utcnow() + timedelta(minutes=ttl)
    db.session.commit()

    # delivery failures are logged by the mailer; the OTP stays valid
    send_otp(user.email, user.password_reset_otp, ttl)
    return ok("OTP sent to your email")


@bp.post("/verify-otp")
def verify_otp():
    _otp_user(request.get_json(silent=True) or {})
    return ok("OTP verified")


@bp.post("/reset-password")
def reset_password():
    data = request.get_json(silent=True) or {}
    new_password = text_field(data, "new_password", strip=False)
    if len(new_password) < 6:
        raise ValidationError("Password required, min 6 chars")
    user = _otp_user(data)

    user.password_hash = generate_password_hash(new_password)
    user.password_reset_otp = None
    user.password_reset_expires = None
    # existing sessions end with the old password
    RefreshToken.query.filter_by(user_id=user.id).delete()
    db.session.commit()
    return ok("Password reset successfully")


@bp.get("/me")
@jwt_required()
def me():
    user = db.session.get(User, current_user_id())
    if not user:
        return err("user not found", status_code=404)
    return ok("OK", data={"user": user.as_dict()})
