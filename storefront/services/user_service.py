from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..model import Address, RefreshToken, User
from ..utils.parsing import coerce_flag, text_field

ADDRESS_REQUIRED = ("address_line1", "city", "state", "pincode")
ADDRESS_OPTIONAL = ("address_line2", "country")


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


# ---------- profile ----------

def update_profile(user_id: int, data: dict) -> User:
    """Name and phone number are the only editable profile fields."""
    user = get_user(user_id)
    if "name" not in data and "phone_number" not in data:
        raise ValidationError("No fields provided for update")

    if "name" in data:
        name = text_field(data, "name")
        if len(name) < 2:
            raise ValidationError("Name must be at least 2 characters")
        user.name = name

    if "phone_number" in data:
        phone = text_field(data, "phone_number") or None
        if phone and User.query.filter(User.phone_number == phone, User.id != user.id).first():
            raise ConflictError("Phone number already registered")
        user.phone_number = phone

    db.session.commit()
    return user


def change_password(user_id: int, current: str, new: str) -> None:
    if not current or not new:
        raise ValidationError("Current and new password are required")
    if len(new) < 6:
        raise ValidationError("Password required, min 6 chars")
    user = get_user(user_id)
    if not check_password_hash(user.password_hash, current):
        raise ValidationError("Invalid current password")

    user.password_hash = generate_password_hash(new)
    # other sessions end with the old password
    RefreshToken.query.filter_by(user_id=user.id).delete()
    db.session.commit()
    current_app.logger.info("user %s changed password", user.id)


# ---------- addresses ----------

def _clean_address(data: dict, partial: bool) -> dict:
    out = {}
    for key in ADDRESS_REQUIRED:
        if key in data or not partial:
            value = text_field(data, key)
            if not value:
                raise ValidationError(f"{key} is required")
            out[key] = value
    for key in ADDRESS_OPTIONAL:
        if key in data:
            out[key] = text_field(data, key) or None
    if not partial and not out.get("country"):
        out["country"] = current_app.config.get("DEFAULT_COUNTRY", "India")
    if partial and "country" in out and not out["country"]:
        raise ValidationError("country cannot be empty")
    if data.get("is_default") is not None:
        try:
            out["is_default"] = coerce_flag(data.get("is_default"))
        except ValueError:
            raise ValidationError("is_default must be a boolean (true/false or 0/1)")
    return out


def _clear_other_defaults(user_id: int, keep_id: int):
    Address.query.filter(Address.user_id == user_id, Address.id != keep_id).update(
        {"is_default": False}, synchronize_session="fetch"
    )


def list_addresses(user_id: int):
    return (
        Address.query.filter_by(user_id=user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
        .all()
    )


def get_address(user_id: int, address_id: int) -> Address:
    address = Address.query.filter_by(id=address_id, user_id=user_id).first()
    if not address:
        raise NotFoundError("Address not found")
    return address


def add_address(user_id: int, data: dict) -> Address:
    """The first address of a user becomes the default."""
    fields = _clean_address(data, partial=False)
    has_default = Address.query.filter_by(user_id=user_id, is_default=True).first() is not None
    if not has_default:
        fields["is_default"] = True
    fields.setdefault("is_default", False)

    address = Address(user_id=user_id, **fields)
    db.session.add(address)
    db.session.flush()
    if address.is_default:
        _clear_other_defaults(user_id, address.id)
    db.session.commit()
    return address


def update_address(user_id: int, address_id: int, data: dict) -> Address:
    address = get_address(user_id, address_id)
    fields = _clean_address(data, partial=True)
    if not fields:
        raise ValidationError("No fields provided for update")
    # unsetting is done by choosing another default
    if fields.get("is_default") is False and address.is_default:
        fields.pop("is_default")

    for key, value in fields.items():
        setattr(address, key, value)
    if fields.get("is_default"):
        _clear_other_defaults(user_id, address.id)
    db.session.commit()
    return address


def set_default_address(user_id: int, address_id: int) -> Address:
    address = get_address(user_id, address_id)
    address.is_default = True
    _clear_other_defaults(user_id, address.id)
    db.session.commit()
    return address


def delete_address(user_id: int, address_id: int) -> None:
    """Deleting the default promotes the most recent remaining address."""
    address = get_address(user_id, address_id)
    was_default = address.is_default
    db.session.delete(address)
    db.session.flush()
    if was_default:
        successor = (
            Address.query.filter_by(user_id=user_id)
            .order_by(Address.created_at.desc(), Address.id.desc())
            .first()
        )
        if successor:
            successor.is_default = True
    db.session.commit()
