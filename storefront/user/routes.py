# storefront/user/routes.py
from flask import request
from flask_jwt_extended import jwt_required

from . import bp
from ..services import user_service as users
from ..utils.api import ok
from ..utils.decorators import current_user_id
from ..utils.parsing import text_field


def _body():
    return request.get_json(silent=True) or {}


# ---------- profile ----------

@bp.get("/profile")
@jwt_required()
def get_profile():
    return ok("Profile fetched", {"user": users.get_user(current_user_id()).as_dict()})


@bp.put("/profile")
@jwt_required()
def update_profile():
    user = users.update_profile(current_user_id(), _body())
    return ok("Profile updated", {"user": user.as_dict()})


@bp.put("/change-password")
@jwt_required()
def change_password():
    """
    Body: { "currentPassword" | "current_password": str, "newPassword" | "new_password": str }
    """
    data = _body()
    current_key = "currentPassword" if "currentPassword" in data else "current_password"
    new_key = "newPassword" if "newPassword" in data else "new_password"
    users.change_password(
        current_user_id(),
        text_field(data, current_key, strip=False),
        text_field(data, new_key, strip=False),
    )
    return ok("Password changed successfully")


# ---------- addresses ----------

@bp.post("/addresses")
@jwt_required()
def add_address():
    address = users.add_address(current_user_id(), _body())
    return ok("Address added successfully", {"address": address.as_dict()}, status_code=201)


@bp.get("/addresses")
@jwt_required()
def list_addresses():
    items = users.list_addresses(current_user_id())
    return ok("Addresses fetched", {"addresses": [a.as_dict() for a in items]})


@bp.get("/addresses/<int:address_id>")
@jwt_required()
def get_address(address_id: int):
    address = users.get_address(current_user_id(), address_id)
    return ok("Address fetched", {"address": address.as_dict()})


@bp.put("/addresses/<int:address_id>")
@jwt_required()
def update_address(address_id: int):
    address = users.update_address(current_user_id(), address_id, _body())
    return ok("Address updated successfully", {"address": address.as_dict()})


@bp.put("/addresses/<int:address_id>/default")
@jwt_required()
def set_default_address(address_id: int):
    address = users.set_default_address(current_user_id(), address_id)
    return ok("Default address set successfully", {"address": address.as_dict()})


@bp.delete("/addresses/<int:address_id>")
@jwt_required()
def delete_address(address_id: int):
    users.delete_address(current_user_id(), address_id)
    return ok("Address deleted successfully", {"id": address_id})
