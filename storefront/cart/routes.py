# storefront/cart/routes.py
from __future__ import annotations
from flask import request
from flask_jwt_extended import jwt_required

from . import bp
from ..services import cart_service as carts
from ..utils.api import ok
from ..utils.decorators import current_user_id


@bp.get("")
@jwt_required()
def get_cart():
    return ok("cart", carts.cart_summary(current_user_id()))


@bp.post("/items")
@jwt_required()
def add_item():
    """
    Body: { "variant_id": int, "quantity" | "qty": int }
    """
    data = request.get_json(silent=True) or {}
    uid = current_user_id()
    carts.add_item(uid, data.get("variant_id"), data.get("quantity", data.get("qty")))
    return ok("item added", carts.cart_summary(uid), status_code=201)


@bp.put("/items/<int:item_id>")
@bp.patch("/items/<int:item_id>")
@jwt_required()
def update_item(item_id: int):
    data = request.get_json(silent=True) or {}
    uid = current_user_id()
    item = carts.update_quantity(uid, item_id, data.get("quantity", data.get("qty")))
    return ok("item updated" if item else "item removed", carts.cart_summary(uid))


@bp.delete("/items/<int:item_id>")
@jwt_required()
def remove_item(item_id: int):
    uid = current_user_id()
    carts.remove_item(uid, item_id)
    return ok("item removed", carts.cart_summary(uid))


# ---- clear all items ----
@bp.delete("")
@jwt_required()
def clear_cart():
    uid = current_user_id()
    removed = carts.clear_cart(uid)
    return ok("all items removed", {"removed": removed})
