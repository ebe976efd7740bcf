# storefront/coupon/routes.py
from __future__ import annotations
from flask import request
from flask_jwt_extended import jwt_required

from . import bp
from ..errors import NotFoundError, ValidationError
from ..services import coupon_service as coupons
from ..utils.api import ok
from ..utils.decorators import current_user_id, role_required
from ..utils.money import to_float
from ..utils.parsing import parse_int_list, text_field


def _first(data, *keys):
    for k in keys:
        if k in data:
            return data.get(k)
    return None


def _application_args():
    data = request.get_json(silent=True) or {}
    code = text_field(data, "code")
    if not code:
        raise ValidationError("code is required")
    return {
        "code": code,
        "user_id": current_user_id(),
        "order_total": _first(data, "orderTotal", "order_total"),
        "cart_product_ids": parse_int_list(_first(data, "cartProductIds", "product_ids")),
        "cart_category_ids": parse_int_list(_first(data, "cartCategoryIds", "category_ids")),
    }, data


def _result(result):
    return {
        "coupon": result["coupon"].as_public(),
        "discount": to_float(result["discount"]),
        "finalAmount": to_float(result["final_amount"]),
    }


# ---------- admin ----------

@bp.post("")
@role_required("admin")
def create_coupon():
    data = request.get_json(silent=True) or {}
    c = coupons.create_coupon(data)
    return ok("Coupon created", {"coupon": c.as_dict()}, status_code=201)


@bp.get("")
@role_required("admin")
def list_coupons():
    return ok("Coupons fetched", {"coupons": [c.as_dict() for c in coupons.list_coupons(active=True)]})


@bp.get("/inactive")
@role_required("admin")
def list_inactive_coupons():
    return ok("Inactive coupons fetched", {"coupons": [c.as_dict() for c in coupons.list_coupons(active=False)]})


@bp.get("/<int:coupon_id>")
@role_required("admin")
def get_coupon(coupon_id):
    return ok("Coupon fetched", {"coupon": coupons.get_active_coupon(coupon_id).as_dict()})


@bp.put("/<int:coupon_id>")
@role_required("admin")
def update_coupon(coupon_id):
    data = request.get_json(silent=True) or {}
    c = coupons.update_coupon(coupon_id, data)
    return ok("Coupon updated", {"coupon": c.as_dict()})


@bp.delete("/<int:coupon_id>")
@role_required("admin")
def delete_coupon(coupon_id):
    # soft delete: the usage ledger keeps referring to the row
    if not coupons.set_active(coupon_id, False):
        raise NotFoundError("Coupon not found")
    return ok("Coupon deactivated", {"id": coupon_id})


@bp.patch("/<int:coupon_id>/restore")
@role_required("admin")
def restore_coupon(coupon_id):
    if not coupons.set_active(coupon_id, True):
        raise NotFoundError("Coupon not found")
    return ok("Coupon restored", {"id": coupon_id})


# ---------- public ----------

@bp.get("/product/<int:product_id>")
def coupons_for_product(product_id):
    items = coupons.coupons_for_product(product_id)
    return ok("Coupons fetched", {"coupons": [c.as_public() for c in items]})


@bp.get("/category/<int:category_id>")
def coupons_for_category(category_id):
    items = coupons.coupons_for_category(category_id)
    return ok("Coupons fetched", {"coupons": [c.as_public() for c in items]})


# ---------- application ----------

@bp.post("/validate")
@jwt_required()
def validate_coupon():
    args, _ = _application_args()
    return ok("Coupon is valid", _result(coupons.evaluate(**args)))


@bp.post("/apply")
@jwt_required()
def apply_coupon():
    args, data = _application_args()
    result = coupons.redeem(**args, order_id=_first(data, "orderId", "order_id"))
    return ok("Coupon applied", {**_result(result), "usage_id": result["usage_id"]})
