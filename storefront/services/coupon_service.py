# storefront/services/coupon_service.py
"""Coupon administration and the eligibility / discount engine."""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, CouponRejected, NotFoundError, ValidationError, parse_unique_violation
from ..extensions import db
from ..model import Category, Coupon, CouponCategory, CouponProduct, CouponUsage, Product
from ..model.coupon import DISCOUNT_TYPES
from ..utils.money import D, parse_money, round_money
from ..utils.parsing import parse_bool, parse_int_list, parse_iso8601, parse_opt_int, text_field, utcnow

_FIELDS = (
    "code", "description", "discount_type", "discount_value", "usage_limit",
    "per_user_limit", "min_order_amount", "start_date", "expiry_date", "is_active",
)


# ---------- payload validation ----------

def _opt_limit(data, key):
    v = data.get(key)
    if v is None or v == "":
        return None
    n = parse_opt_int(v)
    if n is None or n < 1:
        raise ValidationError(f"{key} must be a positive integer")
    return n


def _clean_fields(data: dict, partial: bool) -> dict:
    """Normalise the coupon fields present in ``data``; all required ones when not ``partial``."""
    out = {}

    if "code" in data or not partial:
        code = text_field(data, "code")
        if not code:
            raise ValidationError("code is required")
        out["code"] = code

    if "description" in data:
        out["description"] = data.get("description") or None

    if "discount_type" in data or not partial:
        dtype = text_field(data, "discount_type").lower()
        if dtype not in DISCOUNT_TYPES:
            raise ValidationError("discount_type must be 'flat' or 'percentage'")
        out["discount_type"] = dtype

    if "discount_value" in data or not partial:
        value = parse_money(data.get("discount_value"))
        if value is None or value <= 0:
            raise ValidationError("discount_value must be a positive number")
        out["discount_value"] = round_money(value)

    if "usage_limit" in data:
        out["usage_limit"] = _opt_limit(data, "usage_limit")

    if "per_user_limit" in data:
        out["per_user_limit"] = _opt_limit(data, "per_user_limit")
    elif not partial:
        out["per_user_limit"] = 1

    if "min_order_amount" in data:
        raw = data.get("min_order_amount")
        if raw is None or raw == "":
            out["min_order_amount"] = None
        else:
            amount = parse_money(raw)
            if amount is None or amount < 0:
                raise ValidationError("min_order_amount must be a non-negative number")
            out["min_order_amount"] = round_money(amount)

    for key in ("start_date", "expiry_date"):
        if key in data and data.get(key):
            dt = parse_iso8601(data.get(key))
            if dt is None:
                raise ValidationError(f"Invalid datetime format for {key}")
            out[key] = dt
    if not partial:
        if "expiry_date" not in out:
            raise ValidationError("expiry_date is required")
        out.setdefault("start_date", utcnow())

    if "is_active" in data:
        out["is_active"] = parse_bool(data.get("is_active"), True)

    return out


def _check_invariants(discount_type, discount_value, start_date, expiry_date):
    if discount_type == "percentage" and D(discount_value) > 100:
        raise ValidationError("Percentage discount cannot exceed 100%")
    if start_date and expiry_date and start_date >= expiry_date:
        raise ValidationError("start_date must be before expiry_date")


def _ensure_code_free(code: str, exclude_id: int | None = None):
    q = Coupon.query.filter(func.lower(Coupon.code) == code.lower())
    if exclude_id is not None:
        q = q.filter(Coupon.id != exclude_id)
    if q.first():
        raise ConflictError("Coupon code already exists")


def _restriction_ids(data: dict):
    """Product and category ids a coupon is restricted to; every id must exist."""
    products = parse_int_list(data.get("products"))
    categories = parse_int_list(data.get("categories"))
    if products:
        found = {pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(products))}
        missing = [pid for pid in products if pid not in found]
        if missing:
            raise NotFoundError(f"Product {missing[0]} not found")
    if categories:
        found = {
            cid for (cid,) in db.session.query(Category.id)
            .filter(Category.id.in_(categories), Category.deleted_at.is_(None))
        }
        missing = [cid for cid in categories if cid not in found]
        if missing:
            raise NotFoundError(f"Category {missing[0]} not found")
    return products, categories


def _commit():
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        info = parse_unique_violation(e)
        if info and info["column"] == "code":
            raise ConflictError("Coupon code already exists")
        raise


def _replace_links(coupon: Coupon, products: list[int], categories: list[int]):
    # old rows are flushed out first so re-adding the same id cannot collide
    if products:
        if coupon.product_links:
            coupon.product_links.clear()
            db.session.flush()
        coupon.product_links = [CouponProduct(product_id=pid) for pid in products]
    if categories:
        if coupon.category_links:
            coupon.category_links.clear()
            db.session.flush()
        coupon.category_links = [CouponCategory(category_id=cid) for cid in categories]


# ---------- admin operations ----------

def create_coupon(data: dict) -> Coupon:
    fields = _clean_fields(data, partial=False)
    _check_invariants(fields["discount_type"], fields["discount_value"],
                      fields["start_date"], fields["expiry_date"])
    _ensure_code_free(fields["code"])
    products, categories = _restriction_ids(data)

    coupon = Coupon(**fields)
    # coupon and its restriction rows are committed together or not at all
    _replace_links(coupon, products, categories)
    db.session.add(coupon)
    _commit()

    current_app.logger.info("coupon %s created (id=%s)", coupon.code, coupon.id)
    return coupon


def update_coupon(coupon_id: int, data: dict) -> Coupon:
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")

    fields = _clean_fields(data, partial=True)
    _check_invariants(
        fields.get("discount_type", coupon.discount_type),
        fields.get("discount_value", coupon.discount_value),
        fields.get("start_date", coupon.start_date),
        fields.get("expiry_date", coupon.expiry_date),
    )
    if "code" in fields:
        _ensure_code_free(fields["code"], exclude_id=coupon.id)
    products, categories = _restriction_ids(data)

    for key, value in fields.items():
        setattr(coupon, key, value)
    _replace_links(coupon, products, categories)
    _commit()
    return coupon


def set_active(coupon_id: int, active: bool) -> bool:
    updated = Coupon.query.filter_by(id=coupon_id).update({"is_active": active})
    db.session.commit()
    return updated > 0


def list_coupons(active: bool = True):
    return (
        Coupon.query.filter(Coupon.is_active.is_(active))
        .order_by(Coupon.created_at.desc(), Coupon.id.desc())
        .all()
    )


def get_active_coupon(coupon_id: int) -> Coupon:
    coupon = Coupon.query.filter_by(id=coupon_id, is_active=True).first()
    if not coupon:
        raise NotFoundError("Coupon not found")
    return coupon


def _currently_valid(query, now=None):
    now = now or utcnow()
    return query.filter(
        Coupon.is_active.is_(True),
        Coupon.start_date <= now,
        Coupon.expiry_date >= now,
    )


def coupons_for_product(product_id: int):
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    by_product = select(CouponProduct.coupon_id).where(CouponProduct.product_id == product_id)
    conds = [Coupon.id.in_(by_product)]
    if product.category_id is not None:
        by_category = select(CouponCategory.coupon_id).where(
            CouponCategory.category_id == product.category_id
        )
        conds.append(Coupon.id.in_(by_category))
    return _currently_valid(Coupon.query.filter(or_(*conds))).order_by(Coupon.id).all()


def coupons_for_category(category_id: int):
    by_category = select(CouponCategory.coupon_id).where(CouponCategory.category_id == category_id)
    by_product = (
        select(CouponProduct.coupon_id)
        .join(Product, Product.id == CouponProduct.product_id)
        .where(Product.category_id == category_id)
    )
    q = Coupon.query.filter(or_(Coupon.id.in_(by_category), Coupon.id.in_(by_product)))
    return _currently_valid(q).order_by(Coupon.id).all()


# ---------- usage ledger ----------

def total_usage_count(coupon_id: int) -> int:
    return db.session.query(func.count(CouponUsage.id)).filter(
        CouponUsage.coupon_id == coupon_id
    ).scalar() or 0


def user_usage_count(coupon_id: int, user_id: int) -> int:
    return db.session.query(func.count(CouponUsage.id)).filter(
        CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == user_id
    ).scalar() or 0


# ---------- engine ----------

def compute_discount(discount_type: str, discount_value, order_total):
    """Return (discount, final_amount); final amount is clamped at zero."""
    total = D(order_total)
    if discount_type == "flat":
        discount = round_money(discount_value)
    elif discount_type == "percentage":
        discount = round_money(total * D(discount_value) / D(100))
    else:
        discount = D(0)
    final_amount = round_money(max(D(0), total - discount))
    return discount, final_amount


def _find_coupon(code: str, lock: bool = False):
    q = Coupon.query.filter(func.lower(Coupon.code) == (code or "").strip().lower())
    if lock:
        q = q.with_for_update()
    return q.first()


def _evaluate(coupon, user_id, order_total, cart_product_ids, cart_category_ids, now=None):
    # 1) existence / active
    if not coupon or not coupon.is_active:
        raise CouponRejected(CouponRejected.NOT_FOUND, "Coupon not found or inactive")

    # 2) date window
    now = now or utcnow()
    if coupon.start_date and now < coupon.start_date:
        raise CouponRejected(CouponRejected.NOT_YET_STARTED, "Coupon is not active yet")
    if coupon.expiry_date and now > coupon.expiry_date:
        raise CouponRejected(CouponRejected.EXPIRED, "Coupon has expired")

    # 3) minimum order
    total = D(order_total)
    if coupon.min_order_amount is not None and total < D(coupon.min_order_amount):
        raise CouponRejected(
            CouponRejected.BELOW_MINIMUM,
            f"Minimum order of {round_money(coupon.min_order_amount)} required",
        )

    # 4) global usage
    if coupon.usage_limit and total_usage_count(coupon.id) >= coupon.usage_limit:
        raise CouponRejected(CouponRejected.USAGE_LIMIT_REACHED, "Coupon usage limit reached")

    # 5) per-user usage
    if coupon.per_user_limit and user_usage_count(coupon.id, user_id) >= coupon.per_user_limit:
        raise CouponRejected(CouponRejected.PER_USER_LIMIT_REACHED, "You have already used this coupon")

    # 6) product/category restrictions (OR)
    allowed_products = set(coupon.product_ids)
    allowed_categories = set(coupon.category_ids)
    if allowed_products or allowed_categories:
        product_match = bool(allowed_products.intersection(cart_product_ids or ()))
        category_match = bool(allowed_categories.intersection(cart_category_ids or ()))
        if not product_match and not category_match:
            raise CouponRejected(
                CouponRejected.NOT_APPLICABLE, "Coupon not valid for these products/categories"
            )

    # 7) discount
    discount, final_amount = compute_discount(coupon.discount_type, coupon.discount_value, total)
    return {"coupon": coupon, "discount": discount, "final_amount": final_amount}


def _check_order_total(order_total):
    total = parse_money(order_total)
    if total is None or total <= 0:
        raise ValidationError("orderTotal must be a positive number")
    return total


def evaluate(code, user_id, order_total, cart_product_ids=(), cart_category_ids=(), now=None):
    """Decide whether ``code`` applies to the order, without recording usage."""
    total = _check_order_total(order_total)
    return _evaluate(_find_coupon(code), user_id, total, cart_product_ids, cart_category_ids, now)


def redeem(code, user_id, order_total, cart_product_ids=(), cart_category_ids=(), order_id=None, now=None):
    """Evaluate and record a usage row in one transaction.

    The coupon row is locked (SELECT ... FOR UPDATE) before the usage counts are
    read, so concurrent redemptions near ``usage_limit`` are serialised on
    stores that support row locks.
    """
    total = _check_order_total(order_total)
    try:
        result = _evaluate(
            _find_coupon(code, lock=True), user_id, total, cart_product_ids, cart_category_ids, now
        )
        usage = CouponUsage(
            coupon_id=result["coupon"].id,
            user_id=user_id,
            order_id=str(order_id) if order_id is not None else None,
        )
        db.session.add(usage)
        db.session.commit()
    except CouponRejected:
        db.session.rollback()
        raise

    current_app.logger.info(
        "coupon %s redeemed by user %s (discount=%s)", result["coupon"].code, user_id, result["discount"]
    )
    result["usage_id"] = usage.id
    return result
