from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import CartItem, ProductVariant
from ..utils.money import D, round_money, to_float
from ..utils.parsing import parse_opt_int


def _items(user_id: int):
    return CartItem.query.filter_by(user_id=user_id).order_by(CartItem.id.asc()).all()


def cart_summary(user_id: int) -> dict:
    """Cart lines plus the totals and id sets a coupon evaluation needs."""
    items = _items(user_id)
    subtotal = D(0)
    product_ids, category_ids = [], []
    for it in items:
        v = it.variant
        subtotal += D(v.price) * it.quantity
        p = v.product
        if p.id not in product_ids:
            product_ids.append(p.id)
        if p.category_id is not None and p.category_id not in category_ids:
            category_ids.append(p.category_id)
    return {
        "items": [it.as_api() for it in items],
        "item_count": sum(it.quantity for it in items),
        "subtotal": to_float(round_money(subtotal)),
        "cartProductIds": product_ids,
        "cartCategoryIds": category_ids,
    }


def _quantity(v, minimum=1):
    q = parse_opt_int(v)
    if q is None or q < minimum:
        raise ValidationError(f"quantity must be >= {minimum}")
    return q


def add_item(user_id: int, variant_id, quantity=1) -> CartItem:
    vid = parse_opt_int(variant_id)
    if vid is None:
        raise ValidationError("variant_id is required")
    qty = _quantity(quantity if quantity is not None else 1)

    variant = db.session.get(ProductVariant, vid)
    if not variant or not variant.product.is_active:
        raise NotFoundError("Variant not found")

    # Upsert item
    item = CartItem.query.filter_by(user_id=user_id, variant_id=vid).first()
    if item:
        item.quantity += qty
    else:
        item = CartItem(user_id=user_id, variant_id=vid, quantity=qty)
        db.session.add(item)
    db.session.commit()
    return item


def _own_item(user_id: int, item_id: int) -> CartItem:
    item = CartItem.query.filter_by(id=item_id, user_id=user_id).first()
    if not item:
        raise NotFoundError("Item not found in cart")
    return item


def update_quantity(user_id: int, item_id: int, quantity) -> CartItem | None:
    """Set an item's quantity; zero or less removes the item and returns None."""
    item = _own_item(user_id, item_id)
    q = parse_opt_int(quantity)
    if q is None:
        raise ValidationError("quantity is required")
    if q <= 0:
        db.session.delete(item)
        db.session.commit()
        return None
    item.quantity = q
    db.session.commit()
    return item


def remove_item(user_id: int, item_id: int) -> None:
    db.session.delete(_own_item(user_id, item_id))
    db.session.commit()


def clear_cart(user_id: int) -> int:
    removed = CartItem.query.filter_by(user_id=user_id).delete()
    db.session.commit()
    return removed
