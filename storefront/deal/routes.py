# storefront/deal/routes.py
from flask import request

from . import bp
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import Deal, Product
from ..utils.api import ok
from ..utils.decorators import role_required
from ..utils.money import parse_money, round_money
from ..utils.parsing import parse_bool, parse_iso8601, parse_opt_int, utcnow


def _clean(data, current=None):
    """All of product_id, deal_price, start_date and end_date are required on create and update.

    An omitted ``is_active`` defaults to true on create and keeps ``current`` on update.
    """
    product_id = parse_opt_int(data.get("product_id"))
    price = parse_money(data.get("deal_price"))
    start = parse_iso8601(data.get("start_date"))
    end = parse_iso8601(data.get("end_date"))

    if product_id is None or price is None or start is None or end is None:
        raise ValidationError("product_id, deal_price, start_date and end_date are required")
    if price <= 0:
        raise ValidationError("deal_price must be a positive number")
    if start >= end:
        raise ValidationError("start_date must be before end_date")
    if not db.session.get(Product, product_id):
        raise NotFoundError("Product not found")

    out = {
        "product_id": product_id,
        "deal_price": round_money(price),
        "start_date": start,
        "end_date": end,
    }
    if data.get("is_active") is not None:
        out["is_active"] = parse_bool(data.get("is_active"))
    elif current is None:
        out["is_active"] = True
    return out


def _get(deal_id):
    d = db.session.get(Deal, deal_id)
    if not d:
        raise NotFoundError("Deal not found")
    return d


@bp.post("")
@role_required("admin")
def create_deal():
    d = Deal(**_clean(request.get_json(silent=True) or {}))
    db.session.add(d)
    db.session.commit()
    return ok("Deal created", {"deal": d.as_api()}, status_code=201)


@bp.get("")
def list_deals():
    items = Deal.query.order_by(Deal.created_at.desc(), Deal.id.desc()).all()
    return ok("Deals fetched", {"deals": [d.as_api() for d in items]})


@bp.get("/active")
def list_active_deals():
    now = utcnow()
    items = (
        Deal.query.filter(Deal.is_active.is_(True), Deal.start_date <= now, Deal.end_date >= now)
        .order_by(Deal.end_date.asc())
        .all()
    )
    return ok("Active deals fetched", {"deals": [d.as_api() for d in items]})


@bp.get("/<int:deal_id>")
def get_deal(deal_id):
    return ok("Deal fetched", {"deal": _get(deal_id).as_api()})


@bp.put("/<int:deal_id>")
@role_required("admin")
def update_deal(deal_id):
    d = _get(deal_id)
    for key, value in _clean(request.get_json(silent=True) or {}, current=d).items():
        setattr(d, key, value)
    db.session.commit()
    return ok("Deal updated", {"deal": d.as_api()})


@bp.delete("/<int:deal_id>")
@role_required("admin")
def delete_deal(deal_id):
    db.session.delete(_get(deal_id))
    db.session.commit()
    return ok("Deal deleted", {"id": deal_id})
