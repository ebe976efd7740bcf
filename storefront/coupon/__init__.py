# storefront/coupon/__init__.py
from flask import Blueprint

bp = Blueprint("coupon", __name__, url_prefix="/api/coupons")

from . import routes  # noqa: E402,F401
