# storefront/deal/__init__.py
from flask import Blueprint

bp = Blueprint("deal", __name__, url_prefix="/api/deals")

from . import routes  # noqa: E402,F401
