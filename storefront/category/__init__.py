# storefront/category/__init__.py
from flask import Blueprint

bp = Blueprint("category", __name__, url_prefix="/api/categories")

from . import routes  # noqa: E402,F401
