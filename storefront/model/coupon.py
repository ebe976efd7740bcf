# --- storefront/model/coupon.py ---

from sqlalchemy.sql import func
from ..extensions import db
from ..utils.money import to_float
from ..utils.parsing import isoformat

DISCOUNT_TYPES = ("flat", "percentage")

class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    description = db.Column(db.Text)

    # "flat" or "percentage"
    discount_type = db.Column(db.String(16), nullable=False)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False)

    # Optional constraints
    usage_limit = db.Column(db.Integer, nullable=True)           # global cap, None = unlimited
    per_user_limit = db.Column(db.Integer, nullable=True, default=1)
    min_order_amount = db.Column(db.Numeric(12, 2), nullable=True)
    start_date = db.Column(db.DateTime, nullable=False)
    expiry_date = db.Column(db.DateTime, nullable=False)

    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product_links = db.relationship(
        "CouponProduct", cascade="all, delete-orphan", lazy="selectin"
    )
    category_links = db.relationship(
        "CouponCategory", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def product_ids(self):
        return [link.product_id for link in self.product_links]

    @property
    def category_ids(self):
        return [link.category_id for link in self.category_links]

    def as_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": to_float(self.discount_value),
            "usage_limit": self.usage_limit,
            "per_user_limit": self.per_user_limit,
            "min_order_amount": to_float(self.min_order_amount),
            "start_date": isoformat(self.start_date),
            "expiry_date": isoformat(self.expiry_date),
            "is_active": self.is_active,
            "products": self.product_ids,
            "categories": self.category_ids,
            "created_at": isoformat(self.created_at),
        }

    def as_public(self):
        return {
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": to_float(self.discount_value),
        }

class CouponProduct(db.Model):
    __tablename__ = "coupon_product"
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon.id", ondelete="CASCADE"), primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id", ondelete="CASCADE"), primary_key=True)

class CouponCategory(db.Model):
    __tablename__ = "coupon_category"
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon.id", ondelete="CASCADE"), primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id", ondelete="CASCADE"), primary_key=True)

class CouponUsage(db.Model):
    """Append-only ledger; usage counts are always derived by counting rows."""
    __tablename__ = "coupon_usage"

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    order_id = db.Column(db.String(64), nullable=True)
    used_at = db.Column(db.DateTime, server_default=func.now())
