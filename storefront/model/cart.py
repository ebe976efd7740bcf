# storefront/model/cart.py
from __future__ import annotations
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.money import to_float

class CartItem(db.Model):
    __tablename__ = "cart_item"
    __table_args__ = (db.UniqueConstraint("user_id", "variant_id", name="uq_cart_user_variant"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variant.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    variant = db.relationship("ProductVariant", lazy="joined")

    def as_api(self):
        v = self.variant
        p = v.product if v else None
        # first image is the thumbnail
        thumb = next((m.media_url for m in (p.media if p else []) if m.sort_order == 1), None)
        return {
            "cart_item_id": self.id,
            "quantity": self.quantity,
            "variant_id": self.variant_id,
            "sku": v.sku if v else None,
            "variant_name": v.variant_name if v else None,
            "mrp": to_float(v.mrp) if v else None,
            "price": to_float(v.price) if v else None,
            "discount_percentage": v.discount_percentage if v else None,
            "product_id": p.id if p else None,
            "product_name": p.name if p else None,
            "brand": p.brand if p else None,
            "media_url": thumb,
        }
