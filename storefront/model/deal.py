# --- storefront/model/deal.py ---
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.money import to_float
from ..utils.parsing import isoformat

class Deal(db.Model):
    """Time-boxed price override on a product's default variant."""
    __tablename__ = "deal"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    deal_price = db.Column(db.Numeric(12, 2), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", lazy="joined")

    def as_api(self):
        p = self.product
        v = p.default_variant if p else None
        return {
            "id": self.id,
            "product_id": self.product_id,
            "deal_price": to_float(self.deal_price),
            "start_date": isoformat(self.start_date),
            "end_date": isoformat(self.end_date),
            "is_active": self.is_active,
            "name": p.name if p else None,
            "original_price": to_float(v.price) if v else None,
            "mrp": to_float(v.mrp) if v else None,
            "sku": v.sku if v else None,
            "created_at": isoformat(self.created_at),
        }
