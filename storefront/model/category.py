# --- storefront/model/category.py ---
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.parsing import isoformat

class Category(db.Model):
    __tablename__ = "category"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(160), index=True)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(512))
    is_active = db.Column(db.Boolean, default=True)
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    products = db.relationship("Product", backref="category", lazy=True)

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "image_url": self.image_url,
            "is_active": self.is_active,
            "deleted_at": isoformat(self.deleted_at),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            }
