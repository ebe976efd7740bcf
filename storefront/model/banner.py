# --- storefront/model/banner.py ---
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.parsing import isoformat

class Banner(db.Model):
    __tablename__ = "banner"

    id = db.Column(db.Integer, primary_key=True)
    banner_name = db.Column(db.String(180), nullable=False)
    banner_image = db.Column(db.String(512))
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_dict(self):
        return {
            "id": self.id,
            "banner_name": self.banner_name,
            "banner_image": self.banner_image,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
