# storefront/model/product.py
from decimal import Decimal
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.money import round_money, to_float
from ..utils.parsing import isoformat

MEDIA_TYPES = ("image", "video")
VIDEO_SOURCES = ("upload", "youtube")

# sort_order bands: images 1..n, uploaded video 99, external videos 100+
UPLOADED_VIDEO_SORT = 99
EXTERNAL_VIDEO_SORT_BASE = 100


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)
    short_description = db.Column(db.String(500))
    brand = db.Column(db.String(120), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=True, index=True)

    is_new_arrival = db.Column(db.Boolean, default=False)
    is_on_sale = db.Column(db.Boolean, default=False)
    is_featured = db.Column(db.Boolean, default=False)
    is_free_shipping = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    variants = db.relationship(
        "ProductVariant",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductVariant.id.asc()",
    )
    media = db.relationship(
        "ProductMedia",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductMedia.sort_order.asc()",
    )

    @property
    def default_variant(self):
        for v in self.variants:
            if v.is_default:
                return v
        return None

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "short_description": self.short_description,
            "brand": self.brand,
            "category_id": self.category_id,
            "is_new_arrival": self.is_new_arrival,
            "is_on_sale": self.is_on_sale,
            "is_featured": self.is_featured,
            "is_free_shipping": self.is_free_shipping,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def as_api(self):
        return {
            **self.as_dict(),
            "variants": [v.as_api() for v in self.variants],
            "media": [m.as_api() for m in self.media],
        }


class ProductVariant(db.Model):
    __tablename__ = "product_variant"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    sku = db.Column(db.String(64), unique=True, nullable=False, index=True)
    variant_name = db.Column(db.String(255))
    mrp = db.Column(db.Numeric(12, 2), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    stock = db.Column(db.Integer, default=0)
    is_default = db.Column(db.Boolean, default=False)

    length = db.Column(db.Numeric(10, 2))
    width = db.Column(db.Numeric(10, 2))
    height = db.Column(db.Numeric(10, 2))
    weight = db.Column(db.Numeric(10, 2))
    is_free_shipping = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    @property
    def discount_percentage(self):
        mrp = Decimal(self.mrp or 0)
        if mrp <= 0:
            return 0.0
        return float(round_money((mrp - Decimal(self.price or 0)) / mrp * 100))

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "variant_name": self.variant_name,
            "mrp": to_float(self.mrp),
            "price": to_float(self.price),
            "stock": self.stock,
            "is_default": self.is_default,
            "length": to_float(self.length),
            "width": to_float(self.width),
            "height": to_float(self.height),
            "weight": to_float(self.weight),
            "is_free_shipping": self.is_free_shipping,
            "discount_percentage": self.discount_percentage,
        }


class ProductMedia(db.Model):
    __tablename__ = "product_media"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    media_type = db.Column(db.String(16), nullable=False)           # image | video
    media_url = db.Column(db.String(1024), nullable=False)
    video_source = db.Column(db.String(16))                         # upload | youtube, videos only
    sort_order = db.Column(db.Integer, default=1, index=True)

    # storage key relative to the upload root; None for externally hosted media
    file_path = db.Column(db.String(512))

    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "media_type": self.media_type,
            "media_url": self.media_url,
            "video_source": self.video_source,
            "sort_order": self.sort_order,
        }
