# storefront/services/catalog_service.py
"""Product + variants + media written as one logical unit.

The store commits each row independently; there is no cross-table
transaction. Files written for a request are removed again when the write
fails before any media row is recorded. Committed product/variant rows are
left in place.
"""
from __future__ import annotations

from decimal import Decimal

import pandas as pd
from flask import current_app
from sqlalchemy import Float, cast, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import ApiError, ConflictError, NotFoundError, StoreError, ValidationError, VariantError
from ..extensions import db
from ..model import (
    CartItem, Category, CouponProduct, Deal, Product, ProductMedia, ProductVariant,
)
from ..model.product import EXTERNAL_VIDEO_SORT_BASE, MEDIA_TYPES, UPLOADED_VIDEO_SORT, VIDEO_SOURCES
from ..utils.money import parse_money, to_float
from ..utils.parsing import coerce_flag, parse_bool, parse_opt_int
from .storage import check_upload, cleanup_dir, cleanup_files, get_storage

PRODUCT_FLAGS = ("is_new_arrival", "is_on_sale", "is_featured")
DIMENSIONS = ("length", "width", "height", "weight")


def product_folder(product_id: int) -> str:
    return f"products/{product_id}"


# ================== validation ==================

def _flag(data, key):
    try:
        return coerce_flag(data.get(key))
    except ValueError:
        raise ValidationError(f"{key} must be a boolean (true/false or 0/1)")


def validate_product_fields(data: dict, partial: bool = False) -> dict:
    out = {}

    if "name" in data or not partial:
        name = data.get("name")
        if not isinstance(name, str) or len(name.strip()) < 3:
            raise ValidationError("Product name is required and must be at least 3 characters")
        out["name"] = name.strip()

    if "brand" in data or not partial:
        brand = data.get("brand")
        if not isinstance(brand, str) or len(brand.strip()) < 2:
            raise ValidationError("Brand is required and must be at least 2 characters")
        out["brand"] = brand.strip()

    if data.get("description") is not None:
        if len(str(data["description"])) > 2000:
            raise ValidationError("Description is too long (max 2000 chars)")
        out["description"] = str(data["description"]) or None

    if data.get("short_description") is not None:
        if len(str(data["short_description"])) > 500:
            raise ValidationError("Short description is too long (max 500 chars)")
        out["short_description"] = str(data["short_description"]) or None

    if data.get("is_free_shipping") is not None:
        out["is_free_shipping"] = _flag(data, "is_free_shipping")
    elif not partial:
        out["is_free_shipping"] = False

    for key in PRODUCT_FLAGS:
        if data.get(key) is not None:
            out[key] = parse_bool(data.get(key))
        elif not partial:
            out[key] = False

    if "is_active" in data and data.get("is_active") is not None:
        out["is_active"] = parse_bool(data.get("is_active"), True)

    if data.get("category_id") not in (None, ""):
        cid = parse_opt_int(data.get("category_id"))
        if cid is None:
            raise ValidationError("category_id must be an integer")
        cat = db.session.get(Category, cid)
        if not cat or cat.deleted_at is not None:
            raise NotFoundError(f"Category {cid} not found")
        out["category_id"] = cid

    return out


def _positive(data, key, label):
    v = parse_money(data.get(key))
    if v is None or v <= 0:
        raise ValidationError(f"{label} must be a positive number")
    return v


def validate_variant_fields(data: dict, current: ProductVariant | None = None) -> dict:
    """Clean a variant payload; with ``current`` only the given keys are required."""
    partial = current is not None
    out = {}

    if "sku" in data or not partial:
        sku = data.get("sku")
        if not isinstance(sku, str) or len(sku.strip()) < 3:
            raise ValidationError("SKU is required and must be at least 3 characters")
        out["sku"] = sku.strip()

    if "mrp" in data or not partial:
        out["mrp"] = _positive(data, "mrp", "MRP")
    if "price" in data or not partial:
        out["price"] = _positive(data, "price", "Price")

    mrp = out.get("mrp", current.mrp if current else None)
    price = out.get("price", current.price if current else None)
    if Decimal(price) > Decimal(mrp):
        raise ValidationError("Price cannot be greater than MRP")

    if data.get("stock") is not None:
        stock = parse_money(data.get("stock"))
        if stock is None or stock < 0 or stock != stock.to_integral_value():
            raise ValidationError("Stock must be a non-negative number")
        out["stock"] = int(stock)
    elif not partial:
        out["stock"] = 0

    for key in DIMENSIONS:
        if data.get(key) not in (None, ""):
            v = parse_money(data.get(key))
            if v is None or v < 0:
                raise ValidationError("Length, width, height, and weight must be non-negative numbers")
            out[key] = v

    if data.get("is_free_shipping") is not None:
        out["is_free_shipping"] = _flag(data, "is_free_shipping")
    elif not partial:
        out["is_free_shipping"] = False

    if "variant_name" in data:
        out["variant_name"] = data.get("variant_name") or None
    if "is_default" in data:
        out["is_default"] = parse_bool(data.get("is_default"))

    return out


def _check_media_inputs(images, video, youtube_urls):
    images = [f for f in (images or []) if f and f.filename]
    limit = current_app.config.get("MAX_PRODUCT_IMAGES", 5)
    if len(images) > limit:
        raise ValidationError(f"Too many images (max {limit})")
    for f in images:
        check_upload(f, "image")
    if video is not None and video.filename:
        check_upload(video, "video")
    else:
        video = None
    for url in youtube_urls or []:
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("Media URL is required")
    return images, video


# ================== variants ==================

def _ensure_sku_free(sku: str, exclude_id: int | None = None):
    q = ProductVariant.query.filter(ProductVariant.sku == sku)
    if exclude_id is not None:
        q = q.filter(ProductVariant.id != exclude_id)
    if q.first():
        raise ConflictError("SKU already exists")


def _commit_variant(variant: ProductVariant):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU already exists")
    return variant


def _clear_other_defaults(product_id: int, keep_id: int | None):
    q = ProductVariant.query.filter(ProductVariant.product_id == product_id)
    if keep_id is not None:
        q = q.filter(ProductVariant.id != keep_id)
    q.update({"is_default": False}, synchronize_session="fetch")


def create_variant(product_id: int, data: dict) -> ProductVariant:
    fields = validate_variant_fields(data)
    if not db.session.get(Product, product_id):
        raise NotFoundError("Product not found")
    _ensure_sku_free(fields["sku"])

    has_default = ProductVariant.query.filter_by(product_id=product_id, is_default=True).first()
    if fields.get("is_default"):
        _clear_other_defaults(product_id, None)
    elif not has_default:
        fields["is_default"] = True

    variant = ProductVariant(product_id=product_id, **fields)
    db.session.add(variant)
    return _commit_variant(variant)


def update_variant(variant_id: int, data: dict, product_id: int | None = None) -> ProductVariant:
    variant = db.session.get(ProductVariant, variant_id)
    if not variant or (product_id is not None and variant.product_id != product_id):
        raise NotFoundError("Variant not found")
    fields = validate_variant_fields(data, current=variant)
    if not fields:
        raise ValidationError("No fields to update")
    if "sku" in fields:
        _ensure_sku_free(fields["sku"], exclude_id=variant.id)
    if fields.get("is_default"):
        _clear_other_defaults(variant.product_id, variant.id)

    for key, value in fields.items():
        setattr(variant, key, value)
    return _commit_variant(variant)


def delete_variant(variant_id: int) -> None:
    variant = db.session.get(ProductVariant, variant_id)
    if not variant:
        raise NotFoundError("Variant not found")
    product_id, was_default = variant.product_id, variant.is_default

    CartItem.query.filter_by(variant_id=variant.id).delete(synchronize_session=False)
    db.session.delete(variant)
    db.session.flush()
    if was_default:
        successor = (
            ProductVariant.query.filter_by(product_id=product_id)
            .order_by(ProductVariant.id.asc())
            .first()
        )
        if successor:
            successor.is_default = True
    db.session.commit()


def list_variants():
    return ProductVariant.query.order_by(ProductVariant.id.asc()).all()


# ================== media ==================

def _add_media(product_id, media_type, media_url, sort_order, video_source=None, file_path=None):
    if media_type not in MEDIA_TYPES:
        raise ValidationError("Invalid media type (allowed: image, video)")
    if media_type == "video" and video_source not in VIDEO_SOURCES:
        raise ValidationError("Invalid video source (allowed: upload, youtube)")
    db.session.add(ProductMedia(
        product_id=product_id,
        media_type=media_type,
        media_url=media_url,
        # only videos carry a source
        video_source=video_source if media_type == "video" else None,
        sort_order=sort_order or 1,
        file_path=file_path,
    ))


def _write_media_rows(product_id, saved_images, saved_video, youtube_urls):
    for i, (url, key) in enumerate(saved_images):
        _add_media(product_id, "image", url, i + 1, file_path=key)
    if saved_video:
        url, key = saved_video
        _add_media(product_id, "video", url, UPLOADED_VIDEO_SORT, video_source="upload", file_path=key)
    for i, url in enumerate(youtube_urls or []):
        _add_media(product_id, "video", url.strip(), EXTERNAL_VIDEO_SORT_BASE + i, video_source="youtube")
    db.session.commit()


def list_media(product_id: int):
    return (
        ProductMedia.query.filter_by(product_id=product_id)
        .order_by(ProductMedia.sort_order.asc(), ProductMedia.id.asc())
        .all()
    )


def delete_media(media_id: int) -> None:
    media = db.session.get(ProductMedia, media_id)
    if not media:
        raise NotFoundError("Media not found")
    key = media.file_path
    db.session.delete(media)
    db.session.commit()
    if key:
        cleanup_files([key])


# ================== composite writes ==================

def _save_uploads(product_id, images, video, written: list):
    storage = get_storage()
    folder = product_folder(product_id)
    saved_images, saved_video = [], None
    try:
        for f in images:
            url, key = storage.save(f, folder)
            written.append(key)
            saved_images.append((url, key))
        if video is not None:
            url, key = storage.save(video, folder)
            written.append(key)
            saved_video = (url, key)
    except OSError as e:
        current_app.logger.error("storing media for product %s failed: %s", product_id, e)
        raise StoreError("Failed to store uploaded media")
    return saved_images, saved_video


def _apply_variants(product_id, variants):
    for v in variants:
        if not isinstance(v, dict):
            raise VariantError("variant must be an object")
        try:
            if v.get("id"):
                vid = parse_opt_int(v.get("id"))
                update_variant(vid, {k: val for k, val in v.items() if k != "id"}, product_id=product_id)
            else:
                create_variant(product_id, v)
        except ApiError as e:
            raise VariantError(e.message)


def create_product(fields: dict, variants=None, images=None, video=None, youtube_urls=None) -> int:
    """Create a product with its variants and media; returns the product id."""
    data = validate_product_fields(fields)
    images, video = _check_media_inputs(images, video, youtube_urls)

    product = Product(**data)
    db.session.add(product)
    db.session.commit()
    product_id = product.id

    written = []
    try:
        saved_images, saved_video = _save_uploads(product_id, images, video, written)
        _apply_variants(product_id, variants or [])
    except (ApiError, SQLAlchemyError):
        db.session.rollback()
        cleanup_files(written)
        raise

    _write_media_rows(product_id, saved_images, saved_video, youtube_urls)
    current_app.logger.info(
        "product %s created with %d variant(s), %d media", product_id, len(variants or []),
        len(saved_images) + (1 if saved_video else 0) + len(youtube_urls or []),
    )
    return product_id


def update_product(product_id: int, fields: dict, variants=None, images=None, video=None, youtube_urls=None) -> None:
    """Partial update. Any media input replaces all existing media of the product.

    ``youtube_urls`` is None when the caller sent no external-video field; an
    empty list still counts as media input.
    """
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")

    data = validate_product_fields(fields, partial=True)
    images, video = _check_media_inputs(images, video, youtube_urls)
    replace_media = bool(images) or video is not None or youtube_urls is not None

    if data:
        for key, value in data.items():
            setattr(product, key, value)
        db.session.commit()

    written = []
    try:
        saved_images, saved_video = _save_uploads(product_id, images, video, written)
        _apply_variants(product_id, variants or [])
    except (ApiError, SQLAlchemyError):
        db.session.rollback()
        cleanup_files(written)
        raise

    if replace_media:
        ProductMedia.query.filter_by(product_id=product_id).delete(synchronize_session="fetch")
        db.session.commit()
        # drop every old file; keep what this request just wrote
        cleanup_dir(product_folder(product_id), keep=written)
        _write_media_rows(product_id, saved_images, saved_video, youtube_urls)
    current_app.logger.info("product %s updated (media replaced: %s)", product_id, replace_media)


def delete_product(product_id: int) -> None:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")

    variant_ids = [v.id for v in product.variants]
    if variant_ids:
        CartItem.query.filter(CartItem.variant_id.in_(variant_ids)).delete(synchronize_session=False)
    Deal.query.filter_by(product_id=product_id).delete(synchronize_session=False)
    CouponProduct.query.filter_by(product_id=product_id).delete(synchronize_session=False)
    # media and variants go with the product (delete-orphan cascade)
    db.session.delete(product)
    db.session.commit()

    cleanup_dir(product_folder(product_id))
    current_app.logger.info("product %s deleted", product_id)


# ================== reads ==================

def get_product(product_id: int, active_only: bool = True) -> Product:
    q = Product.query.filter_by(id=product_id)
    if active_only:
        q = q.filter_by(is_active=True)
    product = q.first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def parse_page(page, limit, max_limit=100):
    page = parse_opt_int(page if page is not None else 1)
    limit = parse_opt_int(limit if limit is not None else 10)
    if page is None or limit is None or page < 1 or limit < 1:
        raise ValidationError("Page and limit must be positive numbers")
    return page, min(limit, max_limit)


def list_products_full(page=1, limit=10):
    page, limit = parse_page(page, limit)
    q = Product.query.filter(Product.is_active.is_(True))
    total = q.count()
    items = (
        q.order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total, page, limit


def _thumbnail(product):
    for m in product.media:
        if m.sort_order == 1:
            return m
    return None


def _price_arg(args, key):
    raw = args.get(key)
    if raw in (None, ""):
        return None
    v = parse_money(raw)
    if v is None or v < 0:
        raise ValidationError(f"Invalid {key}")
    return v


def filter_products(args) -> tuple[list[dict], int, int]:
    page, limit = parse_page(args.get("page"), args.get("limit"))

    q = (
        db.session.query(Product, ProductVariant)
        .join(ProductVariant, ProductVariant.product_id == Product.id)
        .filter(Product.is_active.is_(True))
    )

    category = args.get("category")
    if category:
        cid = parse_opt_int(category)
        if cid is None:
            raise ValidationError("Invalid category")
        q = q.filter(Product.category_id == cid)
    if args.get("brand"):
        q = q.filter(Product.brand == args.get("brand"))
    min_price, max_price = _price_arg(args, "min_price"), _price_arg(args, "max_price")
    if min_price is not None:
        q = q.filter(ProductVariant.price >= min_price)
    if max_price is not None:
        q = q.filter(ProductVariant.price <= max_price)
    search = (args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            Product.name.ilike(like),
            Product.description.ilike(like),
            Product.short_description.ilike(like),
        ))

    discount = cast(ProductVariant.mrp - ProductVariant.price, Float) / ProductVariant.mrp
    sort_map = {
        "price_asc": [ProductVariant.price.asc()],
        "price_desc": [ProductVariant.price.desc()],
        "discount_desc": [discount.desc()],
    }
    order = sort_map.get(args.get("sort"), [Product.created_at.desc(), Product.id.desc()])
    rows = q.order_by(*order, ProductVariant.id.asc()).offset((page - 1) * limit).limit(limit).all()

    out = []
    for product, variant in rows:
        thumb = _thumbnail(product)
        out.append({
            **product.as_dict(),
            "variant_id": variant.id,
            "sku": variant.sku,
            "variant_name": variant.variant_name,
            "mrp": to_float(variant.mrp),
            "price": to_float(variant.price),
            "stock": variant.stock,
            "variant_free_shipping": variant.is_free_shipping,
            "discount_percentage": variant.discount_percentage,
            "media_url": thumb.media_url if thumb else None,
            "video_source": thumb.video_source if thumb else None,
        })
    return out, page, limit


def export_frame() -> pd.DataFrame:
    """Products with their default variant, one row per product."""
    rows = []
    for p in Product.query.order_by(Product.id.asc()).all():
        v = p.default_variant
        rows.append({
            "ID": p.id,
            "Name": p.name,
            "Brand": p.brand,
            "Category ID": p.category_id,
            "Active": p.is_active,
            "Free Shipping": p.is_free_shipping,
            "SKU": v.sku if v else None,
            "MRP": to_float(v.mrp) if v else None,
            "Price": to_float(v.price) if v else None,
            "Stock": v.stock if v else None,
            "Variants": len(p.variants),
            "Media": len(p.media),
        })
    return pd.DataFrame(rows, columns=[
        "ID", "Name", "Brand", "Category ID", "Active", "Free Shipping",
        "SKU", "MRP", "Price", "Stock", "Variants", "Media",
    ])
