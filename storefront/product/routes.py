import json
from io import BytesIO
from math import ceil

from flask import request, url_for, send_file

from . import bp
from ..errors import ValidationError
from ..services import catalog_service as catalog
from ..utils.api import ok
from ..utils.decorators import role_required

# ---------- helpers ----------
def _ep(name: str) -> str:
    return f"{bp.name}.{name}"


_PRODUCT_KEYS = (
    "name", "description", "short_description", "brand", "category_id",
    "is_new_arrival", "is_on_sale", "is_featured", "is_free_shipping", "is_active",
)


def _json_array(source, key):
    """A JSON array field; None when absent or blank, ValidationError when malformed.

    Multipart forms carry these fields as JSON-encoded strings.
    """
    raw = source.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raw = None
    if not isinstance(raw, list):
        raise ValidationError(f"{key} must be a JSON array")
    return raw


def _read_payload():
    """Product fields, variants and external video urls from a multipart form or a JSON body.

    ``youtube`` is None when the request carried no external-video list.
    """
    is_multipart = request.content_type and "multipart/form-data" in request.content_type
    source = request.form if is_multipart else (request.get_json(silent=True) or {})

    fields = {k: source.get(k) for k in _PRODUCT_KEYS if k in source}
    variants = _json_array(source, "variants") or []
    youtube = _json_array(source, "youtube_videos")
    return fields, variants, youtube


def _read_files():
    images = request.files.getlist("images")
    video = request.files.get("video")
    return images, video


# ---------- composite writes ----------

# POST /api/products
@bp.post("")
@role_required("admin")
def create_product():
    fields, variants, youtube = _read_payload()
    images, video = _read_files()
    pid = catalog.create_product(fields, variants, images, video, youtube)

    product = catalog.get_product(pid, active_only=False)
    resp = ok("Product created successfully", {"product": product.as_api()}, status_code=201)
    resp.headers["Location"] = url_for(_ep("get_product"), pid=pid)
    return resp


# PUT /api/products/<id>
@bp.put("/<int:pid>")
@role_required("admin")
def update_product(pid):
    fields, variants, youtube = _read_payload()
    images, video = _read_files()
    catalog.update_product(pid, fields, variants, images, video, youtube)
    return ok("Product updated successfully", {"product": catalog.get_product(pid, active_only=False).as_api()})


# DELETE /api/products/<id>
@bp.delete("/<int:pid>")
@role_required("admin")
def delete_product(pid):
    catalog.delete_product(pid)
    return ok(f"Product {pid} deleted", {"id": pid})


# ---------- reads ----------

# GET /api/products/filter
@bp.get("/filter")
def filter_products():
    """
    Query params:
      category   -> category id
      brand      -> exact brand
      min_price  -> variant price lower bound
      max_price  -> variant price upper bound
      search     -> substring of name / description / short description
      sort       -> price_asc, price_desc, discount_desc, newest (default)
      page       -> default 1
      limit      -> default 10 (cap 100)
    """
    rows, page, limit = catalog.filter_products(request.args)
    return ok("Products fetched", {"items": rows, "page": page, "limit": limit})


# GET /api/products/all
@bp.get("/all")
def list_products():
    items, total, page, limit = catalog.list_products_full(
        request.args.get("page"), request.args.get("limit")
    )
    return ok("Products fetched", {
        "items": [p.as_api() for p in items],
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": ceil(total / limit) if total else 0,
    })


# GET /api/products/<id>
@bp.get("/<int:pid>")
def get_product(pid):
    return ok("Product fetched", {"product": catalog.get_product(pid).as_api()})


# GET /api/products/<id>/media
@bp.get("/<int:pid>/media")
def list_media(pid):
    catalog.get_product(pid, active_only=False)
    return ok("Media fetched", {"media": [m.as_api() for m in catalog.list_media(pid)]})


# DELETE /api/products/media/<id>
@bp.delete("/media/<int:mid>")
@role_required("admin")
def delete_media(mid):
    catalog.delete_media(mid)
    return ok("Media deleted", {"id": mid})


# ---------- variants ----------

@bp.get("/variants")
@role_required("admin")
def list_variants():
    return ok("Variants fetched", {"variants": [v.as_api() for v in catalog.list_variants()]})


@bp.post("/<int:pid>/variants")
@role_required("admin")
def create_variant(pid):
    data = request.get_json(silent=True) or {}
    variant = catalog.create_variant(pid, data)
    return ok("Variant created", {"variant": variant.as_api()}, status_code=201)


@bp.put("/variants/<int:vid>")
@role_required("admin")
def update_variant(vid):
    data = request.get_json(silent=True) or {}
    variant = catalog.update_variant(vid, data)
    return ok("Variant updated", {"variant": variant.as_api()})


@bp.delete("/variants/<int:vid>")
@role_required("admin")
def delete_variant(vid):
    catalog.delete_variant(vid)
    return ok("Variant deleted", {"id": vid})


# ---------- export ----------

@bp.get("/export")
@role_required("admin")
def export_products():
    """
    Export all products (with their default variant) as an Excel file.
    """
    df = catalog.export_frame()

    # Create an in-memory buffer
    output = BytesIO()
    df.to_excel(output, index=False, sheet_name="Products")
    output.seek(0)

    return send_file(
        output,
        as_attachment=True,
        download_name="products_export.xlsx",
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
