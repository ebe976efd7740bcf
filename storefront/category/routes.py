# --- category/routes.py ---
from flask import request
from sqlalchemy import func

from . import bp
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..model import Category
from ..services.storage import check_upload, cleanup_files, get_storage
from ..utils.api import ok
from ..utils.decorators import role_required
from ..utils.parsing import parse_bool, utcnow
from ..utils.text import slugify

FOLDER = "categories"


# ------------------------ helpers ------------------------
def _payload():
    if request.content_type and "multipart/form-data" in request.content_type:
        return request.form, request.files.get("image")
    return (request.get_json(silent=True) or {}), None


def _clean_name(name):
    name = name.strip() if isinstance(name, str) else ""
    if len(name) < 2:
        raise ValidationError("Category name is required and must be at least 2 characters")
    return name


def _ensure_name_free(name, exclude_id=None):
    q = Category.query.filter(func.lower(Category.name) == name.lower(), Category.deleted_at.is_(None))
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise ConflictError("Category name already exists")


def _save_image(image):
    check_upload(image, "image")
    url, _key = get_storage().save(image, FOLDER)
    return url


def _drop_image(url):
    key = get_storage().key_from_url(url)
    if key:
        cleanup_files([key])


def _get_live(cid):
    c = Category.query.filter(Category.id == cid, Category.deleted_at.is_(None)).first()
    if not c:
        raise NotFoundError("Category not found")
    return c


# ------------------------ CATEGORY ROUTES ------------------------

@bp.post("")
@role_required("admin")
def create_category():
    data, image = _payload()
    name = _clean_name(data.get("name"))
    _ensure_name_free(name)

    c = Category(
        name=name,
        slug=slugify(name),
        description=data.get("description") or None,
        is_active=parse_bool(data.get("is_active"), True),
    )
    if image is not None and image.filename:
        c.image_url = _save_image(image)
    db.session.add(c)
    db.session.commit()
    return ok("Category created", {"category": c.as_dict()}, status_code=201)


@bp.get("")
def list_categories():
    items = (
        Category.query.filter(Category.deleted_at.is_(None))
        .order_by(Category.name.asc())
        .all()
    )
    return ok("Categories fetched", {"categories": [c.as_dict() for c in items]})


@bp.get("/deleted")
@role_required("admin")
def list_deleted_categories():
    items = (
        Category.query.filter(Category.deleted_at.isnot(None))
        .order_by(Category.deleted_at.desc())
        .all()
    )
    return ok("Deleted categories fetched", {"categories": [c.as_dict() for c in items]})


@bp.get("/<int:cid>")
def get_category(cid):
    return ok("Category fetched", {"category": _get_live(cid).as_dict()})


@bp.put("/<int:cid>")
@role_required("admin")
def update_category(cid):
    c = _get_live(cid)
    data, image = _payload()

    if "name" in data:
        name = _clean_name(data.get("name"))
        _ensure_name_free(name, exclude_id=c.id)
        c.name = name
        c.slug = slugify(name)
    if "description" in data:
        c.description = data.get("description") or None
    if "is_active" in data:
        c.is_active = parse_bool(data.get("is_active"), True)

    old_url = None
    if image is not None and image.filename:
        old_url, c.image_url = c.image_url, _save_image(image)

    db.session.commit()
    if old_url:
        _drop_image(old_url)
    return ok("Category updated", {"category": c.as_dict()})


@bp.delete("/<int:cid>")
@role_required("admin")
def delete_category(cid):
    # soft delete; the image stays so the category can be restored intact
    c = _get_live(cid)
    c.deleted_at = utcnow()
    db.session.commit()
    return ok("Category deleted", {"id": cid})


@bp.patch("/<int:cid>/restore")
@role_required("admin")
def restore_category(cid):
    c = Category.query.filter(Category.id == cid, Category.deleted_at.isnot(None)).first()
    if not c:
        raise NotFoundError("Deleted category not found")
    _ensure_name_free(c.name, exclude_id=c.id)
    c.deleted_at = None
    db.session.commit()
    return ok("Category restored", {"category": c.as_dict()})
