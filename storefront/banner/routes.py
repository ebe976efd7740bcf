# storefront/banner/routes.py
from flask import request

from . import bp
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import Banner
from ..services.storage import check_upload, cleanup_files, get_storage
from ..utils.api import ok
from ..utils.decorators import role_required
from ..utils.parsing import parse_bool

FOLDER = "banners"


def _payload():
    if request.content_type and "multipart/form-data" in request.content_type:
        return request.form, request.files.get("banner_image")
    return (request.get_json(silent=True) or {}), None


def _clean_name(name):
    name = name.strip() if isinstance(name, str) else ""
    if len(name) < 2:
        raise ValidationError("Banner name is required and must be at least 2 characters")
    return name


def _get(bid):
    b = db.session.get(Banner, bid)
    if not b:
        raise NotFoundError("Banner not found")
    return b


def _drop_image(url):
    key = get_storage().key_from_url(url)
    if key:
        cleanup_files([key])


@bp.post("")
@role_required("admin")
def create_banner():
    data, image = _payload()
    b = Banner(
        banner_name=_clean_name(data.get("banner_name")),
        is_active=parse_bool(data.get("is_active"), True),
    )
    if image is not None and image.filename:
        check_upload(image, "image")
        b.banner_image, _ = get_storage().save(image, FOLDER)
    db.session.add(b)
    db.session.commit()
    return ok("Banner created", {"banner": b.as_dict()}, status_code=201)


@bp.get("")
def list_banners():
    items = Banner.query.order_by(Banner.created_at.desc(), Banner.id.desc()).all()
    return ok("Banners fetched", {"banners": [b.as_dict() for b in items]})


@bp.get("/<int:bid>")
def get_banner(bid):
    return ok("Banner fetched", {"banner": _get(bid).as_dict()})


@bp.put("/<int:bid>")
@role_required("admin")
def update_banner(bid):
    b = _get(bid)
    data, image = _payload()
    if "banner_name" in data:
        b.banner_name = _clean_name(data.get("banner_name"))
    if "is_active" in data:
        b.is_active = parse_bool(data.get("is_active"), True)

    old_url = None
    if image is not None and image.filename:
        check_upload(image, "image")
        old_url = b.banner_image
        b.banner_image, _ = get_storage().save(image, FOLDER)

    db.session.commit()
    if old_url:
        _drop_image(old_url)
    return ok("Banner updated", {"banner": b.as_dict()})


@bp.delete("/<int:bid>")
@role_required("admin")
def delete_banner(bid):
    b = _get(bid)
    url = b.banner_image
    db.session.delete(b)
    db.session.commit()
    if url:
        _drop_image(url)
    return ok("Banner deleted", {"id": bid})
