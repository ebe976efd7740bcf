"""Filesystem-backed media storage.

Files are kept under ``UPLOAD_ROOT`` and served from ``/uploads``. Keys are
paths relative to the root, e.g. ``products/12/1700000000-123456.jpg``.
"""
from __future__ import annotations

import os
import secrets
import shutil
import time

from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import ValidationError

URL_PREFIX = "/uploads"

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}
VIDEO_EXTENSIONS = {"mp4", "mkv"}


def _ext(filename: str) -> str:
    name = secure_filename(filename or "")
    return name.rsplit(".", 1)[1].lower() if "." in name else ""


def check_upload(file_storage, kind: str) -> None:
    """Reject files whose extension or mimetype does not match ``kind``."""
    ext = _ext(file_storage.filename)
    mime = (file_storage.mimetype or "").lower()
    if kind == "image":
        ok = ext in IMAGE_EXTENSIONS and mime.startswith("image/")
    elif kind == "video":
        ok = ext in VIDEO_EXTENSIONS and mime.startswith("video/")
    else:
        ok = False
    if not ok:
        raise ValidationError(
            "Invalid file type. Only images (jpg, jpeg, png, webp) and videos (mp4, mkv) are allowed."
        )


class LocalStorage:
    def __init__(self, root: str, url_prefix: str = URL_PREFIX) -> None:
        self.root = os.path.abspath(root)
        self.url_prefix = url_prefix.rstrip("/")

    # -- paths --
    def path_for(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if path != self.root and not path.startswith(self.root + os.sep):
            raise ValueError(f"key escapes storage root: {key!r}")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"

    def key_from_url(self, url: str | None) -> str | None:
        if not url or not url.startswith(self.url_prefix + "/"):
            return None
        return url[len(self.url_prefix) + 1:]

    # -- operations --
    def save(self, file_storage, folder: str) -> tuple[str, str]:
        """Persist an upload under ``folder`` with a collision-free name; returns (url, key)."""
        ext = _ext(file_storage.filename)
        filename = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
        if ext:
            filename = f"{filename}.{ext}"
        key = f"{folder.strip('/')}/{filename}"
        path = self.path_for(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_storage.save(path)
        return self.url_for(key), key

    def exists(self, key: str) -> bool:
        return os.path.exists(self.path_for(key))

    def delete_file(self, key: str) -> bool:
        path = self.path_for(key)
        if not os.path.isfile(path):
            return False
        os.remove(path)
        return True

    def delete_dir(self, folder: str, keep=()) -> None:
        """Remove ``folder`` recursively, or only its other entries when ``keep`` is given."""
        path = self.path_for(folder)
        if not os.path.isdir(path):
            return
        if not keep:
            shutil.rmtree(path)
            return
        keep_paths = {self.path_for(k) for k in keep}
        for entry in os.listdir(path):
            full = os.path.join(path, entry)
            if full in keep_paths:
                continue
            if os.path.isdir(full):
                shutil.rmtree(full)
            else:
                os.remove(full)


def get_storage() -> LocalStorage:
    return LocalStorage(current_app.config["UPLOAD_ROOT"])


def cleanup_files(keys) -> None:
    """Best-effort removal of files written for a failed request. Never raises."""
    storage = get_storage()
    for key in keys or ():
        try:
            storage.delete_file(key)
        except (OSError, ValueError) as e:
            current_app.logger.warning("upload cleanup failed for %s: %s", key, e)


def cleanup_dir(folder: str, keep=()) -> None:
    storage = get_storage()
    try:
        storage.delete_dir(folder, keep=keep)
    except (OSError, ValueError) as e:
        current_app.logger.warning("folder cleanup failed for %s: %s", folder, e)
