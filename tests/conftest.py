import io
from datetime import timedelta

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from storefront import create_app
from storefront.config import TestingConfig
from storefront.extensions import db
from storefront.model import Category, Product, ProductVariant, User
from storefront.utils.parsing import utcnow

PASSWORD = "secret123"


@pytest.fixture
def upload_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def app(upload_root):
    class _Config(TestingConfig):
        UPLOAD_ROOT = str(upload_root)

    app = create_app(_Config)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, role="user", name="Test User", phone=None):
    u = User(
        name=name,
        email=email,
        phone_number=phone,
        password_hash=generate_password_hash(PASSWORD),
        role=role,
    )
    db.session.add(u)
    db.session.commit()
    return u


def bearer(user):
    return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}


@pytest.fixture
def admin(app):
    return make_user("admin@example.com", role="admin", name="Admin")


@pytest.fixture
def user(app):
    return make_user("alice@example.com", name="Alice")


@pytest.fixture
def other_user(app):
    return make_user("bob@example.com", name="Bob")


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def user_headers(user):
    return bearer(user)


@pytest.fixture
def category(app):
    c = Category(name="Phones", slug="phones")
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def product(category):
    p = Product(name="Pixel Phone", brand="Acme", category_id=category.id)
    p.variants.append(ProductVariant(sku="PIX-128", mrp=1000, price=800, stock=5, is_default=True))
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def window():
    now = utcnow()
    return (now - timedelta(days=1)).isoformat(), (now + timedelta(days=30)).isoformat()


def image_file(name="photo.jpg", payload=b"\xff\xd8\xff fake jpeg"):
    return (io.BytesIO(payload), name)


def files_in(folder):
    if not folder.exists():
        return []
    return sorted(p.name for p in folder.iterdir() if p.is_file())
