from datetime import timedelta

from conftest import files_in, image_file
from storefront.extensions import db
from storefront.utils.parsing import utcnow


def _multipart(client, method, url, headers, data):
    return getattr(client, method)(url, data=data, headers=headers, content_type="multipart/form-data")


# ---------- categories ----------

def test_category_lifecycle(client, admin_headers, upload_root):
    resp = _multipart(client, "post", "/api/categories", admin_headers,
                      {"name": "Home & Garden", "image": image_file("cat.jpg")})
    assert resp.status_code == 201
    cat = resp.get_json()["data"]["category"]
    assert cat["slug"] == "home-and-garden"
    assert cat["image_url"].startswith("/uploads/categories/")
    first_image = cat["image_url"].rsplit("/", 1)[1]

    # new image replaces and deletes the old file
    resp = _multipart(client, "put", f"/api/categories/{cat['id']}", admin_headers,
                      {"image": image_file("cat2.png")})
    assert resp.status_code == 200
    assert first_image not in files_in(upload_root / "categories")
    assert len(files_in(upload_root / "categories")) == 1

    # soft delete hides it but keeps the image
    assert client.delete(f"/api/categories/{cat['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/categories/{cat['id']}").status_code == 404
    assert client.get("/api/categories").get_json()["data"]["categories"] == []
    deleted = client.get("/api/categories/deleted", headers=admin_headers).get_json()["data"]["categories"]
    assert [c["id"] for c in deleted] == [cat["id"]]
    assert len(files_in(upload_root / "categories")) == 1

    assert client.patch(f"/api/categories/{cat['id']}/restore", headers=admin_headers).status_code == 200
    assert client.get(f"/api/categories/{cat['id']}").status_code == 200
    assert client.patch(f"/api/categories/{cat['id']}/restore", headers=admin_headers).status_code == 404


def test_category_validation(client, admin_headers, category):
    assert client.post("/api/categories", json={"name": "x"}, headers=admin_headers).status_code == 400
    assert client.post("/api/categories", json={"name": 12345}, headers=admin_headers).status_code == 400
    assert client.post("/api/categories", json={"name": "phones"}, headers=admin_headers).status_code == 409
    resp = client.post("/api/categories", json={"name": "Shoes"}, headers=admin_headers)
    assert resp.status_code == 201


def test_category_writes_require_admin(client, user_headers):
    assert client.post("/api/categories", json={"name": "Shoes"}, headers=user_headers).status_code == 403
    assert client.post("/api/categories", json={"name": "Shoes"}).status_code == 401


def test_deleted_category_cannot_be_assigned(client, admin_headers, category):
    category.deleted_at = utcnow()
    db.session.commit()
    resp = client.post("/api/products", json={
        "name": "Old phone", "brand": "Acme", "category_id": category.id,
        "variants": [{"sku": "OLD-1", "mrp": 10, "price": 10}],
    }, headers=admin_headers)
    assert resp.status_code == 404


# ---------- banners ----------

def test_banner_lifecycle(client, admin_headers, upload_root):
    resp = _multipart(client, "post", "/api/banners", admin_headers,
                      {"banner_name": "Summer sale", "banner_image": image_file("b.jpg")})
    assert resp.status_code == 201
    banner = resp.get_json()["data"]["banner"]
    assert len(files_in(upload_root / "banners")) == 1

    resp = client.put(f"/api/banners/{banner['id']}", json={"banner_name": "Winter sale", "is_active": False},
                      headers=admin_headers)
    assert resp.get_json()["data"]["banner"]["banner_name"] == "Winter sale"
    assert resp.get_json()["data"]["banner"]["is_active"] is False

    assert len(client.get("/api/banners").get_json()["data"]["banners"]) == 1

    assert client.delete(f"/api/banners/{banner['id']}", headers=admin_headers).status_code == 200
    assert files_in(upload_root / "banners") == []
    assert client.get(f"/api/banners/{banner['id']}").status_code == 404


def test_banner_name_required(client, admin_headers):
    assert client.post("/api/banners", json={"banner_name": " "}, headers=admin_headers).status_code == 400


def test_banner_rejects_video_as_image(client, admin_headers):
    resp = _multipart(client, "post", "/api/banners", admin_headers,
                      {"banner_name": "Promo", "banner_image": image_file("promo.mp4")})
    assert resp.status_code == 400


# ---------- deals ----------

def _deal(product, start, end, price=699):
    return {
        "product_id": product.id,
        "deal_price": price,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
    }


def test_deal_lifecycle(client, admin_headers, product):
    now = utcnow()
    resp = client.post("/api/deals", json=_deal(product, now - timedelta(hours=1), now + timedelta(days=1)),
                       headers=admin_headers)
    assert resp.status_code == 201
    deal = resp.get_json()["data"]["deal"]
    assert deal["name"] == "Pixel Phone"
    assert deal["original_price"] == 800.0
    assert deal["mrp"] == 1000.0
    assert deal["sku"] == "PIX-128"

    client.post("/api/deals", json=_deal(product, now + timedelta(days=2), now + timedelta(days=3)),
                headers=admin_headers)

    active = client.get("/api/deals/active").get_json()["data"]["deals"]
    assert [d["id"] for d in active] == [deal["id"]]
    assert len(client.get("/api/deals").get_json()["data"]["deals"]) == 2

    resp = client.put(f"/api/deals/{deal['id']}",
                      json=_deal(product, now - timedelta(hours=1), now + timedelta(days=1), price=650),
                      headers=admin_headers)
    assert resp.get_json()["data"]["deal"]["deal_price"] == 650.0

    assert client.delete(f"/api/deals/{deal['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/deals/{deal['id']}").status_code == 404


def test_deal_validation(client, admin_headers, product):
    now = utcnow()
    ok_window = (now, now + timedelta(days=1))
    assert client.post("/api/deals", json={"product_id": product.id}, headers=admin_headers).status_code == 400
    assert client.post("/api/deals", json=_deal(product, *ok_window, price=0),
                       headers=admin_headers).status_code == 400
    assert client.post("/api/deals", json=_deal(product, ok_window[1], ok_window[0]),
                       headers=admin_headers).status_code == 400

    body = _deal(product, *ok_window)
    body["product_id"] = 9999
    assert client.post("/api/deals", json=body, headers=admin_headers).status_code == 404


def test_deal_update_keeps_is_active_when_omitted(client, admin_headers, product):
    now = utcnow()
    body = _deal(product, now - timedelta(hours=1), now + timedelta(days=1))
    body["is_active"] = False
    deal = client.post("/api/deals", json=body, headers=admin_headers).get_json()["data"]["deal"]
    assert deal["is_active"] is False

    resp = client.put(f"/api/deals/{deal['id']}",
                      json=_deal(product, now - timedelta(hours=1), now + timedelta(days=2), price=650),
                      headers=admin_headers)
    assert resp.get_json()["data"]["deal"]["is_active"] is False
    assert client.get("/api/deals/active").get_json()["data"]["deals"] == []


def test_deal_price_above_variant_price_is_allowed(client, admin_headers, product):
    now = utcnow()
    resp = client.post("/api/deals", json=_deal(product, now, now + timedelta(days=1), price=5000),
                       headers=admin_headers)
    assert resp.status_code == 201


def test_unknown_route_uses_envelope(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json()["status"] is False


def test_health(client):
    assert client.get("/api/health").get_json()["status"] is True
