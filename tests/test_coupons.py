from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import bearer, make_user
from storefront.errors import ConflictError, CouponRejected, NotFoundError, ValidationError
from storefront.extensions import db
from storefront.model import CouponUsage, Product
from storefront.services import coupon_service as coupons
from storefront.utils.parsing import utcnow


def _coupon(window, **overrides):
    data = {
        "code": "SAVE10",
        "discount_type": "percentage",
        "discount_value": 10,
        "start_date": window[0],
        "expiry_date": window[1],
    }
    data.update(overrides)
    return coupons.create_coupon(data)


# ---------- arithmetic ----------

@pytest.mark.parametrize("value,total,discount,final", [
    ("50", "200", "50.00", "150.00"),
    ("250", "200", "250.00", "0.00"),
    ("0.5", "10.01", "0.50", "9.51"),
])
def test_flat_discount_is_exact_and_final_never_negative(value, total, discount, final):
    d, f = coupons.compute_discount("flat", Decimal(value), Decimal(total))
    assert d == Decimal(discount)
    assert f == Decimal(final)


@pytest.mark.parametrize("value,total,discount,final", [
    ("10", "1000", "100.00", "900.00"),
    ("15", "33.33", "5.00", "28.33"),     # 4.9995 rounds half-up
    ("12.5", "0.20", "0.03", "0.17"),     # 0.025 rounds half-up
    ("100", "59.99", "59.99", "0.00"),
])
def test_percentage_discount_rounds_half_up(value, total, discount, final):
    d, f = coupons.compute_discount("percentage", Decimal(value), Decimal(total))
    assert d == Decimal(discount)
    assert f == Decimal(final)
    assert f >= 0


# ---------- evaluation order ----------

def test_save10_example(app, user, window):
    _coupon(window, min_order_amount=500)
    result = coupons.evaluate("SAVE10", user.id, 1000)
    assert result["discount"] == Decimal("100.00")
    assert result["final_amount"] == Decimal("900.00")


def test_below_minimum(app, user, window):
    _coupon(window, min_order_amount=500)
    with pytest.raises(CouponRejected) as exc:
        coupons.evaluate("SAVE10", user.id, 400)
    assert exc.value.reason == CouponRejected.BELOW_MINIMUM
    assert exc.value.status_code == 400


def test_unknown_and_inactive_codes_are_not_found(app, user, window):
    c = _coupon(window)
    with pytest.raises(CouponRejected) as exc:
        coupons.evaluate("NOPE", user.id, 100)
    assert exc.value.reason == CouponRejected.NOT_FOUND
    assert exc.value.status_code == 404

    coupons.set_active(c.id, False)
    with pytest.raises(CouponRejected) as exc:
        coupons.evaluate("SAVE10", user.id, 100)
    assert exc.value.reason == CouponRejected.NOT_FOUND


def test_code_lookup_is_case_insensitive(app, user, window):
    _coupon(window)
    assert coupons.evaluate("save10", user.id, 100)["discount"] == Decimal("10.00")


def test_date_window(app, user):
    now = utcnow()
    _coupon((now + timedelta(days=1), now + timedelta(days=2)), code="LATER")
    _coupon((now - timedelta(days=3), now - timedelta(days=1)), code="OLD")

    with pytest.raises(CouponRejected) as exc:
        coupons.evaluate("LATER", user.id, 100)
    assert exc.value.reason == CouponRejected.NOT_YET_STARTED

    with pytest.raises(CouponRejected) as exc:
        coupons.evaluate("OLD", user.id, 100)
    assert exc.value.reason == CouponRejected.EXPIRED


def test_expiry_is_inclusive(app, user):
    now = utcnow()
    c = _coupon((now - timedelta(days=1), now + timedelta(days=1)))
    assert coupons.evaluate("SAVE10", user.id, 100, now=c.expiry_date)["discount"] == Decimal("10.00")


def test_usage_limit_rejects_next_attempt(app, window):
    _coupon(window, usage_limit=2, per_user_limit=10)
    buyers = [make_user(f"u{i}@example.com") for i in range(3)]
    coupons.redeem("SAVE10", buyers[0].id, 100)
    coupons.redeem("SAVE10", buyers[1].id, 100)
    with pytest.raises(CouponRejected) as exc:
        coupons.redeem("SAVE10", buyers[2].id, 100)
    assert exc.value.reason == CouponRejected.USAGE_LIMIT_REACHED
    assert CouponUsage.query.count() == 2


def test_per_user_limit(app, user, other_user, window):
    _coupon(window)  # per_user_limit defaults to 1
    coupons.redeem("SAVE10", user.id, 100, order_id="ORD-1")
    with pytest.raises(CouponRejected) as exc:
        coupons.redeem("SAVE10", user.id, 100)
    assert exc.value.reason == CouponRejected.PER_USER_LIMIT_REACHED
    assert coupons.redeem("SAVE10", other_user.id, 100)["usage_id"]


def test_evaluate_does_not_record_usage(app, user, window):
    _coupon(window)
    coupons.evaluate("SAVE10", user.id, 100)
    coupons.evaluate("SAVE10", user.id, 100)
    assert CouponUsage.query.count() == 0


def test_product_restriction(app, user, product, window):
    other = Product(name="Other thing", brand="Acme")
    db.session.add(other)
    db.session.commit()
    _coupon(window, products=[product.id])

    with pytest.raises(CouponRejected) as exc:
        coupons.evaluate("SAVE10", user.id, 100, cart_product_ids=[other.id])
    assert exc.value.reason == CouponRejected.NOT_APPLICABLE

    assert coupons.evaluate("SAVE10", user.id, 100, cart_product_ids=[product.id, other.id])


def test_restrictions_match_product_or_category(app, user, product, category, window):
    _coupon(window, products=[999], categories=[category.id])
    # no product match, but the category matches
    assert coupons.evaluate("SAVE10", user.id, 100, cart_product_ids=[1], cart_category_ids=[category.id])


def test_order_total_must_be_positive(app, user, window):
    _coupon(window)
    with pytest.raises(ValidationError):
        coupons.evaluate("SAVE10", user.id, 0)
    with pytest.raises(ValidationError):
        coupons.evaluate("SAVE10", user.id, "abc")


# ---------- administration ----------

def test_percentage_above_100_rejected(app, window):
    with pytest.raises(ValidationError):
        _coupon(window, discount_value=101)


def test_start_must_precede_expiry(app, window):
    with pytest.raises(ValidationError):
        _coupon((window[1], window[0]))


def test_update_revalidates_merged_values(app, window):
    c = _coupon(window, discount_type="flat", discount_value=150)
    with pytest.raises(ValidationError):
        coupons.update_coupon(c.id, {"discount_type": "percentage"})
    updated = coupons.update_coupon(c.id, {"discount_type": "percentage", "discount_value": 20})
    assert updated.discount_type == "percentage"


def test_duplicate_code_conflicts(app, window):
    _coupon(window)
    with pytest.raises(ConflictError):
        _coupon(window, code="save10")


def test_update_replaces_restrictions_only_when_given(app, product, category, window):
    c = _coupon(window, products=[product.id])
    coupons.update_coupon(c.id, {"description": "ten off"})
    assert c.product_ids == [product.id]
    coupons.update_coupon(c.id, {"categories": [category.id]})
    assert c.product_ids == [product.id]
    assert c.category_ids == [category.id]


def test_coupons_for_product_and_category(app, product, category, window):
    _coupon(window, code="BYPROD", products=[product.id])
    _coupon(window, code="BYCAT", categories=[category.id])
    _coupon(window, code="ANY")

    assert sorted(c.code for c in coupons.coupons_for_product(product.id)) == ["BYCAT", "BYPROD"]
    assert sorted(c.code for c in coupons.coupons_for_category(category.id)) == ["BYCAT", "BYPROD"]


# ---------- HTTP ----------

def test_apply_endpoint(client, app, user_headers, admin_headers, window):
    resp = client.post("/api/coupons", json={
        "code": "SAVE10", "discount_type": "percentage", "discount_value": 10,
        "min_order_amount": 500, "start_date": window[0], "expiry_date": window[1],
    }, headers=admin_headers)
    assert resp.status_code == 201

    resp = client.post("/api/coupons/validate", json={"code": "SAVE10", "orderTotal": 1000}, headers=user_headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["finalAmount"] == 900.0

    resp = client.post("/api/coupons/apply", json={"code": "SAVE10", "orderTotal": 1000}, headers=user_headers)
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["data"]["discount"] == 100.0
    assert body["data"]["finalAmount"] == 900.0

    resp = client.post("/api/coupons/apply", json={"code": "SAVE10", "orderTotal": 1000}, headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()["data"]["reason"] == "per_user_limit_reached"


def test_apply_below_minimum_endpoint(client, user_headers, window):
    _coupon(window, min_order_amount=500)
    resp = client.post("/api/coupons/apply", json={"code": "SAVE10", "orderTotal": 400}, headers=user_headers)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["status"] is False
    assert body["data"]["reason"] == "below_minimum"


def test_apply_requires_token(client):
    resp = client.post("/api/coupons/apply", json={"code": "SAVE10", "orderTotal": 10})
    assert resp.status_code == 401


def test_admin_routes_forbid_customers(client, user_headers):
    assert client.get("/api/coupons", headers=user_headers).status_code == 403


def test_soft_delete_and_restore(client, admin_headers, window):
    c = _coupon(window)
    assert client.delete(f"/api/coupons/{c.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/coupons/{c.id}", headers=admin_headers).status_code == 404

    inactive = client.get("/api/coupons/inactive", headers=admin_headers).get_json()["data"]["coupons"]
    assert [x["code"] for x in inactive] == ["SAVE10"]

    assert client.patch(f"/api/coupons/{c.id}/restore", headers=admin_headers).status_code == 200
    assert client.get(f"/api/coupons/{c.id}", headers=admin_headers).status_code == 200
    assert client.delete("/api/coupons/9999", headers=admin_headers).status_code == 404


def test_public_product_coupons(client, product, window):
    _coupon(window, products=[product.id])
    resp = client.get(f"/api/coupons/product/{product.id}")
    assert [c["code"] for c in resp.get_json()["data"]["coupons"]] == ["SAVE10"]
    assert client.get("/api/coupons/product/9999").status_code == 404


def test_apply_records_order_id(client, app, user, window):
    _coupon(window)
    client.post("/api/coupons/apply", json={"code": "SAVE10", "orderTotal": 50, "orderId": 77},
                headers=bearer(user))
    assert CouponUsage.query.one().order_id == "77"


def test_non_string_code_on_apply_is_rejected(client, user_headers):
    resp = client.post("/api/coupons/apply", json={"code": 12345, "orderTotal": 100}, headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "code must be a string"


def test_non_string_discount_type_is_rejected(client, admin_headers, window):
    resp = client.post("/api/coupons", json={
        "code": "SAVE10", "discount_type": 1, "discount_value": 10,
        "start_date": window[0], "expiry_date": window[1],
    }, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "discount_type must be a string"


def test_restriction_to_unknown_product_or_category(app, product, window):
    with pytest.raises(NotFoundError, match="Product 9999"):
        _coupon(window, products=[product.id, 9999])
    with pytest.raises(NotFoundError, match="Category 9999"):
        _coupon(window, categories=[9999])

    c = _coupon(window, products=[product.id])
    with pytest.raises(NotFoundError):
        coupons.update_coupon(c.id, {"products": [9999]})
    assert c.product_ids == [product.id]
