# ------ storefront/model/__init__.py ------

from .user import User, RefreshToken
from .address import Address
from .category import Category
from .product import Product, ProductVariant, ProductMedia
from .coupon import Coupon, CouponProduct, CouponCategory, CouponUsage
from .deal import Deal
from .banner import Banner
from .cart import CartItem

__all__ = [
    "User",
    "RefreshToken",
    "Address",
    "Category",
    "Product",
    "ProductVariant",
    "ProductMedia",
    "Coupon",
    "CouponProduct",
    "CouponCategory",
    "CouponUsage",
    "Deal",
    "Banner",
    "CartItem",
]
