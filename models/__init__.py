from models.user import UserProfile
from models.seller import SellerAccount
from models.admin_role import AdminRole
from models.product import Product
from models.coupon import Coupon, CouponUsage
from models.order import Order
from models.withdrawal import Withdrawal
from models.notification import Notification
from models.settings_document import SettingsDocument
from models.review import Review

__all__ = [
    "UserProfile",
    "SellerAccount",
    "AdminRole",
    "Product",
    "Coupon",
    "CouponUsage",
    "Order",
    "Withdrawal",
    "Notification",
    "SettingsDocument",
    "Review",
]
