from storefront.models.user import User, UserSession
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.models.order import Order
from storefront.models.coupon import Coupon
from storefront.models.banner import Banner
