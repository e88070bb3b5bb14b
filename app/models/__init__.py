from app.models.user import User
from app.models.book import Book
from app.models.coupon import Coupon
from app.models.order_item import OrderItem
from app.models.author_earning import AuthorEarning
from app.models.order import Order
from app.models.platform_fee_status import PlatformFeeStatus

# add ALL models here
