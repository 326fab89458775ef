from .order import OrderAccrualRecord, OrderRecord
from .user import User

__all__ = ["OrderAccrualRecord", "OrderRecord", "User"]
