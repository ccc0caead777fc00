from storefront.models.database import Base, get_db, get_service_db
from storefront.models.order import Order

__all__ = ["Base", "get_db", "get_service_db", "Order"]
