from ordering.models.tenant import Tenant
from ordering.models.menu_category import MenuCategory
from ordering.models.menu_item import MenuItem
from ordering.models.combo_type import ComboType
from ordering.models.combo_availability import ComboAvailability
from ordering.models.order import Order
from ordering.models.order_item import OrderItem
