from .users import User, USER_ROLES, ROLE_MANAGER, ROLE_COMPANY, ROLE_COURIER
from .inventory import (
    InventoryItem,
    StockMovement,
    MOVEMENT_KINDS,
    MOVEMENT_RESERVE,
    MOVEMENT_RETURN,
    MOVEMENT_RELEASE,
    MOVEMENT_ADJUST,
)
from .orders import (
    Order,
    OrderLine,
    ORDER_STATUSES,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_REJECTED,
    ORDER_STATUS_DELIVERED,
    ORDER_KINDS,
    ORDER_KIND_LOCAL,
    ORDER_KIND_DELIVERY,
)

__all__ = [
    'User', 'USER_ROLES', 'ROLE_MANAGER', 'ROLE_COMPANY', 'ROLE_COURIER',
    'InventoryItem', 'StockMovement',
    'MOVEMENT_KINDS', 'MOVEMENT_RESERVE', 'MOVEMENT_RETURN', 'MOVEMENT_RELEASE', 'MOVEMENT_ADJUST',
    'Order', 'OrderLine',
    'ORDER_STATUSES', 'ORDER_STATUS_PENDING', 'ORDER_STATUS_APPROVED',
    'ORDER_STATUS_REJECTED', 'ORDER_STATUS_DELIVERED',
    'ORDER_KINDS', 'ORDER_KIND_LOCAL', 'ORDER_KIND_DELIVERY',
]
