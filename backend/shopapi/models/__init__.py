from .auth import Role, User, RevokedToken
from .security import SecurityEvent
from .catalog import Service
from .orders import Order, OrderLine, OrderStatusHistory
from .payments import CheckoutSession, WebhookEvent

__all__ = [
    'Role', 'User', 'RevokedToken',
    'SecurityEvent',
    'Service',
    'Order', 'OrderLine', 'OrderStatusHistory',
    'CheckoutSession', 'WebhookEvent',
]
