from .auth import User
from .settings import SystemSetting
from .inventory import Product
from .agents import Agent, AgentStock, Settlement
from .orders import Order, OrderItem, OrderNote
from .expenses import Expense

__all__ = [
    'User',
    'SystemSetting',
    'Product',
    'Agent', 'AgentStock', 'Settlement',
    'Order', 'OrderItem', 'OrderNote',
    'Expense',
]
