"""
Repository Layer - Data Access

One repository per entity. Every operation returns an Envelope and runs
against whichever backend the selector picks (live Supabase or the
fallback dataset).

Author: Arpozan
"""
from arpozan.repositories.base import BaseRepository
from arpozan.repositories.product_repository import ProductRepository
from arpozan.repositories.order_repository import OrderRepository
from arpozan.repositories.customer_repository import CustomerRepository
from arpozan.repositories.admin_user_repository import AdminUserRepository
from arpozan.repositories.cart_repository import CartItemRepository
from arpozan.repositories.analytics_repository import AnalyticsMetricRepository

__all__ = [
    'BaseRepository',
    'ProductRepository',
    'OrderRepository',
    'CustomerRepository',
    'AdminUserRepository',
    'CartItemRepository',
    'AnalyticsMetricRepository',
]
