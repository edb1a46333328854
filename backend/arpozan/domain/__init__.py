"""
Domain Layer - Business Entities

Pydantic models for the storefront entities plus the query descriptor and
response envelope shared by every repository.
"""
from arpozan.domain.product import Product, ProductCreate, ProductUpdate
from arpozan.domain.order import Order, OrderItem, OrderStatus, OrderCreate, OrderUpdate
from arpozan.domain.customer import Customer, CustomerCreate, CustomerUpdate
from arpozan.domain.admin_user import AdminUser, AdminUserCreate, AdminUserUpdate
from arpozan.domain.cart import CartItem, CartItemCreate, CartItemUpdate
from arpozan.domain.analytics import AnalyticsMetric, AnalyticsMetricCreate
from arpozan.domain.query import QueryDescriptor, NumericRange, SortDirection
from arpozan.domain.envelope import Envelope

__all__ = [
    'Product', 'ProductCreate', 'ProductUpdate',
    'Order', 'OrderItem', 'OrderStatus', 'OrderCreate', 'OrderUpdate',
    'Customer', 'CustomerCreate', 'CustomerUpdate',
    'AdminUser', 'AdminUserCreate', 'AdminUserUpdate',
    'CartItem', 'CartItemCreate', 'CartItemUpdate',
    'AnalyticsMetric', 'AnalyticsMetricCreate',
    'QueryDescriptor', 'NumericRange', 'SortDirection',
    'Envelope',
]
