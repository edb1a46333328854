"""Table names shared by the live backend and the fallback dataset"""

PRODUCTS = "products"
CUSTOMERS = "customers"
ORDERS = "orders"
ORDER_ITEMS = "order_items"
CART_ITEMS = "cart_items"
ANALYTICS = "analytics"
ADMIN_USERS = "admin_users"

ALL_TABLES = (
    PRODUCTS,
    CUSTOMERS,
    ORDERS,
    ORDER_ITEMS,
    CART_ITEMS,
    ANALYTICS,
    ADMIN_USERS,
)

# Tables only readable with the service role key
PRIVILEGED_TABLES = frozenset({CUSTOMERS, ORDERS, ORDER_ITEMS, ANALYTICS, ADMIN_USERS})
