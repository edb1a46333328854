"""
Pytest fixtures and configuration for Arpozan backend tests

Every test runs against a fresh, seeded fallback dataset: no Supabase
project or database is needed.

Author: Arpozan
"""
import time

import pytest
from jose import jwt

from arpozan.backends.fallback import FallbackDataset
from arpozan.backends.seed import seed_id
from arpozan.backends.selector import BackendSelector, reset_backend_selector
from arpozan.core.config import Settings, settings
from arpozan.core.rate_limit import rate_limiter

TEST_AUTH_SECRET = "test-secret-for-arpozan"


def offline_settings(**overrides) -> Settings:
    """Settings with no live backend configured"""
    values = {"SUPABASE_URL": None, "SUPABASE_ANON_KEY": None, "SUPABASE_SERVICE_ROLE_KEY": None, "DATABASE_URL": None}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def dataset():
    """Fresh seeded fallback dataset"""
    return FallbackDataset()


@pytest.fixture(autouse=True)
def selector(dataset):
    """
    Process-wide selector pinned to the fallback dataset

    Scope: function (state never leaks between tests)
    """
    selector = BackendSelector(settings=offline_settings(), fallback=dataset)
    reset_backend_selector(selector)
    yield selector
    reset_backend_selector(None)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def auth_secret(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_SECRET", TEST_AUTH_SECRET)
    monkeypatch.setattr(settings, "AUTH_ALGORITHM", "HS256")
    return TEST_AUTH_SECRET


def make_token(user_id: str, role: str = "customer", email: str = None, expires_in: int = 3600) -> str:
    payload = {"sub": user_id, "role": role, "exp": int(time.time()) + expires_in}
    if email:
        payload["email"] = email
    return jwt.encode(payload, TEST_AUTH_SECRET, algorithm="HS256")


@pytest.fixture
def customer_headers(auth_secret):
    """Bearer header for the seeded customer Sergey (has cart items, no orders)"""
    return {"Authorization": f"Bearer {make_token(seed_id('auth_user', 'sergey'))}"}


@pytest.fixture
def admin_headers(auth_secret):
    """Bearer header for the seeded super admin (the admin_users row outranks the token role)"""
    return {"Authorization": f"Bearer {make_token('admin-user', role='customer')}"}


@pytest.fixture
def sample_product_data():
    return {
        "name": "Tribulus Terrestris",
        "description": "Standardised extract",
        "price": "1590.00",
        "stock_quantity": 20,
        "category": "supplements",
        "tags": ["energy"],
    }


@pytest.fixture
def seeded_ids():
    """Identifiers of well-known seed rows"""
    return {
        "alexey": seed_id("customer", "alexey"),
        "dmitry": seed_id("customer", "dmitry"),
        "mikhail": seed_id("customer", "mikhail"),
        "sergey": seed_id("customer", "sergey"),
        "ivan": seed_id("customer", "ivan"),
        "zinc": seed_id("product", "zinc-picolinate"),
        "maca": seed_id("product", "maca-peruvian"),
        "tongkat": seed_id("product", "tongkat-ali"),
        "yohimbine": seed_id("product", "yohimbine-hcl"),
        "shilajit": seed_id("product", "shilajit-resin"),
        "omega": seed_id("product", "omega-3"),
        "starter": seed_id("product", "starter-pack"),
        "order_001": seed_id("order", "ARZ-001"),
    }


@pytest.fixture
def token_factory(auth_secret):
    """make_token with the test secret already installed"""
    return make_token
