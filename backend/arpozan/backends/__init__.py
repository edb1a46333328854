"""
Backends - where rows actually live

The selector hands repositories either the live Supabase backend or the
in-memory fallback dataset; both implement DataBackend.
"""
from arpozan.backends.base import BackendKind, DataBackend, QueryResult
from arpozan.backends.fallback import FallbackDataset
from arpozan.backends.selector import BackendSelector, get_backend_selector, reset_backend_selector

__all__ = [
    'BackendKind', 'DataBackend', 'QueryResult',
    'FallbackDataset',
    'BackendSelector', 'get_backend_selector', 'reset_backend_selector',
]
