"""
Backend Selector - decides between the live Supabase backend and the fallback

States:
    LIVE      configuration probe passed; calls go to Supabase, a failed call
              is retried once and then served by the fallback for that call only
    FALLBACK  configuration missing or malformed; every call goes to the
              fallback dataset for the rest of the process

A single failed call never changes the process-wide state.
"""
import logging
import re
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar
from urllib.parse import urlparse

from arpozan.backends.base import BackendKind, DataBackend
from arpozan.backends.fallback import FallbackDataset
from arpozan.core.config import Settings, get_settings
from arpozan.core.errors import BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JWT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")
_PUBLISHABLE_PREFIX = "sb_publishable_"


def probe_configuration(url: Optional[str], key: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Check that the public connection settings look usable

    Returns:
        (ok, reason) - reason explains a failed probe
    """
    if not url:
        return False, "SUPABASE_URL is not set"
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False, "SUPABASE_URL is not an http(s) URL"

    if not key:
        return False, "SUPABASE_ANON_KEY is not set"
    key = key.strip()
    if not (_JWT_PATTERN.match(key) or (key.startswith(_PUBLISHABLE_PREFIX) and len(key) > len(_PUBLISHABLE_PREFIX))):
        return False, "SUPABASE_ANON_KEY is malformed"

    return True, None


class BackendSelector:
    """
    Chooses the backend for every repository call

    Args:
        settings: Settings to probe (defaults to the process settings)
        live_factory: Builds the live backend once the probe passes
        fallback: Fallback dataset instance (a fresh seeded one by default)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        live_factory: Optional[Callable[[], DataBackend]] = None,
        fallback: Optional[DataBackend] = None,
    ):
        self._settings = settings or get_settings()
        self._live_factory = live_factory
        self._fallback = fallback or FallbackDataset()
        self._live: Optional[DataBackend] = None
        self._state = BackendKind.FALLBACK
        self._reason: Optional[str] = None
        self.recheck()

    @property
    def state(self) -> BackendKind:
        return self._state

    @property
    def fallback(self) -> DataBackend:
        return self._fallback

    def recheck(self) -> BackendKind:
        """Probe the configuration again and (re)build the live backend"""
        ok, reason = probe_configuration(self._settings.SUPABASE_URL, self._settings.SUPABASE_ANON_KEY)
        if not ok:
            self._enter_fallback(reason)
            return self._state

        try:
            factory = self._live_factory or _default_live_factory
            self._live = factory()
        except Exception as e:
            logger.exception("Could not build the Supabase backend")
            self._enter_fallback(f"Supabase client error: {e}")
            return self._state

        self._state = BackendKind.LIVE
        self._reason = None
        logger.info("Backend selector: live Supabase backend active")
        return self._state

    def force_fallback(self, reason: str = "forced") -> None:
        self._enter_fallback(reason)

    def _enter_fallback(self, reason: Optional[str]) -> None:
        self._state = BackendKind.FALLBACK
        self._live = None
        self._reason = reason
        logger.warning(f"Backend selector: using fallback dataset ({reason})")

    def get_handle(self) -> DataBackend:
        """The backend calls should go to right now"""
        if self._state == BackendKind.LIVE and self._live is not None:
            return self._live
        return self._fallback

    def run(self, operation: Callable[[DataBackend], T]) -> T:
        """
        Execute operation(backend) under the retry/fallback policy

        Only BackendError is retried. Every other DataAccessError (including
        PartialOrderError) propagates unchanged.
        """
        backend = self.get_handle()
        if backend.kind == BackendKind.FALLBACK:
            return operation(backend)

        try:
            return operation(backend)
        except BackendError as e:
            logger.info(f"Live backend call failed ({e.message}), retrying once")

        try:
            return operation(backend)
        except BackendError as e:
            logger.warning(f"Live backend failed twice ({e.message}), serving this call from the fallback dataset")

        return operation(self._fallback)

    def status(self) -> Dict[str, Any]:
        live = self._live
        return {
            "backend": self._state.value,
            "live_configured": self._state == BackendKind.LIVE,
            "transactions": bool(getattr(live, "has_transactions", False)),
            "reason": self._reason,
        }


def _default_live_factory() -> DataBackend:
    from arpozan.backends.live import SupabaseBackend
    return SupabaseBackend.from_settings()


_selector: Optional[BackendSelector] = None


def get_backend_selector() -> BackendSelector:
    """Process-wide selector, created on first use"""
    global _selector
    if _selector is None:
        _selector = BackendSelector()
    return _selector


def reset_backend_selector(selector: Optional[BackendSelector] = None) -> None:
    """Replace (or drop) the process-wide selector"""
    global _selector
    _selector = selector
