"""
Caching for server metadata that does not change while a process runs.

Uses cachetools TTLCache for automatic expiration. Catalog state (tables,
columns, constraints) is never cached: the live catalog is authoritative.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Cache manager for the schemakit package.

    Thread-safe singleton that manages all TTL caches.
    """

    _instance = None
    _caches: dict[str, cachetools.TTLCache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """Get or create a TTL cache with the given name.

        Args:
            name: Name of the cache
            maxsize: Maximum cache size
            ttl: Time-to-live in seconds

        Returns
            TTLCache instance
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_cache(self, name: str) -> None:
        """Clear a specific cache by name."""
        with self._lock:
            if name in self._caches:
                self._caches[name].clear()


def _connection_key(cn) -> str:
    """Identify the server behind a connection by its engine URL."""
    engine = getattr(cn, 'engine', None)
    if engine is not None and getattr(engine, 'url', None) is not None:
        return engine.url.render_as_string(hide_password=True)
    return f'connection-{id(cn)}'


def _create_cache_key(cn, method_args: tuple, method_kwargs: dict) -> str:
    """Create a deterministic cache key from the connection and arguments.
    """
    args_str = ':'.join(repr(arg) for arg in method_args)
    kwargs_str = ':'.join(f'{k}={v!r}' for k, v in sorted(method_kwargs.items()))
    return f'{_connection_key(cn)}:{args_str}:{kwargs_str}'.lower()


def cacheable_strategy(cache_name: str, ttl: int = 300, maxsize: int = 50):
    """Decorator for caching strategy method results per server.

    Respects a bypass_cache parameter to skip the cache lookup.

    Args:
        cache_name: Base name for the cache
        ttl: Time-to-live in seconds
        maxsize: Maximum cache size
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, cn, *args, bypass_cache=False, **kwargs):
            if bypass_cache:
                logger.debug(f'Bypassing cache for {method.__name__}')
                return method(self, cn, *args, **kwargs)

            specific_cache_name = f'{cache_name}_{self.__class__.__name__}_{method.__name__}'
            cache = Cache.get_instance().get_cache(specific_cache_name, ttl=ttl, maxsize=maxsize)
            cache_key = _create_cache_key(cn, args, kwargs)

            if cache_key in cache:
                logger.debug(f'Cache hit for {method.__name__}')
                return cache[cache_key]

            logger.debug(f'Cache miss for {method.__name__}')
            result = method(self, cn, *args, **kwargs)
            cache[cache_key] = result
            return result

        return wrapper
    return decorator
