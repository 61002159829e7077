"""
Stagehand - Request Base Class and Capabilities
===============================================

What:  The payload type every dispatched operation derives from, plus the
       opt-in capabilities the cache stages look for.
How:   Requests are frozen pydantic models. Capabilities are Request subclasses
       checked with isinstance(); their declared attributes are ClassVars, so a
       request can assign them plainly or override them with a property
       computed from its own values.

Example:
    class GetItem(Cacheable):
        request_name = "Items.Queries.GetItem"
        id: int

    class UpdateItem(CacheInvalidating):
        request_name = "Items.Commands.UpdateItem"
        id: int
        name: str
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, ClassVar, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class Request(BaseModel):
    """
    Immutable, strongly-typed request payload.

    Identified by its logical name: `request_name` when declared, otherwise
    the fully-qualified type name (module + qualified class name).
    """

    model_config = ConfigDict(frozen=True)

    request_name: ClassVar[Optional[str]] = None

    @classmethod
    def logical_name(cls) -> str:
        return cls.request_name or f"{cls.__module__}.{cls.__qualname__}"


class Cacheable(Request):
    """Marks a request as eligible for read-through response caching."""

    # None falls back to the cache stage's 24 hour default
    cache_ttl: ClassVar[Optional[timedelta]] = None

    # Type cached payloads are decoded into on a hit; None returns plain JSON data
    response_type: ClassVar[Optional[Any]] = None


class CacheKeyProvider(ABC):
    """
    A cacheable request that supplies its own canonical key string.

    The stage still prefixes the logical name, so namespace eviction keeps
    working for custom keys.
    """

    @abstractmethod
    def cache_key(self) -> str:
        ...


class CacheInvalidating(Request):
    """
    Marks a request whose successful execution evicts cached responses.

    With nothing declared, the query namespace is derived from the request's
    logical name (Foo.Commands.Bar evicts Foo.Queries.*). Declaring any of
    the attributes below replaces that derivation:

        invalidates:             query namespaces to evict ("Items.Queries.")
        cache_keys:              exact keys to evict
        cache_key_pattern:       a Redis glob pattern to evict
        reset_all_cache_entries: evict every key
    """

    invalidates: ClassVar[Tuple[str, ...]] = ()
    cache_keys: ClassVar[Tuple[str, ...]] = ()
    cache_key_pattern: ClassVar[Optional[str]] = None
    reset_all_cache_entries: ClassVar[bool] = False
