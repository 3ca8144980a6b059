"""
Per-request dispatch context.

A :class:`DispatchContext` carries the identity of the caller and a
read cache that lives only as long as the request.  Services accept an
optional context; when none is given they build a throwaway one, so
nothing here is shared between requests or threads.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


@dataclass
class DispatchContext:
    user: Optional[Any] = None
    cache: Dict[Any, Any] = field(default_factory=dict)

    def cached(self, key, loader: Callable[[], Any]):
        if key not in self.cache:
            self.cache[key] = loader()
        return self.cache[key]

    def forget(self, key) -> None:
        self.cache.pop(key, None)


def ensure_context(ctx: Optional[DispatchContext], user=None) -> DispatchContext:
    if ctx is not None:
        return ctx
    return DispatchContext(user=user)
