"""Request-chain scoped tenant binding.

The active tenant id lives in a ``ContextVar``. asyncio copies the current
context into every task it creates, so a binding made at the top of a request
is visible across every ``await`` and in every task scheduled from inside the
scope, while concurrently running requests each see their own copy.

Usage:
    async def handler():
        return await run_with_tenant_context("tenant-a", list_courses)

    async def list_courses():
        tenant_id = current_tenant_id()  # "tenant-a"
        ...

    with tenant_scope("tenant-b"):
        ...
"""

import inspect
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Iterator, Optional, TypeVar, Union

from .errors import MissingTenantContext

T = TypeVar("T")

_tenant_id_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)


def _validate_tenant_id(tenant_id: str) -> str:
    if not isinstance(tenant_id, str) or not tenant_id.strip():
        raise ValueError("tenant_id must be a non-empty string")
    return tenant_id


@contextmanager
def tenant_scope(tenant_id: str) -> Iterator[str]:
    """Bind ``tenant_id`` for the enclosed block and restore the outer binding on exit.

    Works for both sync and async code: inside ``async def`` use a plain
    ``with`` block, the binding follows every await in the block.
    """
    token = _tenant_id_var.set(_validate_tenant_id(tenant_id))
    try:
        yield tenant_id
    finally:
        _tenant_id_var.reset(token)


def run_with_tenant_context(
    tenant_id: str,
    fn: Callable[..., Union[T, Awaitable[T]]],
    *args: Any,
    **kwargs: Any,
) -> Union[T, Awaitable[T]]:
    """Run ``fn`` with ``tenant_id`` bound for its whole call chain.

    If ``fn`` returns an awaitable (a coroutine function, or e.g. a lambda
    wrapping a coroutine call) the return value is a coroutine that must be
    awaited; the binding is re-established when it starts running, so it is
    correct regardless of which task eventually awaits it.

    Args:
        tenant_id: Tenant to bind
        fn: Sync callable or callable returning an awaitable
        *args, **kwargs: Forwarded to ``fn``

    Returns:
        Whatever ``fn`` returns (wrapped in a coroutine when awaitable)
    """
    _validate_tenant_id(tenant_id)

    if inspect.iscoroutinefunction(fn):
        async def _runner() -> T:
            with tenant_scope(tenant_id):
                return await fn(*args, **kwargs)

        return _runner()

    with tenant_scope(tenant_id):
        result = fn(*args, **kwargs)

    if inspect.isawaitable(result):
        async def _await_in_scope() -> T:
            with tenant_scope(tenant_id):
                return await result

        return _await_in_scope()
    return result


def current_tenant_id() -> str:
    """Return the active tenant id.

    Raises:
        MissingTenantContext: If called outside any tenant scope
    """
    tenant_id = _tenant_id_var.get()
    if tenant_id is None:
        raise MissingTenantContext()
    return tenant_id


def get_tenant_id_or_none() -> Optional[str]:
    """Non-raising lookup of the active tenant id (used by log filters)."""
    return _tenant_id_var.get()
