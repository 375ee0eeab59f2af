"""Unit tests for the ambient tenant context

Tests cover:
- Binding and restoring with tenant_scope (including nesting)
- run_with_tenant_context for sync and async callables
- Fail-closed behavior outside any scope
- Isolation between concurrently running call chains
"""

import asyncio
import random

import pytest

from tenancy.context import current_tenant_id, get_tenant_id_or_none, run_with_tenant_context, tenant_scope
from tenancy.errors import MissingTenantContext


class TestTenantScope:
    """Test binding a tenant for a block"""

    def test_current_tenant_inside_scope(self):
        with tenant_scope("tenant-a"):
            assert current_tenant_id() == "tenant-a"

    def test_missing_context_raises(self):
        with pytest.raises(MissingTenantContext):
            current_tenant_id()

    def test_lookup_returns_none_outside_scope(self):
        assert get_tenant_id_or_none() is None

    def test_nested_scopes_restore_outer_binding(self):
        with tenant_scope("outer"):
            with tenant_scope("inner"):
                assert current_tenant_id() == "inner"
            assert current_tenant_id() == "outer"
        assert get_tenant_id_or_none() is None

    def test_binding_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with tenant_scope("tenant-a"):
                raise RuntimeError("boom")
        assert get_tenant_id_or_none() is None

    @pytest.mark.parametrize("bad", ["", "   ", None])
    def test_blank_tenant_rejected(self, bad):
        with pytest.raises(ValueError):
            with tenant_scope(bad):
                pass


class TestRunWithTenantContext:
    """Test running a callable under a tenant"""

    def test_sync_callable(self):
        result = run_with_tenant_context("tenant-s", lambda suffix: current_tenant_id() + suffix, "!")
        assert result == "tenant-s!"
        assert get_tenant_id_or_none() is None

    async def test_async_callable_sees_tenant_across_awaits(self):
        async def work():
            await asyncio.sleep(0)
            first = current_tenant_id()
            await asyncio.sleep(0)
            return first, current_tenant_id()

        assert await run_with_tenant_context("tenant-x", work) == ("tenant-x", "tenant-x")
        assert get_tenant_id_or_none() is None

    async def test_tasks_spawned_inside_scope_inherit_tenant(self):
        async def child():
            await asyncio.sleep(0)
            return current_tenant_id()

        async def parent():
            return await asyncio.gather(asyncio.create_task(child()), asyncio.create_task(child()))

        assert await run_with_tenant_context("tenant-p", parent) == ["tenant-p", "tenant-p"]

    async def test_lambda_returning_coroutine_keeps_tenant(self):
        async def read():
            await asyncio.sleep(0)
            return current_tenant_id()

        assert await run_with_tenant_context("tenant-l", lambda: read()) == "tenant-l"
        assert get_tenant_id_or_none() is None

    async def test_async_callable_object_keeps_tenant(self):
        class Job:
            async def __call__(self, suffix):
                await asyncio.sleep(0)
                return current_tenant_id() + suffix

        assert await run_with_tenant_context("tenant-o", Job(), "!") == "tenant-o!"

    async def test_async_callable_without_scope_raises(self):
        async def work():
            return current_tenant_id()

        with pytest.raises(MissingTenantContext):
            await work()


class TestConcurrentIsolation:
    """Interleaved call chains must never observe each other's tenant"""

    async def test_many_interleaved_chains_keep_their_own_tenant(self):
        rng = random.Random(1234)

        async def chain(tenant_id: str):
            seen = []
            for _ in range(5):
                await asyncio.sleep(rng.random() / 1000)
                seen.append(current_tenant_id())
            return tenant_id, seen

        results = await asyncio.gather(*[
            run_with_tenant_context(f"tenant-{i}", chain, f"tenant-{i}")
            for i in range(50)
        ])

        for tenant_id, seen in results:
            assert seen == [tenant_id] * 5

    async def test_nested_rebinding_inside_one_chain_does_not_leak(self):
        async def chain(tenant_id: str):
            with tenant_scope(f"{tenant_id}-nested"):
                await asyncio.sleep(0)
            await asyncio.sleep(0)
            return current_tenant_id()

        results = await asyncio.gather(
            run_with_tenant_context("a", chain, "a"),
            run_with_tenant_context("b", chain, "b"),
        )
        assert results == ["a", "b"]
