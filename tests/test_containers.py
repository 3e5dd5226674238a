"""
Tests for the container lifecycle manager.
"""

import gc
from unittest.mock import AsyncMock, MagicMock

import pytest
from docker.errors import APIError

from dockstation.core.containers import ContainerLifecycleManager, split_image_reference
from dockstation.core.errors import ContainerStartFailure

ECHO_IMAGE = "hashicorp/http-echo"


class TestSplitImageReference:
    """Tests for image reference parsing."""

    def test_untagged_defaults_to_latest(self):
        """Test that an untagged image resolves to latest."""
        assert split_image_reference("hashicorp/http-echo") == ("hashicorp/http-echo", "latest")

    def test_explicit_tag(self):
        """Test that an explicit tag is split off."""
        assert split_image_reference("redis:7.2") == ("redis", "7.2")

    def test_registry_port_is_not_a_tag(self):
        """Test that a registry host:port is kept in the repository."""
        assert split_image_reference("localhost:5000/app") == ("localhost:5000/app", "latest")
        assert split_image_reference("localhost:5000/app:v1") == ("localhost:5000/app", "v1")

    def test_digest_reference(self):
        """Test that a digest is split off at the @, not the last colon."""
        assert split_image_reference("alpine@sha256:abc123") == ("alpine", "sha256:abc123")
        assert split_image_reference("localhost:5000/app@sha256:abc123") == (
            "localhost:5000/app",
            "sha256:abc123",
        )


class TestCreateContainer:
    """Tests for ContainerLifecycleManager.create_container."""

    @pytest.mark.asyncio
    async def test_publishes_port_on_same_host_port(self, fake_engine):
        """Test that requested port 5678 is bound to host port 5678 on all interfaces."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        handle = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE, "-text=Hello")

        assert handle.name == "HttpEcho"
        assert handle.host == "localhost"
        assert handle.exposed_ports == [5678]
        created = fake_engine.created[0]
        assert created["port_bindings"] == {5678: ("0.0.0.0", 5678)}
        assert created["publish_all_ports"] is True
        assert created["auto_remove"] is True
        assert created["command"] == ["-text=Hello"]

    @pytest.mark.asyncio
    async def test_single_int_port_accepted(self, fake_engine):
        """Test that a bare int is treated as one port."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        handle = await manager.create_container("HttpEcho", 5678, ECHO_IMAGE)

        assert handle.exposed_ports == [5678]

    @pytest.mark.asyncio
    async def test_exposed_ports_follow_request_order(self, fake_engine):
        """Test that exposed ports keep the order they were requested in."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        handle = await manager.create_container("Multi", [8080, 443, 5678], ECHO_IMAGE)

        assert handle.exposed_ports == [8080, 443, 5678]

    @pytest.mark.asyncio
    async def test_no_ports_rejected(self, fake_engine):
        """Test that an empty port list is an error."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        with pytest.raises(ValueError):
            await manager.create_container("HttpEcho", [], ECHO_IMAGE)

        assert fake_engine.created == []

    @pytest.mark.asyncio
    async def test_missing_image_is_pulled(self, fake_engine):
        """Test that an image not present locally is pulled before creation."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        await manager.create_container("Redis", [6379], "redis:7.2")

        assert fake_engine.pulled == [("redis", "7.2")]

    @pytest.mark.asyncio
    async def test_present_image_not_pulled(self, fake_engine):
        """Test that an untagged reference matches the local :latest image."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)

        assert fake_engine.pulled == []

    @pytest.mark.asyncio
    async def test_same_name_replaces_existing(self, fake_engine):
        """Test that a second create with the same name replaces the first container."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        first = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)
        second = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)

        assert first.id != second.id
        assert first.id in fake_engine.stopped
        assert list(fake_engine.containers) == [second.id]
        assert first.disposed is True
        assert manager.active_handles == [second]

    @pytest.mark.asyncio
    async def test_leftover_from_previous_run_replaced(self, fake_engine):
        """Test that a same-named container this manager never created is removed."""
        leftover = fake_engine.add_container("HttpEcho")
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        handle = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)

        assert leftover not in fake_engine.containers
        assert handle.id in fake_engine.containers

    @pytest.mark.asyncio
    async def test_name_match_is_exact(self, fake_engine):
        """Test that containers whose names merely contain the name are left alone."""
        other = fake_engine.add_container("HttpEchoSecondary")
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)

        assert other in fake_engine.containers

    @pytest.mark.asyncio
    async def test_start_failure_raises(self, fake_engine):
        """Test that a refused start surfaces as ContainerStartFailure and leaves nothing behind."""
        fake_engine.start_error = APIError("port is already allocated")
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        with pytest.raises(ContainerStartFailure) as exc_info:
            await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)

        assert exc_info.value.name == "HttpEcho"
        assert "port is already allocated" in str(exc_info.value)
        assert manager.active_handles == []
        assert fake_engine.containers == {}

    @pytest.mark.asyncio
    async def test_missing_port_binding_cleans_up(self, fake_engine):
        """Test that a started container without the requested binding is stopped and removed."""
        inspect = fake_engine.inspect_container

        async def _inspect_without_ports(container_id):
            details = await inspect(container_id)
            details["NetworkSettings"]["Ports"] = {}
            return details

        fake_engine.inspect_container = _inspect_without_ports
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        with pytest.raises(ContainerStartFailure) as exc_info:
            await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)

        assert exc_info.value.container_id in fake_engine.stopped
        assert fake_engine.containers == {}
        assert manager.active_handles == []

    @pytest.mark.asyncio
    async def test_digest_reference_matches_repo_digests(self, fake_engine):
        """Test that a pinned digest already present locally is not pulled."""
        fake_engine.images.append(
            {"RepoTags": ["alpine:3.19"], "RepoDigests": ["alpine@sha256:abc123"]}
        )
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        await manager.create_container("Alpine", [8080], "alpine@sha256:abc123")

        assert fake_engine.pulled == []

    @pytest.mark.asyncio
    async def test_missing_digest_pulled_by_digest(self, fake_engine):
        """Test that an absent digest is pulled as repository plus digest."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        await manager.create_container("Alpine", [8080], "alpine@sha256:abc123")

        assert fake_engine.pulled == [("alpine", "sha256:abc123")]


class TestDispose:
    """Tests for handle disposal."""

    @pytest.mark.asyncio
    async def test_dispose_stops_and_forgets(self, fake_engine):
        """Test that dispose stops the container and drops the handle."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")
        handle = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)

        await handle.dispose()

        assert handle.disposed is True
        assert fake_engine.containers == {}
        assert manager.active_handles == []

    @pytest.mark.asyncio
    async def test_dispose_twice_is_noop(self, fake_engine):
        """Test that the second dispose touches nothing."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")
        handle = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)

        await handle.dispose()
        await handle.dispose()

        assert fake_engine.stopped == [handle.id]

    @pytest.mark.asyncio
    async def test_dispose_after_external_removal(self, fake_engine):
        """Test that a container removed behind our back disposes cleanly."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")
        handle = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)
        fake_engine.containers.clear()

        await handle.dispose()

        assert handle.disposed is True

    @pytest.mark.asyncio
    async def test_dispose_never_raises(self, fake_engine):
        """Test that unexpected engine errors during disposal are swallowed into a warning."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")
        handle = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)
        fake_engine.stop_container = AsyncMock(side_effect=APIError("engine went away"))
        fake_engine.remove_container = AsyncMock(side_effect=APIError("engine went away"))

        await handle.dispose()

        assert handle.disposed is True

    @pytest.mark.asyncio
    async def test_context_manager_disposes(self, fake_engine):
        """Test that leaving an async with block disposes the handle."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        async with await manager.create_container("HttpEcho", [5678], ECHO_IMAGE) as handle:
            assert handle.id in fake_engine.containers

        assert handle.disposed is True
        assert fake_engine.containers == {}

    @pytest.mark.asyncio
    async def test_scoped_container_disposes_on_error(self, fake_engine):
        """Test that manager.container() disposes even when the body raises."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        with pytest.raises(RuntimeError):
            async with manager.container("HttpEcho", [5678], ECHO_IMAGE):
                raise RuntimeError("test body failed")

        assert fake_engine.containers == {}

    @pytest.mark.asyncio
    async def test_dispose_all(self, fake_engine):
        """Test that dispose_all clears every active handle."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")
        await manager.create_container("One", [8001], ECHO_IMAGE)
        await manager.create_container("Two", [8002], ECHO_IMAGE)

        await manager.dispose_all()

        assert manager.active_handles == []
        assert fake_engine.containers == {}

    @pytest.mark.asyncio
    async def test_handle_outliving_manager(self, fake_engine):
        """Test that a handle whose manager is gone only marks itself disposed."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")
        handle = await manager.create_container("HttpEcho", [5678], ECHO_IMAGE)
        del manager
        gc.collect()

        await handle.dispose()

        assert handle.disposed is True
        assert fake_engine.stopped == []


class TestRemoveNamed:
    """Tests for removal by name."""

    @pytest.mark.asyncio
    async def test_remove_existing(self, fake_engine):
        """Test that remove_named reports a found container."""
        fake_engine.add_container("HttpEcho")
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        assert await manager.remove_named("HttpEcho") is True
        assert fake_engine.containers == {}

    @pytest.mark.asyncio
    async def test_remove_missing(self, fake_engine):
        """Test that remove_named returns False when nothing matches."""
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        assert await manager.remove_named("HttpEcho") is False

    @pytest.mark.asyncio
    async def test_removal_conflict_tolerated(self, fake_engine):
        """Test that a 409 while auto-remove is in progress is not an error."""
        container_id = fake_engine.add_container("HttpEcho")
        fake_engine.stop_container = AsyncMock(return_value=None)

        async def _remove(cid):
            del fake_engine.containers[cid]
            raise APIError("removal already in progress", response=MagicMock(status_code=409))

        fake_engine.remove_container = _remove
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        assert await manager.remove_named("HttpEcho") is True
        assert container_id not in fake_engine.containers

    @pytest.mark.asyncio
    async def test_other_removal_errors_propagate(self, fake_engine):
        """Test that a real removal failure is raised."""
        fake_engine.add_container("HttpEcho")
        fake_engine.stop_container = AsyncMock(return_value=None)
        fake_engine.remove_container = AsyncMock(
            side_effect=APIError("driver failed", response=MagicMock(status_code=500))
        )
        manager = ContainerLifecycleManager(fake_engine, "localhost")

        with pytest.raises(APIError):
            await manager.remove_named("HttpEcho")
