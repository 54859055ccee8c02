"""Tests for Machine and MachineRegistry."""

import logging
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ReadTimeoutError

from fakes.fake_tunnel import FakeSupervisor, FakeSupervisorFactory

from cloudproxy.core.exceptions import (
    DestroyError,
    ReadinessError,
    TunnelAlreadyActive,
    TunnelSpawnError,
    TunnelStopError,
)
from cloudproxy.core.interfaces import InstanceInfo
from cloudproxy.core.machine import Machine, MachineRegistry
from cloudproxy.providers.aws import EC2Provider
from cloudproxy.providers.exceptions import ProviderConnectionError


def assert_tunnel_invariant(machine: Machine) -> None:
    assert (machine.listener_port != "") == machine.tunnel_active
    assert machine.tunnel_active == (machine.process is not None)


class TestMachineReadiness:
    def test_ec2_read_timeout_raises_readiness_error(self, transport) -> None:
        client = MagicMock()
        client.describe_instances.side_effect = ReadTimeoutError(
            endpoint_url="https://ec2.us-east-1.amazonaws.com/"
        )
        provider = EC2Provider(image_id="ami-123", boto3_client_factory=lambda *a, **kw: client)
        machine = Machine.from_instance(
            1, InstanceInfo("i-1", "edge-1", "us-east-1"), transport
        )

        with pytest.raises(ReadinessError, match="Read timeout"):
            machine.resolve_address(provider)

        assert not machine.is_ready()

    def test_new_machine_is_not_ready(self, make_registry) -> None:
        machine = next(make_registry(1, resolve=False).all())

        assert machine.address == ""
        assert not machine.is_ready()
        assert_tunnel_invariant(machine)

    def test_resolve_address_sets_address(self, make_registry, fake_provider) -> None:
        machine = next(make_registry(1, resolve=False).all())

        assert machine.resolve_address(fake_provider) == "203.0.113.1"
        assert machine.is_ready()

    def test_missing_address_raises_readiness_error(self, make_registry, fake_provider) -> None:
        machine = next(make_registry(1, resolve=False).all())
        fake_provider.addresses[machine.instance_id] = ""

        with pytest.raises(ReadinessError):
            machine.resolve_address(fake_provider)

        assert not machine.is_ready()

    def test_provider_error_raises_readiness_error(self, make_registry, fake_provider) -> None:
        machine = next(make_registry(1, resolve=False).all())

        def broken_get_address(instance_id: str, region: str) -> str:
            raise ProviderConnectionError("unreachable")

        fake_provider.get_address = broken_get_address

        with pytest.raises(ReadinessError, match="unreachable"):
            machine.resolve_address(fake_provider)
        assert machine.address == ""


class TestMachineTunnel:
    def test_start_tunnel_records_state(self, make_registry, supervisor_factory) -> None:
        machine = next(make_registry(1).all())

        machine.start_tunnel("55555", "/keys/id_rsa")

        assert machine.tunnel_active
        assert machine.listener_port == "55555"
        assert_tunnel_invariant(machine)

        command = supervisor_factory.created[0].command
        assert command[:3] == ["ssh", "-D", "55555"]
        assert command[-1] == "root@203.0.113.1"

    def test_start_twice_raises_and_keeps_first_tunnel(
        self, make_registry, supervisor_factory
    ) -> None:
        machine = next(make_registry(1).all())
        machine.start_tunnel("55555", "/keys/id_rsa")

        with pytest.raises(TunnelAlreadyActive):
            machine.start_tunnel("1080", "/keys/id_rsa")

        assert machine.listener_port == "55555"
        assert len(supervisor_factory.created) == 1
        assert supervisor_factory.created[0].stop_calls == 0

    def test_start_on_unready_machine_raises(self, make_registry, supervisor_factory) -> None:
        machine = next(make_registry(1, resolve=False).all())

        with pytest.raises(TunnelSpawnError):
            machine.start_tunnel("55555", "/keys/id_rsa")

        assert supervisor_factory.created == []
        assert_tunnel_invariant(machine)

    def test_spawn_failure_leaves_state_unchanged(self, fake_provider, transport) -> None:
        instance = fake_provider.create_instances("cloud-proxy", "nyc1", "key", 1)[0]
        factory = FakeSupervisorFactory(failing_labels={instance.name})
        machine = Machine.from_instance(1, instance, transport, supervisor_factory=factory)
        machine.resolve_address(fake_provider)

        with pytest.raises(TunnelSpawnError):
            machine.start_tunnel("55555", "/keys/id_rsa")

        assert not machine.tunnel_active
        assert machine.listener_port == ""
        assert_tunnel_invariant(machine)

    def test_interrupt_after_spawn_stops_the_process(self, fake_provider, transport) -> None:
        instance = fake_provider.create_instances("cloud-proxy", "nyc1", "key", 1)[0]
        supervisor = FakeSupervisor(instance.name)
        original_start = supervisor.start

        def start_then_interrupt(command: list[str]) -> None:
            original_start(command)
            raise SystemExit(1)

        supervisor.start = start_then_interrupt
        machine = Machine.from_instance(
            1, instance, transport, supervisor_factory=lambda label: supervisor
        )
        machine.resolve_address(fake_provider)

        with pytest.raises(SystemExit):
            machine.start_tunnel("55555", "/keys/id_rsa")

        assert supervisor.stop_calls == 1
        assert not supervisor.is_running
        assert_tunnel_invariant(machine)

    def test_stop_tunnel_clears_state(self, make_registry, supervisor_factory) -> None:
        machine = next(make_registry(1).all())
        machine.start_tunnel("55555", "/keys/id_rsa")

        assert machine.stop_tunnel() is True

        assert not machine.tunnel_active
        assert machine.listener_port == ""
        assert supervisor_factory.created[0].stop_calls == 1
        assert_tunnel_invariant(machine)

    def test_stop_inactive_tunnel_warns(self, make_registry, caplog) -> None:
        machine = next(make_registry(1).all())

        with caplog.at_level(logging.WARNING):
            assert machine.stop_tunnel() is False

        assert "does not have an active tunnel" in caplog.text

    def test_stop_failure_still_clears_state(self, make_registry, supervisor_factory) -> None:
        machine = next(make_registry(1).all())
        machine.start_tunnel("55555", "/keys/id_rsa")

        def failing_stop() -> None:
            raise TunnelStopError("kill failed")

        supervisor_factory.created[0].stop = failing_stop

        assert machine.stop_tunnel() is True
        assert not machine.tunnel_active
        assert_tunnel_invariant(machine)

    def test_restart_after_stop_uses_new_port(self, make_registry) -> None:
        machine = next(make_registry(1).all())
        machine.start_tunnel("55555", "/keys/id_rsa")
        machine.stop_tunnel()

        machine.start_tunnel("1080", "/keys/id_rsa")

        assert machine.listener_port == "1080"
        assert_tunnel_invariant(machine)

    def test_snapshot(self, make_registry) -> None:
        machine = next(make_registry(1).all())
        machine.start_tunnel(1080, "/keys/id_rsa")

        snapshot = machine.snapshot()

        assert snapshot["id"] == 1
        assert snapshot["address"] == "203.0.113.1"
        assert snapshot["listener_port"] == "1080"
        assert snapshot["tunnel_active"] is True


class TestMachineDestroy:
    def test_destroy_calls_provider_once(self, make_registry, fake_provider) -> None:
        machine = next(make_registry(1).all())

        machine.destroy(fake_provider)
        machine.destroy(fake_provider)

        assert fake_provider.deleted == [machine.instance_id]
        assert machine.destroyed

    def test_destroy_failure_raises(self, make_registry, fake_provider) -> None:
        machine = next(make_registry(1).all())
        fake_provider.fail_delete_for.add(machine.instance_id)

        with pytest.raises(DestroyError, match=machine.name):
            machine.destroy(fake_provider)

        assert not machine.destroyed

    def test_destroy_leaves_tunnel_state(self, make_registry, fake_provider) -> None:
        machine = next(make_registry(1).all())
        machine.start_tunnel("55555", "/keys/id_rsa")

        machine.destroy(fake_provider)

        assert machine.tunnel_active
        assert_tunnel_invariant(machine)


class TestMachineRegistry:
    def test_all_is_restartable(self, make_registry) -> None:
        registry = make_registry(3)

        first = [machine.id for machine in registry.all()]
        second = [machine.id for machine in registry.all()]

        assert first == second == [1, 2, 3]

    def test_iteration_and_len(self, make_registry) -> None:
        registry = make_registry(2)

        assert len(registry) == 2
        assert [machine.id for machine in registry] == [1, 2]

    def test_find_by_id(self, make_registry) -> None:
        registry = make_registry(3)

        assert registry.find_by_id(2).id == 2
        assert registry.find_by_id(99) is None

    def test_empty_registry(self) -> None:
        registry = MachineRegistry()

        assert len(registry) == 0
        assert list(registry.all()) == []
        assert registry.find_by_id(1) is None

    def test_ready_and_active(self, make_registry, fake_provider) -> None:
        registry = make_registry(3, resolve=False)
        machines = list(registry.all())
        machines[0].resolve_address(fake_provider)
        machines[2].resolve_address(fake_provider)
        machines[2].start_tunnel("55555", "/keys/id_rsa")

        assert [machine.id for machine in registry.ready()] == [1, 3]
        assert [machine.id for machine in registry.active()] == [3]

    def test_from_instance(self, transport) -> None:
        instance = InstanceInfo(instance_id="i-1", name="cloud-proxy-1", region="nyc1")

        machine = Machine.from_instance(7, instance, transport)

        assert machine.id == 7
        assert machine.instance_id == "i-1"
        assert machine.region == "nyc1"
        assert not machine.destroyed
