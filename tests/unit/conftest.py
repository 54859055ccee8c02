"""Pytest configuration and fixtures for cloudproxy tests."""

import os
import signal
import sys
from collections.abc import Generator
from pathlib import Path
from typing import Any

import paramiko
import pytest
import yaml

unit_root = Path(__file__).parent
if str(unit_root) not in sys.path:
    sys.path.insert(0, str(unit_root))

from fakes.fake_provider import FakeProvider  # noqa: E402
from fakes.fake_tunnel import FakeSupervisorFactory  # noqa: E402

from cloudproxy.core.machine import Machine, MachineRegistry  # noqa: E402
from cloudproxy.core.signals import set_shutdown_handler  # noqa: E402
from cloudproxy.services.transport import SSHTransport  # noqa: E402


@pytest.fixture(autouse=True)
def clean_environment() -> Generator[None, None, None]:
    """Keep debug and credential variables from leaking into tests.

    Yields
    ------
    None
        Control back to test after clearing the variables
    """
    saved = {
        name: os.environ.pop(name, None)
        for name in ("CLOUDPROXY_DEBUG", "DIGITALOCEAN_TOKEN", "CLOUDPROXY_CONFIG")
    }

    yield

    for name, value in saved.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture(autouse=True)
def restore_signal_handlers() -> Generator[None, None, None]:
    """Undo signal handlers and the shutdown handler installed by a test."""
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    yield

    set_shutdown_handler(None)
    signal.signal(signal.SIGINT, original_sigint)
    signal.signal(signal.SIGTERM, original_sigterm)


@pytest.fixture
def aws_credentials() -> Generator[None, None, None]:
    """Fixture to set AWS credentials for testing with proper cleanup.

    Yields
    ------
    None
        Control back to test after setting credentials
    """
    names = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_DEFAULT_REGION")
    saved = {name: os.environ.get(name) for name in names}

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    yield

    for name, value in saved.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture
def config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary config file path and point CLOUDPROXY_CONFIG at it.

    Parameters
    ----------
    tmp_path : Path
        Pytest temporary directory path

    Yields
    ------
    Path
        Path to temporary config file
    """
    config_path = tmp_path / "cloudproxy.yaml"
    os.environ["CLOUDPROXY_CONFIG"] = str(config_path)

    yield config_path


@pytest.fixture
def write_config(config_file: Path):
    """Helper fixture to write config data to file.

    Returns
    -------
    callable
        Function that takes config_data dict and writes to file
    """

    def _write(config_data: dict[str, Any]) -> None:
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

    return _write


@pytest.fixture(scope="session")
def private_key_file(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Write a real RSA private key once per test session."""
    key_path = tmp_path_factory.mktemp("keys") / "id_rsa"
    paramiko.RSAKey.generate(2048).write_private_key_file(str(key_path))
    return key_path


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def supervisor_factory() -> FakeSupervisorFactory:
    return FakeSupervisorFactory()


@pytest.fixture
def transport() -> SSHTransport:
    return SSHTransport(username="root")


@pytest.fixture
def make_registry(fake_provider: FakeProvider, supervisor_factory, transport):
    """Build a registry of machines created on the fake provider.

    Returns
    -------
    callable
        ``_make(count, region="nyc1", resolve=True)`` returning a
        MachineRegistry; with ``resolve`` the addresses are already set
    """

    def _make(count: int, region: str = "nyc1", resolve: bool = True) -> MachineRegistry:
        instances = fake_provider.create_instances("cloud-proxy", region, "key", count)
        machines = []
        for machine_id, instance in enumerate(instances, start=1):
            machine = Machine.from_instance(
                machine_id, instance, transport, supervisor_factory=supervisor_factory
            )
            if resolve:
                machine.resolve_address(fake_provider)
            machines.append(machine)
        return MachineRegistry(machines)

    return _make
