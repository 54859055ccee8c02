"""Tests for the operator console."""

import io
import logging
from unittest.mock import MagicMock

import pytest

from cloudproxy.constants import CONSOLE_HEADER, CONSOLE_HELP, CONSOLE_PROMPT, ConsoleState
from cloudproxy.core.cleanup import CleanupCoordinator
from cloudproxy.core.console import LIST_HEADER, ConsoleController
from cloudproxy.core.machine import MachineRegistry


@pytest.fixture
def make_console(fake_provider):
    """Build a console over a registry with scripted input.

    Returns
    -------
    callable
        ``_make(registry, lines="")`` returning ``(console, stdout, exit_func)``
    """

    def _make(registry: MachineRegistry, lines: str = ""):
        exit_func = MagicMock()
        coordinator = CleanupCoordinator(registry, fake_provider, exit_func=exit_func)
        stdout = io.StringIO()
        console = ConsoleController(
            registry,
            coordinator,
            identity="/keys/id_rsa",
            stdin=io.StringIO(lines),
            stdout=stdout,
        )
        return console, stdout, exit_func

    return _make


class TestListCommand:
    def test_empty_registry_prints_header_only(self, make_console) -> None:
        console, stdout, _ = make_console(MachineRegistry())

        console.handle_line("l")

        assert stdout.getvalue() == LIST_HEADER + "\n"

    def test_rows_in_registry_order(self, make_console, make_registry) -> None:
        registry = make_registry(2)
        machines = list(registry.all())
        machines[1].start_tunnel("55556", "/keys/id_rsa")
        console, stdout, _ = make_console(registry)

        console.handle_line("L")

        lines = stdout.getvalue().splitlines()
        assert lines[0] == LIST_HEADER
        assert lines[1].split() == ["1", machines[0].name, "203.0.113.1", "-", "False"]
        assert lines[2].split() == ["2", machines[1].name, "203.0.113.2", "55556", "True"]

    def test_list_with_arguments_is_ignored(self, make_console, make_registry) -> None:
        console, stdout, _ = make_console(make_registry(1))

        console.handle_line("l 1")

        assert stdout.getvalue() == ""


class TestConnectCommand:
    def test_connect_starts_tunnel(self, make_console, make_registry) -> None:
        registry = make_registry(1)
        console, _, _ = make_console(registry)

        console.handle_line("c 1 1080")

        machine = registry.find_by_id(1)
        assert machine.tunnel_active
        assert machine.listener_port == "1080"

    def test_connect_active_machine_warns(self, make_console, make_registry) -> None:
        registry = make_registry(1)
        registry.find_by_id(1).start_tunnel("55555", "/keys/id_rsa")
        console, stdout, _ = make_console(registry)

        console.handle_line("c 1 1080")

        assert "[WARNING] Machine already has an active socks proxy" in stdout.getvalue()
        assert registry.find_by_id(1).listener_port == "55555"

    def test_unknown_id_is_noop(self, make_console, make_registry, supervisor_factory) -> None:
        registry = make_registry(2)
        console, stdout, _ = make_console(registry)

        console.handle_line("c 99 1080")

        assert stdout.getvalue() == ""
        assert supervisor_factory.created == []

    def test_unready_machine_prints_warning(self, make_console, make_registry) -> None:
        registry = make_registry(1, resolve=False)
        console, stdout, _ = make_console(registry)

        console.handle_line("c 1 1080")

        assert stdout.getvalue().startswith("[WARNING]")
        assert not registry.find_by_id(1).tunnel_active

    @pytest.mark.parametrize(
        "line",
        ["c one 1080", "c 1 http", "c 1 0", "c 1 70000", "d x"],
    )
    def test_malformed_numbers_are_reported(self, make_console, make_registry, line) -> None:
        registry = make_registry(1)
        console, stdout, _ = make_console(registry)

        console.handle_line(line)

        assert stdout.getvalue().startswith("[ERROR] ")
        assert not registry.find_by_id(1).tunnel_active

    @pytest.mark.parametrize("line", ["c 1", "c 1 2 3", "c"])
    def test_wrong_argument_count_is_ignored(self, make_console, make_registry, line) -> None:
        registry = make_registry(1)
        console, stdout, _ = make_console(registry)

        console.handle_line(line)

        assert stdout.getvalue() == ""
        assert not registry.find_by_id(1).tunnel_active


class TestDisconnectCommand:
    def test_disconnect_stops_tunnel(self, make_console, make_registry) -> None:
        registry = make_registry(1)
        registry.find_by_id(1).start_tunnel("55555", "/keys/id_rsa")
        console, _, _ = make_console(registry)

        console.handle_line("d 1")

        assert not registry.find_by_id(1).tunnel_active

    def test_disconnect_inactive_warns(self, make_console, make_registry) -> None:
        console, stdout, _ = make_console(make_registry(1))

        console.handle_line("d 1")

        assert stdout.getvalue() == "[WARNING] Machine does not have an active tunnel\n"

    def test_disconnect_unknown_id_is_noop(self, make_console, make_registry) -> None:
        console, stdout, _ = make_console(make_registry(1))

        console.handle_line("d 42")

        assert stdout.getvalue() == ""


class TestOtherCommands:
    def test_help(self, make_console) -> None:
        console, stdout, _ = make_console(MachineRegistry())

        console.handle_line("h")

        assert stdout.getvalue() == CONSOLE_HELP + "\n"

    def test_proxy_configs(self, make_console, make_registry) -> None:
        registry = make_registry(1)
        registry.find_by_id(1).start_tunnel("55555", "/keys/id_rsa")
        console, stdout, _ = make_console(registry)

        console.handle_line("p")

        assert "socks5 127.0.0.1 55555" in stdout.getvalue()
        assert '{"type":"socks5","address":"127.0.0.1:55555"}' in stdout.getvalue()

    @pytest.mark.parametrize("line", ["", "   ", "x", "list", "quit now"])
    def test_unknown_input_is_ignored(self, make_console, make_registry, line) -> None:
        console, stdout, exit_func = make_console(make_registry(1))

        console.handle_line(line)

        assert stdout.getvalue() == ""
        exit_func.assert_not_called()
        assert console.state == ConsoleState.RUNNING


class TestConsoleLoop:
    def test_quit_cleans_up_and_exits_zero(self, make_console, make_registry, fake_provider) -> None:
        registry = make_registry(2)
        registry.find_by_id(1).start_tunnel("55555", "/keys/id_rsa")
        console, _, exit_func = make_console(registry, "q\n")

        console.run()

        exit_func.assert_called_once_with(0)
        assert console.state == ConsoleState.SHUTTING_DOWN
        assert len(fake_provider.deleted) == 2
        assert not registry.find_by_id(1).tunnel_active

    def test_prompt_printed_each_iteration(self, make_console) -> None:
        console, stdout, _ = make_console(MachineRegistry(), "h\nq\n")

        console.run()

        output = stdout.getvalue()
        assert output.count(CONSOLE_HEADER) == 2
        assert output.count(CONSOLE_PROMPT) == 2

    def test_end_of_input_quits(self, make_console, make_registry, fake_provider) -> None:
        console, _, exit_func = make_console(make_registry(1), "l\n")

        console.run()

        exit_func.assert_called_once_with(0)
        assert len(fake_provider.deleted) == 1

    def test_commands_before_quit_are_applied(self, make_console, make_registry) -> None:
        registry = make_registry(2)
        console, _, exit_func = make_console(registry, "c 2 1080\nd 2\nc 2 1081\nq\n")

        console.run()

        # quit stops every tunnel
        assert not registry.find_by_id(2).tunnel_active
        exit_func.assert_called_once_with(0)

    def test_loop_stops_when_shutdown_already_triggered(self, make_console, make_registry) -> None:
        console, stdout, exit_func = make_console(make_registry(1), "l\n")
        console.coordinator.shutdown(1)
        exit_func.reset_mock()

        console.run()

        assert stdout.getvalue() == ""
        exit_func.assert_not_called()


def test_privileged_port_logs_warning(make_console, make_registry, caplog) -> None:
    registry = make_registry(1)
    console, _, _ = make_console(registry)

    with caplog.at_level(logging.WARNING):
        console.handle_line("c 1 80")

    assert "privileged port" in caplog.text
    assert registry.find_by_id(1).listener_port == "80"
