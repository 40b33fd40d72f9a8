from __future__ import annotations

import pytest

from profile_toolkit.dispatch import CommandDispatcher, LookupEventArgs, ShellSession
from profile_toolkit.errors import CommandNotFoundError
from profile_toolkit.fragments import CommandRegistry, ErrorKind, FragmentLoader
from profile_toolkit.telemetry import WideEventLogger


def _dispatcher(profile_dir, **kwargs) -> CommandDispatcher:
    session = ShellSession()
    registry = kwargs.pop("registry", CommandRegistry())
    events = kwargs.pop("events", WideEventLogger(sample_rate=1.0))
    loader = FragmentLoader(profile_dir, session, registry=registry, events=events)
    return CommandDispatcher(session, loader, registry, events=events, **kwargs)


def test_empty_registry_dispatch_returns_false(profile_dir) -> None:
    dispatcher = _dispatcher(profile_dir)
    args = LookupEventArgs(command_name="foo")

    assert dispatcher.registry.contains("foo") is False
    assert dispatcher.dispatch("foo", args) is False
    assert args.stop_search is False


def test_registered_command_loads_owning_fragment(profile_dir, write_fragment) -> None:
    write_fragment("FragmentX", "def foo():\n    return 'from fragment x'\n")
    dispatcher = _dispatcher(profile_dir)
    dispatcher.registry.register("foo", "FragmentX")
    args = LookupEventArgs(command_name="foo")

    assert dispatcher.dispatch("foo", args) is True
    assert args.stop_search is True
    assert dispatcher.loader.is_loaded("FragmentX")
    assert dispatcher.session.lookup("foo")() == "from fragment x"


@pytest.mark.parametrize("name", ["", "   ", None, "unknown"])
def test_dispatch_gating_for_unregistered_names(profile_dir, name) -> None:
    dispatcher = _dispatcher(profile_dir)
    dispatcher.registry.register("foo", "FragmentX")
    args = LookupEventArgs(command_name=name or "")

    assert dispatcher.dispatch(name, args) is False
    assert args.stop_search is False


def test_disabled_flag_short_circuits(profile_dir, write_fragment, monkeypatch) -> None:
    write_fragment("FragmentX", "def foo():\n    return 1\n")
    dispatcher = _dispatcher(profile_dir)
    dispatcher.registry.register("foo", "FragmentX")
    monkeypatch.setenv("PS_PROFILE_AUTO_LOAD_FRAGMENTS", "0")

    args = LookupEventArgs(command_name="foo")
    assert dispatcher.enabled is False
    assert dispatcher.dispatch("foo", args) is False
    assert args.stop_search is False
    assert dispatcher.register() is False
    assert not dispatcher.loader.is_loaded("FragmentX")


def test_missing_fragment_file_dispatch_returns_false(profile_dir) -> None:
    dispatcher = _dispatcher(profile_dir)
    dispatcher.registry.register("foo", "Ghost")
    args = LookupEventArgs(command_name="foo")

    assert dispatcher.dispatch("foo", args) is False
    assert args.stop_search is False


def test_register_is_idempotent(profile_dir) -> None:
    dispatcher = _dispatcher(profile_dir)

    assert dispatcher.register() is True
    assert dispatcher.register() is True
    assert len(dispatcher.session.resolvers) == 1
    assert dispatcher.register(force=True) is True
    assert len(dispatcher.session.resolvers) == 1
    assert dispatcher.is_registered()


def test_register_requires_available_registry(profile_dir) -> None:
    dispatcher = _dispatcher(profile_dir)
    dispatcher.registry.detach()
    assert dispatcher.register() is False

    no_registry = _dispatcher(profile_dir, registry=None)
    assert no_registry.register() is False
    assert no_registry.dispatch("foo", LookupEventArgs(command_name="foo")) is False


def test_unregister_removes_resolver(profile_dir) -> None:
    dispatcher = _dispatcher(profile_dir)
    dispatcher.register()

    assert dispatcher.unregister() is True
    assert dispatcher.session.resolvers == ()
    assert dispatcher.unregister() is False


def test_session_invoke_lazy_loads_through_chain(profile_dir, write_fragment) -> None:
    write_fragment("git", "def gst(*args):\n    return 'clean ' + ' '.join(args)\n")
    dispatcher = _dispatcher(profile_dir)
    dispatcher.registry.register("gst", "git")
    calls: list[str] = []
    dispatcher.session.add_resolver(lambda name, args: calls.append(name))
    dispatcher.register()

    assert dispatcher.session.invoke("gst", "-s") == "clean -s"
    assert calls == ["gst"]
    assert dispatcher.session.invoke("gst") == "clean "
    assert calls == ["gst"]

    with pytest.raises(CommandNotFoundError):
        dispatcher.session.invoke("nope")


def test_dispatch_records_wide_event(profile_dir, write_fragment) -> None:
    write_fragment("git", "def gst():\n    return 'ok'\n")
    events = WideEventLogger(sample_rate=1.0)
    dispatcher = _dispatcher(profile_dir, events=events)
    dispatcher.registry.register("gst", "git")

    dispatcher.dispatch("gst", LookupEventArgs(command_name="gst"))

    event = events.get_events("profile.dispatch")[0]
    assert event.context["command"] == "gst"
    assert event.context["fragment"] == "git"
    assert event.context["load_state"] == "Loaded"
    assert event.context["outcome"] == "success"


def test_dispatch_timeout_returns_false(profile_dir, write_fragment) -> None:
    write_fragment("slow", "import time\ntime.sleep(1)\n\ndef crawl():\n    return 1\n")
    events = WideEventLogger(sample_rate=1.0)
    dispatcher = _dispatcher(profile_dir, events=events, timeout=0.1)
    dispatcher.registry.register("crawl", "slow")
    args = LookupEventArgs(command_name="crawl")

    assert dispatcher.timeout == 0.1
    assert dispatcher.dispatch("crawl", args) is False
    assert args.stop_search is False
    warning = events.get_events("profile.dispatch.warning")[0]
    assert warning.context["code"] == "timeout"


def test_invalid_timeout_uses_default(profile_dir) -> None:
    dispatcher = _dispatcher(profile_dir, timeout="soon")
    assert dispatcher.timeout == 30.0


def test_resolver_errors_are_isolated() -> None:
    session = ShellSession()

    def broken(name, args):
        raise RuntimeError("resolver exploded")

    def provider(name, args):
        args.command = lambda: "provided"

    session.add_resolver(broken)
    session.add_resolver(provider)

    assert session.invoke("anything") == "provided"
    assert session.resolver_errors[0].message == "resolver exploded"
    assert session.resolver_errors[0].command_name == "anything"


def test_prepended_resolver_runs_first_and_can_stop_search() -> None:
    session = ShellSession()
    order: list[str] = []

    def late(name, args):
        order.append("late")

    def early(name, args):
        order.append("early")
        session.define(name, lambda: "defined")
        args.stop_search = True

    session.add_resolver(late)
    session.add_resolver(early, prepend=True)

    assert session.invoke("tool") == "defined"
    assert order == ["early"]


def test_session_aliases_and_undefine() -> None:
    session = ShellSession()
    session.define("docker-ps", lambda: "ps")
    session.alias("dps", "docker-ps")

    assert "dps" in session
    assert session.commands() == ["docker-ps", "dps"]
    assert session.undefine("dps") is True
    assert session.lookup("dps") is None
    assert session.undefine("dps") is False

    session.alias("loop-a", "loop-b")
    session.alias("loop-b", "loop-a")
    assert session.lookup("loop-a") is None


def test_fragment_calling_sys_exit_does_not_escape_dispatch(profile_dir, write_fragment) -> None:
    write_fragment("bad", "import sys\nsys.exit(3)\n")
    dispatcher = _dispatcher(profile_dir)
    dispatcher.registry.register("boom", "bad")
    args = LookupEventArgs(command_name="boom")

    assert dispatcher.dispatch("boom", args) is False
    assert args.stop_search is False


def test_resolver_calling_sys_exit_is_isolated() -> None:
    session = ShellSession()

    def exits(name, args):
        raise SystemExit(2)

    session.add_resolver(exits)

    assert session.resolve("anything") is None
    assert session.resolver_errors[0].command_name == "anything"


def test_load_command_reports_disabled_and_not_found(profile_dir, monkeypatch) -> None:
    dispatcher = _dispatcher(profile_dir)
    dispatcher.registry.register("foo", "FragmentX")

    assert dispatcher.load_command("unknown").error_kind is ErrorKind.NOT_FOUND

    monkeypatch.setenv("PS_PROFILE_AUTO_LOAD_FRAGMENTS", "0")
    result = dispatcher.load_command("foo")
    assert result.error_kind is ErrorKind.DISABLED
    assert not result.ok
    assert not dispatcher.loader.is_loaded("FragmentX")


def test_namespace_imports_and_private_helpers_are_not_commands() -> None:
    session = ShellSession()
    code = (
        "from os.path import join\n\n"
        "def _helper():\n    return 1\n\n"
        "def visible():\n    return 2\n"
    )
    exec(code, session.namespace)  # noqa: S102

    assert session.lookup("join") is None
    assert session.lookup("_helper") is None
    assert session.lookup("visible")() == 2
    assert session.commands() == ["visible"]
