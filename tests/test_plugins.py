"""Tests for the plugin pipeline and the logging plugin."""

import pytest
from pydantic import ValidationError

from pathroute import Router
from pathroute.plugins._base_plugin import BasePlugin, HandlerEntry, parse_flags  # Not public API
from pathroute.plugins.logging import LoggingPlugin


class CapturePlugin(BasePlugin):
    plugin_code = "capture"
    plugin_description = "Records wrapped calls"

    def __init__(self, router, **options):
        super().__init__(router, **options)
        self.seen = []

    def on_register(self, entry):
        entry.metadata["capture"] = True

    def around(self, ctx, entry, position, call_next):
        self.seen.append((position, entry.qualified_name, ctx.path))
        ctx.set_header(f"X-Capture-{entry.name}", "yes")
        return call_next(ctx)


class TagPlugin(BasePlugin):
    plugin_code = "tag"
    plugin_description = "Writes a marker before each call"

    class Options(BasePlugin.Options):
        marker: str = "tag"
        threshold: int = 0

    def around(self, ctx, entry, position, call_next):
        ctx.write(f"<{self.options(entry).marker}>")
        return call_next(ctx)


def ensure_plugin(plugin_cls: type) -> None:
    if plugin_cls.plugin_code not in Router.available_plugins():
        Router.register_plugin(plugin_cls)


ensure_plugin(CapturePlugin)
ensure_plugin(TagPlugin)


class DummyLogger:
    def __init__(self):
        self.records = []

    def hasHandlers(self):  # noqa: N802 - mirrors logging.Logger
        return True

    def info(self, message):
        self.records.append(message)


def handler(ctx):
    ctx.write("body")


def auth(ctx):
    ctx.next()


def test_builtin_logging_plugin_is_registered():
    assert Router.available_plugins()["logging"] is LoggingPlugin


def test_plugin_sees_existing_and_new_entries():
    router = Router()
    router.route("/early", handler)
    router.plug("capture")
    router.route("/late", handler).use(auth)

    entries = list(router.iter_handler_entries())
    assert len(entries) == 3
    assert all(entry.metadata.get("capture") for entry in entries)
    assert all(entry.plugins == ["capture"] for entry in entries)


def test_plugin_runs_around_every_step_with_position():
    router = Router().plug("capture")
    router.use(auth)
    router.route("/p", handler)

    ctx = router.dispatch("/p")
    assert ctx.headers == {"X-Capture-auth": "yes", "X-Capture-handler": "yes"}
    assert router.capture.seen == [(0, "/#auth", "/p"), (1, "/p#handler", "/p")]
    assert router.capture is router._plugins_by_name["capture"]


def test_plugin_order_first_plugged_is_outermost():
    router = Router().plug("tag", marker="outer").plug("capture")

    def inner(ctx):
        ctx.write(ctx.headers.get("X-Capture-inner", "missing"))

    router.route("/o", inner)
    assert router.dispatch("/o").body == "<outer>yes"


def test_plugging_same_name_twice_is_rejected():
    router = Router().plug("tag", marker="first")
    with pytest.raises(ValueError, match="already attached"):
        router.plug("tag", marker="second")

    router.route("/p", handler)
    assert router.iter_plugins() == [router.tag]
    assert router.dispatch("/p").body == "<first>body"


def test_disable_plugin_for_entry():
    router = Router().plug("capture")
    router.use(auth)
    router.route("/p", handler)
    router.capture.configure("/#auth", enabled=False)

    ctx = router.dispatch("/p")
    assert ctx.headers == {"X-Capture-handler": "yes"}
    assert router.get_config("capture", "/#auth")["enabled"] is False
    assert router.get_config("capture", "/p#handler")["enabled"] is True


def test_plugin_options_validated_and_targeted():
    router = Router().plug("tag", marker="base")
    router.use(auth)
    router.route("/p", handler)
    plugin = router.tag

    matched = plugin.configure("/p#handler,/#auth", marker="special")
    assert [entry.name for entry in matched] == ["auth", "handler"]
    assert router.get_config("tag")["marker"] == "base"
    assert router.get_config("tag", "/p#handler")["marker"] == "special"
    assert router.get_config("tag", "/#auth")["marker"] == "special"

    with pytest.raises(ValidationError):
        plugin.configure(threshold="not-a-number")
    with pytest.raises(ValidationError):
        plugin.configure(colour="red")
    with pytest.raises(KeyError):
        plugin.configure("/nowhere#*", marker="x")
    with pytest.raises(KeyError):
        router.get_config("tag", "*")


def test_same_function_at_two_nodes_configured_separately():
    router = Router().plug("tag")
    router.route("/a", handler)
    router.route("/b", handler)

    router.tag.configure("/a#handler", marker="a")
    assert router.dispatch("/a").body == "<a>body"
    assert router.dispatch("/b").body == "<tag>body"


def test_lambda_entries_configured_by_object():
    router = Router().plug("tag")
    router.route("/x", lambda ctx: ctx.write("x"))
    router.route("/y", lambda ctx: ctx.write("y"))
    first, second = router.iter_handler_entries()

    router.tag.configure(second, marker="only-y")
    assert router.dispatch("/x").body == "<tag>x"
    assert router.dispatch("/y").body == "<only-y>y"
    assert router.get_config("tag", first)["marker"] == "tag"


def test_plugin_flags_parse_into_booleans():
    assert parse_flags("before:off, print,,after:OFF") == {
        "before": False,
        "print": True,
        "after": False,
    }
    router = Router().plug("logging", flags="before:off,print")
    cfg = router.get_config("logging")
    assert cfg["before"] is False
    assert cfg["print"] is True


def test_register_plugin_validations():
    class NoCode(BasePlugin):
        plugin_code = ""

    class Clash(BasePlugin):
        plugin_code = "capture"

    with pytest.raises(TypeError):
        Router.register_plugin(object)
    with pytest.raises(ValueError, match="missing plugin_code"):
        Router.register_plugin(NoCode)
    with pytest.raises(ValueError, match="already registered"):
        Router.register_plugin(Clash)


def test_plug_errors():
    router = Router(name="api")
    with pytest.raises(TypeError):
        router.plug(CapturePlugin)
    with pytest.raises(ValueError, match="Unknown plugin"):
        router.plug("does-not-exist")
    with pytest.raises(AttributeError, match="No plugin named 'ghost'"):
        router.ghost
    with pytest.raises(AttributeError):
        router.get_config("ghost")


def test_members_include_plugin_config():
    router = Router().plug("tag", marker="m")
    router.route("/p", handler)

    (route_info,) = router.members()["children"]["p"]["routes"]
    config = route_info["handler"]["plugins"]["tag"]["config"]
    assert config == {"enabled": True, "marker": "m", "threshold": 0}


def test_logging_plugin_emits_start_and_end():
    router = Router().plug("logging")
    dummy = DummyLogger()
    router.logging._logger = dummy
    router.use(auth)
    router.route("/users/:id", handler)

    router.dispatch("/users/3")

    assert dummy.records[0] == "[0] /#auth start"
    assert dummy.records[1] == "[1] /users/:id#handler start"
    assert dummy.records[2].startswith("[1] /users/:id#handler end (")
    assert dummy.records[3].startswith("[0] /#auth end (")


def test_logging_plugin_respects_per_entry_config():
    router = Router().plug("logging")
    dummy = DummyLogger()
    router.logging._logger = dummy
    router.use(auth)
    router.route("/p", handler)
    router.logging.configure("/#auth", enabled=False)
    router.logging.configure("/p#handler", after=False)

    router.dispatch("/p")
    assert dummy.records == ["[1] /p#handler start"]


def test_logging_plugin_print_sink(capsys):
    router = Router().plug("logging", flags="print,after:off")
    router.route("/p", handler)

    router.dispatch("/p")
    assert capsys.readouterr().out == "[0] /p#handler start\n"


def test_logging_plugin_uses_logger_when_configured(caplog):
    router = Router().plug("logging", after=False)
    router.route("/p", handler)

    with caplog.at_level("INFO", logger="pathroute"):
        router.dispatch("/p")

    assert "[0] /p#handler start" in caplog.text


def test_logging_plugin_waits_for_async_steps():
    pytest.importorskip("smartasync")
    router = Router(dispatch_use_smartasync=True).plug("logging")
    dummy = DummyLogger()
    router.logging._logger = dummy

    async def outer(ctx):
        await ctx.next()

    router.use(outer)
    router.route("/p", handler)
    ctx = router.dispatch("/p")

    assert ctx.body == "body"
    assert [record.split(" (")[0] for record in dummy.records] == [
        "[0] /#outer start",
        "[1] /p#handler start",
        "[1] /p#handler end",
        "[0] /#outer end",
    ]


def test_handler_entry_path_without_node():
    entry = HandlerEntry(name="x", func=handler, node=None, kind="handler")
    assert entry.path == ""
    assert entry.qualified_name == "/#x"
