"""Tests for the wagl memory plugin (hooks, tools and host registration)."""

import asyncio
import json
import logging
import sys

import pytest

from ...base import MemoryPlugin
from ..config import WaglConfig
from ..errors import ConfigError
from ..plugin import (
    MEMORY_HEADING,
    NO_MEMORIES_TEXT,
    WaglMemoryPlugin,
    create_plugin,
    last_assistant_text,
    message_text,
    register,
)
from ..runner import CommandOutcome, CommandRequest, CommandResult
from .fakes import FakeHostAPI, FakeRunner, RaisingRunner, host_config, write_fake_wagl

FINAL_ANSWER = "This is a sufficiently long final answer."


def success(stdout: str = "") -> CommandResult:
    return CommandResult(CommandOutcome.SUCCESS, stdout=stdout, exit_code=0)


def make_plugin(runner, **config) -> WaglMemoryPlugin:
    plugin = WaglMemoryPlugin(runner=runner)
    plugin.initialize(WaglConfig.from_dict({"dbPath": "/tmp/test.db", **config}))
    return plugin


def store_args(request: CommandRequest) -> dict:
    args = list(request.args)
    return {"text": args[args.index("--text") + 1], "d_score": args[args.index("--d-score") + 1]}


class TestPluginInitialization:
    """Tests for plugin creation and lifecycle."""

    def test_create_plugin_factory(self):
        plugin = create_plugin()
        assert isinstance(plugin, WaglMemoryPlugin)
        assert isinstance(plugin, MemoryPlugin)

    def test_plugin_name(self):
        assert WaglMemoryPlugin().name == "memory-wagl"

    def test_initialize_with_dict(self):
        plugin = WaglMemoryPlugin()
        plugin.initialize({"dbPath": "/tmp/a.db", "autoCapture": False})

        assert plugin.config.db_path == "/tmp/a.db"
        assert plugin.config.auto_capture is False
        assert plugin.bridge.db_path == "/tmp/a.db"

    def test_initialize_without_config_reads_environment(self, monkeypatch):
        monkeypatch.setenv("WAGL_DB_PATH", "/tmp/env.db")
        plugin = WaglMemoryPlugin()
        plugin.initialize()
        assert plugin.config.db_path == "/tmp/env.db"

    def test_shutdown(self):
        plugin = make_plugin(FakeRunner())
        plugin.shutdown()

        assert plugin.config is None
        assert plugin.bridge is None

    def test_hooks_are_noops_before_initialize(self):
        plugin = WaglMemoryPlugin(runner=FakeRunner())
        assert asyncio.run(plugin.on_before_agent_start({"prompt": "hello there"})) is None
        assert asyncio.run(plugin.on_agent_end({"success": True, "messages": []})) is None


class TestMessageText:
    """Tests for extracting text from host messages."""

    def test_string_content_is_trimmed(self):
        assert message_text({"role": "assistant", "content": "  hi  "}) == "hi"

    def test_text_blocks_are_joined_in_order(self):
        message = {
            "role": "assistant",
            "content": [
                {"type": "text", "text": " First part, "},
                {"type": "tool_use", "name": "wagl_recall"},
                {"type": "text", "text": "second part. "},
                {"type": "image", "text": "not text"},
            ],
        }
        assert message_text(message) == "First part, second part."

    @pytest.mark.parametrize("message", [None, "text", {"content": None}, {"content": 5}])
    def test_unusable_messages(self, message):
        assert message_text(message) == ""

    def test_last_assistant_text_scans_newest_first(self):
        messages = [
            {"role": "assistant", "content": "An older but long enough assistant reply."},
            {"role": "assistant", "content": "Newest long enough assistant reply here."},
            {"role": "assistant", "content": "too short"},
            {"role": "user", "content": "A long user message that must be ignored."},
        ]
        assert last_assistant_text(messages) == "Newest long enough assistant reply here."

    def test_length_threshold_is_exclusive(self):
        assert last_assistant_text([{"role": "assistant", "content": "x" * 20}]) is None
        assert last_assistant_text([{"role": "assistant", "content": "x" * 21}]) == "x" * 21


class TestBeforeAgentStart:
    """Tests for automatic recall."""

    def test_injects_recalled_memory(self):
        runner = FakeRunner(success('{"canonical":{"name":"Alex"},"related":[{"item":{"text":"likes tea"}}]}'))
        plugin = make_plugin(runner, recallQuery="who am I")

        result = asyncio.run(plugin.on_before_agent_start({"prompt": "Good morning"}))

        assert result == {"prependContext": f"{MEMORY_HEADING}\n**name:** Alex\n- likes tea"}
        assert runner.requests[0].args == ("recall", "who am I")

    @pytest.mark.parametrize("event", [{}, {"prompt": None}, {"prompt": "hey"}, {"prompt": ""}])
    def test_short_or_missing_prompt_skips_recall(self, event):
        runner = FakeRunner(success("a long enough memory text"))
        plugin = make_plugin(runner)

        assert asyncio.run(plugin.on_before_agent_start(event)) is None
        assert runner.calls == 0

    def test_auto_recall_disabled(self):
        runner = FakeRunner(success("a long enough memory text"))
        plugin = make_plugin(runner, autoRecall=False)

        assert asyncio.run(plugin.on_before_agent_start({"prompt": "Good morning"})) is None
        assert runner.calls == 0

    def test_absent_payload_is_noop(self):
        plugin = make_plugin(FakeRunner(success("")))
        assert asyncio.run(plugin.on_before_agent_start({"prompt": "Good morning"})) is None

    def test_failure_is_logged_not_raised(self, caplog):
        failed = CommandResult(CommandOutcome.NOT_FOUND, error="wagl binary not found on PATH")
        plugin = make_plugin(FakeRunner(failed))

        with caplog.at_level(logging.WARNING):
            result = asyncio.run(plugin.on_before_agent_start({"prompt": "Good morning"}))

        assert result is None
        assert "recall skipped" in caplog.text

    def test_unexpected_exception_is_swallowed(self):
        plugin = make_plugin(RaisingRunner(RuntimeError("kaboom")))
        assert asyncio.run(plugin.on_before_agent_start({"prompt": "Good morning"})) is None


class TestAgentEnd:
    """Tests for automatic capture."""

    def test_captures_final_assistant_message(self):
        runner = FakeRunner(success())
        plugin = make_plugin(runner)
        event = {
            "success": True,
            "messages": [
                {"role": "user", "content": "Please answer my question."},
                {"role": "assistant", "content": FINAL_ANSWER},
            ],
        }

        asyncio.run(plugin.on_agent_end(event))

        assert runner.calls == 1
        assert store_args(runner.requests[0]) == {
            "text": f"Session note: {FINAL_ANSWER}",
            "d_score": "0",
        }
        assert runner.requests[0].args[0] == "put"

    def test_unsuccessful_run_is_not_captured(self):
        runner = FakeRunner(success())
        plugin = make_plugin(runner)
        event = {"success": False, "messages": [{"role": "assistant", "content": FINAL_ANSWER}]}

        asyncio.run(plugin.on_agent_end(event))

        assert runner.calls == 0

    @pytest.mark.parametrize("messages", [None, [], [{"role": "user", "content": FINAL_ANSWER}]])
    def test_nothing_to_capture(self, messages):
        runner = FakeRunner(success())
        plugin = make_plugin(runner)

        asyncio.run(plugin.on_agent_end({"success": True, "messages": messages}))

        assert runner.calls == 0

    def test_auto_capture_disabled(self):
        runner = FakeRunner(success())
        plugin = make_plugin(runner, autoCapture=False)
        event = {"success": True, "messages": [{"role": "assistant", "content": FINAL_ANSWER}]}

        asyncio.run(plugin.on_agent_end(event))

        assert runner.calls == 0

    def test_content_blocks_and_truncation(self):
        runner = FakeRunner(success())
        plugin = make_plugin(runner)
        long_text = "word " * 200
        event = {
            "success": True,
            "messages": [{"role": "assistant", "content": [{"type": "text", "text": long_text}]}],
        }

        asyncio.run(plugin.on_agent_end(event))

        text = store_args(runner.requests[0])["text"]
        assert text == "Session note: " + long_text.strip()[:500].strip()
        assert len(text) <= len("Session note: ") + 500

    def test_store_failure_is_logged_not_raised(self, caplog):
        failed = CommandResult(CommandOutcome.FAILED, error="wagl exited with code 1")
        plugin = make_plugin(FakeRunner(failed))
        event = {"success": True, "messages": [{"role": "assistant", "content": FINAL_ANSWER}]}

        with caplog.at_level(logging.WARNING):
            asyncio.run(plugin.on_agent_end(event))

        assert "capture skipped" in caplog.text

    def test_unexpected_exception_is_swallowed(self):
        plugin = make_plugin(RaisingRunner(OSError("disk on fire")))
        event = {"success": True, "messages": [{"role": "assistant", "content": FINAL_ANSWER}]}

        assert asyncio.run(plugin.on_agent_end(event)) is None


class TestToolSchemas:
    """Tests for tool declarations."""

    def test_tool_names(self):
        schemas = WaglMemoryPlugin().get_tool_schemas()
        assert [s.name for s in schemas] == ["wagl_recall", "wagl_store"]

    def test_required_parameters(self):
        recall, store = WaglMemoryPlugin().get_tool_schemas()
        assert recall.parameters["required"] == ["query"]
        assert store.parameters["required"] == ["content"]
        assert store.parameters["properties"]["d_score"]["type"] == "number"

    def test_executors_match_schemas(self):
        plugin = WaglMemoryPlugin()
        executors = plugin.get_executors()
        assert set(executors) == {s.name for s in plugin.get_tool_schemas()}


class TestRecallTool:
    """Tests for the wagl_recall tool."""

    @pytest.mark.parametrize("args", [{}, {"query": ""}, {"query": "   "}, {"query": None}])
    def test_query_required(self, args):
        runner = FakeRunner()
        plugin = make_plugin(runner)

        response = asyncio.run(plugin.get_executors()["wagl_recall"](args))

        assert response.is_error
        assert response.text == "query is required"
        assert runner.calls == 0

    def test_returns_normalized_text(self):
        plugin = make_plugin(FakeRunner(success('{"related":[{"text":"likes tea"}]}')))
        response = asyncio.run(plugin.get_executors()["wagl_recall"]({"query": "tea"}))

        assert not response.is_error
        assert response.content == [{"type": "text", "text": "- likes tea"}]

    def test_no_memories(self):
        plugin = make_plugin(FakeRunner(success("")))
        response = asyncio.run(plugin.get_executors()["wagl_recall"]({"query": "tea"}))

        assert not response.is_error
        assert response.text == NO_MEMORIES_TEXT

    def test_failure_is_error_response(self):
        failed = CommandResult(CommandOutcome.TIMED_OUT, error="wagl timed out after 10s")
        plugin = make_plugin(FakeRunner(failed))
        response = asyncio.run(plugin.get_executors()["wagl_recall"]({"query": "tea"}))

        assert response.is_error
        assert "timed out" in response.text

    def test_unexpected_exception_is_error_response(self):
        plugin = make_plugin(RaisingRunner(RuntimeError("kaboom")))
        response = asyncio.run(plugin.get_executors()["wagl_recall"]({"query": "tea"}))

        assert response.is_error
        assert "kaboom" in response.text


class TestStoreTool:
    """Tests for the wagl_store tool."""

    @pytest.mark.parametrize("args", [{}, {"content": ""}, {"content": "  "}])
    def test_content_required(self, args):
        runner = FakeRunner()
        response = asyncio.run(make_plugin(runner).get_executors()["wagl_store"](args))

        assert response.is_error
        assert response.text == "content is required"
        assert runner.calls == 0

    @pytest.mark.parametrize("d_score, message", [
        ("high", "d_score must be a number"),
        (True, "d_score must be a number"),
        (11, "d_score must be between -10 and 10"),
        (-10.5, "d_score must be between -10 and 10"),
    ])
    def test_invalid_d_score(self, d_score, message):
        runner = FakeRunner()
        response = asyncio.run(
            make_plugin(runner).get_executors()["wagl_store"]({"content": "note", "d_score": d_score})
        )

        assert response.is_error
        assert response.text == message
        assert runner.calls == 0

    def test_stores_with_default_score(self):
        runner = FakeRunner(success())
        response = asyncio.run(make_plugin(runner).get_executors()["wagl_store"]({"content": "Alex likes tea"}))

        assert not response.is_error
        assert response.text == "Stored memory (d_score=0)"
        assert store_args(runner.requests[0]) == {"text": "Alex likes tea", "d_score": "0"}

    def test_reports_memory_id(self):
        runner = FakeRunner(success('{"id": "mem_7"}'))
        response = asyncio.run(
            make_plugin(runner).get_executors()["wagl_store"]({"content": "note", "d_score": -2.5})
        )

        assert response.text == "Stored memory (d_score=-2.5) id=mem_7"
        assert store_args(runner.requests[0])["d_score"] == "-2.5"

    def test_failure_is_error_response(self):
        failed = CommandResult(CommandOutcome.NOT_FOUND, error="wagl binary not found on PATH")
        response = asyncio.run(
            make_plugin(FakeRunner(failed)).get_executors()["wagl_store"]({"content": "note"})
        )

        assert response.is_error
        assert "not found" in response.text


class TestRegister:
    """Tests for wiring the plugin into a host."""

    def test_subscribes_hooks_and_registers_tools(self, monkeypatch):
        monkeypatch.delenv("WAGL_AUTO_RECALL", raising=False)
        monkeypatch.delenv("WAGL_AUTO_CAPTURE", raising=False)
        api = FakeHostAPI(host_config(dbPath="/tmp/host.db"))
        plugin = WaglMemoryPlugin(runner=FakeRunner())

        plugin.register(api)

        assert set(api.handlers) == {"before_agent_start", "agent_end"}
        assert set(api.tools) == {"wagl_recall", "wagl_store"}
        assert plugin.config.db_path == "/tmp/host.db"
        assert any("registered (db=/tmp/host.db" in line for line in api.logger.infos)

    def test_disabled_hooks_are_not_subscribed(self):
        api = FakeHostAPI(host_config(autoRecall=False, autoCapture=False))
        WaglMemoryPlugin(runner=FakeRunner()).register(api)

        assert api.handlers == {}
        assert set(api.tools) == {"wagl_recall", "wagl_store"}

    def test_host_without_tool_registration(self):
        api = FakeHostAPI(host_config(), with_tools=False)
        WaglMemoryPlugin(runner=FakeRunner()).register(api)
        assert api.tools == {}

    def test_registered_tool_returns_wire_shape(self):
        api = FakeHostAPI(host_config())
        WaglMemoryPlugin(runner=FakeRunner(success("Alex likes green tea."))).register(api)
        schema, execute = api.tools["wagl_recall"]

        result = asyncio.run(execute("call-1", {"query": "tea"}))

        assert schema.label == "wagl Recall"
        assert result == {"content": [{"type": "text", "text": "Alex likes green tea."}], "isError": False}

    def test_registered_tool_validation_error(self):
        api = FakeHostAPI(host_config())
        WaglMemoryPlugin(runner=FakeRunner()).register(api)
        _, execute = api.tools["wagl_store"]

        result = asyncio.run(execute("call-2", {}))

        assert result["isError"] is True
        assert result["content"][0]["text"] == "content is required"

    @pytest.mark.parametrize("params", ["tea please", ["query", "tea"], 42, None])
    def test_registered_tool_ignores_non_mapping_params(self, params):
        runner = FakeRunner()
        api = FakeHostAPI(host_config())
        WaglMemoryPlugin(runner=runner).register(api)
        _, recall = api.tools["wagl_recall"]
        _, store = api.tools["wagl_store"]

        recalled = asyncio.run(recall("call-3", params))
        stored = asyncio.run(store("call-4", params))

        assert recalled == {"content": [{"type": "text", "text": "query is required"}], "isError": True}
        assert stored == {"content": [{"type": "text", "text": "content is required"}], "isError": True}
        assert runner.calls == 0

    def test_warnings_reach_host_logger(self):
        failed = CommandResult(CommandOutcome.TIMED_OUT, error="wagl timed out after 10s")
        api = FakeHostAPI(host_config(autoRecall=True))
        plugin = WaglMemoryPlugin(runner=FakeRunner(failed))
        plugin.register(api)

        asyncio.run(api.handlers["before_agent_start"]({"prompt": "Good morning"}))

        assert api.logger.warnings == ["[openclaw-wagl] recall skipped: wagl timed out after 10s"]

    def test_invalid_config_propagates(self):
        api = FakeHostAPI(host_config(timeoutMs=-1))
        with pytest.raises(ConfigError):
            WaglMemoryPlugin().register(api)

    def test_module_register_entry_point(self):
        api = FakeHostAPI(host_config(autoCapture=False))
        plugin = register(api)

        assert isinstance(plugin, WaglMemoryPlugin)
        assert "before_agent_start" in api.handlers
        assert "agent_end" not in api.handlers


@pytest.mark.skipif(sys.platform == "win32", reason="uses an executable script as the wagl binary")
class TestEndToEnd:
    """Full hook round trips through a real process standing in for wagl."""

    def test_session_end_stores_through_binary(self, tmp_path):
        log_path = tmp_path / "calls.jsonl"
        binary = write_fake_wagl(
            tmp_path,
            f"with open({str(log_path)!r}, 'a') as f:\n"
            "    f.write(json.dumps(argv) + '\\n')\n"
            "print(json.dumps({'id': 'mem_1'}))",
        )
        api = FakeHostAPI(host_config(binary=binary, dbPath=str(tmp_path / "m.db")))
        register(api)
        event = {
            "success": True,
            "messages": [
                {"role": "user", "content": "What did we decide?"},
                {"role": "assistant", "content": FINAL_ANSWER},
            ],
        }

        asyncio.run(api.handlers["agent_end"](event))

        calls = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert calls == [[
            "put", "--text", f"Session note: {FINAL_ANSWER}", "--d-score", "0",
            "--db", str(tmp_path / "m.db"),
        ]]

    def test_session_start_injects_binary_output(self, tmp_path):
        binary = write_fake_wagl(
            tmp_path,
            "print(json.dumps({'canonical': {'name': 'Alex'}, "
            "'related': [{'item': {'text': 'likes ' + os.environ.get('WAGL_EMBED_MODEL', '?')}}]}))",
        )
        api = FakeHostAPI(host_config(binary=binary, embedModel="tea"))
        register(api)

        result = asyncio.run(api.handlers["before_agent_start"]({"prompt": "Good morning"}))

        assert result == {"prependContext": f"{MEMORY_HEADING}\n**name:** Alex\n- likes tea"}

    def test_missing_binary_degrades_silently(self):
        api = FakeHostAPI(host_config(binary="wagl-binary-that-does-not-exist-xyz"))
        register(api)

        start = asyncio.run(api.handlers["before_agent_start"]({"prompt": "Good morning"}))
        end = asyncio.run(api.handlers["agent_end"]({
            "success": True,
            "messages": [{"role": "assistant", "content": FINAL_ANSWER}],
        }))

        assert start is None
        assert end is None
        assert len(api.logger.warnings) == 2
