"""
Tests for the command-line interface.

Uses --json output so results can be asserted without terminal rendering.
"""

import json

import pytest

from lorevault.interface import cli
from lorevault.llm import MockPlanner, PlannerResponse, PlannerToolCall


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("LOREVAULT_ENDPOINT", "LOREVAULT_MODEL", "LOREVAULT_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def run_json(capsys, *argv) -> tuple[int, dict]:
    code = cli.main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out)


class TestBookArgs:
    """Tests for --book parsing."""

    def test_scope_and_path(self):
        scope, path = cli.parse_book_arg(" World/ =books/world.json")
        assert scope == "world"
        assert str(path) == "books/world.json"

    def test_scope_from_file_name(self):
        scope, path = cli.parse_book_arg("books/Sunreach.json")
        assert scope == "sunreach"


class TestToolCommands:
    """Tests for the direct tool subcommands."""

    def test_search(self, capsys, lorebook_file):
        code, payload = run_json(capsys, "--book", f"world={lorebook_file}", "--json", "search", "alice")
        assert code == 0
        assert payload["ok"] is True
        assert payload["matches"][0]["uid"] == 1
        assert payload["matches"][0]["scope"] == "world"

    def test_neighbors(self, capsys, lorebook_file):
        code, payload = run_json(capsys, "--book", f"world={lorebook_file}", "--json", "neighbors", "1")
        assert code == 0
        assert [n["uid"] for n in payload["neighbors"]] == [3]

    def test_get_missing_entry(self, capsys, lorebook_file):
        code, payload = run_json(capsys, "--book", str(lorebook_file), "--json", "get", "42")
        assert code == 1
        assert payload["ok"] is False
        assert payload["code"] == "entry_not_found"

    def test_rich_output(self, capsys, lorebook_file):
        code = cli.main(["--book", f"world={lorebook_file}", "get", "3"])
        assert code == 0
        assert "Sunreach" in capsys.readouterr().out

    def test_missing_book(self, capsys, tmp_path):
        code = cli.main(["--book", str(tmp_path / "missing.json"), "search", "alice"])
        assert code == 1
        assert "Cannot read lorebook" in capsys.readouterr().out


class TestRunCommand:
    """Tests for the planner-driven run subcommand."""

    def test_no_planner_configured(self, capsys, clean_env, lorebook_file, tmp_path):
        code = cli.main([
            "--book", f"world={lorebook_file}", "--config-dir", str(tmp_path), "run", "alice",
        ])
        assert code == 2

    def test_disabled_in_config(self, capsys, clean_env, lorebook_file, tmp_path):
        (tmp_path / ".lorevault_config.json").write_text(
            json.dumps({"tool_calls": {"enabled": False}}), encoding="utf-8",
        )
        code = cli.main([
            "--book", f"world={lorebook_file}", "--config-dir", str(tmp_path), "run", "alice",
        ])
        assert code == 0
        assert "disabled" in capsys.readouterr().out

    def test_run_with_planner(self, capsys, monkeypatch, lorebook_file, tmp_path):
        planner = MockPlanner([
            PlannerResponse(
                tool_calls=[PlannerToolCall(id="c1", name="search_entries", arguments_json='{"query":"alice"}')],
                finish_reason="tool_calls",
            ),
            PlannerResponse(finish_reason="stop"),
        ])
        monkeypatch.setattr(cli, "create_completion_planner", lambda config: planner)

        code, payload = run_json(
            capsys,
            "--book", f"world={lorebook_file}", "--config-dir", str(tmp_path),
            "--json", "run", "Where is Alice?", "--scope", "world",
        )
        assert code == 0
        assert payload["stop_reason"] == "completed"
        assert payload["executed_calls"] == 1
        assert payload["selected_items"] == ["[world] Alice"]
        assert payload["markdown"].startswith("## Tool Retrieval Context")


class TestConfigCommand:
    """Tests for the config subcommand."""

    def test_show_defaults_without_book(self, capsys, tmp_path):
        code, payload = run_json(capsys, "--config-dir", str(tmp_path), "--json", "config")
        assert code == 0
        assert payload["endpoint"] is None
        assert payload["tool_calls"]["enabled"] is True
        assert not (tmp_path / ".lorevault_config.json").exists()

    def test_set_endpoint_and_model(self, capsys, tmp_path):
        code, payload = run_json(
            capsys, "--config-dir", str(tmp_path), "--json",
            "config", "--endpoint", "http://localhost:1234/v1", "--model", "qwen",
        )
        assert code == 0
        assert payload["endpoint"] == "http://localhost:1234/v1"
        assert payload["model"] == "qwen"

        saved = json.loads((tmp_path / ".lorevault_config.json").read_text(encoding="utf-8"))
        assert saved["endpoint"] == "http://localhost:1234/v1"

    def test_set_model_only(self, capsys, tmp_path):
        run_json(capsys, "--config-dir", str(tmp_path), "--json", "config", "--endpoint", "http://a/v1")
        code, payload = run_json(capsys, "--config-dir", str(tmp_path), "--json", "config", "--model", "m2")
        assert code == 0
        assert payload["endpoint"] == "http://a/v1"
        assert payload["model"] == "m2"

    def test_disable_then_run(self, capsys, clean_env, lorebook_file, tmp_path):
        code, payload = run_json(capsys, "--config-dir", str(tmp_path), "--json", "config", "--disable-tools")
        assert code == 0
        assert payload["tool_calls"]["enabled"] is False

        code = cli.main([
            "--book", f"world={lorebook_file}", "--config-dir", str(tmp_path), "run", "alice",
        ])
        assert code == 0
        assert "disabled" in capsys.readouterr().out

    def test_enable_tools(self, capsys, tmp_path):
        (tmp_path / ".lorevault_config.json").write_text(
            json.dumps({"tool_calls": {"enabled": False}}), encoding="utf-8",
        )
        code, payload = run_json(capsys, "--config-dir", str(tmp_path), "--json", "config", "--enable-tools")
        assert code == 0
        assert payload["tool_calls"]["enabled"] is True

    def test_api_key_masked(self, capsys, tmp_path):
        (tmp_path / ".lorevault_config.json").write_text(
            json.dumps({"api_key": "sk-secret-abcd"}), encoding="utf-8",
        )
        code = cli.main(["--config-dir", str(tmp_path), "config"])
        out = capsys.readouterr().out
        assert code == 0
        assert "sk-secret" not in out
        assert "abcd" in out

    def test_tool_command_requires_book(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["search", "alice"])
        assert exc.value.code == 2
        assert "--book is required" in capsys.readouterr().err
