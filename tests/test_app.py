from __future__ import annotations

import json
import logging

import app


def test_redacting_formatter_hides_secrets() -> None:
    formatter = app._RedactingFormatter(["s3cret-token"], fmt="%(message)s")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "token is %s", ("s3cret-token",), None)

    assert formatter.format(record) == "token is ***"


def test_redaction_values_come_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("API_HASH", "deadbeef")

    assert app._collect_redaction_values({}) == ["deadbeef", "123:abc"]
    assert app._collect_redaction_values({"redact": {"enabled": False}}) == []
    assert app._collect_redaction_values({"redact": {"patterns": ["API_HASH"]}}) == ["deadbeef"]


def _write_config(tmp_path) -> str:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "rules": [
                    {"name": "greet", "pattern": "^/hello", "command": ["echo", "hi"]},
                    {"name": "notes", "pattern": "^/note", "command": ["tee"], "use_stdin": True},
                ]
            }
        ),
        encoding="utf-8",
    )
    return str(path)


def test_test_command_shows_the_invocation(tmp_path, capsys) -> None:
    app.main(["test", "/hello world", "--config", _write_config(tmp_path)])

    out = capsys.readouterr().out
    assert "Matched rule: greet" in out
    assert "Command: echo hi -- '/hello world'" in out


def test_test_command_reports_stdin_rules(tmp_path, capsys) -> None:
    app.main(["test", "/note buy milk", "--config", _write_config(tmp_path)])

    out = capsys.readouterr().out
    assert "Command: tee" in out
    assert "stdin" in out


def test_test_command_without_match(tmp_path, capsys) -> None:
    app.main(["test", "nothing", "--config", _write_config(tmp_path)])

    assert "No rule matches" in capsys.readouterr().out


def test_check_rejects_invalid_config(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"rules": [{"pattern": "(", "command": ["x"]}]}), encoding="utf-8")

    try:
        app.main(["check", "--config", str(path)])
    except SystemExit as exc:
        assert "Invalid config" in str(exc.code)
    else:
        raise AssertionError("check accepted an invalid config")
