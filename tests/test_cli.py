"""Tests for the parley CLI."""

from __future__ import annotations

import json

from click.testing import CliRunner

from parley.cli import cli, serve, translate


class TestServeCommand:
    def test_serve_options(self):
        param_names = [p.name for p in serve.params]

        for name in ("host", "port", "endpoint", "api_key", "config_file", "log_level"):
            assert name in param_names

    def test_missing_endpoint_exits(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("parley.logging_config.configure_logging", lambda **kwargs: None)

        result = CliRunner().invoke(cli, ["serve", "--log-level", "WARNING"])

        assert result.exit_code == 1
        assert "endpoint" in result.output


class TestTranslateCommand:
    def test_request(self, tmp_path):
        request_file = tmp_path / "request.json"
        request_file.write_text(
            json.dumps(
                {
                    "model": "gpt-4o#openai",
                    "max_tokens": 64,
                    "system": "Be terse.",
                    "messages": [{"role": "user", "content": "Hi"}],
                }
            )
        )

        result = CliRunner().invoke(translate, [str(request_file)])

        assert result.exit_code == 0, result.output
        output = json.loads(result.output)
        assert output["messages"] == [
            {"role": "system", "content": "Be terse."},
            {"role": "user", "content": "Hi"},
        ]

    def test_response_from_stdin(self):
        completion = {
            "choices": [{"message": {"content": "Hello"}, "finish_reason": "length"}],
        }

        result = CliRunner().invoke(translate, ["--response"], input=json.dumps(completion))

        assert result.exit_code == 0, result.output
        output = json.loads(result.output)
        assert output["content"] == [{"type": "text", "text": "Hello"}]
        assert output["stop_reason"] == "max_tokens"

    def test_invalid_request(self, tmp_path):
        request_file = tmp_path / "request.json"
        request_file.write_text(json.dumps({"model": "gpt-4o#openai", "messages": []}))

        result = CliRunner().invoke(translate, [str(request_file)])

        assert result.exit_code == 1
        assert "messages" in result.output

    def test_not_json(self, tmp_path):
        request_file = tmp_path / "request.json"
        request_file.write_text("{oops")

        result = CliRunner().invoke(translate, [str(request_file)])

        assert result.exit_code == 1
        assert "JSON" in result.output
