"""Tests for config loading and credential discovery."""

from __future__ import annotations

import pytest
import yaml

from openai_api.api import OpenAIAPI
from openai_api.config import (
    DEFAULT_MODEL,
    DEFAULT_URL_FORMAT,
    APIAuthentication,
    ClientConfig,
    load_config,
)
from tests.conftest import FakeServer, completion, mock_client


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No credentials in the environment, cwd or home."""
    for var in ("OPENAI_API_KEY", "OPENAI_KEY", "OPENAI_SECRET_KEY", "OPENAI_ORGANIZATION"):
        monkeypatch.delenv(var, raising=False)
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return home, work


class TestAuthentication:
    def test_from_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("OPENAI_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_ORGANIZATION", "org-env")
        auth = APIAuthentication.from_env()
        assert auth == APIAuthentication("sk-env", "org-env")

    def test_from_env_missing(self, clean_env):
        assert APIAuthentication.from_env() is None

    def test_from_file(self, tmp_path):
        path = tmp_path / ".openai"
        path.write_text("# creds\nOPENAI_API_KEY=sk-file\nOPENAI_ORGANIZATION = org-file\n")
        assert APIAuthentication.from_file(path) == APIAuthentication("sk-file", "org-file")
        assert APIAuthentication.from_file(tmp_path) == APIAuthentication("sk-file", "org-file")

    def test_from_file_without_key(self, tmp_path):
        path = tmp_path / ".openai"
        path.write_text("OPENAI_ORGANIZATION=org\n")
        assert APIAuthentication.from_file(path) is None
        assert APIAuthentication.from_file(tmp_path / "missing") is None

    def test_default_precedence(self, clean_env, monkeypatch):
        home, work = clean_env
        (home / ".openai").write_text("OPENAI_API_KEY=sk-home\n")
        assert APIAuthentication.default().api_key == "sk-home"

        (work / ".openai").write_text("OPENAI_API_KEY=sk-cwd\n")
        assert APIAuthentication.default().api_key == "sk-cwd"

        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert APIAuthentication.default().api_key == "sk-env"

    def test_default_empty(self, clean_env):
        auth = APIAuthentication.default()
        assert not auth.is_set


class TestLoadConfig:
    def test_yaml(self, tmp_path, clean_env):
        path = tmp_path / "cfg.yaml"
        path.write_text(yaml.safe_dump({
            "url_format": "http://localhost:1234/{0}/{1}",
            "api_version": "v9",
            "timeout": 30,
            "model": "gpt-4",
            "auth": {"api_key": "sk-yaml", "organization": "org-yaml"},
            "request": {"temperature": 0.2},
        }))
        cfg = load_config(path)
        assert cfg.url_format == "http://localhost:1234/{0}/{1}"
        assert cfg.api_version == "v9"
        assert cfg.timeout == 30.0
        assert cfg.default_model == "gpt-4"
        assert cfg.auth == APIAuthentication("sk-yaml", "org-yaml")
        assert cfg.default_request == {"temperature": 0.2}

    def test_missing_explicit_path(self, tmp_path, clean_env):
        cfg = load_config(tmp_path / "nope.yaml")
        assert cfg.default_model == DEFAULT_MODEL
        assert cfg.url_format == DEFAULT_URL_FORMAT

    def test_no_config_anywhere(self, clean_env, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        cfg = load_config()
        assert cfg.auth.api_key == "sk-env"

    def test_cwd_config_found(self, clean_env):
        _, work = clean_env
        (work / "openai_api.yaml").write_text("model: gpt-local\n")
        assert load_config().default_model == "gpt-local"

    def test_yaml_without_auth_falls_back(self, tmp_path, clean_env, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        path = tmp_path / "cfg.yaml"
        path.write_text("auth:\n  organization: org-x\n")
        cfg = load_config(path)
        assert cfg.auth == APIAuthentication("sk-env", "org-x")

    def test_empty_yaml(self, tmp_path, clean_env):
        path = tmp_path / "cfg.yaml"
        path.write_text("")
        cfg = load_config(path)
        assert cfg.timeout == ClientConfig().timeout


class TestClientFromConfig:
    async def test_request_defaults_reach_conversation(self, clean_env):
        cfg = ClientConfig(
            default_model="gpt-cfg",
            auth=APIAuthentication("sk-cfg"),
            default_request={"temperature": 0.4, "seed": 3},
        )
        async with OpenAIAPI(config=cfg) as api:
            assert api.auth.api_key == "sk-cfg"
            conv = api.chat.create_conversation()
            assert conv.model == "gpt-cfg"
            assert conv.request_parameters.temperature == 0.4
            assert conv.request_parameters.extra == {"seed": 3}

    async def test_yaml_request_defaults_on_the_wire(self, tmp_path, clean_env):
        path = tmp_path / "cfg.yaml"
        path.write_text(
            "auth:\n"
            "  api_key: sk-yaml\n"
            "request:\n"
            "  messages:\n"
            "    - role: system\n"
            "      content: injected\n"
            "  functions:\n"
            "    - name: lookup\n"
            "      parameters: '{\"type\": \"object\"}'\n"
        )
        server = FakeServer()
        server.add_json(completion("ok"))
        client = mock_client(server.handler)
        async with OpenAIAPI(config=load_config(path), http_client=client) as api:
            conv = api.chat.create_conversation()
            conv.append_user_input("hi")
            await conv.get_response()
        await client.aclose()

        payload = server.payload()
        assert payload["messages"] == [{"role": "user", "content": "hi"}]
        assert payload["functions"] == [{"name": "lookup", "parameters": {"type": "object"}}]

    async def test_string_key(self, clean_env):
        async with OpenAIAPI("sk-str") as api:
            assert api.auth == APIAuthentication("sk-str")
