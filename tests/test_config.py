import os

import pytest
import yaml

from scriptwright.config import load_environment
from scriptwright.config.loader import get_agent_setting, load_config, load_provider_templates
from scriptwright.core.exceptions import ConfigurationError
from scriptwright.infra.llm.factory import get_llm

TEMPLATES = {
    "fake": {
        "class": "types.SimpleNamespace",
        "params": {"model_name": "string", "api_key_env": "secret_env"},
    },
}


def _write(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


def test_user_config_overrides_by_section(tmp_path):
    base = _write(tmp_path / "config.yaml", {
        "database": {"url": "sqlite:///base.db"},
        "models": {"m1": {"template": "fake"}},
        "agent": {"max_steps": 20},
    })
    user = _write(tmp_path / "user_config.yaml", {"models": {"m2": {"template": "fake"}}, "agent": {"temperature": 0.1}})

    config = load_config(base, user)

    assert config["database"]["url"] == "sqlite:///base.db"
    assert set(config["models"]) == {"m1", "m2"}
    assert get_agent_setting(config, "max_steps") == 20
    assert get_agent_setting(config, "temperature") == 0.1


def test_missing_files_fall_back_to_defaults(tmp_path):
    config = load_config(str(tmp_path / "none.yaml"), str(tmp_path / "none2.yaml"))

    assert config["database"]["url"] == "sqlite:///content.db"
    assert get_agent_setting(config, "max_steps") == 100
    assert load_provider_templates(str(tmp_path / "none.yaml")) == {}


def test_broken_yaml_raises(tmp_path):
    broken = tmp_path / "config.yaml"
    broken.write_text("models: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_config(str(broken), str(tmp_path / "none.yaml"))


def test_get_llm_builds_model_from_template(monkeypatch):
    monkeypatch.setenv("FAKE_KEY", "sk-test")
    config = {"steps": {"outline_agent": "m1"},
              "models": {"m1": {"template": "fake", "model_name": "gpt-x", "api_key_env": "FAKE_KEY"}}}

    llm = get_llm("outline_agent", temperature=0.3, config=config, templates=TEMPLATES)

    assert llm.model_name == "gpt-x"
    assert llm.api_key == "sk-test"
    assert llm.temperature == 0.3


@pytest.mark.parametrize("config", [
    {"steps": {}, "models": {}},
    {"steps": {"outline_agent": "m1"}, "models": {}},
    {"steps": {"outline_agent": "m1"}, "models": {"m1": {"template": "unknown"}}},
    {"steps": {"outline_agent": "m1"}, "models": {"m1": {"template": "fake", "api_key_env": "UNSET_KEY_VAR"}}},
])
def test_get_llm_configuration_errors(config, monkeypatch):
    monkeypatch.delenv("UNSET_KEY_VAR", raising=False)

    with pytest.raises(ConfigurationError):
        get_llm("outline_agent", config=config, templates=TEMPLATES)


def test_get_llm_bad_class_path():
    templates = {"fake": {"class": "no.such.module.Chat"}}
    config = {"steps": {"outline_agent": "m1"}, "models": {"m1": {"template": "fake"}}}

    with pytest.raises(ConfigurationError):
        get_llm("outline_agent", config=config, templates=templates)


def test_load_environment_reads_env_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SCRIPTWRIGHT_TEST_KEY", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("SCRIPTWRIGHT_TEST_KEY=from-file\n", encoding="utf-8")

    assert load_environment(str(env_file)) is True
    assert os.environ["SCRIPTWRIGHT_TEST_KEY"] == "from-file"
    assert load_environment(str(tmp_path / "missing.env")) is False
