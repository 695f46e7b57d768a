import pytest

from voucher_rules import config
from voucher_rules.errors import ConfigError


@pytest.fixture(autouse=True)
def _fresh_config():
    config.reload_config()
    yield
    config.reload_config()


def test_packaged_defaults():
    assert config.publication_default_order() == "-created_at"
    assert config.publication_sort_keys()["voucher_code"] == "voucher_code"
    assert config.audience_rule_prefixes() == frozenset({"customer."})
    assert config.qualification_limits() == {"default": 5, "max": 50}


def test_config_is_cached():
    assert config.load_engine_config() is config.load_engine_config()


def test_env_override(tmp_path, monkeypatch):
    path = tmp_path / "engine.yaml"
    path.write_text(
        """
publications:
  sort_keys: {created_at: created_at}
  default_order: created_at
qualification:
  audience_rule_prefixes: ["customer.", "voucher."]
  default_limit: 3
  max_limit: 10
""",
        encoding="utf-8",
    )
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(path))
    config.reload_config()
    assert config.config_path() == path
    assert config.publication_default_order() == "created_at"
    assert config.audience_rule_prefixes() == frozenset({"customer.", "voucher."})
    assert config.qualification_limits() == {"default": 3, "max": 10}


def test_missing_keys_are_reported(tmp_path, monkeypatch):
    path = tmp_path / "engine.yaml"
    path.write_text("publications:\n  default_order: -created_at\n", encoding="utf-8")
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(path))
    with pytest.raises(ConfigError) as excinfo:
        config.load_engine_config()
    assert "publications.sort_keys" in str(excinfo.value)
    assert "qualification" in str(excinfo.value)


def test_non_mapping_config(tmp_path, monkeypatch):
    path = tmp_path / "engine.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(path))
    with pytest.raises(ConfigError):
        config.load_engine_config()


def test_missing_file(tmp_path, monkeypatch):
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(tmp_path / "absent.yaml"))
    with pytest.raises(FileNotFoundError):
        config.load_engine_config()
