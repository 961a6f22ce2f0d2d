import pytest

from donation_leaderboard import config


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("DONATION_LEADERBOARD_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    config.load_config.cache_clear()
    yield
    config.load_config.cache_clear()


def test_defaults_without_config_file():
    loaded = config.load_config()
    assert loaded["leaderboard"]["max_orders"] == 1000
    assert loaded["leaderboard"]["cache_ttl_seconds"] == 21600
    assert loaded["server"]["port"] == 8200


@pytest.mark.case(point="YAML file is deep-merged over the defaults")
def test_yaml_file_is_merged(monkeypatch: pytest.MonkeyPatch, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("leaderboard:\n  max_orders: 50\n  accent_color: '#000'\nmysql:\n  host: db\n", encoding="utf-8")
    monkeypatch.setenv("DONATION_LEADERBOARD_CONFIG_FILE", str(path))

    loaded = config.reload_config()

    assert loaded["leaderboard"]["max_orders"] == 50
    assert loaded["leaderboard"]["cache_ttl_seconds"] == 21600
    assert loaded["mysql"]["host"] == "db"
    assert loaded["mysql"]["port"] == 3306


def test_env_overrides_win(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DONATION_LEADERBOARD_CACHE_TTL_SECONDS", "120")
    monkeypatch.setenv("DONATION_LEADERBOARD_MYSQL_PORT", "3307")
    monkeypatch.setenv("DONATION_LEADERBOARD_LOCALE", "de_DE")

    loaded = config.reload_config()

    assert loaded["leaderboard"]["cache_ttl_seconds"] == 120
    assert loaded["mysql"]["port"] == 3307
    assert loaded["leaderboard"]["locale"] == "de_DE"


def test_non_mapping_yaml_root_is_rejected(monkeypatch: pytest.MonkeyPatch, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("DONATION_LEADERBOARD_CONFIG_FILE", str(path))

    with pytest.raises(ValueError, match="expected mapping"):
        config.reload_config()


def test_leaderboard_settings_from_config():
    loaded = config.load_config()
    loaded = {**loaded, "leaderboard": {**loaded["leaderboard"], "max_orders": 25}}

    settings = config.leaderboard_settings(loaded)

    assert settings.max_orders == 25
    assert settings.refresh_window_seconds == 90
