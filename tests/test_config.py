"""
Brief: Tests for dnsprobe.config environment loading.

Inputs:
  - monkeypatched environment and .env locations

Outputs:
  - None
"""

from dnsprobe import config
from dnsprobe.config import ProbeConfig, get_config, load_env_file, set_config


def test_defaults(monkeypatch):
    monkeypatch.setattr(config, "ENV_LOCATIONS", [])
    for var in ("DNSPROBE_TIMEOUT", "DNSPROBE_DOH_URL", "DNSPROBE_RESOLVERS_FILE",
                "DNSPROBE_MAX_WORKERS", "DNSPROBE_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)

    cfg = ProbeConfig.from_env()
    assert cfg == ProbeConfig()
    assert cfg.timeout == 3.0
    assert cfg.max_workers == 1
    assert cfg.log_level == "WARNING"


def test_from_env(monkeypatch):
    monkeypatch.setattr(config, "ENV_LOCATIONS", [])
    monkeypatch.setenv("DNSPROBE_TIMEOUT", "1.5")
    monkeypatch.setenv("DNSPROBE_DOH_URL", "https://dns.google/resolve")
    monkeypatch.setenv("DNSPROBE_RESOLVERS_FILE", "/etc/dnsprobe/resolvers.json")
    monkeypatch.setenv("DNSPROBE_MAX_WORKERS", "8")
    monkeypatch.setenv("DNSPROBE_LOG_LEVEL", "debug")

    cfg = ProbeConfig.from_env()
    assert cfg.timeout == 1.5
    assert cfg.doh_url == "https://dns.google/resolve"
    assert cfg.resolvers_file == "/etc/dnsprobe/resolvers.json"
    assert cfg.max_workers == 8
    assert cfg.log_level == "DEBUG"


def test_invalid_numbers_fall_back(monkeypatch):
    monkeypatch.setattr(config, "ENV_LOCATIONS", [])
    monkeypatch.setenv("DNSPROBE_TIMEOUT", "soon")
    monkeypatch.setenv("DNSPROBE_MAX_WORKERS", "0")

    cfg = ProbeConfig.from_env()
    assert cfg.timeout == 3.0
    assert cfg.max_workers == 1


def test_load_env_file_uses_first_existing(monkeypatch, tmp_path):
    loaded = []
    first = tmp_path / "missing" / ".env"
    second = tmp_path / ".env"
    second.write_text("DNSPROBE_TIMEOUT=9\n")

    monkeypatch.setattr(config, "ENV_LOCATIONS", [first, second])
    monkeypatch.setattr(config, "load_dotenv", lambda path: loaded.append(path))

    assert load_env_file() == second
    assert loaded == [second]


def test_get_and_set_config():
    custom = ProbeConfig(timeout=0.5)
    set_config(custom)
    assert get_config() is custom
