from __future__ import annotations

from pathlib import Path

import pytest

from fanqie_publisher.config import PlatformConfig, load_config


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_without_yaml(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for var in ("FANQIE_USERNAME", "FANQIE_PASSWORD", "FANQIE_MAX_ROUNDS", "FANQIE_POLL_INTERVAL", "FANQIE_HEADLESS"):
        monkeypatch.delenv(var, raising=False)

    cfg = load_config(tmp_path / "missing.yaml")

    assert cfg.credentials.username == ""
    assert cfg.verification.max_rounds == 60
    assert cfg.verification.poll_interval_seconds == 2.0
    assert cfg.verification.budget_seconds == 120.0
    assert cfg.browser.headless is False
    assert cfg.platform.login_url == "https://fanqienovel.com/main/writer/login"


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FANQIE_USERNAME", "writer")
    monkeypatch.setenv("FANQIE_PASSWORD", "secret")
    monkeypatch.setenv("FANQIE_MAX_ROUNDS", "5")
    monkeypatch.setenv("FANQIE_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("FANQIE_HEADLESS", "yes")
    monkeypatch.setenv("FANQIE_SESSION_FILE", "/tmp/c.json")

    cfg = load_config()

    assert cfg.credentials.username == "writer"
    assert cfg.credentials.password == "secret"
    assert "secret" not in repr(cfg.credentials)
    assert cfg.verification.max_rounds == 5
    assert cfg.verification.poll_interval_seconds == 0.5
    assert cfg.browser.headless is True
    assert cfg.session.cookie_file == "/tmp/c.json"


def test_junk_numeric_env_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FANQIE_MAX_ROUNDS", "lots")

    assert load_config().verification.max_rounds == 60


def test_yaml_overrides_env_and_expands_vars(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FANQIE_USERNAME", "from-env")
    monkeypatch.setenv("MY_PASS", "from-yaml-var")
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
credentials:
  password: "${MY_PASS}"
verification:
  max_rounds: 10
  authenticated_routes: ["writer/home"]
browser:
  linger_seconds: 5
""",
    )

    cfg = load_config(cfg_path)

    assert cfg.credentials.username == "from-env"
    assert cfg.credentials.password == "from-yaml-var"
    assert cfg.verification.max_rounds == 10
    assert cfg.verification.authenticated_routes == ["writer/home"]
    # Untouched nested keys keep their defaults.
    assert cfg.verification.poll_interval_seconds == 2.0
    assert cfg.browser.linger_seconds == 5


@pytest.mark.parametrize("body", ["verification:\n  max_rounds: 0\n", "verification:\n  poll_interval_seconds: -1\n"])
def test_invalid_budget_rejected(tmp_path: Path, body: str) -> None:
    cfg_path = _write(tmp_path, "cfg.yaml", body)

    with pytest.raises(Exception):
        _ = load_config(cfg_path)


def test_platform_urls_normalized() -> None:
    p = PlatformConfig(base_url="https://fanqienovel.com/ ")

    assert p.base_url == "https://fanqienovel.com"
    assert p.writer_url == "https://fanqienovel.com/main/writer/"
    assert p.new_chapter_url("99") == "https://fanqienovel.com/main/writer/99/publish/?enter_from=newchapter"


def test_platform_base_url_must_be_absolute() -> None:
    with pytest.raises(Exception):
        PlatformConfig(base_url="fanqienovel.com")
