from webpilot.config.config import Settings
from webpilot.infra.paths import Paths


def test_load_reads_env_and_clamps(monkeypatch, tmp_path):
    monkeypatch.setenv("LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("USER_DATA_DIR", str(tmp_path / "profile"))
    monkeypatch.setenv("MAX_STEPS", "12")
    monkeypatch.setenv("STEP_DELAY_SEC", "not-a-number")
    monkeypatch.setenv("SCROLL_STEP", "10")
    monkeypatch.setenv("WORKERS_MIN", "2")
    monkeypatch.setenv("WORKERS_MAX", "1")
    monkeypatch.setenv("WORKERS_CURRENT", "9")
    monkeypatch.setenv("HEADLESS", "yes")

    settings = Settings.load()

    assert settings.max_steps == 12
    assert settings.step_delay_sec == 2.0
    assert settings.scroll_step == 50
    assert (settings.workers_min, settings.workers_current, settings.workers_max) == (2, 2, 2)
    assert settings.headless is True
    assert settings.paths.logs_dir == (tmp_path / "logs").resolve()
    assert settings.paths.logs_dir.is_dir()


def test_defaults():
    settings = Settings()
    assert settings.max_steps == 50
    assert settings.wait_action_sec == 3.0
    assert settings.navigation_wait_sec == 5.0
    assert settings.openai_model == "gpt-4o-mini"


def test_paths_under_root_and_env_overrides(monkeypatch, tmp_path):
    monkeypatch.delenv("USER_DATA_DIR", raising=False)
    monkeypatch.setenv("LOGS_DIR", str(tmp_path / "elsewhere"))

    paths = Paths.from_env(tmp_path)

    assert paths.user_data_dir == Paths.under(tmp_path).user_data_dir
    assert paths.logs_dir == (tmp_path / "elsewhere").resolve()
    paths.ensure()
    assert paths.user_data_dir.is_dir()
