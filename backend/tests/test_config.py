"""Tests for environment-driven settings."""

from ledgerstate.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch, tmp_path):
        for name in Settings.model_fields:
            monkeypatch.delenv(f"LEDGERSTATE_{name.upper()}", raising=False)
        settings = Settings.from_env(tmp_path / "missing.env")
        assert settings == Settings()
        assert settings.genesis_height == 0

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LEDGERSTATE_LEDGER_ID", "did:v1:abc")
        monkeypatch.setenv("LEDGERSTATE_GENESIS_HEIGHT", "5")
        settings = Settings.from_env(tmp_path / "missing.env")
        assert settings.ledger_id == "did:v1:abc"
        assert settings.genesis_height == 5

    def test_env_file(self, monkeypatch, tmp_path):
        # Registered first so the value load_dotenv writes is removed afterwards
        monkeypatch.setenv("LEDGERSTATE_DB_PATH", "unset")
        monkeypatch.delenv("LEDGERSTATE_DB_PATH")
        env_file = tmp_path / ".env"
        env_file.write_text("LEDGERSTATE_DB_PATH=/tmp/ledger.db\n")
        settings = Settings.from_env(env_file)
        assert settings.db_path == "/tmp/ledger.db"
