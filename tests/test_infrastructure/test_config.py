"""Tests for configuration."""

from taskloom.infrastructure.config import read_env_file, resolve_timezone


class TestReadEnvFile:
    def test_reads_env_values(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("KEY1=value1\nKEY2=value2\n")
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1", "KEY2"])
        assert result == {"KEY1": "value1", "KEY2": "value2"}

    def test_strips_quotes(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text('KEY1="quoted"\nKEY2=\'single\'\n')
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1", "KEY2"])
        assert result["KEY1"] == "quoted"
        assert result["KEY2"] == "single"

    def test_skips_comments(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("# comment\nKEY1=value1\n")
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1"])
        assert result == {"KEY1": "value1"}

    def test_skips_empty_lines(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("\n\nKEY1=value1\n\n")
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1"])
        assert result == {"KEY1": "value1"}

    def test_only_requested_keys(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("KEY1=value1\nKEY2=value2\n")
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1"])
        assert "KEY2" not in result

    def test_missing_file_returns_empty(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = read_env_file(["KEY1"])
        assert result == {}

    def test_empty_values_skipped(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("KEY1=\n")
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1"])
        assert "KEY1" not in result


class TestResolveTimezone:
    def test_valid_zone(self):
        assert resolve_timezone("Europe/Berlin") == "Europe/Berlin"

    def test_unknown_zone_falls_back(self):
        assert resolve_timezone("Mars/Olympus") == "UTC"

    def test_empty_falls_back(self):
        assert resolve_timezone(None) == "UTC"
        assert resolve_timezone("") == "UTC"
