"""Unit tests for EnvReader."""

import logging

import pytest

from ffsmart.config.env import EnvReader


class TestEnvReader:
    """Tests for typed environment access."""

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_is_unset(self, value):
        """Blank strings fall back to the default for every type."""
        reader = EnvReader(env={"V": value})

        assert reader.get_str("V", "x") == "x"
        assert reader.get_int("V", 2) == 2
        assert reader.get_float("V", 1.5) == 1.5
        assert reader.get_path("V", must_exist=False) is None

    def test_get_str_strips(self):
        reader = EnvReader(env={"VAAPI_DEVICE": " /dev/dri/renderD129\n"})

        assert reader.get_str("VAAPI_DEVICE") == "/dev/dri/renderD129"

    def test_get_int(self):
        """Integers are parsed."""
        assert EnvReader(env={"FFSMART_TRIAL_RUNS": "3"}).get_int("FFSMART_TRIAL_RUNS") == 3

    def test_get_int_invalid(self, caplog):
        """Invalid integers are logged and return the default."""
        reader = EnvReader(env={"FFSMART_TRIAL_RUNS": "three"})

        with caplog.at_level(logging.WARNING, logger="ffsmart.config.env"):
            assert reader.get_int("FFSMART_TRIAL_RUNS", 1) == 1

        assert "FFSMART_TRIAL_RUNS" in caplog.text

    def test_get_float(self):
        """Floats are parsed."""
        reader = EnvReader(env={"FFSMART_TRIAL_TIMEOUT": "12.5"})

        assert reader.get_float("FFSMART_TRIAL_TIMEOUT") == 12.5
        assert EnvReader(env={"T": "soon"}).get_float("T", 30.0) == 30.0

    def test_get_path_must_exist(self, tmp_path):
        """Non-existent paths are ignored unless allowed."""
        missing = str(tmp_path / "missing")
        reader = EnvReader(env={"P": missing})

        assert reader.get_path("P") is None
        assert reader.get_path("P", must_exist=False) == tmp_path / "missing"

    def test_get_path_expands_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        reader = EnvReader(env={"FFSMART_CACHE_FILE": "~/caps.json"})

        assert reader.get_path("FFSMART_CACHE_FILE", must_exist=False) == tmp_path / "caps.json"
