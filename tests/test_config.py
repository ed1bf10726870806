"""Tests for lanlauncher.config."""

import pytest

from lanlauncher import config as config_module
from lanlauncher.config import LauncherConfig, load_config, parse_config
from lanlauncher.errors import ConfigError


class TestParseConfig:
    """INI parsing rules."""

    def test_empty_gives_defaults(self):
        assert parse_config("") == LauncherConfig()

    def test_reads_all_sections(self):
        cfg = parse_config(
            "[launcher]\nzdoom = /usr/bin/gzdoom\n"
            "[multiplayer]\nport = 6000\nwad = doom2.wad\nmap = MAP07\n"
            "config = mp.ini\ncan-host = false\nwait = 10\n"
            "[singleplayer]\nwad = doom.wad\nconfig = sp.ini\n"
            "[api]\nenabled = no\nport = 9000\n"
        )

        assert cfg.zdoom == "/usr/bin/gzdoom"
        assert cfg.port == 6000
        assert cfg.mp_wad == "doom2.wad"
        assert cfg.mp_map == "MAP07"
        assert cfg.mp_config == "mp.ini"
        assert cfg.can_host is False
        assert cfg.source_wait == 10
        assert cfg.sp_wad == "doom.wad"
        assert cfg.sp_config == "sp.ini"
        assert cfg.api_enabled is False
        assert cfg.api_port == 9000

    def test_invalid_numbers_keep_defaults(self):
        cfg = parse_config("[multiplayer]\nport = abc\nwait = -5\n")
        assert cfg.port == 5029
        assert cfg.source_wait == 30

    def test_invalid_can_host_means_true(self):
        assert parse_config("[multiplayer]\ncan-host = maybe\n").can_host is True

    def test_malformed_file_is_error(self):
        with pytest.raises(ConfigError):
            parse_config("port = 5029\n")


class TestLoadConfig:
    """Which missing files are fatal."""

    def test_missing_explicit_path_is_error(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "missing.ini"))

    def test_missing_default_path_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", str(tmp_path / "missing.ini"))
        assert load_config() == LauncherConfig()

    def test_loads_file(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[singleplayer]\nwad = heretic.wad\n")
        assert load_config(str(path)).sp_wad == "heretic.wad"
