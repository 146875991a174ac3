import json
import logging

import pytest

from caldav_service import config


def write_json(path, data) -> str:
    path.write_text(json.dumps(data))
    return str(path)


class TestConfigSection:
    def test_inherits(self) -> None:
        cfg = {
            "default": {"url": "https://cloud.example.com/remote.php/dav/", "username": "alice"},
            "bob": {"inherits": "default", "username": "bob"},
            "other": {"url": "https://other.example.com/dav/"},
        }
        assert config.config_section(cfg, "bob") == {
            "url": "https://cloud.example.com/remote.php/dav/",
            "username": "bob",
        }
        assert config.config_section(cfg, "other") == {"url": "https://other.example.com/dav/"}
        assert config.config_section(cfg, "missing") == {}


class TestReadConfig:
    def test_json(self, tmp_path) -> None:
        fn = write_json(tmp_path / "config.json", {"default": {"username": "alice"}})
        assert config.read_config(fn) == {"default": {"username": "alice"}}

    def test_yaml(self, tmp_path) -> None:
        pytest.importorskip("yaml")
        fn = tmp_path / "config.yaml"
        fn.write_text("default:\n  username: alice\n  password: secret\n")
        assert config.read_config(str(fn)) == {
            "default": {"username": "alice", "password": "secret"}
        }

    def test_missing_file(self, tmp_path) -> None:
        assert config.read_config(str(tmp_path / "nothing.json")) == {}

    def test_broken_file(self, tmp_path, caplog) -> None:
        fn = tmp_path / "config.json"
        fn.write_text("{ this is: [ not valid")
        with caplog.at_level(logging.ERROR, logger="caldav_service"):
            assert config.read_config(str(fn)) == {}
        assert str(fn) in caplog.text

    def test_default_location(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        cfgdir = tmp_path / ".config" / "caldav-service"
        cfgdir.mkdir(parents=True)
        write_json(cfgdir / "config.json", {"default": {"username": "alice"}})
        assert config.read_config(None) == {"default": {"username": "alice"}}


class TestConnectionParams:
    def test_precedence(self, tmp_path, monkeypatch) -> None:
        fn = write_json(
            tmp_path / "config.json",
            {
                "default": {
                    "url": "https://file.example.com/dav/",
                    "username": "file-user",
                    "password": "file-password",
                    "timeout": 30,
                }
            },
        )
        monkeypatch.setenv("CALDAV_SERVICE_USERNAME", "env-user")
        monkeypatch.setenv("CALDAV_SERVICE_PASSWORD", "env-password")

        params = config.get_connection_params(fn, password="explicit", url=None)
        assert params == {
            "url": "https://file.example.com/dav/",
            "username": "env-user",
            "password": "explicit",
            "timeout": 30,
        }

    def test_unknown_keys(self, tmp_path, caplog) -> None:
        fn = write_json(
            tmp_path / "config.json",
            {"default": {"url": "https://file.example.com/dav/", "colour": "blue"}},
        )
        with caplog.at_level(logging.WARNING, logger="caldav_service"):
            params = config.get_connection_params(fn)
        assert params == {"url": "https://file.example.com/dav/"}
        assert "colour" in caplog.text

    def test_section(self, tmp_path) -> None:
        fn = write_json(
            tmp_path / "config.json",
            {
                "default": {"url": "https://cloud.example.com/remote.php/dav/", "username": "alice"},
                "public": {"inherits": "default", "username": None},
            },
        )
        assert config.get_connection_params(fn, "public") == {
            "url": "https://cloud.example.com/remote.php/dav/"
        }
