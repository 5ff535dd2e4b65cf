"""Tests for rack.config module."""
from __future__ import annotations

import textwrap

import pytest

from rack.config import ConfigError, load_config


def _write_config(tmp_path, yaml_text: str) -> str:
    p = tmp_path / "rack.yaml"
    p.write_text(textwrap.dedent(yaml_text))
    return str(p)


FULL = """
snap:
  conventions:
    - name: caz
  volumes:
    - name: home
      convention: caz
      zfs: lint/home
clone:
  volumes:
    - name: backup
      source: lint
      dest: backup/lint
    - name: old
      source: lint/old
      dest: backup/old
      skip: true
"""


class TestLoadConfigValid:
    def test_full(self, tmp_path):
        config = load_config(_write_config(tmp_path, FULL))
        assert [c.name for c in config.snap.conventions] == ["caz"]
        volume = config.snap.volumes[0]
        assert (volume.name, volume.convention, volume.zfs) == ("home", "caz", "lint/home")
        assert [v.name for v in config.clone.volumes] == ["backup", "old"]
        assert config.clone.volumes[0].skip is False
        assert config.clone.volumes[1].skip is True
        assert config.clone.volumes[0].dest == "backup/lint"

    def test_sections_optional(self, tmp_path):
        config = load_config(_write_config(tmp_path, "clone:\n  volumes: []\n"))
        assert config.snap is None
        assert config.clone.volumes == []

    def test_empty_file(self, tmp_path):
        config = load_config(_write_config(tmp_path, ""))
        assert config.snap is None and config.clone is None


class TestLoadConfigInvalid:
    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="YAML mapping"):
            load_config(_write_config(tmp_path, "- a\n- b\n"))

    def test_unknown_convention(self, tmp_path):
        path = _write_config(tmp_path, """
            snap:
              conventions:
                - name: caz
              volumes:
                - name: home
                  convention: daily
                  zfs: lint/home
        """)
        with pytest.raises(ConfigError, match="unknown convention 'daily'"):
            load_config(path)

    def test_missing_key(self, tmp_path):
        path = _write_config(tmp_path, """
            clone:
              volumes:
                - name: backup
                  source: lint
        """)
        with pytest.raises(ConfigError, match="clone.volumes.dest is required"):
            load_config(path)

    def test_bad_skip(self, tmp_path):
        path = _write_config(tmp_path, """
            clone:
              volumes:
                - name: backup
                  source: lint
                  dest: backup/lint
                  skip: sometimes
        """)
        with pytest.raises(ConfigError, match="skip"):
            load_config(path)

    def test_volumes_not_a_list(self, tmp_path):
        path = _write_config(tmp_path, "clone:\n  volumes: lint\n")
        with pytest.raises(ConfigError, match="must be a list"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))
