"""Tests for loadout/config.py: settings validation and search path order."""

from pathlib import Path

import pytest
from pydantic import ValidationError

import loadout
from loadout.config import Settings, build_search_paths


class TestSettings:

    def test_defaults(self):
        settings = Settings()

        assert settings.URI_SCHEME == "loadout"
        assert settings.WATCH_DEBOUNCE_MS == 100
        assert settings.SCRIPT_KILL_GRACE_MS == 5000
        assert settings.bundled_skills_dir.name == "bundled_skills"

    def test_default_bundled_dir_ships_with_package(self):
        """The default bundled root lives inside the installed package."""
        bundled = Settings().bundled_skills_dir

        assert bundled.is_dir()
        assert bundled.parent == Path(loadout.__file__).resolve().parent
        assert (bundled / "skill-authoring" / "SKILL.md").is_file()

    def test_scheme_suffix_stripped(self):
        assert Settings(URI_SCHEME="skills://").URI_SCHEME == "skills"

    def test_negative_durations_rejected(self):
        with pytest.raises(ValidationError):
            Settings(SCRIPT_TIMEOUT_MS=-1)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("ALLOW_SCRIPTS", "true")
        monkeypatch.setenv("EXTRA_SKILLS_DIRS", '["/opt/skills"]')

        settings = Settings()

        assert settings.ALLOW_SCRIPTS is True
        assert settings.EXTRA_SKILLS_DIRS == ["/opt/skills"]


class TestBuildSearchPaths:

    def test_order_lowest_priority_first(self, tmp_path):
        cwd, home = tmp_path / "proj", tmp_path / "home"
        settings = Settings(BUNDLED_SKILLS_DIR=str(tmp_path / "bundled"), EXTRA_SKILLS_DIRS=["/extra"])

        paths = build_search_paths(settings, cwd=cwd, home=home)

        assert paths == [
            tmp_path / "bundled",
            cwd / "skills",
            cwd / ".claude/skills",
            cwd / ".cursor/skills",
            cwd / ".codex/skills",
            cwd / ".agents/skills",
            home / ".claude/skills",
            home / ".cursor/skills",
            home / ".codex/skills",
            home / ".agents/skills",
            Path("/extra"),
        ]

    def test_unknown_home_skipped(self, tmp_path):
        settings = Settings(BUNDLED_SKILLS_DIR=str(tmp_path / "bundled"))
        paths = build_search_paths(settings, cwd=tmp_path, home=None)

        assert len(paths) == 6
        assert all(p.is_relative_to(tmp_path) for p in paths)
