"""Tests for loadout/skills/discovery.py: scanning, registry accessors, events."""

import os

import pytest

from loadout.errors import FrontmatterError
from loadout.skills.discovery import SkillDiscovery
from loadout.skills.events import DiscoveryError, SkillDiscovered, SkillUpdated

# root bypasses directory permission bits
needs_unprivileged = pytest.mark.skipif(
    not hasattr(os, "geteuid") or os.geteuid() == 0,
    reason="permission checks do not apply to root",
)


class TestScan:

    @pytest.mark.asyncio
    async def test_registers_skills(self, scanned, foo_skill):
        record = scanned.get("foo")

        assert record is not None
        assert record.description == "demo"
        assert record.directory_path == foo_skill
        assert record.manifest_path == foo_skill / "SKILL.md"
        assert record.directory_path.is_absolute()
        assert record.document.files.scripts == ("run.py",)

    @pytest.mark.asyncio
    async def test_skips_non_skills(self, discovery, skills_root, make_skill, render_skill):
        """Dirs without SKILL.md, loose files and empty names are ignored."""
        make_skill(skills_root, "ok", render_skill("ok", "fine"))
        make_skill(skills_root, "noname", render_skill("", "missing name"))
        make_skill(skills_root, "plain", "# no frontmatter at all\n")
        (skills_root / "empty-dir").mkdir()
        (skills_root / "SKILL.md").write_text("---\nname: root-level\n---\n")

        await discovery.scan()

        assert [r.name for r in discovery.all()] == ["ok"]

    @pytest.mark.asyncio
    async def test_missing_root_skipped(self, tmp_path, events):
        engine = SkillDiscovery([tmp_path / "does-not-exist"])
        engine.add_listener(events.append)

        await engine.scan()

        assert engine.all() == []
        assert events == []

    @pytest.mark.asyncio
    async def test_bad_candidate_reported_and_scan_continues(self, discovery, events, skills_root, make_skill, render_skill):
        make_skill(skills_root, "good", render_skill("good", "works"))
        bad = skills_root / "bad"
        bad.mkdir()
        (bad / "SKILL.md").write_bytes(b"---\nname: bad\n---\n\xff\xfe not utf-8")

        await discovery.scan()

        assert discovery.get("good") is not None
        assert discovery.get("bad") is None
        errors = [e for e in events if isinstance(e, DiscoveryError)]
        assert len(errors) == 1
        assert errors[0].path == bad / "SKILL.md"

    @pytest.mark.asyncio
    @needs_unprivileged
    async def test_unreadable_candidate_does_not_abort_root(self, discovery, events, skills_root, make_skill, render_skill):
        """A skill dir that cannot be entered is reported; its siblings still load."""
        make_skill(skills_root, "a-good", render_skill("a-good", "first"))
        locked = make_skill(skills_root, "b-locked", render_skill("b-locked", "hidden"))
        make_skill(skills_root, "c-good", render_skill("c-good", "last"))
        locked.chmod(0)
        try:
            await discovery.scan()
        finally:
            locked.chmod(0o755)

        assert sorted(r.name for r in discovery.all()) == ["a-good", "c-good"]
        errors = [e for e in events if isinstance(e, DiscoveryError)]
        assert len(errors) == 1
        assert errors[0].path == locked / "SKILL.md"
        assert isinstance(errors[0].cause, PermissionError)

    @pytest.mark.asyncio
    async def test_invalid_yaml_reported(self, discovery, events, skills_root, make_skill):
        """A closed fence around broken YAML is an error event, not a silent skip."""
        make_skill(skills_root, "typo", "---\nname: [unclosed\n---\nbody\n")

        await discovery.scan()

        assert discovery.all() == []
        errors = [e for e in events if isinstance(e, DiscoveryError)]
        assert len(errors) == 1
        assert errors[0].path == skills_root / "typo" / "SKILL.md"
        assert isinstance(errors[0].cause, FrontmatterError)

    @pytest.mark.asyncio
    async def test_rescan_is_idempotent(self, scanned, events):
        before = {r.name for r in scanned.all()}
        events.clear()

        await scanned.scan()

        assert {r.name for r in scanned.all()} == before
        assert all(isinstance(e, SkillUpdated) for e in events)

    @pytest.mark.asyncio
    async def test_scan_does_not_prune(self, scanned, foo_skill):
        """Scan only adds and replaces; removal is driven by the watcher."""
        (foo_skill / "SKILL.md").unlink()

        await scanned.scan()

        assert scanned.get("foo") is not None


class TestCollisions:

    @pytest.mark.asyncio
    async def test_later_root_wins(self, tmp_path, make_skill, render_skill, events):
        low = tmp_path / "bundled"
        high = tmp_path / "project"
        make_skill(low, "shared", render_skill("shared", "from bundled"))
        make_skill(high, "shared-copy", render_skill("shared", "from project"))

        engine = SkillDiscovery([low, high])
        engine.add_listener(events.append)
        await engine.scan()

        record = engine.get("shared")
        assert record.description == "from project"
        assert record.directory_path == high / "shared-copy"
        assert len(engine.all()) == 1

        assert isinstance(events[0], SkillDiscovered)
        assert isinstance(events[1], SkillUpdated)
        assert events[1].previous.directory_path == low / "shared"


class TestAccessors:

    @pytest.mark.asyncio
    async def test_search_matches_name_or_description(self, discovery, skills_root, make_skill, render_skill):
        make_skill(skills_root, "pdf", render_skill("pdf-tools", "Extract TEXT from PDFs"))
        make_skill(skills_root, "img", render_skill("image-tools", "Resize pictures"))
        await discovery.scan()

        assert [r.name for r in discovery.search("PDF")] == ["pdf-tools"]
        assert [r.name for r in discovery.search("text")] == ["pdf-tools"]
        assert [r.name for r in discovery.search("tools")] == ["image-tools", "pdf-tools"]
        assert discovery.search("nothing") == []

    @pytest.mark.asyncio
    async def test_all_is_a_snapshot(self, scanned):
        snapshot = scanned.all()
        snapshot.clear()

        assert scanned.get("foo") is not None
        assert len(scanned.all()) == 1

    def test_search_paths_copy(self, tmp_path):
        engine = SkillDiscovery([tmp_path / "a", str(tmp_path / "b")])
        paths = engine.search_paths
        paths.append(tmp_path / "c")

        assert engine.search_paths == [tmp_path / "a", tmp_path / "b"]

    def test_get_unknown(self, tmp_path):
        assert SkillDiscovery([tmp_path]).get("nope") is None


class TestListeners:

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_others(self, skills_root, foo_skill):
        seen = []

        def broken(event):
            raise RuntimeError("sink down")

        engine = SkillDiscovery([skills_root])
        engine.add_listener(broken)
        engine.add_listener(seen.append)

        await engine.scan()

        assert engine.get("foo") is not None
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_remove_listener(self, skills_root, foo_skill):
        seen = []
        engine = SkillDiscovery([skills_root])
        engine.add_listener(seen.append)
        engine.remove_listener(seen.append)
        engine.remove_listener(seen.append)

        await engine.scan()

        assert seen == []


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_close_without_watch(self, tmp_path):
        engine = SkillDiscovery([tmp_path])
        assert engine.state == "idle"

        await engine.close()
        await engine.close()

        assert engine.state == "closed"
        assert engine.is_watching is False
