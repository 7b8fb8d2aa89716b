"""Tests for loadout/resources/resolver.py: content, manifest, sections, code, files."""

import json

import pytest

import loadout.skills.discovery as discovery_module
from loadout.errors import (
    InvalidUriError,
    ResourceNotFoundError,
    SkillNotParsedError,
    SkillNotRegisteredError,
)
from loadout.resources.resolver import ResourceResolver, extract_section
from loadout.skills.events import DiscoveryError
from loadout.skills.parser import analyze_body


@pytest.fixture
def resolver(scanned):
    return ResourceResolver(scanned)


# ---------------------------------------------------------------------------
# Section slicing
# ---------------------------------------------------------------------------


class TestExtractSection:

    def test_runs_until_next_same_level_heading(self):
        body = "## Installation\npip install foo\n\n## Usage\nrun it\n"
        outline, _, _ = analyze_body(body)

        assert extract_section(body, "installation", outline) == "## Installation\npip install foo"
        assert extract_section(body, "usage", outline) == "## Usage\nrun it"

    def test_includes_deeper_headings_and_stops_at_shallower(self):
        body = "# A\nintro\n## B\nb text\n### C\nc text\n## D\nd text\n# E\n"
        outline, _, _ = analyze_body(body)

        section = extract_section(body, "b", outline)
        assert section == "## B\nb text\n### C\nc text"
        assert "## D" not in section

        assert extract_section(body, "a", outline).endswith("d text")
        assert "# E" not in extract_section(body, "a", outline)

    def test_unknown_slug(self):
        body = "## One\n"
        outline, _, _ = analyze_body(body)
        assert extract_section(body, "two", outline) is None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolve:

    @pytest.mark.asyncio
    async def test_full_content_reads_disk(self, resolver, foo_skill):
        """Full content is re-read on every call, not served from the parse."""
        content = await resolver.resolve("loadout://foo")
        assert content.mime_type == "text/markdown"
        assert content.text == (foo_skill / "SKILL.md").read_text()

        (foo_skill / "SKILL.md").write_text("---\nname: foo\n---\nchanged\n")
        content = await resolver.resolve("loadout://foo")
        assert content.text.endswith("changed\n")

    @pytest.mark.asyncio
    async def test_manifest_json(self, resolver):
        content = await resolver.resolve("loadout://foo/manifest")
        assert content.mime_type == "application/json"

        manifest = json.loads(content.text)
        assert manifest["name"] == "foo"
        assert manifest["description"] == "demo"
        assert "license" not in manifest
        assert [t["slug"] for t in manifest["toc"]] == ["installation", "usage"]
        assert manifest["codeBlocks"] == [
            {"lang": "bash", "line": 5, "preview": "foo --help"},
            {"lang": "python", "line": 9, "preview": "import foo"},
        ]
        assert manifest["links"][0] == {
            "text": "the guide",
            "href": "./references/guide.md",
            "isInternal": True,
        }
        assert manifest["links"][1]["isInternal"] is False
        assert manifest["files"] == {
            "scripts": ["run.py"],
            "references": ["guide.md", "nested"],
            "assets": ["logo.png"],
        }

    @pytest.mark.asyncio
    async def test_manifest_preview_truncated(self, discovery, skills_root, make_skill, render_skill):
        long_code = "x" * 250
        make_skill(skills_root, "long", render_skill("long", "", f"```\n{long_code}\n```\n\n```\nshort\n```\n"))
        await discovery.scan()

        content = await ResourceResolver(discovery).resolve("loadout://long/manifest")
        blocks = json.loads(content.text)["codeBlocks"]

        assert blocks[0]["preview"] == long_code[:100]
        assert blocks[0]["lang"] is None
        assert blocks[1]["preview"] == "short"

    @pytest.mark.asyncio
    async def test_section_installation(self, resolver):
        content = await resolver.resolve("loadout://foo/section/installation")

        assert content.text == "## Installation\npip install foo"
        assert "## Usage" not in content.text

    @pytest.mark.asyncio
    async def test_section_not_found(self, resolver):
        with pytest.raises(ResourceNotFoundError, match="Section not found: nope"):
            await resolver.resolve("loadout://foo/section/nope")

    @pytest.mark.asyncio
    async def test_code_block(self, resolver):
        content = await resolver.resolve("loadout://foo/code/1")

        assert content.text == "import foo"
        assert content.mime_type == "text/x-python"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", ["5", "2", "abc", "-1"])
    async def test_code_index_out_of_range(self, resolver, index):
        with pytest.raises(ResourceNotFoundError, match="Valid range: 0-1"):
            await resolver.resolve(f"loadout://foo/code/{index}")

    @pytest.mark.asyncio
    async def test_code_index_with_no_blocks(self, discovery, skills_root, make_skill, render_skill):
        make_skill(skills_root, "empty", render_skill("empty", "", "no code here\n"))
        await discovery.scan()

        with pytest.raises(ResourceNotFoundError, match="Valid range: none"):
            await ResourceResolver(discovery).resolve("loadout://empty/code/0")

    @pytest.mark.asyncio
    async def test_reference_files(self, resolver):
        guide = await resolver.resolve("loadout://foo/references/guide.md")
        assert guide.text == "# Guide\n"
        assert guide.mime_type == "text/markdown"

        deep = await resolver.resolve("loadout://foo/references/nested/deep.txt")
        assert deep.text == "deep\n"
        assert deep.mime_type == "text/plain"

    @pytest.mark.asyncio
    async def test_binary_asset_returned_as_blob(self, resolver):
        logo = await resolver.resolve("loadout://foo/assets/logo.png")

        assert logo.text is None
        assert logo.blob.startswith(b"\x89PNG")
        assert logo.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_missing_file(self, resolver):
        with pytest.raises(ResourceNotFoundError, match="File not found: scripts/nope.sh"):
            await resolver.resolve("loadout://foo/scripts/nope.sh")

    @pytest.mark.asyncio
    async def test_symlink_escaping_subdirectory(self, resolver, foo_skill, tmp_path):
        secret = tmp_path / "secret.txt"
        secret.write_text("top secret")
        (foo_skill / "references" / "leak.txt").symlink_to(secret)

        with pytest.raises(ResourceNotFoundError):
            await resolver.resolve("loadout://foo/references/leak.txt")

    @pytest.mark.asyncio
    async def test_unregistered_skill(self, resolver):
        with pytest.raises(SkillNotRegisteredError, match="Skill not found: ghost"):
            await resolver.resolve("loadout://ghost/manifest")

    @pytest.mark.asyncio
    async def test_invalid_uri(self, resolver):
        with pytest.raises(InvalidUriError):
            await resolver.resolve("loadout://foo/manifest/extra")


class TestUnparsedSkill:

    @pytest.mark.asyncio
    async def test_only_full_content_available(self, discovery, events, foo_skill, monkeypatch):
        """A skill whose body analysis failed is registered without a document."""
        def _boom(body):
            raise RuntimeError("analysis failed")

        monkeypatch.setattr(discovery_module, "analyze_body", _boom)
        await discovery.scan()

        record = discovery.get("foo")
        assert record is not None
        assert record.document is None
        assert any(isinstance(e, DiscoveryError) for e in events)

        resolver = ResourceResolver(discovery)
        content = await resolver.resolve("loadout://foo")
        assert "name: foo" in content.text

        with pytest.raises(SkillNotParsedError, match="Skill not parsed: foo"):
            await resolver.resolve("loadout://foo/manifest")
        with pytest.raises(SkillNotParsedError):
            await resolver.resolve("loadout://foo/section/usage")

        uris = [r.uri for r in resolver.list_resources()]
        assert uris == ["loadout://foo", "loadout://foo/manifest"]


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestListResources:

    @pytest.mark.asyncio
    async def test_lists_every_sub_resource(self, resolver):
        resources = {r.uri: r for r in resolver.list_resources()}

        assert set(resources) == {
            "loadout://foo",
            "loadout://foo/manifest",
            "loadout://foo/section/installation",
            "loadout://foo/section/usage",
            "loadout://foo/code/0",
            "loadout://foo/code/1",
            "loadout://foo/scripts/run.py",
            "loadout://foo/references/guide.md",
            "loadout://foo/references/nested",
            "loadout://foo/assets/logo.png",
        }
        assert resources["loadout://foo"].description == "demo"
        assert resources["loadout://foo/code/0"].name == "foo - Code Block 0 (bash)"
        assert resources["loadout://foo/code/0"].mime_type == "text/x-bash"
        assert resources["loadout://foo/scripts/run.py"].mime_type == "text/x-python"

    @pytest.mark.asyncio
    async def test_custom_scheme(self, scanned):
        resolver = ResourceResolver(scanned, scheme="skills")
        assert all(r.uri.startswith("skills://foo") for r in resolver.list_resources())
