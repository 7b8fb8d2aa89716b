"""Tests for loadout/resources/uri.py: loadout:// URI shapes and arity."""

import pytest

from loadout.errors import InvalidUriError
from loadout.resources.uri import ParsedSkillUri, build_skill_uri, parse_skill_uri


class TestParseSkillUri:

    @pytest.mark.parametrize("uri,expected", [
        ("loadout://foo", ParsedSkillUri("foo", "content")),
        ("loadout://foo/", ParsedSkillUri("foo", "content")),
        ("loadout://foo/manifest", ParsedSkillUri("foo", "manifest")),
        ("loadout://foo//manifest", ParsedSkillUri("foo", "manifest")),
        ("loadout://foo/section/usage", ParsedSkillUri("foo", "section", "usage")),
        ("loadout://foo/code/0", ParsedSkillUri("foo", "code", "0")),
        ("loadout://foo/references/guide.md", ParsedSkillUri("foo", "references", "guide.md")),
        ("loadout://foo/references/a/b/c.md", ParsedSkillUri("foo", "references", "a/b/c.md")),
        ("loadout://foo/scripts/run.sh", ParsedSkillUri("foo", "scripts", "run.sh")),
        ("loadout://foo/assets/logo.png", ParsedSkillUri("foo", "assets", "logo.png")),
    ])
    def test_valid_shapes(self, uri, expected):
        assert parse_skill_uri(uri) == expected

    @pytest.mark.parametrize("uri", [
        "http://foo",
        "loadout:/foo",
        "loadout://",
        "loadout:////",
        "loadout://foo/manifest/extra",
        "loadout://foo/section",
        "loadout://foo/section/a/b",
        "loadout://foo/code",
        "loadout://foo/code/1/2",
        "loadout://foo/unknown",
        "loadout://foo/references",
        "loadout://foo/references/../secret",
        "loadout://foo/assets/./logo.png",
    ])
    def test_invalid_shapes(self, uri):
        with pytest.raises(InvalidUriError):
            parse_skill_uri(uri)

    def test_custom_scheme(self):
        assert parse_skill_uri("skills://foo/manifest", scheme="skills") == ParsedSkillUri("foo", "manifest")
        with pytest.raises(InvalidUriError):
            parse_skill_uri("loadout://foo", scheme="skills")

    def test_error_message_names_uri(self):
        with pytest.raises(InvalidUriError, match="Invalid skill URI: loadout://foo/bogus"):
            parse_skill_uri("loadout://foo/bogus")


def test_build_skill_uri():
    assert build_skill_uri("loadout", "foo") == "loadout://foo"
    assert build_skill_uri("loadout", "foo", "code", 3) == "loadout://foo/code/3"
