"""Shared fixtures for loadout tests.

Builds real skill trees under tmp_path; nothing is mocked at the filesystem
level so discovery, resolution and script execution run end to end.
"""

from pathlib import Path

import pytest
import pytest_asyncio

from loadout.skills.discovery import SkillDiscovery
from loadout.skills.events import DiscoveryEvent


def skill_md(name: str, description: str = "", body: str = "", extra: str = "") -> str:
    """Render a SKILL.md with YAML frontmatter."""
    header = f"---\nname: {name}\ndescription: {description}\n{extra}---\n"
    return header + body


def write_skill(
    root: Path,
    dirname: str,
    text: str,
    files: dict[str, str | bytes] | None = None,
) -> Path:
    """Create root/dirname/SKILL.md plus optional files relative to the skill dir."""
    skill_dir = root / dirname
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(text, encoding="utf-8")
    for rel, content in (files or {}).items():
        path = skill_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return skill_dir


FOO_BODY = (
    "## Installation\n"
    "pip install foo\n"
    "\n"
    "## Usage\n"
    "```bash\n"
    "foo --help\n"
    "```\n"
    "\n"
    "```python\n"
    "import foo\n"
    "```\n"
    "\n"
    "See [the guide](./references/guide.md) and [site](https://example.com).\n"
)


# ---------------------------------------------------------------------------
# Skill trees
# ---------------------------------------------------------------------------

@pytest.fixture
def make_skill():
    """Factory fixture wrapping write_skill."""
    return write_skill


@pytest.fixture
def render_skill():
    """Factory fixture wrapping skill_md."""
    return skill_md


@pytest.fixture
def skills_root(tmp_path) -> Path:
    root = tmp_path / "skills"
    root.mkdir()
    return root


@pytest.fixture
def foo_skill(skills_root) -> Path:
    """A root containing foo/ with two sections, two code blocks and aux files."""
    return write_skill(
        skills_root,
        "foo",
        skill_md("foo", "demo", FOO_BODY),
        files={
            "references/guide.md": "# Guide\n",
            "references/nested/deep.txt": "deep\n",
            "scripts/run.py": "print('hi')\n",
            "assets/logo.png": b"\x89PNG\r\n\x1a\n\xff\xfe",
        },
    )


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

@pytest.fixture
def events() -> list[DiscoveryEvent]:
    return []


@pytest_asyncio.fixture
async def discovery(skills_root, events):
    """SkillDiscovery over skills_root, recording events, closed on teardown."""
    engine = SkillDiscovery([skills_root])
    engine.add_listener(events.append)
    yield engine
    await engine.close()


@pytest_asyncio.fixture
async def scanned(discovery, foo_skill):
    """discovery after scanning a root that holds the foo skill."""
    await discovery.scan()
    return discovery
