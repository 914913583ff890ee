"""Unit tests for the release helper that keeps version numbers in sync."""

from pathlib import Path

import pytest

import release


def test_parse_version() -> None:
    """Test parsing plain and quoted versions."""
    assert release.parse_version("1.7.0") == (1, 7, 0)
    assert release.parse_version('"2.10.3"') == (2, 10, 3)

    with pytest.raises(ValueError, match="Invalid version format"):
        release.parse_version("1.7")


@pytest.mark.parametrize(
    "part, expected",
    [("major", (2, 0, 0)), ("minor", (1, 3, 0)), ("patch", (1, 2, 4))],
)
def test_bump_version(part: str, expected: tuple[int, int, int]) -> None:
    """Test that bumping resets the parts after the bumped one."""
    assert release.bump_version((1, 2, 3), part) == expected


def test_bump_version_rejects_unknown_part() -> None:
    with pytest.raises(ValueError):
        release.bump_version((1, 2, 3), "build")


def test_toml_version_round_trip(tmp_path: Path) -> None:
    """Test reading and rewriting the project version."""
    toml_path = tmp_path / "pyproject.toml"
    toml_path.write_text(
        '[project]\nname = "scoped-pubsub"\nversion = "1.0.0"\n'
        'requires-python = ">=3.9"\n',
        encoding="utf-8",
    )

    assert release.get_current_version_from_toml(toml_path) == (1, 0, 0)

    release.update_toml_version((1, 1, 0), toml_path)

    assert release.get_current_version_from_toml(toml_path) == (1, 1, 0)
    assert 'requires-python = ">=3.9"' in toml_path.read_text(encoding="utf-8")


def test_update_python_version(tmp_path: Path) -> None:
    """Test that the package version constants are rewritten."""
    package_path = tmp_path / "__init__.py"
    package_path.write_text(
        "version_major = 1\nversion_minor = 0\nversion_patch = 0\n",
        encoding="utf-8",
    )

    release.update_python_version((3, 2, 1), package_path)

    assert package_path.read_text(encoding="utf-8") == (
        "version_major = 3\nversion_minor = 2\nversion_patch = 1\n"
    )


def test_update_python_version_requires_constants(tmp_path: Path) -> None:
    package_path = tmp_path / "__init__.py"
    package_path.write_text("__version__ = '1.0.0'\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Pattern not found"):
        release.update_python_version((1, 0, 1), package_path)


def test_package_matches_pyproject() -> None:
    """Test that the released package carries the pyproject version."""
    import scoped_pubsub

    version = ".".join(str(p) for p in release.get_current_version_from_toml())

    assert scoped_pubsub.__version__ == version
