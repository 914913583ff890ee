"""Helper for bumping the project version and syncing the package constants."""

import argparse
import re
import sys
from pathlib import Path
from typing import Optional


TOML_PATH = Path(Path(__file__).parent, "pyproject.toml")
PACKAGE_PATH = Path(Path(__file__).parent, "scoped_pubsub/__init__.py")

VERSION = tuple[int, int, int]
_TOML_VERSION = re.compile(r'^version\s*=\s*["\'](\d+\.\d+\.\d+)["\']', re.MULTILINE)


def parse_version(version_str: str) -> VERSION:
    """Parse a version string into major, minor, patch tuple."""
    match = re.match(r"^(\d+)\.(\d+)\.(\d+)$", version_str.strip("\"'"))
    if not match:
        raise ValueError(f"Invalid version format: {version_str}")
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def bump_version(version: VERSION, part: str) -> VERSION:
    """Increment one part of a version, resetting the parts after it."""
    major, minor, patch = version
    if part == "major":
        return major + 1, 0, 0
    if part == "minor":
        return major, minor + 1, 0
    if part == "patch":
        return major, minor, patch + 1
    raise ValueError(f"Unknown version part: {part}")


def get_current_version_from_toml(toml_path: Path = TOML_PATH) -> VERSION:
    """Extract current version from TOML file."""
    match = _TOML_VERSION.search(toml_path.read_text(encoding="utf-8"))

    if not match:
        raise ValueError("No version field found in TOML file")

    return parse_version(match.group(1))


def update_toml_version(new_version: VERSION, toml_path: Path = TOML_PATH) -> None:
    """Rewrite the project version in the TOML file."""
    content = toml_path.read_text(encoding="utf-8")
    version_str = ".".join(str(part) for part in new_version)

    new_content, count = _TOML_VERSION.subn(f'version = "{version_str}"', content, count=1)
    if count == 0:
        raise ValueError("No version field found in TOML file")

    toml_path.write_text(new_content, encoding="utf-8")


def update_python_version(
    new_version: VERSION, package_path: Path = PACKAGE_PATH
) -> None:
    """Update version constants in Python file."""
    content = package_path.read_text(encoding="utf-8")

    major, minor, patch = new_version

    # Replace each version constant
    replacements = [
        (r"version_major\s*=\s*\d+", f"version_major = {major}"),
        (r"version_minor\s*=\s*\d+", f"version_minor = {minor}"),
        (r"version_patch\s*=\s*\d+", f"version_patch = {patch}"),
    ]

    new_content = content
    for pattern, replacement in replacements:
        new_content, count = re.subn(pattern, replacement, new_content)
        if count == 0:
            raise ValueError(f"Pattern not found: {pattern}")

    package_path.write_text(new_content, encoding="utf-8")
    print(f"Updated {package_path}:")
    print(f"  version_major = {major}")
    print(f"  version_minor = {minor}")
    print(f"  version_patch = {patch}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "bump",
        nargs="?",
        choices=("major", "minor", "patch"),
        help="Version part to increment in pyproject.toml first.",
    )
    args = parser.parse_args(argv)

    version = get_current_version_from_toml()
    if args.bump:
        version = bump_version(version, args.bump)
        update_toml_version(version)

    update_python_version(version)
    return 0


if __name__ == "__main__":
    sys.exit(main())
