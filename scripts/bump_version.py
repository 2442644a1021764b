#!/usr/bin/env python3
"""Bump the apisig version in pyproject.toml and apisig/__init__.py."""
import os
import re
import sys
from pathlib import Path
from typing import Tuple

PYPROJECT_VERSION = re.compile(r'^version = "([^"]+)"', re.MULTILINE)
PACKAGE_VERSION = re.compile(r'__version__ = "[^"]+"')


def bump_version(current: str, bump_type: str) -> str:
    major, minor, patch = map(int, current.split('.'))
    if bump_type == 'major':
        return f"{major + 1}.0.0"
    elif bump_type == 'minor':
        return f"{major}.{minor + 1}.0"
    elif bump_type == 'patch':
        return f"{major}.{minor}.{patch + 1}"
    else:
        raise ValueError(f"Invalid bump type: {bump_type}")


def bump_files(root: Path, bump_type: str) -> Tuple[str, str]:
    """Rewrite both version strings under ``root``; returns (old, new)."""
    pyproject = root / 'pyproject.toml'
    content = pyproject.read_text()
    match = PYPROJECT_VERSION.search(content)
    if not match:
        raise ValueError("Could not find version in pyproject.toml")
    current_version = match.group(1)
    new_version = bump_version(current_version, bump_type)

    pyproject.write_text(
        PYPROJECT_VERSION.sub(f'version = "{new_version}"', content, count=1)
    )

    init_file = root / 'apisig' / '__init__.py'
    init_file.write_text(
        PACKAGE_VERSION.sub(f'__version__ = "{new_version}"', init_file.read_text())
    )
    return current_version, new_version


def main():
    if len(sys.argv) != 2:
        print("Usage: bump_version.py <major|minor|patch>", file=sys.stderr)
        sys.exit(1)

    try:
        current_version, new_version = bump_files(Path('.'), sys.argv[1])
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Output for GitHub Actions
    github_output = os.environ.get('GITHUB_OUTPUT')
    if github_output:
        with open(github_output, 'a') as f:
            f.write(f"current_version={current_version}\n")
            f.write(f"new_version={new_version}\n")
    else:
        print(f"Bumped version: {current_version} -> {new_version}")


if __name__ == '__main__':
    main()
