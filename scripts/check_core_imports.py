#!/usr/bin/env python3
"""
Fail if core imports the domain layers built on top of it.
Checks all Python files under src/openproject_hal/core/.
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
PACKAGE = "openproject_hal"
CORE_DIR = REPO_ROOT / "src" / PACKAGE / "core"

FORBIDDEN_PREFIXES = (
    "openproject_hal.tools",
    "openproject_hal.facade",
    "openproject_hal.extraction",
    "openproject_hal.payloads",
    "openproject_hal.pagination",
)


def is_forbidden(module: str) -> bool:
    return any(
        module == prefix or module.startswith(prefix + ".")
        for prefix in FORBIDDEN_PREFIXES
    )


def resolve_relative(module: str, level: int) -> str:
    # files live in openproject_hal.core, so level 1 is core and level 2 the package
    parts = [PACKAGE, "core"][: max(0, 2 - level + 1)]
    if module:
        parts.append(module)
    return ".".join(parts)


def scan_file(path: Path) -> list[str]:
    errors: list[str] = []
    tree = ast.parse(path.read_text())
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                mod = alias.name
                if is_forbidden(mod):
                    errors.append(f"{path}: forbidden import '{mod}'")
        elif isinstance(node, ast.ImportFrom):
            mod = node.module or ""
            if node.level:
                mod = resolve_relative(mod, node.level)
            candidates = [mod] + [f"{mod}.{alias.name}" for alias in node.names]
            if any(is_forbidden(c) for c in candidates if c):
                errors.append(f"{path}: forbidden import '{mod}'")
    return errors


def main() -> int:
    violations: list[str] = []
    for py_file in CORE_DIR.rglob("*.py"):
        violations.extend(scan_file(py_file))

    if violations:
        for v in violations:
            print(v, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
