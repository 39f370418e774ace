#!/usr/bin/env python3
"""Import boundary checker: core/ stays below workflow/, surfaces/ sits on top."""

import ast
import sys
from pathlib import Path
from typing import Optional, Set

PACKAGE = "codex_workflow"

# layer -> layers it must not import
FORBIDDEN = {
    "core": ("workflow", "surfaces"),
    "workflow": ("surfaces",),
}


def _module_package(root_dir: Path, file_path: Path) -> list[str]:
    rel = file_path.relative_to(root_dir / "src").with_suffix("")
    # Both `pkg/__init__.py` and `pkg/mod.py` resolve relative imports against `pkg`.
    return list(rel.parts[:-1])


def _absolute_module(
    package: list[str], module: Optional[str], level: int
) -> Optional[str]:
    if level == 0:
        return module
    if level > len(package):
        return None
    base = package[: len(package) - level + 1]
    if module:
        base = base + module.split(".")
    return ".".join(base)


def find_imports(root_dir: Path, file_path: Path) -> Set[str]:
    """Return fully qualified module names imported by a file."""
    imports: Set[str] = set()
    tree = ast.parse(file_path.read_text(encoding="utf-8"), filename=str(file_path))
    package = _module_package(root_dir, file_path)

    type_checking_nodes = set()
    for node in ast.walk(tree):
        if (
            isinstance(node, ast.If)
            and isinstance(node.test, ast.Name)
            and node.test.id == "TYPE_CHECKING"
        ):
            for sub_node in ast.walk(node):
                if isinstance(sub_node, (ast.ImportFrom, ast.Import)):
                    type_checking_nodes.add(sub_node)

    for node in ast.walk(tree):
        if node in type_checking_nodes:
            continue
        if isinstance(node, ast.ImportFrom):
            resolved = _absolute_module(package, node.module, node.level)
            if resolved:
                imports.add(resolved)
        elif isinstance(node, ast.Import):
            for alias in node.names:
                imports.add(alias.name)
    return imports


def check_boundaries(root_dir: Path) -> list[tuple[str, str]]:
    violations: list[tuple[str, str]] = []
    package_dir = root_dir / "src" / PACKAGE
    for layer, forbidden in FORBIDDEN.items():
        layer_dir = package_dir / layer
        if not layer_dir.exists():
            continue
        prefixes = tuple(f"{PACKAGE}.{name}" for name in forbidden)
        nested = tuple(f"{prefix}." for prefix in prefixes)
        for py_file in sorted(layer_dir.rglob("*.py")):
            for imp in sorted(find_imports(root_dir, py_file)):
                if imp in prefixes or imp.startswith(nested):
                    violations.append((str(py_file.relative_to(root_dir)), imp))
    return violations


def main() -> None:
    root_dir = Path(__file__).resolve().parent.parent
    violations = check_boundaries(root_dir)

    if violations:
        print("Import boundary violations detected:")
        for file_path, imp in violations:
            print(f"  {file_path} imports {imp}")
        print("\ncore/ must not import workflow/ or surfaces/.")
        print("workflow/ must not import surfaces/.")
        sys.exit(1)
    print("Import boundary check passed")
    sys.exit(0)


if __name__ == "__main__":
    main()
