from collections.abc import Callable
from pathlib import Path

import pytest

from wiregen.generator import HANDLER_NAME
from wiregen.ir import IrFile
from wiregen.parser import TypeResolver, parse
from wiregen.source_graph import Crate, DeclarationTables
from wiregen.syntax import parse_source


@pytest.fixture
def make_crate(tmp_path: Path) -> Callable[..., Path]:
    """Write a throwaway cargo crate and return its manifest path."""

    def _make_crate(
        files: dict[str, str],
        *,
        name: str = "demo",
        lib_path: str | None = None,
    ) -> Path:
        crate_dir = tmp_path / name
        crate_dir.mkdir(parents=True, exist_ok=True)
        manifest = [
            "[package]",
            f'name = "{name}"',
            'version = "0.1.0"',
            'edition = "2018"',
        ]
        if lib_path is not None:
            manifest += ["", "[lib]", f'path = "{lib_path}"']
        manifest_path = crate_dir / "Cargo.toml"
        manifest_path.write_text("\n".join(manifest) + "\n", encoding="utf-8")

        for rel_path, text in files.items():
            target = crate_dir / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        return manifest_path

    return _make_crate


@pytest.fixture
def make_ir(make_crate: Callable[..., Path]) -> Callable[..., IrFile]:
    """Build an IrFile from the source of ``src/api.rs`` in a fresh crate."""

    def _make_ir(
        api_source: str,
        extra_files: dict[str, str] | None = None,
        handler_name: str = HANDLER_NAME,
    ) -> IrFile:
        files = {"src/lib.rs": "mod api;\n", "src/api.rs": api_source}
        files.update(extra_files or {})
        crate = Crate.from_manifest(make_crate(files))
        return parse(
            api_source,
            parse_source(api_source),
            crate.declaration_tables(),
            handler_name,
        )

    return _make_ir


@pytest.fixture
def make_resolver() -> Callable[[str], TypeResolver]:
    """A TypeResolver over the declarations of one in-memory source file."""

    def _make_resolver(source: str) -> TypeResolver:
        tables = DeclarationTables.from_source(parse_source(source).items)
        return TypeResolver(tables)

    return _make_resolver
