"""Module graph of a cargo crate and the struct/enum declaration tables.

Starting from the crate root named by ``Cargo.toml``, every ``mod`` item
is followed to its inline body or its file, the way rustc does it, and
the public structs and enums of every module are recorded together with
the module path that declares them.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .syntax import EnumDecl, ModDecl, StructDecl, Visibility, parse_file


@dataclass(frozen=True)
class Struct:
    ident: str
    module_path: str
    decl: StructDecl


@dataclass(frozen=True)
class Enum:
    ident: str
    module_path: str
    decl: EnumDecl


@dataclass
class Module:
    visibility: Visibility
    file_path: Path
    module_path: list[str]
    structs: list[Struct] = field(default_factory=list)
    enums: list[Enum] = field(default_factory=list)
    submodules: list["Module"] = field(default_factory=list)

    @property
    def path_str(self) -> str:
        return "::".join(self.module_path)

    def walk(self):
        yield self
        for sub in self.submodules:
            yield from sub.walk()

    def collect_structs(self, into: dict[str, Struct]) -> dict[str, Struct]:
        """Fill ``into`` with every crate-visible struct. Later modules overwrite earlier ones."""
        for module in self.walk():
            for struct in module.structs:
                if struct.decl.visibility.is_crate_visible:
                    into[struct.ident] = struct
        return into

    def collect_enums(self, into: dict[str, Enum]) -> dict[str, Enum]:
        for module in self.walk():
            for enu in module.enums:
                if enu.decl.visibility.is_crate_visible:
                    into[enu.ident] = enu
        return into


@dataclass(frozen=True)
class DeclarationTables:
    structs: dict[str, StructDecl]
    enums: dict[str, EnumDecl]
    module_paths: dict[str, str] = field(default_factory=dict)

    def module_path_of(self, name: str) -> str | None:
        return self.module_paths.get(name)

    @classmethod
    def from_source(cls, items, module_path: str = "crate") -> "DeclarationTables":
        """Tables for declarations in a single file. Used when no manifest is available."""
        root = Module(Visibility.PUBLIC, Path("<memory>"), module_path.split("::"))
        warnings: list[str] = []
        _fill_module(root, items, Path("."), False, warnings)
        return cls.from_module(root)

    @classmethod
    def from_module(cls, root: Module) -> "DeclarationTables":
        structs = root.collect_structs({})
        enums = root.collect_enums({})
        paths = {name: s.module_path for name, s in structs.items()}
        paths.update({name: e.module_path for name, e in enums.items()})
        return cls(
            structs={name: s.decl for name, s in structs.items()},
            enums={name: e.decl for name, e in enums.items()},
            module_paths=paths,
        )


class Crate:
    """A cargo crate with its resolved module tree."""

    def __init__(self, name: str, manifest_path: Path, root_src_file: Path):
        self.name = name
        self.manifest_path = manifest_path
        self.root_src_file = root_src_file
        self.warnings: list[str] = []
        self.root_module = Module(Visibility.PUBLIC, root_src_file, ["crate"])
        self._resolve(self.root_module, root_src_file, True)

    @classmethod
    def from_manifest(cls, manifest_path: Path) -> "Crate":
        manifest_path = Path(manifest_path)
        with manifest_path.open("rb") as f:
            manifest = tomllib.load(f)
        name = manifest.get("package", {}).get("name", manifest_path.parent.name)
        return cls(name, manifest_path, find_crate_root(manifest_path, manifest))

    def _resolve(self, module: Module, file_path: Path, owns_directory: bool) -> None:
        source = parse_file(file_path)
        _fill_module(module, source.items, file_path, owns_directory, self.warnings)

    def modules(self) -> list[Module]:
        return list(self.root_module.walk())

    def declaration_tables(self) -> DeclarationTables:
        return DeclarationTables.from_module(self.root_module)


def find_crate_root(manifest_path: Path, manifest: dict | None = None) -> Path:
    """``[lib] path`` if set, else ``src/lib.rs``, else ``src/main.rs``."""
    if manifest is None:
        with Path(manifest_path).open("rb") as f:
            manifest = tomllib.load(f)
    crate_dir = Path(manifest_path).parent
    lib_path = manifest.get("lib", {}).get("path")
    if lib_path:
        return crate_dir / lib_path
    lib_rs = crate_dir / "src" / "lib.rs"
    if lib_rs.exists():
        return lib_rs
    main_rs = crate_dir / "src" / "main.rs"
    if main_rs.exists():
        return main_rs
    raise FileNotFoundError(f"No crate root (src/lib.rs or src/main.rs) next to {manifest_path}")


def module_search_dir(file_path: Path, owns_directory: bool) -> Path:
    """Directory holding the children of the module defined in ``file_path``.

    ``lib.rs``, ``main.rs`` and ``mod.rs`` own their directory; any other
    ``name.rs`` keeps its children in ``name/``.
    """
    if owns_directory:
        return file_path.parent
    return file_path.parent / file_path.stem


def module_file_candidates(search_dir: Path, mod: ModDecl) -> list[Path]:
    if mod.path_attr:
        return [search_dir / mod.path_attr]
    return [search_dir / f"{mod.name}.rs", search_dir / mod.name / "mod.rs"]


def _fill_module(
    module: Module,
    items,
    file_path: Path,
    owns_directory: bool,
    warnings: list[str],
    search_dir: Path | None = None,
) -> None:
    if search_dir is None:
        search_dir = module_search_dir(file_path, owns_directory)
    for item in items:
        if isinstance(item, StructDecl):
            module.structs.append(Struct(item.name, module.path_str, item))
        elif isinstance(item, EnumDecl):
            module.enums.append(Enum(item.name, module.path_str, item))
        elif isinstance(item, ModDecl):
            child_path = [*module.module_path, item.name]
            if item.items is not None:
                child = Module(item.visibility, file_path, child_path)
                _fill_module(
                    child,
                    item.items,
                    file_path,
                    owns_directory,
                    warnings,
                    search_dir=search_dir / item.name,
                )
                module.submodules.append(child)
                continue
            candidates = module_file_candidates(search_dir, item)
            found = next((c for c in candidates if c.exists()), None)
            if found is None:
                message = f"module `{'::'.join(child_path)}` not found (tried {', '.join(str(c) for c in candidates)})"
                warnings.append(message)
                print(f"  Warning: {message}")
                continue
            child = Module(item.visibility, found, child_path)
            source = parse_file(found)
            _fill_module(
                child,
                source.items,
                found,
                found.name == "mod.rs" or item.path_attr is not None,
                warnings,
            )
            module.submodules.append(child)
