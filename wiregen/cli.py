"""Command-line driver for wiregen.

Generates the Rust wire layer for the public functions of one API file.

Usage:
    wiregen --rust-input native/src/api.rs --rust-output native/src/bridge_generated.rs
"""

import argparse
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path

from .errors import GenerationError, InternalGeneratorError
from .generator import HANDLER_NAME, GenerateOptions, generate
from .ir import IrFile
from .parser import parse
from .source_graph import Crate
from .syntax import parse_source

MANIFEST_NAME = "Cargo.toml"


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    rust_input: Path
    rust_output: Path
    manifest_path: Path
    exports_output: Path | None
    api_module: str
    handler_name: str

    @property
    def options(self) -> GenerateOptions:
        return GenerateOptions(api_module=self.api_module, handler_name=self.handler_name)


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "INVALID_MODULE_NAME",
    "INVALID_HANDLER_NAME",
}
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def validate_module_name(raw: str) -> str:
    segments = raw.split("::")
    if all(_IDENT_RE.match(s) for s in segments) and "crate" not in segments:
        return raw
    raise ConfigError(
        "INVALID_MODULE_NAME",
        f"Invalid module path: {raw}",
        "Pass the module path relative to the crate root, e.g. --api-module api "
        "or --api-module bridge::api.",
    )


def validate_handler_name(raw: str) -> str:
    if _IDENT_RE.match(raw):
        return raw
    raise ConfigError(
        "INVALID_HANDLER_NAME",
        f"Invalid handler name: {raw}",
        "The handler must be a Rust identifier, e.g. FLUTTER_RUST_BRIDGE_HANDLER.",
    )


def find_manifest(rust_input: Path) -> Path | None:
    """Nearest ``Cargo.toml`` in the input's directory or any parent."""
    for directory in rust_input.resolve().parents:
        candidate = directory / MANIFEST_NAME
        if candidate.exists():
            return candidate
    return None


def default_api_module(rust_input: Path, manifest_path: Path) -> str:
    """Module path of ``rust_input`` under the crate's ``src`` directory.

    ``src/api.rs`` gives ``api``, ``src/bridge/api.rs`` gives ``bridge::api``
    and ``src/bridge/mod.rs`` gives ``bridge``. Inputs outside ``src`` fall
    back to the file stem.
    """
    src_dir = manifest_path.resolve().parent / "src"
    path = rust_input.resolve()
    try:
        parts = list(path.relative_to(src_dir).with_suffix("").parts)
    except ValueError:
        return path.stem
    if parts and parts[-1] == "mod":
        parts.pop()
    return "::".join(parts) or path.stem


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wiregen", description="Generate the Rust wire layer for an API file"
    )

    parser.add_argument("--rust-input", type=Path, default=None)
    parser.add_argument("--rust-output", type=Path, default=None)
    parser.add_argument("--manifest-path", type=Path, default=None)
    parser.add_argument("--exports-output", type=Path, default=None)
    parser.add_argument("--api-module", type=str, default=None)
    parser.add_argument("--handler-name", type=str, default=HANDLER_NAME)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig:
    rust_input = validate_path_exists(
        args.rust_input,
        "--rust-input",
        "Pass the API file: --rust-input native/src/api.rs",
    )
    if args.rust_output is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            "--rust-output is required: no path provided.",
            "Pass the generated file: --rust-output native/src/bridge_generated.rs",
        )

    manifest_path = args.manifest_path
    if manifest_path is None:
        manifest_path = find_manifest(rust_input)
    manifest_path = validate_path_exists(
        manifest_path,
        "--manifest-path",
        f"No {MANIFEST_NAME} found above {rust_input}; pass --manifest-path explicitly.",
    )

    api_module = args.api_module
    if api_module is None:
        api_module = default_api_module(rust_input, manifest_path)

    return GenerateConfig(
        rust_input=rust_input,
        rust_output=args.rust_output,
        manifest_path=manifest_path,
        exports_output=args.exports_output,
        api_module=validate_module_name(api_module),
        handler_name=validate_handler_name(args.handler_name),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig:
    return validate_config(parse_args(argv))


# ===--- Pipeline ---=== #


@dataclass(frozen=True)
class GenerationResult:
    output_path: Path
    line_count: int
    extern_func_names: tuple[str, ...]
    ir_file: IrFile


def write_text(path: Path, text: str) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not text.endswith("\n"):
        text += "\n"
    path.write_text(text, encoding="utf-8")
    return text.count("\n")


def format_generation_summary(config: GenerateConfig, result: GenerationResult) -> str:
    ir_file = result.ir_file
    lines = [
        "Wire layer generated:",
        "",
        f"  Input:      {config.rust_input}",
        f"  Output:     {result.output_path}",
        f"  Module:     crate::{config.api_module}",
        "",
        f"    {'Functions:':<11}{len(ir_file.funcs):>6}",
        f"    {'Structs:':<11}{len(ir_file.struct_pool):>6}",
        f"    {'Enums:':<11}{len(ir_file.enum_pool):>6}",
        f"    {'Exports:':<11}{len(result.extern_func_names):>6}",
        "",
    ]
    return "\n".join(lines)


def run_generate(config: GenerateConfig) -> GenerationResult:
    """Run parse -> resolve -> generate -> write for one API file.

    Raises:
        OSError: An input is unreadable or the output cannot be written.
        tomllib.TOMLDecodeError: The manifest is not valid TOML.
        GenerationError: The API cannot be expressed on the wire.
    """
    print(f"Parsing: {config.rust_input}")
    source_text = config.rust_input.read_text(encoding="utf-8")
    source_file = parse_source(source_text, config.rust_input)

    crate = Crate.from_manifest(config.manifest_path)
    tables = crate.declaration_tables()
    print(
        f"  Crate: {len(crate.modules())} modules, "
        f"{len(tables.structs)} structs, {len(tables.enums)} enums"
    )

    ir_file = parse(source_text, source_file, tables, config.handler_name)
    print(
        f"  IR: {len(ir_file.funcs)} functions, "
        f"{len(ir_file.struct_pool)} structs, {len(ir_file.enum_pool)} enums"
        + (", custom handler detected" if ir_file.has_executor else "")
    )

    output = generate(ir_file, config.options)
    line_count = write_text(config.rust_output, output.code)
    print(f"  Written: {config.rust_output} ({line_count} lines)")

    if config.exports_output is not None:
        count = write_text(config.exports_output, "\n".join(output.extern_func_names))
        print(f"  Written: {config.exports_output} ({count} lines)")

    result = GenerationResult(
        output_path=config.rust_output,
        line_count=line_count,
        extern_func_names=output.extern_func_names,
        ir_file=ir_file,
    )
    print(format_generation_summary(config, result), end="")
    return result


# ===--- Main ---=== #


def main():
    try:
        config = build_config()
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        run_generate(config)
    except GenerationError as err:
        print(f"Generation error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err
    except (OSError, tomllib.TOMLDecodeError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except InternalGeneratorError as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
