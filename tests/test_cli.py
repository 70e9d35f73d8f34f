import argparse
import sys
from collections.abc import Callable
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from wiregen import cli
from wiregen.generator import HANDLER_NAME


def _assert_config_code(exc_info: pytest.ExceptionInfo[Exception], code: str) -> None:
    err = exc_info.value
    assert getattr(err, "code") == code
    assert getattr(err, "code") in cli.VALID_ERROR_CODES


@pytest.fixture
def api_crate(make_crate: Callable[..., Path]) -> Path:
    manifest = make_crate(
        {
            "src/lib.rs": "mod api;\n",
            "src/api.rs": "pub fn add(a: i32, b: i32) -> i32 { a + b }\n",
        }
    )
    return manifest.parent


def _args(**overrides: object) -> argparse.Namespace:
    base: dict[str, object] = {
        "rust_input": None,
        "rust_output": None,
        "manifest_path": None,
        "exports_output": None,
        "api_module": None,
        "handler_name": HANDLER_NAME,
    }
    base.update(overrides)
    return argparse.Namespace(**base)


def test_import_cli_module_smoke() -> None:
    assert callable(cli.main)


def test_build_argument_parser_exposes_surface_and_defaults() -> None:
    parser = cli.build_argument_parser()
    option_actions = {
        option: action for action in parser._actions for option in action.option_strings
    }

    assert {
        "--rust-input",
        "--rust-output",
        "--manifest-path",
        "--exports-output",
        "--api-module",
        "--handler-name",
    }.issubset(option_actions.keys())
    assert option_actions["--handler-name"].default == HANDLER_NAME
    assert option_actions["--manifest-path"].default is None
    assert option_actions["--api-module"].default is None


def test_parse_args_unknown_flag_exits_with_code_2() -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["--not-a-flag"])

    assert exc_info.value.code == 2


def test_validate_config_derives_manifest_and_module(api_crate: Path) -> None:
    config = cli.validate_config(
        _args(
            rust_input=api_crate / "src" / "api.rs",
            rust_output=api_crate / "src" / "bridge_generated.rs",
        )
    )

    assert config.manifest_path.resolve() == (api_crate / "Cargo.toml").resolve()
    assert config.api_module == "api"
    assert config.handler_name == HANDLER_NAME
    assert config.options.api_module == "api"

    with pytest.raises(FrozenInstanceError):
        config.api_module = "other"  # type: ignore[misc]


def test_default_api_module_for_nested_files(tmp_path: Path) -> None:
    manifest = tmp_path / "Cargo.toml"

    assert cli.default_api_module(tmp_path / "src" / "bridge" / "api.rs", manifest) == (
        "bridge::api"
    )
    assert cli.default_api_module(tmp_path / "src" / "bridge" / "mod.rs", manifest) == (
        "bridge"
    )
    assert cli.default_api_module(tmp_path / "elsewhere" / "api.rs", manifest) == "api"


def test_missing_input_is_path_not_found(tmp_path: Path) -> None:
    with pytest.raises(cli.ConfigError) as exc_info:
        cli.validate_config(_args(rust_input=tmp_path / "missing.rs"))

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert "--rust-input" in exc_info.value.message


def test_missing_output_is_path_not_found(api_crate: Path) -> None:
    with pytest.raises(cli.ConfigError) as exc_info:
        cli.validate_config(_args(rust_input=api_crate / "src" / "api.rs"))

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert "--rust-output" in exc_info.value.message


def test_missing_manifest_is_path_not_found(tmp_path: Path) -> None:
    rust_input = tmp_path / "loose" / "api.rs"
    rust_input.parent.mkdir()
    rust_input.write_text("pub fn a() {}\n", encoding="utf-8")

    with pytest.raises(cli.ConfigError) as exc_info:
        cli.validate_config(
            _args(
                rust_input=rust_input,
                rust_output=tmp_path / "out.rs",
                manifest_path=tmp_path / "nope" / "Cargo.toml",
            )
        )

    _assert_config_code(exc_info, "PATH_NOT_FOUND")


@pytest.mark.parametrize("module", ["foo-bar", "crate::api", "api::", "1api"])
def test_invalid_module_name(api_crate: Path, module: str) -> None:
    with pytest.raises(cli.ConfigError) as exc_info:
        cli.validate_config(
            _args(
                rust_input=api_crate / "src" / "api.rs",
                rust_output=api_crate / "out.rs",
                api_module=module,
            )
        )

    _assert_config_code(exc_info, "INVALID_MODULE_NAME")


@pytest.mark.parametrize("handler", ["", "MY HANDLER", "9LIVES", "a::b"])
def test_invalid_handler_name(api_crate: Path, handler: str) -> None:
    with pytest.raises(cli.ConfigError) as exc_info:
        cli.validate_config(
            _args(
                rust_input=api_crate / "src" / "api.rs",
                rust_output=api_crate / "out.rs",
                handler_name=handler,
            )
        )

    _assert_config_code(exc_info, "INVALID_HANDLER_NAME")


def test_config_error_rejects_unknown_code() -> None:
    with pytest.raises(ValueError, match="Unknown config error code"):
        cli.ConfigError("NOT_A_CODE", "message")


def test_main_writes_wire_file_and_exports(
    api_crate: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    output = api_crate / "src" / "bridge_generated.rs"
    exports = api_crate / "exports.txt"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "wiregen",
            "--rust-input",
            str(api_crate / "src" / "api.rs"),
            "--rust-output",
            str(output),
            "--exports-output",
            str(exports),
        ],
    )

    cli.main()
    captured = capsys.readouterr()

    code = output.read_text(encoding="utf-8")
    assert "use crate::api::*;" in code
    assert 'pub extern "C" fn wire_add(port_: i64, a: i32, b: i32) {' in code
    assert exports.read_text(encoding="utf-8").splitlines() == [
        "wire_add",
        "free_WireSyncReturnStruct",
    ]
    assert "Parsing: " in captured.out
    assert "  Crate: 2 modules, 0 structs, 0 enums" in captured.out
    assert "  IR: 1 functions, 0 structs, 0 enums" in captured.out
    assert f"  Written: {output}" in captured.out
    assert "Wire layer generated:" in captured.out
    assert captured.err == ""


def test_main_reports_generation_error_without_writing(
    make_crate: Callable[..., Path],
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    manifest = make_crate(
        {
            "src/lib.rs": "mod api;\n",
            "src/api.rs": "pub fn bad(x: Missing) {}\n",
        }
    )
    output = manifest.parent / "src" / "bridge_generated.rs"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "wiregen",
            "--rust-input",
            str(manifest.parent / "src" / "api.rs"),
            "--rust-output",
            str(output),
        ],
    )

    with pytest.raises(SystemExit) as exc_info:
        cli.main()
    captured = capsys.readouterr()

    assert exc_info.value.code == 1
    assert "Generation error [DECLARATION_NOT_FOUND]:" in captured.out
    assert "Hint: " in captured.out
    assert not output.exists()


def test_main_reports_config_error(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(
        sys, "argv", ["wiregen", "--rust-input", str(tmp_path / "missing.rs")]
    )

    with pytest.raises(SystemExit) as exc_info:
        cli.main()
    captured = capsys.readouterr()

    assert exc_info.value.code == 1
    assert "Config error [PATH_NOT_FOUND]:" in captured.out


def test_main_reports_source_parse_error(
    make_crate: Callable[..., Path],
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    manifest = make_crate(
        {"src/lib.rs": "mod api;\n", "src/api.rs": "pub fn broken(\n"}
    )
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "wiregen",
            "--rust-input",
            str(manifest.parent / "src" / "api.rs"),
            "--rust-output",
            str(manifest.parent / "out.rs"),
        ],
    )

    with pytest.raises(SystemExit):
        cli.main()
    captured = capsys.readouterr()

    assert "Generation error [SOURCE_PARSE_ERROR]:" in captured.out
