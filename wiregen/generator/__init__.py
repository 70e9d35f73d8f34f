"""Rust wire-layer code generation.

``generate`` renders an ``IrFile`` into one Rust source file made of nine
sections, always in the same order, and reports every ``#[no_mangle]``
function it emitted. Per-type code comes from the category generators in
``wiregen.generator.types``.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import DuplicateExportError
from ..ir import IrFile, IrFunc, IrFuncMode, IrType, IrTypeEnumRef, wire_param_type
from .types import generator_for, rust_ident

HANDLER_NAME = "FLUTTER_RUST_BRIDGE_HANDLER"

CODE_HEADER = """// AUTO GENERATED FILE, DO NOT EDIT.
// Generated by `wiregen`."""

LINT_ALLOWS = (
    "#![allow(non_camel_case_types, unused, clippy::redundant_closure, "
    "clippy::useless_conversion, clippy::unit_arg, non_snake_case)]"
)

RUNTIME_IMPORT = "use flutter_rust_bridge::*;"

SECTIONS = (
    "imports",
    "wire functions",
    "wire structs",
    "wire enums",
    "allocate functions",
    "impl Wire2Api",
    "impl NewWithNullPtr",
    "impl IntoDart",
    "executor",
)

WIRE2API_MISC = """pub trait Wire2Api<T> {
    fn wire2api(self) -> T;
}

impl<T, S> Wire2Api<Option<T>> for *mut S
where
    *mut S: Wire2Api<T>,
{
    fn wire2api(self) -> Option<T> {
        if self.is_null() {
            None
        } else {
            Some(self.wire2api())
        }
    }
}
"""

NEW_WITH_NULLPTR_MISC = """pub trait NewWithNullPtr {
    fn new_with_null_ptr() -> Self;
}

impl<T> NewWithNullPtr for *mut T {
    fn new_with_null_ptr() -> Self {
        std::ptr::null_mut()
    }
}
"""


# ===--- Options and output ---=== #


@dataclass(frozen=True)
class GenerateOptions:
    """``api_module`` is the module holding the API functions, relative to ``crate``."""

    api_module: str = "api"
    handler_name: str = HANDLER_NAME


@dataclass(frozen=True)
class GeneratedOutput:
    code: str
    extern_func_names: tuple[str, ...]


def section_header(name: str) -> str:
    return f"// Section: {name}\n"


def indent(text: str, prefix: str = "    ") -> str:
    return "\n".join(prefix + line if line else line for line in text.splitlines())


# ===--- Exported-symbol collector ---=== #


class ExternFuncCollector:
    """Renders ``extern "C"`` functions and remembers their names in emission order."""

    def __init__(self):
        self.names: list[str] = []

    def generate(
        self,
        func_name: str,
        params: list[str],
        return_type: str | None,
        body: str,
    ) -> str:
        if func_name in self.names:
            raise DuplicateExportError(func_name)
        self.names.append(func_name)
        ret = f" -> {return_type}" if return_type else ""
        return (
            "#[no_mangle]\n"
            f'pub extern "C" fn {func_name}({", ".join(params)}){ret} {{\n'
            f"{indent(body)}\n"
            "}\n"
        )


# ===--- Engine ---=== #


class Generator:
    def __init__(self, options: GenerateOptions | None = None):
        self.options = options or GenerateOptions()
        self.extern_func_collector = ExternFuncCollector()

    def generate(self, ir_file: IrFile) -> str:
        inputs = ir_file.distinct_types(True, False)
        outputs = ir_file.distinct_types(False, True)

        sections = {
            "imports": self.generate_imports(ir_file, inputs, outputs),
            "wire functions": [self.generate_wire_func(f) for f in ir_file.funcs],
            "wire structs": [self.generate_wire_struct(ty, ir_file) for ty in inputs],
            "wire enums": [
                generator_for(ty, ir_file).wire_enum()
                for ty in inputs
                if isinstance(ty, IrTypeEnumRef)
            ],
            "allocate functions": [
                generator_for(ty, ir_file).allocate_funcs(self.extern_func_collector)
                for ty in inputs
            ],
            "impl Wire2Api": [WIRE2API_MISC]
            + [self.generate_wire2api_func(ty, ir_file) for ty in inputs],
            "impl NewWithNullPtr": [NEW_WITH_NULLPTR_MISC]
            + [generator_for(ty, ir_file).new_with_nullptr() for ty in inputs],
            "impl IntoDart": [generator_for(ty, ir_file).impl_intodart() for ty in outputs],
            "executor": self.generate_executor(ir_file),
        }

        lines = [
            LINT_ALLOWS,
            CODE_HEADER,
            "",
            f"use crate::{self.options.api_module}::*;",
            RUNTIME_IMPORT,
            "",
        ]
        for name in SECTIONS:
            lines.append(section_header(name))
            lines.extend(chunk for chunk in sections[name] if chunk)
        return "\n".join(lines)

    def generate_imports(
        self, ir_file: IrFile, inputs: list[IrType], outputs: list[IrType]
    ) -> list[str]:
        found = set()
        for ty in [*inputs, *outputs]:
            line = generator_for(ty, ir_file).imports(self.options.api_module)
            if line is not None:
                found.add(line)
        if not found:
            return []
        return sorted(found) + [""]

    def generate_wire_func(self, func: IrFunc) -> str:
        params = ["port_: i64"] if func.mode.has_port_argument else []
        params += [f"{field.name}: {wire_param_type(field.ty)}" for field in func.inputs]

        inner_params = []
        if func.mode is IrFuncMode.STREAM:
            inner_params.append("task_callback.stream_sink()")
        inner_params += [f"api_{rust_ident(field.name)}" for field in func.inputs]

        wrap_info = (
            f'WrapInfo {{ debug_name: "{func.name}", '
            f'port: {"Some(port_)" if func.mode.has_port_argument else "None"}, '
            f"mode: FfiCallMode::{func.mode.ffi_call_mode} }}"
        )
        convert = "".join(
            f"let api_{rust_ident(field.name)} = {field.name}.wire2api();\n"
            for field in func.inputs
        )
        call = f"{func.name}({', '.join(inner_params)})"
        if not func.fallible:
            call = f"Ok({call})"

        if func.mode is IrFuncMode.SYNC:
            handler_method, return_type = "wrap_sync", "support::WireSyncReturnStruct"
            closure = f"{convert}{call}"
        else:
            handler_method, return_type = "wrap", None
            closure = f"{convert}move |task_callback| {call}"

        body = (
            f"{self.options.handler_name}.{handler_method}({wrap_info}, move || {{\n"
            f"{indent(closure)}\n"
            f"}})"
        )
        return self.extern_func_collector.generate(
            func.wire_func_name(), params, return_type, body
        )

    def generate_wire_struct(self, ty: IrType, ir_file: IrFile) -> str:
        fields = generator_for(ty, ir_file).wire_struct_fields()
        if fields is None:
            return ""
        body = "".join(f"\n    {f}," for f in fields)
        return (
            "#[repr(C)]\n"
            "#[derive(Clone)]\n"
            f"pub struct {ty.rust_wire_type()} {{{body}\n}}\n"
        )

    def generate_wire2api_func(self, ty: IrType, ir_file: IrFile) -> str:
        body = generator_for(ty, ir_file).wire2api_body()
        if body is None:
            return ""
        api = ty.rust_api_type()
        return (
            f"impl Wire2Api<{api}> for {wire_param_type(ty)} {{\n"
            f"    fn wire2api(self) -> {api} {{\n"
            f"{indent(body, '        ')}\n"
            f"    }}\n"
            f"}}\n"
        )

    def generate_executor(self, ir_file: IrFile) -> list[str]:
        if ir_file.has_executor:
            handler = "/* nothing since executor detected */\n"
        else:
            handler = (
                "support::lazy_static! {\n"
                f"    pub static ref {self.options.handler_name}: "
                "support::DefaultHandler = Default::default();\n"
                "}\n"
            )
        release = self.extern_func_collector.generate(
            "free_WireSyncReturnStruct",
            ["val: support::WireSyncReturnStruct"],
            None,
            "unsafe {\n    let _ = support::vec_from_leak_ptr(val.ptr, val.len);\n}",
        )
        return [handler, release]


def generate(ir_file: IrFile, options: GenerateOptions | None = None) -> GeneratedOutput:
    """Render the wire layer for ``ir_file``.

    Raises:
        DuplicateExportError: Two emitted functions would share a symbol name.
        InternalGeneratorError: An IR type has no registered category generator.
    """
    generator = Generator(options)
    code = generator.generate(ir_file)
    return GeneratedOutput(code, tuple(generator.extern_func_collector.names))
