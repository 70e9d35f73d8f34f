"""One code generator per IrType category.

Every generator answers the same questions about its type: the wire
struct layout (if it has one), exported allocation functions, the
``Wire2Api`` conversion body, the null-default value and
``NewWithNullPtr`` impl, the ``IntoDart`` impl and any ``use`` line the
output file needs. ``TYPE_GENERATORS`` maps each IrType class to its
generator; ``generator_for`` is the only lookup the engine performs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import InternalGeneratorError
from ..ir import (
    IR_TYPE_VARIANTS,
    DelegateKind,
    IrEnum,
    IrFile,
    IrStruct,
    IrType,
    IrTypeBoxed,
    IrTypeDelegate,
    IrTypeEnumRef,
    IrTypeGeneralList,
    IrTypeOptional,
    IrTypePrimitive,
    IrTypePrimitiveList,
    IrTypeStructRef,
    IrVariant,
    IrVariantKind,
    wire_param_type,
)

if TYPE_CHECKING:
    from . import ExternFuncCollector

NULL_PTR = "core::ptr::null_mut()"


def rust_ident(name: str) -> str:
    """Field or parameter name usable as a suffix, i.e. without a raw ``r#`` prefix."""
    return name[2:] if name.startswith("r#") else name


def null_value(ty: IrType, ir_file: IrFile) -> str:
    return generator_for(ty, ir_file).wire_null_value()


class TypeGenerator:
    """Defaults shared by every category: no struct, no allocator, no impls."""

    def __init__(self, ty: IrType, ir_file: IrFile):
        self.ty = ty
        self.ir_file = ir_file

    def wire_struct_fields(self) -> list[str] | None:
        return None

    def wire_enum(self) -> str | None:
        return None

    def allocate_funcs(self, collector: "ExternFuncCollector") -> str:
        return ""

    def wire2api_body(self) -> str | None:
        return None

    def wire_null_value(self) -> str:
        return NULL_PTR

    def new_with_nullptr(self) -> str:
        return ""

    def impl_intodart(self) -> str:
        return ""

    def imports(self, api_module: str) -> str | None:
        return None


def _list_wire2api_body() -> str:
    return (
        "let vec = unsafe {\n"
        "    let wrap = support::box_from_leak_ptr(self);\n"
        "    support::vec_from_leak_ptr(wrap.ptr, wrap.len)\n"
        "};\n"
        "vec.into_iter().map(Wire2Api::wire2api).collect()"
    )


def _list_allocate_func(
    collector: "ExternFuncCollector", list_ty: IrType, element_null: str
) -> str:
    wire = list_ty.rust_wire_type()
    return collector.generate(
        f"new_{list_ty.safe_ident}",
        ["len: i32"],
        wire_param_type(list_ty),
        f"let ans = {wire} {{\n"
        f"    ptr: support::new_leak_vec_ptr({element_null}, len),\n"
        f"    len,\n"
        f"}};\n"
        f"support::new_leak_box_ptr(ans)",
    )


# ===--- Primitive ---=== #


class PrimitiveGenerator(TypeGenerator):
    ty: IrTypePrimitive

    def wire2api_body(self) -> str | None:
        return "self"

    def wire_null_value(self) -> str:
        return "Default::default()"


class PrimitiveListGenerator(TypeGenerator):
    ty: IrTypePrimitiveList

    def wire_struct_fields(self) -> list[str] | None:
        return [f"ptr: *mut {self.ty.primitive.rust_name}", "len: i32"]

    def allocate_funcs(self, collector: "ExternFuncCollector") -> str:
        return _list_allocate_func(collector, self.ty, "Default::default()")

    def wire2api_body(self) -> str | None:
        return (
            "unsafe {\n"
            "    let wrap = support::box_from_leak_ptr(self);\n"
            "    support::vec_from_leak_ptr(wrap.ptr, wrap.len)\n"
            "}"
        )


# ===--- Delegate ---=== #


class DelegateGenerator(TypeGenerator):
    ty: IrTypeDelegate

    def wire_struct_fields(self) -> list[str] | None:
        if self.ty.kind is DelegateKind.STRING_LIST:
            return ["ptr: *mut *mut wire_uint_8_list", "len: i32"]
        return None

    def allocate_funcs(self, collector: "ExternFuncCollector") -> str:
        if self.ty.kind is DelegateKind.STRING_LIST:
            return _list_allocate_func(collector, self.ty, NULL_PTR)
        return ""

    def wire2api_body(self) -> str | None:
        kind = self.ty.kind
        if kind is DelegateKind.STRING:
            return (
                "let vec: Vec<u8> = self.wire2api();\n"
                "String::from_utf8_lossy(&vec).into_owned()"
            )
        if kind is DelegateKind.STRING_LIST:
            return _list_wire2api_body()
        if kind is DelegateKind.ZERO_COPY_BUFFER:
            return "ZeroCopyBuffer(self.wire2api())"
        return "SyncReturn(self.wire2api())"


# ===--- General list ---=== #


class GeneralListGenerator(TypeGenerator):
    ty: IrTypeGeneralList

    def wire_struct_fields(self) -> list[str] | None:
        return [f"ptr: *mut {wire_param_type(self.ty.inner)}", "len: i32"]

    def allocate_funcs(self, collector: "ExternFuncCollector") -> str:
        return _list_allocate_func(
            collector, self.ty, null_value(self.ty.inner, self.ir_file)
        )

    def wire2api_body(self) -> str | None:
        return _list_wire2api_body()


# ===--- Optional and boxed ---=== #


class OptionalGenerator(TypeGenerator):
    """Nothing of its own: the blanket ``Option`` impl maps null to ``None``."""

    ty: IrTypeOptional


class BoxedGenerator(TypeGenerator):
    ty: IrTypeBoxed

    def allocate_funcs(self, collector: "ExternFuncCollector") -> str:
        inner = self.ty.inner
        name = f"new_{self.ty.safe_ident}"
        ret = wire_param_type(self.ty)
        if isinstance(inner, IrTypePrimitive) or (
            isinstance(inner, IrTypeEnumRef) and not inner.is_struct
        ):
            return collector.generate(
                name,
                [f"value: {inner.rust_wire_type()}"],
                ret,
                "support::new_leak_box_ptr(value)",
            )
        return collector.generate(
            name,
            [],
            ret,
            f"support::new_leak_box_ptr({inner.rust_wire_type()}::new_with_null_ptr())",
        )

    def wire2api_body(self) -> str | None:
        return (
            "let wrap = unsafe { support::box_from_leak_ptr(self) };\n"
            f"Wire2Api::<{self.ty.inner.rust_api_type()}>::wire2api(*wrap).into()"
        )


# ===--- Struct ---=== #


class StructRefGenerator(TypeGenerator):
    ty: IrTypeStructRef

    @property
    def struct(self) -> IrStruct:
        return self.ty.get(self.ir_file)

    def wire_struct_fields(self) -> list[str] | None:
        return [f"{f.name}: {wire_param_type(f.ty)}" for f in self.struct.fields]

    def wire2api_body(self) -> str | None:
        struct = self.struct
        if not struct.is_fields_named:
            args = ", ".join(f"self.{f.name}.wire2api()" for f in struct.fields)
            return f"{struct.name}({args})"
        fields = "".join(f"\n    {f.name}: self.{f.name}.wire2api()," for f in struct.fields)
        return f"{struct.name} {{{fields}\n}}"

    def wire_null_value(self) -> str:
        return f"{self.ty.rust_wire_type()}::new_with_null_ptr()"

    def new_with_nullptr(self) -> str:
        fields = "".join(
            f"\n            {f.name}: {null_value(f.ty, self.ir_file)},"
            for f in self.struct.fields
        )
        return (
            f"impl NewWithNullPtr for {self.ty.rust_wire_type()} {{\n"
            f"    fn new_with_null_ptr() -> Self {{\n"
            f"        Self {{{fields}\n"
            f"        }}\n"
            f"    }}\n"
            f"}}\n"
        )

    def impl_intodart(self) -> str:
        struct = self.struct
        if struct.is_fields_named:
            accessors = [f"self.{f.name}" for f in struct.fields]
        else:
            accessors = [f"self.{i}" for i in range(len(struct.fields))]
        body = "".join(f"\n            {a}.into_dart()," for a in accessors)
        return _intodart_impl(struct.name, f"vec![{body}\n        ]\n        .into_dart()")

    def imports(self, api_module: str) -> str | None:
        return _import_line(self.ty.name, self.ir_file, api_module)


def _intodart_impl(name: str, body: str) -> str:
    return (
        f"impl support::IntoDart for {name} {{\n"
        f"    fn into_dart(self) -> support::DartCObject {{\n"
        f"        {body}\n"
        f"    }}\n"
        f"}}\n"
        f"impl support::IntoDartExceptPrimitive for {name} {{}}\n"
    )


def _import_line(name: str, ir_file: IrFile, api_module: str) -> str | None:
    module_path = ir_file.type_paths.get(name)
    if module_path is None or module_path == f"crate::{api_module}":
        return None
    return f"use {module_path}::{name};"


# ===--- Enum ---=== #


def _variant_pattern(enu_name: str, variant: IrVariant) -> str:
    names = ", ".join(f.name for f in variant.fields)
    if variant.kind is IrVariantKind.UNIT:
        return f"{enu_name}::{variant.name}"
    if variant.kind is IrVariantKind.TUPLE:
        return f"{enu_name}::{variant.name}({names})"
    return f"{enu_name}::{variant.name} {{ {names} }}"


class EnumRefGenerator(TypeGenerator):
    ty: IrTypeEnumRef

    @property
    def enu(self) -> IrEnum:
        return self.ty.get(self.ir_file)

    def kind_union(self) -> str:
        return f"{self.enu.name}Kind"

    def variant_wire_struct(self, variant: IrVariant) -> str:
        return f"wire_{self.enu.name}_{variant.name}"

    def _payload_variants(self) -> list[IrVariant]:
        return [v for v in self.enu.variants if v.kind is not IrVariantKind.UNIT]

    def wire_struct_fields(self) -> list[str] | None:
        if not self.ty.is_struct:
            return None
        return ["tag: i32", f"kind: *mut {self.kind_union()}"]

    def wire_enum(self) -> str | None:
        if not self.ty.is_struct:
            return None
        union_fields = "".join(
            f"\n    {v.name}: *mut {self.variant_wire_struct(v)},"
            for v in self._payload_variants()
        )
        parts = [f"#[repr(C)]\npub union {self.kind_union()} {{{union_fields}\n}}\n"]
        for variant in self._payload_variants():
            fields = "".join(
                f"\n    {f.name}: {wire_param_type(f.ty)}," for f in variant.fields
            )
            parts.append(
                "#[repr(C)]\n"
                "#[derive(Clone)]\n"
                f"pub struct {self.variant_wire_struct(variant)} {{{fields}\n}}\n"
            )
        return "\n".join(parts)

    def allocate_funcs(self, collector: "ExternFuncCollector") -> str:
        if not self.ty.is_struct:
            return ""
        funcs = []
        for variant in self._payload_variants():
            fields = "".join(
                f"\n        {f.name}: {null_value(f.ty, self.ir_file)},"
                for f in variant.fields
            )
            funcs.append(
                collector.generate(
                    f"inflate_{self.enu.name}_{variant.name}",
                    [],
                    f"*mut {self.kind_union()}",
                    f"support::new_leak_box_ptr({self.kind_union()} {{\n"
                    f"    {variant.name}: support::new_leak_box_ptr("
                    f"{self.variant_wire_struct(variant)} {{{fields}\n    }}),\n"
                    f"}})",
                )
            )
        return "\n".join(funcs)

    def wire2api_body(self) -> str | None:
        name = self.enu.name
        if not self.ty.is_struct:
            arms = "".join(
                f"\n    {i} => {name}::{v.name},"
                for i, v in enumerate(self.enu.variants)
            )
            return (
                f"match self {{{arms}\n"
                f'    _ => unreachable!("Invalid variant for {name}: {{}}", self),\n'
                f"}}"
            )
        arms = []
        for i, variant in enumerate(self.enu.variants):
            if variant.kind is IrVariantKind.UNIT:
                arms.append(f"\n    {i} => {name}::{variant.name},")
                continue
            converted = [f"ans.{f.name}.wire2api()" for f in variant.fields]
            if variant.kind is IrVariantKind.TUPLE:
                ctor = f"{name}::{variant.name}({', '.join(converted)})"
            else:
                inits = ", ".join(
                    f"{f.name}: {c}" for f, c in zip(variant.fields, converted)
                )
                ctor = f"{name}::{variant.name} {{ {inits} }}"
            arms.append(
                f"\n    {i} => unsafe {{\n"
                f"        let ans = support::box_from_leak_ptr(self.kind);\n"
                f"        let ans = support::box_from_leak_ptr(ans.{variant.name});\n"
                f"        {ctor}\n"
                f"    }},"
            )
        return (
            f"match self.tag {{{''.join(arms)}\n"
            f"    _ => unreachable!(),\n"
            f"}}"
        )

    def wire_null_value(self) -> str:
        if not self.ty.is_struct:
            return "Default::default()"
        return f"{self.ty.rust_wire_type()}::new_with_null_ptr()"

    def new_with_nullptr(self) -> str:
        if not self.ty.is_struct:
            return ""
        return (
            f"impl NewWithNullPtr for {self.ty.rust_wire_type()} {{\n"
            f"    fn new_with_null_ptr() -> Self {{\n"
            f"        Self {{\n"
            f"            tag: -1,\n"
            f"            kind: {NULL_PTR},\n"
            f"        }}\n"
            f"    }}\n"
            f"}}\n"
        )

    def impl_intodart(self) -> str:
        name = self.enu.name
        if not self.ty.is_struct:
            arms = "".join(
                f"\n            Self::{v.name} => {i},"
                for i, v in enumerate(self.enu.variants)
            )
            return _intodart_impl(
                name, f"match self {{{arms}\n        }}\n        .into_dart()"
            )
        arms = []
        for i, variant in enumerate(self.enu.variants):
            values = [f"{i}.into_dart()"] + [
                f"{f.name}.into_dart()" for f in variant.fields
            ]
            pattern = _variant_pattern("Self", variant)
            arms.append(f"\n            {pattern} => vec![{', '.join(values)}],")
        return _intodart_impl(
            name, f"match self {{{''.join(arms)}\n        }}\n        .into_dart()"
        )

    def imports(self, api_module: str) -> str | None:
        return _import_line(self.ty.name, self.ir_file, api_module)


# ===--- Dispatch ---=== #


TYPE_GENERATORS: dict[type, type[TypeGenerator]] = {
    IrTypePrimitive: PrimitiveGenerator,
    IrTypeDelegate: DelegateGenerator,
    IrTypePrimitiveList: PrimitiveListGenerator,
    IrTypeGeneralList: GeneralListGenerator,
    IrTypeOptional: OptionalGenerator,
    IrTypeBoxed: BoxedGenerator,
    IrTypeStructRef: StructRefGenerator,
    IrTypeEnumRef: EnumRefGenerator,
}


def generator_for(ty: IrType, ir_file: IrFile) -> TypeGenerator:
    cls = TYPE_GENERATORS.get(type(ty))
    if cls is None:
        raise InternalGeneratorError(
            f"No code generator registered for IR type {type(ty).__name__}: {ty!r}"
        )
    return cls(ty, ir_file)


def missing_generators() -> list[type]:
    """IrType variants with no registered generator. Empty when dispatch is exhaustive."""
    return [variant for variant in IR_TYPE_VARIANTS if variant not in TYPE_GENERATORS]
