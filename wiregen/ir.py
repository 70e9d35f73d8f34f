"""Intermediate representation of the exported API surface.

The IR is built once per run by ``wiregen.parser`` and is read-only from
then on. ``IrType`` is a closed union of eight frozen dataclasses; each
exposes, as pure functions of its shape, the domain-facing type name
(``rust_api_type``), the ABI-facing wire type name (``rust_wire_type``),
the pointer modifier used when it crosses the boundary
(``rust_wire_modifier``) and a ``safe_ident`` used to derive unique
function names.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Union


def to_snake_case(name: str) -> str:
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", name)
    return name.lower()


# ===--- Primitive and delegate kinds ---=== #


class PrimitiveKind(enum.Enum):
    U8 = "u8"
    I8 = "i8"
    U16 = "u16"
    I16 = "i16"
    U32 = "u32"
    I32 = "i32"
    U64 = "u64"
    I64 = "i64"
    USIZE = "usize"
    ISIZE = "isize"
    F32 = "f32"
    F64 = "f64"
    BOOL = "bool"
    UNIT = "()"

    @property
    def rust_name(self) -> str:
        return self.value

    @property
    def list_ident(self) -> str:
        """Name stem of the contiguous-buffer list of this primitive."""
        return _PRIMITIVE_LIST_IDENTS[self]


_PRIMITIVE_LIST_IDENTS = {
    PrimitiveKind.U8: "uint_8_list",
    PrimitiveKind.I8: "int_8_list",
    PrimitiveKind.U16: "uint_16_list",
    PrimitiveKind.I16: "int_16_list",
    PrimitiveKind.U32: "uint_32_list",
    PrimitiveKind.I32: "int_32_list",
    PrimitiveKind.U64: "uint_64_list",
    PrimitiveKind.I64: "int_64_list",
    PrimitiveKind.USIZE: "usize_list",
    PrimitiveKind.ISIZE: "isize_list",
    PrimitiveKind.F32: "float_32_list",
    PrimitiveKind.F64: "float_64_list",
    PrimitiveKind.BOOL: "bool_list",
    PrimitiveKind.UNIT: "unit_list",
}

PRIMITIVES_BY_NAME = {kind.rust_name: kind for kind in PrimitiveKind}


class DelegateKind(enum.Enum):
    STRING = "String"
    STRING_LIST = "StringList"
    ZERO_COPY_BUFFER = "ZeroCopyBuffer"
    SYNC_RETURN_VEC_U8 = "SyncReturnVecU8"


# ===--- Type nodes ---=== #


@dataclass(frozen=True)
class IrTypePrimitive:
    kind: PrimitiveKind

    @property
    def safe_ident(self) -> str:
        return "unit" if self.kind is PrimitiveKind.UNIT else self.kind.rust_name

    def rust_api_type(self) -> str:
        return self.kind.rust_name

    def rust_wire_type(self) -> str:
        return self.kind.rust_name

    def rust_wire_modifier(self) -> str:
        return ""

    def children(self, ir_file: "IrFile") -> tuple["IrType", ...]:
        return ()


@dataclass(frozen=True)
class IrTypePrimitiveList:
    primitive: PrimitiveKind

    @property
    def safe_ident(self) -> str:
        return self.primitive.list_ident

    def rust_api_type(self) -> str:
        return f"Vec<{self.primitive.rust_name}>"

    def rust_wire_type(self) -> str:
        return f"wire_{self.safe_ident}"

    def rust_wire_modifier(self) -> str:
        return "*mut "

    def children(self, ir_file: "IrFile") -> tuple["IrType", ...]:
        return (IrTypePrimitive(self.primitive),)


@dataclass(frozen=True)
class IrTypeDelegate:
    """Special-cased shapes that borrow another type's wire representation."""

    kind: DelegateKind
    primitive: PrimitiveKind | None = None

    @property
    def safe_ident(self) -> str:
        if self.kind is DelegateKind.ZERO_COPY_BUFFER:
            return f"ZeroCopyBuffer_{self.get_delegate().safe_ident}"
        return self.kind.value

    def get_delegate(self) -> "IrType":
        if self.kind is DelegateKind.STRING:
            return IrTypePrimitiveList(PrimitiveKind.U8)
        if self.kind is DelegateKind.STRING_LIST:
            return IrTypeDelegate(DelegateKind.STRING)
        if self.kind is DelegateKind.ZERO_COPY_BUFFER:
            assert self.primitive is not None
            return IrTypePrimitiveList(self.primitive)
        return IrTypePrimitiveList(PrimitiveKind.U8)

    def rust_api_type(self) -> str:
        if self.kind is DelegateKind.STRING:
            return "String"
        if self.kind is DelegateKind.STRING_LIST:
            return "Vec<String>"
        if self.kind is DelegateKind.ZERO_COPY_BUFFER:
            return f"ZeroCopyBuffer<{self.get_delegate().rust_api_type()}>"
        return "SyncReturn<Vec<u8>>"

    def rust_wire_type(self) -> str:
        if self.kind is DelegateKind.STRING_LIST:
            return "wire_StringList"
        return self.get_delegate().rust_wire_type()

    def rust_wire_modifier(self) -> str:
        return "*mut "

    def children(self, ir_file: "IrFile") -> tuple["IrType", ...]:
        return (self.get_delegate(),)


@dataclass(frozen=True)
class IrTypeGeneralList:
    inner: "IrType"

    @property
    def safe_ident(self) -> str:
        return f"list_{self.inner.safe_ident}"

    def rust_api_type(self) -> str:
        return f"Vec<{self.inner.rust_api_type()}>"

    def rust_wire_type(self) -> str:
        return f"wire_{self.safe_ident}"

    def rust_wire_modifier(self) -> str:
        return "*mut "

    def children(self, ir_file: "IrFile") -> tuple["IrType", ...]:
        return (self.inner,)


@dataclass(frozen=True)
class IrTypeOptional:
    """Absence is a null pointer; ``inner`` is always pointer-shaped."""

    inner: "IrType"

    @property
    def safe_ident(self) -> str:
        return f"opt_{self.inner.safe_ident}"

    def rust_api_type(self) -> str:
        return f"Option<{self.inner.rust_api_type()}>"

    def rust_wire_type(self) -> str:
        return self.inner.rust_wire_type()

    def rust_wire_modifier(self) -> str:
        return "*mut "

    def children(self, ir_file: "IrFile") -> tuple["IrType", ...]:
        return (self.inner,)


@dataclass(frozen=True)
class IrTypeBoxed:
    """Single-value heap indirection.

    ``exist_in_real_api`` is False for the implicit box wrapped around a
    by-value type inside ``Option``; the domain type is then the inner
    type itself rather than ``Box<T>``.
    """

    inner: "IrType"
    exist_in_real_api: bool = True

    @property
    def safe_ident(self) -> str:
        prefix = "box" if self.exist_in_real_api else "box_autoadd"
        return f"{prefix}_{self.inner.safe_ident}"

    def rust_api_type(self) -> str:
        if self.exist_in_real_api:
            return f"Box<{self.inner.rust_api_type()}>"
        return self.inner.rust_api_type()

    def rust_wire_type(self) -> str:
        return self.inner.rust_wire_type()

    def rust_wire_modifier(self) -> str:
        return "*mut "

    def children(self, ir_file: "IrFile") -> tuple["IrType", ...]:
        return (self.inner,)


@dataclass(frozen=True)
class IrTypeStructRef:
    name: str

    @property
    def safe_ident(self) -> str:
        return to_snake_case(self.name)

    def rust_api_type(self) -> str:
        return self.name

    def rust_wire_type(self) -> str:
        return f"wire_{self.name}"

    def rust_wire_modifier(self) -> str:
        return ""

    def get(self, ir_file: "IrFile") -> "IrStruct":
        return ir_file.struct_pool[self.name]

    def children(self, ir_file: "IrFile") -> tuple["IrType", ...]:
        return tuple(f.ty for f in self.get(ir_file).fields)


@dataclass(frozen=True)
class IrTypeEnumRef:
    """Reference to an enum. ``is_struct`` is False when every variant is unit-like."""

    name: str
    is_struct: bool

    @property
    def safe_ident(self) -> str:
        return to_snake_case(self.name)

    def rust_api_type(self) -> str:
        return self.name

    def rust_wire_type(self) -> str:
        return f"wire_{self.name}" if self.is_struct else "i32"

    def rust_wire_modifier(self) -> str:
        return ""

    def get(self, ir_file: "IrFile") -> "IrEnum":
        return ir_file.enum_pool[self.name]

    def children(self, ir_file: "IrFile") -> tuple["IrType", ...]:
        return tuple(
            f.ty for variant in self.get(ir_file).variants for f in variant.fields
        )


IrType = Union[
    IrTypePrimitive,
    IrTypeDelegate,
    IrTypePrimitiveList,
    IrTypeGeneralList,
    IrTypeOptional,
    IrTypeBoxed,
    IrTypeStructRef,
    IrTypeEnumRef,
]

IR_TYPE_VARIANTS: tuple[type, ...] = IrType.__args__

UNIT = IrTypePrimitive(PrimitiveKind.UNIT)


def is_by_value(ty: IrType) -> bool:
    """True when the type crosses the boundary by value rather than by pointer."""
    return ty.rust_wire_modifier() == ""


def wire_param_type(ty: IrType) -> str:
    return ty.rust_wire_modifier() + ty.rust_wire_type()


# ===--- Declarations ---=== #


@dataclass(frozen=True)
class IrComment:
    text: str

    def rust_style(self) -> str:
        return f"/// {self.text}" if self.text else "///"


@dataclass(frozen=True)
class IrField:
    name: str
    ty: IrType
    comments: tuple[IrComment, ...] = ()


@dataclass(frozen=True)
class IrStruct:
    name: str
    fields: tuple[IrField, ...]
    is_fields_named: bool = True
    comments: tuple[IrComment, ...] = ()


class IrVariantKind(enum.Enum):
    UNIT = "unit"
    TUPLE = "tuple"
    STRUCT = "struct"


@dataclass(frozen=True)
class IrVariant:
    name: str
    kind: IrVariantKind
    fields: tuple[IrField, ...] = ()
    comments: tuple[IrComment, ...] = ()


@dataclass(frozen=True)
class IrEnum:
    name: str
    variants: tuple[IrVariant, ...]
    comments: tuple[IrComment, ...] = ()

    @property
    def is_struct(self) -> bool:
        return any(v.kind is not IrVariantKind.UNIT for v in self.variants)


class IrFuncMode(enum.Enum):
    NORMAL = "Normal"
    SYNC = "Sync"
    STREAM = "Stream"

    @property
    def has_port_argument(self) -> bool:
        return self is not IrFuncMode.SYNC

    @property
    def ffi_call_mode(self) -> str:
        return self.value


@dataclass(frozen=True)
class IrFunc:
    name: str
    inputs: tuple[IrField, ...]
    output: IrType
    fallible: bool
    mode: IrFuncMode
    comments: tuple[IrComment, ...] = ()

    def wire_func_name(self) -> str:
        return f"wire_{self.name}"


@dataclass(frozen=True)
class IrFile:
    """The whole IR: functions plus the deduplicated struct and enum pools."""

    funcs: tuple[IrFunc, ...]
    struct_pool: dict[str, IrStruct] = field(default_factory=dict)
    enum_pool: dict[str, IrEnum] = field(default_factory=dict)
    has_executor: bool = False
    type_paths: dict[str, str] = field(default_factory=dict)

    def visit_types(
        self,
        f: Callable[[IrType], bool],
        include_func_inputs: bool,
        include_func_outputs: bool,
    ) -> None:
        """Depth-first walk over every reachable type.

        ``f`` returns True when the type was already seen, which stops the
        walk from descending into its children again.
        """
        for func in self.funcs:
            if include_func_inputs:
                for inp in func.inputs:
                    self._visit(inp.ty, f)
            if include_func_outputs:
                self._visit(func.output, f)

    def _visit(self, ty: IrType, f: Callable[[IrType], bool]) -> None:
        if f(ty):
            return
        for child in ty.children(self):
            self._visit(child, f)

    def distinct_types(
        self, include_func_inputs: bool, include_func_outputs: bool
    ) -> list[IrType]:
        seen: dict[IrType, None] = {}

        def _record(ty: IrType) -> bool:
            if ty in seen:
                return True
            seen[ty] = None
            return False

        self.visit_types(_record, include_func_inputs, include_func_outputs)
        return list(seen)
