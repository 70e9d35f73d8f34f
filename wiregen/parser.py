"""Build the IR from parsed Rust declarations.

``TypeResolver`` turns type signature strings into ``IrType`` nodes and
materializes the struct and enum pools on first reference.
``FunctionParser`` applies the calling-convention rules to each exported
function. ``parse`` is the entry point used by the CLI.
"""

from __future__ import annotations

import re

from .errors import (
    DeclarationNotFoundError,
    UnsupportedSignatureError,
    UnsupportedTypeError,
)
from .generator import HANDLER_NAME
from .generics import CAPTURE_RESULT, CAPTURE_STREAM_SINK, parse_generic, strip_whitespace
from .ir import (
    PRIMITIVES_BY_NAME,
    UNIT,
    DelegateKind,
    IrComment,
    IrEnum,
    IrField,
    IrFile,
    IrFunc,
    IrFuncMode,
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
    PrimitiveKind,
    is_by_value,
)
from .source_graph import DeclarationTables
from .syntax import FieldDecl, FnDecl, SourceFile, StructKind, extract_public_functions

_PATH_RE = re.compile(r"^(?:::)?[A-Za-z_][A-Za-z0-9_]*(?:::[A-Za-z_][A-Za-z0-9_]*)*$")

_VARIANT_KINDS = {
    StructKind.UNIT: IrVariantKind.UNIT,
    StructKind.TUPLE: IrVariantKind.TUPLE,
    StructKind.NAMED: IrVariantKind.STRUCT,
}


def extract_comments(docs) -> tuple[IrComment, ...]:
    return tuple(IrComment(line) for line in docs)


# ===--- Type resolution ---=== #


class TypeResolver:
    """Resolves signatures against the declaration tables.

    Each struct or enum is resolved once. Its name is reserved in the pool
    before its fields are resolved, so a self-referential declaration ends
    at a reference instead of recursing forever.
    """

    def __init__(self, tables: DeclarationTables):
        self.tables = tables
        self.struct_pool: dict[str, IrStruct | None] = {}
        self.enum_pool: dict[str, IrEnum | None] = {}

    def resolve(self, signature: str) -> IrType:
        sig = strip_whitespace(signature)
        if sig in PRIMITIVES_BY_NAME:
            return IrTypePrimitive(PRIMITIVES_BY_NAME[sig])
        if sig == "String":
            return IrTypeDelegate(DelegateKind.STRING)

        generic = parse_generic(sig)
        if generic is not None:
            return self._resolve_generic(sig, generic.name, generic.args)

        if _PATH_RE.match(sig):
            last = sig.rsplit("::", 1)[-1]
            if last != sig and (last in PRIMITIVES_BY_NAME or last == "String"):
                return self.resolve(last)
            return self.resolve_declaration(last)
        raise UnsupportedTypeError(sig)

    def _resolve_generic(self, sig: str, name: str, args: tuple[str, ...]) -> IrType:
        if len(args) != 1:
            raise UnsupportedTypeError(sig, f"`{name}` must take exactly one type argument")
        arg = args[0]

        if name == "Vec":
            inner = self.resolve(arg)
            if inner == IrTypeDelegate(DelegateKind.STRING):
                return IrTypeDelegate(DelegateKind.STRING_LIST)
            if isinstance(inner, IrTypePrimitive):
                if inner.kind is PrimitiveKind.UNIT:
                    raise UnsupportedTypeError(sig, "list of unit")
                return IrTypePrimitiveList(inner.kind)
            return IrTypeGeneralList(inner)

        if name == "ZeroCopyBuffer":
            inner = self.resolve(arg)
            if isinstance(inner, IrTypePrimitiveList):
                return IrTypeDelegate(DelegateKind.ZERO_COPY_BUFFER, inner.primitive)
            raise UnsupportedTypeError(sig, "ZeroCopyBuffer only wraps Vec of a primitive")

        if name == "SyncReturn":
            if self.resolve(arg) == IrTypePrimitiveList(PrimitiveKind.U8):
                return IrTypeDelegate(DelegateKind.SYNC_RETURN_VEC_U8)
            raise UnsupportedTypeError(sig, "SyncReturn only wraps Vec<u8>")

        if name == "Box":
            inner = self.resolve(arg)
            if not is_by_value(inner) or inner == UNIT:
                raise UnsupportedTypeError(sig, "Box of a pointer-shaped type")
            return IrTypeBoxed(inner, exist_in_real_api=True)

        if name == "Option":
            inner = self.resolve(arg)
            if isinstance(inner, IrTypeOptional):
                raise UnsupportedTypeError(sig, "nested Option")
            if inner == UNIT:
                raise UnsupportedTypeError(sig, "Option of unit")
            if is_by_value(inner):
                inner = IrTypeBoxed(inner, exist_in_real_api=False)
            return IrTypeOptional(inner)

        raise UnsupportedTypeError(sig)

    def resolve_declaration(self, name: str) -> IrType:
        """Look ``name`` up as an enum first, then as a struct."""
        enum_decl = self.tables.enums.get(name)
        if enum_decl is not None:
            is_struct = any(v.kind is not StructKind.UNIT for v in enum_decl.variants)
            if name not in self.enum_pool:
                self.enum_pool[name] = None
                variants = tuple(
                    IrVariant(
                        name=v.name,
                        kind=_VARIANT_KINDS[v.kind],
                        fields=self._fields(v.fields),
                        comments=extract_comments(v.docs),
                    )
                    for v in enum_decl.variants
                )
                self.enum_pool[name] = IrEnum(
                    name, variants, comments=extract_comments(enum_decl.docs)
                )
            return IrTypeEnumRef(name, is_struct)

        struct_decl = self.tables.structs.get(name)
        if struct_decl is not None:
            if name not in self.struct_pool:
                self.struct_pool[name] = None
                self.struct_pool[name] = IrStruct(
                    name=name,
                    fields=self._fields(struct_decl.fields),
                    is_fields_named=struct_decl.kind is not StructKind.TUPLE,
                    comments=extract_comments(struct_decl.docs),
                )
            return IrTypeStructRef(name)

        raise DeclarationNotFoundError(name)

    def _fields(self, fields: tuple[FieldDecl, ...]) -> tuple[IrField, ...]:
        return tuple(
            IrField(f.name, self.resolve(f.type_sig), extract_comments(f.docs))
            for f in fields
        )


# ===--- Function signatures ---=== #


class FunctionParser:
    def __init__(self, resolver: TypeResolver):
        self.resolver = resolver

    def parse_function(self, func: FnDecl) -> IrFunc:
        inputs: list[IrField] = []
        output: IrType | None = None
        mode: IrFuncMode | None = None
        fallible = True

        for index, param in enumerate(func.params):
            if not param.pattern.is_simple:
                raise UnsupportedSignatureError(
                    func.name,
                    f"parameter `{param.type_sig}` is bound by a "
                    f"{param.pattern.kind.value} pattern",
                )
            sink_inner = CAPTURE_STREAM_SINK.captures(param.type_sig)
            if sink_inner is not None:
                # The sink is always passed as the first argument of the call.
                if mode is IrFuncMode.STREAM:
                    raise UnsupportedSignatureError(
                        func.name, "more than one StreamSink parameter"
                    )
                if index != 0:
                    raise UnsupportedSignatureError(
                        func.name, "the StreamSink parameter must come first"
                    )
                output = self.resolver.resolve(sink_inner)
                mode = IrFuncMode.STREAM
                continue
            inputs.append(
                IrField(
                    name=param.pattern.name,
                    ty=self.resolver.resolve(param.type_sig),
                    comments=extract_comments(param.docs),
                )
            )

        if output is None:
            if func.return_type is None:
                fallible = False
                output = UNIT
            else:
                inner = CAPTURE_RESULT.captures(func.return_type)
                if inner is not None:
                    output = self.resolver.resolve(inner)
                else:
                    fallible = False
                    output = self.resolver.resolve(func.return_type)
            if output == IrTypeDelegate(DelegateKind.SYNC_RETURN_VEC_U8):
                mode = IrFuncMode.SYNC
            else:
                mode = IrFuncMode.NORMAL

        return IrFunc(
            name=func.name,
            inputs=tuple(inputs),
            output=output,
            fallible=fallible,
            mode=mode,
            comments=extract_comments(func.docs),
        )


def parse(
    source_text: str,
    source_file: SourceFile,
    tables: DeclarationTables,
    handler_name: str = HANDLER_NAME,
) -> IrFile:
    """Build the IR for every exported function of ``source_file``.

    ``has_executor`` is set when ``handler_name`` occurs anywhere in the
    raw text, comments and string literals included.
    """
    resolver = TypeResolver(tables)
    func_parser = FunctionParser(resolver)
    funcs = tuple(func_parser.parse_function(f) for f in extract_public_functions(source_file))

    struct_pool = {name: s for name, s in resolver.struct_pool.items() if s is not None}
    enum_pool = {name: e for name, e in resolver.enum_pool.items() if e is not None}
    type_paths = {
        name: tables.module_paths[name]
        for name in [*struct_pool, *enum_pool]
        if name in tables.module_paths
    }
    return IrFile(
        funcs=funcs,
        struct_pool=struct_pool,
        enum_pool=enum_pool,
        has_executor=handler_name in source_text,
        type_paths=type_paths,
    )
