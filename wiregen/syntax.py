"""Rust source front end.

Parses one Rust source file with the lark grammar in ``rust.lark`` and
turns the parse tree into the plain declaration dataclasses the rest of
wiregen works with. Only item-level structure is kept: function
signatures, structs, enums and modules. Everything else is discarded.

Types are rendered to canonical signature strings with no insignificant
whitespace, e.g. ``Vec<Option<Box<Node>>>``.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, replace
from pathlib import Path

from lark import Lark, Token, Transformer, UnexpectedInput

from .errors import SourceParseError

GRAMMAR_FILE = "rust.lark"


# ===--- Declarations ---=== #


class Visibility(enum.Enum):
    PRIVATE = "private"
    PUBLIC = "pub"
    CRATE = "pub(crate)"
    RESTRICTED = "pub(restricted)"

    @property
    def is_exported(self) -> bool:
        return self is Visibility.PUBLIC

    @property
    def is_crate_visible(self) -> bool:
        return self is not Visibility.PRIVATE


class PatternKind(enum.Enum):
    IDENT = "ident"
    TUPLE = "tuple"
    STRUCT = "struct"
    REFERENCE = "reference"


@dataclass(frozen=True)
class Pattern:
    kind: PatternKind
    name: str | None = None

    @property
    def is_simple(self) -> bool:
        return self.kind is PatternKind.IDENT and self.name != "_"


@dataclass(frozen=True)
class Attribute:
    """One outer attribute. ``doc`` is set for doc comments and ``#[doc]``."""

    text: str
    doc: str | None = None


@dataclass(frozen=True)
class Param:
    pattern: Pattern
    type_sig: str
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class FnDecl:
    name: str
    params: tuple[Param, ...]
    return_type: str | None
    visibility: Visibility = Visibility.PRIVATE
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class FieldDecl:
    name: str
    type_sig: str
    docs: tuple[str, ...] = ()


class StructKind(enum.Enum):
    NAMED = "named"
    TUPLE = "tuple"
    UNIT = "unit"


@dataclass(frozen=True)
class StructDecl:
    name: str
    kind: StructKind
    fields: tuple[FieldDecl, ...]
    visibility: Visibility = Visibility.PRIVATE
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class VariantDecl:
    name: str
    kind: StructKind
    fields: tuple[FieldDecl, ...]
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class EnumDecl:
    name: str
    variants: tuple[VariantDecl, ...]
    visibility: Visibility = Visibility.PRIVATE
    docs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ModDecl:
    """A ``mod`` item. ``items`` is None for an out-of-line ``mod name;``."""

    name: str
    items: tuple[object, ...] | None
    visibility: Visibility = Visibility.PRIVATE
    path_attr: str | None = None


@dataclass(frozen=True)
class SourceFile:
    items: tuple[object, ...]
    path: Path | None = None

    @property
    def functions(self) -> list[FnDecl]:
        return [item for item in self.items if isinstance(item, FnDecl)]

    @property
    def structs(self) -> list[StructDecl]:
        return [item for item in self.items if isinstance(item, StructDecl)]

    @property
    def enums(self) -> list[EnumDecl]:
        return [item for item in self.items if isinstance(item, EnumDecl)]

    @property
    def modules(self) -> list[ModDecl]:
        return [item for item in self.items if isinstance(item, ModDecl)]


@dataclass(frozen=True)
class _ReturnType:
    type_sig: str


# ===--- Parse tree transformer ---=== #

_DOC_ATTR_RE = re.compile(r'^\s*doc\s*=\s*"((?:[^"\\]|\\.)*)"\s*$', re.DOTALL)
_PATH_ATTR_RE = re.compile(r'^\s*path\s*=\s*"((?:[^"\\]|\\.)*)"\s*$', re.DOTALL)


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", lambda m: {"n": "\n", "t": "\t"}.get(m[1], m[1]), text)


def _tokens(children: list, token_type: str) -> list[Token]:
    return [c for c in children if isinstance(c, Token) and c.type == token_type]


def _split_item_prefix(
    children: list,
) -> tuple[list[Attribute], Visibility, list]:
    attrs = [c for c in children if isinstance(c, Attribute)]
    vis = next(
        (c for c in children if isinstance(c, Visibility)), Visibility.PRIVATE
    )
    rest = [c for c in children if not isinstance(c, (Attribute, Visibility))]
    return attrs, vis, rest


def _docs(attrs: list[Attribute]) -> tuple[str, ...]:
    return tuple(a.doc for a in attrs if a.doc is not None)


def _path_attr(attrs: list[Attribute]) -> str | None:
    for attr in attrs:
        match = _PATH_ATTR_RE.match(attr.text)
        if match:
            return _unescape(match[1])
    return None


def _number_fields(fields: list[FieldDecl]) -> tuple[FieldDecl, ...]:
    return tuple(
        replace(f, name=f"field{i}") if not f.name else f for i, f in enumerate(fields)
    )


class SyntaxBuilder(Transformer):
    """Builds declaration dataclasses from a ``rust.lark`` parse tree."""

    # --- token trees

    def brace_group(self, children):
        return "{" + "".join(str(c) for c in children) + "}"

    def paren_group(self, children):
        return "(" + "".join(str(c) for c in children) + ")"

    def bracket_group(self, children):
        return "[" + "".join(str(c) for c in children) + "]"

    # --- attributes and visibility

    def doc_attr(self, children):
        text = str(children[0])[3:]
        if text.startswith(" "):
            text = text[1:]
        return Attribute(text=str(children[0]), doc=text.rstrip("\r"))

    def meta_attr(self, children):
        text = "".join(str(c) for c in children)
        match = _DOC_ATTR_RE.match(text)
        doc = _unescape(match[1]) if match else None
        return Attribute(text=text, doc=doc)

    def inner_attr(self, children):
        return None

    def vis_pub(self, children):
        return Visibility.PUBLIC

    def vis_restricted(self, children):
        if _tokens(children, "CRATE"):
            return Visibility.CRATE
        return Visibility.RESTRICTED

    def path_ident(self, children):
        return str(children[0])

    def path_expr(self, children):
        return "::".join(children)

    # --- types

    def path_type(self, children):
        return "::".join(children)

    def type_seg(self, children):
        name = children[0]
        if len(children) > 1:
            return f"{name}<{','.join(children[1])}>"
        return name

    def fn_sugar_seg(self, children):
        name = children[0]
        args = next((c for c in children[1:] if isinstance(c, list)), [])
        ret = next((c for c in children if isinstance(c, _ReturnType)), None)
        text = f"{name}({','.join(args)})"
        if ret is not None:
            text += f"->{ret.type_sig}"
        return text

    def generic_args(self, children):
        return [str(c) for c in children]

    def generic_arg(self, children):
        return str(children[0])

    def assoc_arg(self, children):
        return f"{children[0]}={children[1]}"

    def type_list(self, children):
        return list(children)

    def ref_type(self, children):
        lifetime = _tokens(children, "LIFETIME")
        mut = _tokens(children, "MUT")
        prefix = "&"
        if lifetime:
            prefix += f"{lifetime[0]} "
        if mut:
            prefix += "mut "
        return prefix + children[-1]

    def ptr_type(self, children):
        return f"*{children[0]} {children[1]}"

    def tuple_type(self, children):
        items = children[0] if children else []
        return "(" + ",".join(items) + ")"

    def slice_type(self, children):
        return f"[{children[0]}]"

    def array_type(self, children):
        length = "".join(str(c) for c in children[1:]).strip()
        return f"[{children[0]};{length}]"

    def dyn_type(self, children):
        return f"dyn {children[0]}"

    def impl_type(self, children):
        return f"impl {children[0]}"

    def never_type(self, children):
        return "!"

    def fn_ptr_type(self, children):
        args = next((c for c in children if isinstance(c, list)), [])
        ret = next((c for c in children if isinstance(c, _ReturnType)), None)
        text = f"fn({','.join(args)})"
        if ret is not None:
            text += f"->{ret.type_sig}"
        return text

    def bounds(self, children):
        return "+".join(str(c) for c in children)

    def bound(self, children):
        return str(children[0])

    def maybe_bound(self, children):
        return f"?{children[0]}"

    def ret_type(self, children):
        return _ReturnType(children[0])

    # --- generics and where clauses carry nothing the generator needs

    def generic_params(self, children):
        return None

    def generic_param(self, children):
        return None

    def where_clause(self, children):
        return None

    def where_pred(self, children):
        return None

    # --- functions

    def ident_pat(self, children):
        return Pattern(PatternKind.IDENT, str(_tokens(children, "NAME")[0]))

    def tuple_pat(self, children):
        return Pattern(PatternKind.TUPLE)

    def struct_pat(self, children):
        return Pattern(PatternKind.STRUCT, str(children[0]))

    def ref_pat(self, children):
        return Pattern(PatternKind.REFERENCE)

    def param(self, children):
        attrs, _vis, rest = _split_item_prefix(children)
        pattern, type_sig = rest
        return Param(pattern=pattern, type_sig=type_sig, docs=_docs(attrs))

    def fn_params(self, children):
        return list(children)

    def fn_decl(self, children):
        name = str(_tokens(children, "NAME")[0])
        params = next((c for c in children if isinstance(c, list)), [])
        ret = next((c for c in children if isinstance(c, _ReturnType)), None)
        return FnDecl(
            name=name,
            params=tuple(params),
            return_type=ret.type_sig if ret is not None else None,
        )

    # --- structs and enums

    def named_field(self, children):
        attrs, _vis, rest = _split_item_prefix(children)
        name, type_sig = rest
        return FieldDecl(name=str(name), type_sig=type_sig, docs=_docs(attrs))

    def tuple_field(self, children):
        attrs, _vis, rest = _split_item_prefix(children)
        return FieldDecl(name="", type_sig=rest[0], docs=_docs(attrs))

    def named_fields(self, children):
        return list(children)

    def tuple_fields(self, children):
        return list(children)

    def struct_named(self, children):
        fields = next((c for c in children if isinstance(c, list)), [])
        return StructDecl(str(children[0]), StructKind.NAMED, tuple(fields))

    def struct_tuple(self, children):
        fields = next((c for c in children if isinstance(c, list)), [])
        return StructDecl(str(children[0]), StructKind.TUPLE, _number_fields(fields))

    def struct_unit(self, children):
        return StructDecl(str(children[0]), StructKind.UNIT, ())

    def variant_named(self, children):
        return StructKind.NAMED, tuple(children[0]) if children else ()

    def variant_tuple(self, children):
        return StructKind.TUPLE, _number_fields(children[0]) if children else ()

    def discriminant(self, children):
        return None

    def variant(self, children):
        attrs, _vis, rest = _split_item_prefix(children)
        name = str(rest[0])
        kind, fields = StructKind.UNIT, ()
        data = next((c for c in rest[1:] if isinstance(c, tuple)), None)
        if data is not None:
            kind, fields = data
        return VariantDecl(name=name, kind=kind, fields=fields, docs=_docs(attrs))

    def enum_decl(self, children):
        variants = [c for c in children if isinstance(c, VariantDecl)]
        return EnumDecl(str(children[0]), tuple(variants))

    # --- modules

    def mod_file(self, children):
        return ModDecl(name=str(children[0]), items=None)

    def mod_inline(self, children):
        items = tuple(c for c in children[1:] if c is not None)
        return ModDecl(name=str(children[0]), items=items)

    # --- items the generator ignores

    def use_decl(self, children):
        return None

    def const_decl(self, children):
        return None

    def type_alias(self, children):
        return None

    def impl_decl(self, children):
        return None

    def trait_decl(self, children):
        return None

    def extern_block(self, children):
        return None

    def extern_crate(self, children):
        return None

    def macro_item(self, children):
        return None

    def item(self, children):
        attrs, vis, rest = _split_item_prefix(children)
        decl = rest[0] if rest else None
        if decl is None:
            return None
        if isinstance(decl, ModDecl):
            return replace(decl, visibility=vis, path_attr=_path_attr(attrs))
        return replace(decl, visibility=vis, docs=_docs(attrs))

    def start(self, children):
        return SourceFile(items=tuple(c for c in children if c is not None))


# ===--- Entry points ---=== #

_parser: Lark | None = None


def get_parser() -> Lark:
    """Return the shared LALR parser, building it on first use."""
    global _parser
    if _parser is None:
        _parser = Lark.open(
            GRAMMAR_FILE,
            rel_to=__file__,
            parser="lalr",
            lexer="contextual",
            maybe_placeholders=False,
        )
    return _parser


def parse_source(text: str, path: Path | None = None) -> SourceFile:
    """Parse Rust source text into a SourceFile.

    Raises:
        SourceParseError: The text is not valid in the supported subset.
    """
    try:
        tree = get_parser().parse(text)
    except UnexpectedInput as err:
        line = getattr(err, "line", None)
        column = getattr(err, "column", None)
        if line is not None and line < 0:
            line = column = None
        detail = str(err).strip().splitlines()[0] if str(err).strip() else type(err).__name__
        raise SourceParseError(
            str(path) if path is not None else None, line, column, detail
        ) from err
    source = SyntaxBuilder().transform(tree)
    return replace(source, path=path)


def parse_file(path: Path) -> SourceFile:
    return parse_source(Path(path).read_text(encoding="utf-8"), Path(path))


def extract_public_functions(source: SourceFile) -> list[FnDecl]:
    """Top-level ``pub fn`` items, in source order. ``pub(crate)`` is excluded."""
    return [f for f in source.functions if f.visibility.is_exported]
