import pytest

from wiregen.errors import VALID_ERROR_CODES, SourceParseError
from wiregen.syntax import (
    EnumDecl,
    PatternKind,
    StructKind,
    Visibility,
    extract_public_functions,
    parse_source,
)


def test_parse_function_signature_with_docs() -> None:
    source = parse_source(
        """
/// Adds two numbers.
/// Wraps on overflow.
pub fn add(a: i32, b: i32) -> i32 {
    a.wrapping_add(b)
}
"""
    )

    (func,) = source.functions
    assert func.name == "add"
    assert func.visibility is Visibility.PUBLIC
    assert [p.pattern.name for p in func.params] == ["a", "b"]
    assert [p.type_sig for p in func.params] == ["i32", "i32"]
    assert func.return_type == "i32"
    assert func.docs == ("Adds two numbers.", "Wraps on overflow.")


def test_doc_attribute_is_captured_like_doc_comment() -> None:
    source = parse_source('#[doc = "From attribute"]\npub fn f() {}\n')

    assert source.functions[0].docs == ("From attribute",)


def test_extract_public_functions_keeps_plain_pub_only() -> None:
    source = parse_source(
        """
pub fn exported() {}
fn private() {}
pub(crate) fn crate_only() {}
pub async fn later() {}
"""
    )

    names = [f.name for f in extract_public_functions(source)]
    assert names == ["exported", "later"]


def test_type_signatures_are_rendered_without_whitespace() -> None:
    source = parse_source(
        """
pub fn f(
    a: Vec<Option<Box<Node>>>,
    b: &'a mut [u8],
    c: (i32, String),
    d: HashMap<String, Vec<u8>>,
    e: *const u8,
    g: [u8; 4],
) -> anyhow::Result<()> {}
"""
    )

    func = source.functions[0]
    assert [p.type_sig for p in func.params] == [
        "Vec<Option<Box<Node>>>",
        "&'a mut [u8]",
        "(i32,String)",
        "HashMap<String,Vec<u8>>",
        "*const u8",
        "[u8;4]",
    ]
    assert func.return_type == "anyhow::Result<()>"


def test_function_without_return_type() -> None:
    source = parse_source("pub fn ping() {}")

    assert source.functions[0].return_type is None
    assert source.functions[0].params == ()


def test_function_body_is_skipped_as_token_tree() -> None:
    source = parse_source(
        """
pub fn g(flag: bool) -> String {
    let s = "}{"; // a stray } in a comment
    /* block { comment */
    if flag { s.to_string() } else { format!("{}", 'x') }
}

pub fn h() {}
"""
    )

    assert [f.name for f in source.functions] == ["g", "h"]


def test_consecutive_items_with_trailing_newline() -> None:
    source = parse_source(
        "pub fn add(a: i32, b: i32) -> i32 { a + b }\n"
        "pub fn sub(a: i32, b: i32) -> i32 { a - b }\n"
        "#[derive(Clone)]\n"
        "pub struct After { pub x: u8 }\n"
    )

    assert [f.name for f in source.functions] == ["add", "sub"]
    assert [s.name for s in source.structs] == ["After"]


def test_keywords_and_punctuation_inside_bodies() -> None:
    source = parse_source(
        """
pub fn busy(n: u32) -> u32 {
    if n > 1 { return n; } self::helper(n);
    let f = |x: &mut u32| -> u32 { *x };
    match n { 0 => 1, _ => n as u32 }
}

const TABLE: [u8; 2] = [1, 2];

pub enum Flags { A = 1 << 0, B = { 2 }, }

pub fn last() {}
"""
    )

    assert [f.name for f in source.functions] == ["busy", "last"]
    assert [v.name for v in source.enums[0].variants] == ["A", "B"]


def test_reference_pattern_with_mut() -> None:
    source = parse_source("pub fn f(&mut x: T) {}\n")

    (param,) = source.functions[0].params
    assert param.pattern.kind is PatternKind.REFERENCE
    assert param.pattern.is_simple is False
    assert param.type_sig == "T"


def test_parameter_patterns_are_classified() -> None:
    source = parse_source(
        "pub fn f((a, b): (i32, i32), _: u8, Point { x, y }: Point, mut n: u8) {}"
    )

    patterns = [p.pattern for p in source.functions[0].params]
    assert patterns[0].kind is PatternKind.TUPLE
    assert patterns[1].kind is PatternKind.IDENT
    assert patterns[1].is_simple is False
    assert patterns[2].kind is PatternKind.STRUCT
    assert patterns[3].name == "n"
    assert patterns[3].is_simple is True


def test_structs_of_every_shape() -> None:
    source = parse_source(
        """
#[derive(Debug, Clone)]
pub struct Config {
    /// Display name.
    pub name: String,
    pub retries: Option<i32>,
}

pub struct Pair(pub u32, String);

pub(crate) struct Unit;

struct Hidden<T> where T: Clone {
    value: T,
}
"""
    )

    config, pair, unit, hidden = source.structs
    assert config.kind is StructKind.NAMED
    assert [(f.name, f.type_sig) for f in config.fields] == [
        ("name", "String"),
        ("retries", "Option<i32>"),
    ]
    assert config.fields[0].docs == ("Display name.",)
    assert pair.kind is StructKind.TUPLE
    assert [f.name for f in pair.fields] == ["field0", "field1"]
    assert unit.kind is StructKind.UNIT
    assert unit.visibility is Visibility.CRATE
    assert hidden.visibility is Visibility.PRIVATE


def test_enum_variants_and_discriminants() -> None:
    source = parse_source(
        """
pub enum Shape {
    /// A circle.
    Circle { radius: f64 },
    Square(f64),
    Empty,
}

pub enum Color {
    Red = 1,
    Green,
    Blue = 0x10
}
"""
    )

    shape, color = source.enums
    assert isinstance(shape, EnumDecl)
    assert [v.kind for v in shape.variants] == [
        StructKind.NAMED,
        StructKind.TUPLE,
        StructKind.UNIT,
    ]
    assert shape.variants[0].fields[0].name == "radius"
    assert shape.variants[0].docs == ("A circle.",)
    assert shape.variants[1].fields[0].name == "field0"
    assert [v.name for v in color.variants] == ["Red", "Green", "Blue"]


def test_unrelated_items_are_ignored() -> None:
    source = parse_source(
        """
#![allow(unused)]
extern crate alloc;
use std::collections::{HashMap, HashSet};
use anyhow::Result;
const LIMIT: usize = 10;
static mut COUNTER: u32 = 0;
type Alias = Vec<u8>;
impl Config {
    pub fn new() -> Self { Config {} }
}
pub trait Greeter { fn greet(&self) -> String; }
lazy_static! {
    static ref TABLE: HashMap<u8, u8> = HashMap::new();
}
macro_rules! noop { () => {}; }
extern "C" { fn abs(x: i32) -> i32; }
pub fn kept() {}
"""
    )

    assert [f.name for f in source.functions] == ["kept"]
    assert source.structs == []


def test_modules_inline_and_out_of_line() -> None:
    source = parse_source(
        """
mod inner {
    pub struct A { x: i32 }
}
#[path = "other/file.rs"]
pub mod other;
"""
    )

    inner, other = source.modules
    assert inner.name == "inner"
    assert inner.items is not None
    assert inner.items[0].name == "A"
    assert other.items is None
    assert other.visibility is Visibility.PUBLIC
    assert other.path_attr == "other/file.rs"


def test_parse_error_carries_location_and_code() -> None:
    with pytest.raises(SourceParseError) as exc_info:
        parse_source("pub fn broken(a: i32 -> i32 {}", path=None)

    err = exc_info.value
    assert err.code == "SOURCE_PARSE_ERROR"
    assert err.code in VALID_ERROR_CODES
    assert err.line == 1
    assert "<source>:1:" in err.message
