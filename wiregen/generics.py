"""Structural matching of single-argument generic wrappers.

Signatures are split on bracket depth rather than matched with a regular
expression, so ``Result<Vec<Option<i32>>>`` unwraps to
``Vec<Option<i32>>`` regardless of how deeply the argument nests.
"""

from __future__ import annotations

from dataclasses import dataclass

RESULT_PATTERN = "Result"
STREAM_SINK_PATTERN = "StreamSink"

_OPENERS = {"<": ">", "(": ")", "[": "]"}
_CLOSERS = {">", ")", "]"}


def strip_whitespace(signature: str) -> str:
    return "".join(signature.split())


@dataclass(frozen=True)
class GenericSig:
    """A signature of the form ``path::Name<arg, arg, ...>``."""

    path: str
    args: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.path.rsplit("::", 1)[-1]


def split_top_level(text: str, sep: str = ",") -> list[str] | None:
    """Split on ``sep`` at bracket depth zero. None if brackets do not balance."""
    parts: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            # "->" inside fn sugar is not a closing bracket
            if ch == ">" and i > 0 and text[i - 1] == "-":
                continue
            depth -= 1
            if depth < 0:
                return None
        elif ch == sep and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    if depth != 0:
        return None
    tail = text[start:]
    if tail or parts:
        parts.append(tail)
    return [p for p in parts if p]


def parse_generic(signature: str) -> GenericSig | None:
    """Split ``Outer<A,B>`` into its path and top-level arguments.

    Returns None when the signature has no trailing generic argument list
    or when its angle brackets do not balance.
    """
    sig = strip_whitespace(signature)
    if not sig.endswith(">"):
        return None
    open_at = sig.find("<")
    if open_at <= 0:
        return None
    path = sig[:open_at]
    if any(ch in path for ch in "()[]&*;"):
        return None
    inner = sig[open_at + 1 : -1]
    args = split_top_level(inner)
    if not args:
        return None
    # The bracket opened at open_at must be the one closed at the end.
    if split_top_level(sig[open_at:]) != [sig[open_at:]]:
        return None
    return GenericSig(path=path, args=tuple(args))


class GenericCapture:
    """Matches ``...Name<X>`` with exactly one type argument and yields ``X``."""

    def __init__(self, pattern_name: str):
        self.pattern_name = pattern_name

    def captures(self, signature: str) -> str | None:
        generic = parse_generic(signature)
        if generic is None or generic.name != self.pattern_name:
            return None
        if len(generic.args) != 1:
            return None
        return generic.args[0]


CAPTURE_RESULT = GenericCapture(RESULT_PATTERN)
CAPTURE_STREAM_SINK = GenericCapture(STREAM_SINK_PATTERN)


def match_pattern(pattern_name: str, signature: str) -> str | None:
    return GenericCapture(pattern_name).captures(signature)
