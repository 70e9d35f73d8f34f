"""Error taxonomy for wiregen.

Every user-facing failure carries a stable ``code`` from
``VALID_ERROR_CODES`` plus an optional one-line ``suggestion`` that the
CLI prints as a hint. Resolution-time errors are fatal: the run stops on
the first one and no output file is written.
"""

from __future__ import annotations


VALID_ERROR_CODES = {
    "UNSUPPORTED_TYPE",
    "DECLARATION_NOT_FOUND",
    "UNSUPPORTED_SIGNATURE",
    "DUPLICATE_EXPORT",
    "SOURCE_PARSE_ERROR",
}


class GenerationError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown generation error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


class UnsupportedTypeError(GenerationError):
    def __init__(self, type_sig: str, reason: str | None = None):
        message = f"Unsupported type: {type_sig}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            "UNSUPPORTED_TYPE",
            message,
            "Use primitives, String, Vec<T>, Option<T>, Box<T>, or a struct/enum "
            "declared in the crate.",
        )
        self.type_sig = type_sig


class DeclarationNotFoundError(GenerationError):
    def __init__(self, name: str):
        super().__init__(
            "DECLARATION_NOT_FOUND",
            f"No struct or enum named `{name}` is declared in the crate",
            "Declare the type as `pub` in a module reachable from the crate root.",
        )
        self.name = name


class UnsupportedSignatureError(GenerationError):
    def __init__(self, func_name: str, detail: str):
        super().__init__(
            "UNSUPPORTED_SIGNATURE",
            f"Unsupported signature for `{func_name}`: {detail}",
            "Bind every parameter to a plain name, e.g. `point: Point`.",
        )
        self.func_name = func_name


class DuplicateExportError(GenerationError):
    def __init__(self, symbol: str):
        super().__init__(
            "DUPLICATE_EXPORT",
            f"Exported symbol `{symbol}` would be emitted twice",
            "Rename one of the API functions so the wire names differ.",
        )
        self.symbol = symbol


class SourceParseError(GenerationError):
    def __init__(
        self,
        path: str | None,
        line: int | None,
        column: int | None,
        detail: str,
    ):
        where = path or "<source>"
        if line is not None:
            where = f"{where}:{line}:{column}"
        super().__init__(
            "SOURCE_PARSE_ERROR",
            f"Cannot parse {where}: {detail}",
            "Only a subset of Rust item syntax is understood; simplify the "
            "declaration or move it out of the API file.",
        )
        self.path = path
        self.line = line
        self.column = column


class InternalGeneratorError(RuntimeError):
    """An IR shape reached a code path that should be unreachable."""
