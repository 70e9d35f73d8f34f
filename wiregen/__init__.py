"""Rust wire-layer generator for cross-language FFI bridges.

Reads the public functions of a Rust API file, resolves the structs and
enums they use across the crate, and emits C-ABI wire functions plus the
conversions between wire and domain types.
"""

__version__ = "0.1.0"
