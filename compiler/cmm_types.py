#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from typing import Tuple, Dict, Optional

# ========================================
# The semantic type system for C--.
# ========================================


class Type:
    """
    Base class for all semantic types.

    Predicates default to False; each concrete variant overrides its own.
    `equals` is the language-level type equality used by the checker, distinct
    from dataclass `==`: the error type is unequal to everything, itself included.
    """

    def is_int(self) -> bool:
        return False

    def is_bool(self) -> bool:
        return False

    def is_void(self) -> bool:
        return False

    def is_string(self) -> bool:
        return False

    def is_function(self) -> bool:
        return False

    def is_struct(self) -> bool:
        return False

    def is_struct_def(self) -> bool:
        return False

    def is_error(self) -> bool:
        return False

    def equals(self, other: "Type") -> bool:
        if other.is_error():
            return False
        return type(self) is type(other)


@dataclass(frozen=True)
class IntType(Type):
    def is_int(self) -> bool:
        return True


@dataclass(frozen=True)
class BoolType(Type):
    def is_bool(self) -> bool:
        return True


@dataclass(frozen=True)
class VoidType(Type):
    def is_void(self) -> bool:
        return True


@dataclass(frozen=True)
class StringType(Type):
    def is_string(self) -> bool:
        return True


@dataclass(frozen=True)
class StructType(Type):
    """Type of a variable or field declared as `struct name`."""
    name: str

    def is_struct(self) -> bool:
        return True

    def equals(self, other: Type) -> bool:
        return isinstance(other, StructType) and other.name == self.name


@dataclass(frozen=True)
class StructDefType(Type):
    """Type of the struct name itself."""
    name: str

    def is_struct_def(self) -> bool:
        return True


@dataclass(frozen=True)
class FuncType(Type):
    params: Tuple[Type, ...]
    result: Type

    def is_function(self) -> bool:
        return True


@dataclass(frozen=True)
class ErrorType(Type):
    def is_error(self) -> bool:
        return True

    def equals(self, other: Type) -> bool:
        return False


# --- helpers for builtins ---

_BUILTIN_CACHE: Dict[str, Type] = {
    "int": IntType(),
    "bool": BoolType(),
    "void": VoidType(),
    "string": StringType(),
}
_ERROR_TYPE = ErrorType()


def get_builtin_type(name: str) -> Type:
    """
    Get the canonical instance of a builtin type by its source name.
    """
    if name not in _BUILTIN_CACHE:
        raise KeyError(f"unknown builtin type '{name}'")
    return _BUILTIN_CACHE[name]


def get_error_type() -> ErrorType:
    return _ERROR_TYPE


# --- type stringification for diagnostics ---

def format_type(t: Optional[Type]) -> str:
    if t is None:
        return "<none>"
    elif isinstance(t, IntType):
        return "int"
    elif isinstance(t, BoolType):
        return "bool"
    elif isinstance(t, VoidType):
        return "void"
    elif isinstance(t, StringType):
        return "string"
    elif isinstance(t, StructType):
        return f"struct {t.name}"
    elif isinstance(t, StructDefType):
        return f"struct-def {t.name}"
    elif isinstance(t, FuncType):
        params_str = ", ".join(format_type(p) for p in t.params)
        return f"function({params_str}) -> {format_type(t.result)}"
    elif isinstance(t, ErrorType):
        return "<error>"
    else:
        # Fallback (should not happen)
        return repr(t)
