#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from cmm_internal_error import InternalCompilerError
from cmm_types import Type, FuncType, StructDefType

WORD_SIZE = 4

# Marks an identifier that name analysis visited but could not bind.
UNRESOLVED = -1


class DuplicateDeclarationError(Exception):
    def __init__(self, name: str):
        super().__init__(f"'{name}' is already declared in this scope")
        self.name = name


class EmptySymbolTableError(Exception):
    pass


@dataclass
class SymbolEntry:
    """
    A variable, formal, or struct field.

    offset     : frame offset for formals/locals, byte offset inside the
                 struct for fields; unused for globals
    struct_def : arena index of the StructDefEntry for struct-typed entries
    """
    name: str
    type: Type
    offset: int = 0
    is_global: bool = False
    struct_def: Optional[int] = None
    size: int = WORD_SIZE


@dataclass
class StructDefEntry:
    name: str
    fields: "SymbolTable"
    size: int

    @property
    def type(self) -> Type:
        return StructDefType(self.name)


@dataclass
class FunctionEntry:
    name: str
    param_types: List[Type]
    return_type: Type

    @property
    def arity(self) -> int:
        return len(self.param_types)

    @property
    def type(self) -> FuncType:
        return FuncType(tuple(self.param_types), self.return_type)


AnyEntry = Union[SymbolEntry, StructDefEntry, FunctionEntry]


@dataclass
class SymbolArena:
    """
    Owner of every symbol entry in a compilation unit.

    AST nodes refer to entries by their index here, never by object.
    """
    entries: List[AnyEntry] = field(default_factory=list)

    def add(self, entry: AnyEntry) -> int:
        self.entries.append(entry)
        return len(self.entries) - 1

    def __getitem__(self, index: int) -> AnyEntry:
        if index < 0 or index >= len(self.entries):
            raise InternalCompilerError(f"[ICE-0010] symbol index {index} out of range")
        return self.entries[index]

    def __len__(self) -> int:
        return len(self.entries)


class SymbolTable:
    """
    Stack of scopes; each scope maps names to arena indices.
    The first scope pushed is the global one.
    """

    def __init__(self) -> None:
        self._scopes: List[Dict[str, int]] = [{}]
        self._frozen = False

    def add_scope(self) -> None:
        self._scopes.append({})

    def remove_scope(self) -> None:
        if not self._scopes:
            raise EmptySymbolTableError()
        self._scopes.pop()

    def add_decl(self, name: str, index: int) -> None:
        if self._frozen:
            raise InternalCompilerError(f"[ICE-0011] declaration of '{name}' added to a frozen symbol table")
        if not self._scopes:
            raise EmptySymbolTableError()
        scope = self._scopes[-1]
        if name in scope:
            raise DuplicateDeclarationError(name)
        scope[name] = index

    def lookup_local(self, name: str) -> Optional[int]:
        if not self._scopes:
            raise EmptySymbolTableError()
        return self._scopes[-1].get(name)

    def lookup_global(self, name: str) -> Optional[int]:
        if not self._scopes:
            raise EmptySymbolTableError()
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        return None

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def depth(self) -> int:
        return len(self._scopes)

    def names(self) -> Iterator[Tuple[str, int]]:
        """Innermost scope's (name, index) pairs in declaration order."""
        if not self._scopes:
            raise EmptySymbolTableError()
        return iter(self._scopes[-1].items())
