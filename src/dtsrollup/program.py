from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntFlag
from pathlib import Path
from typing import List, Optional, Tuple

from dtsrollup.models import CommentRange, ImportInfo
from dtsrollup.syntax import SourceFile, SyntaxNode


class SymbolFlags(IntFlag):
    NONE = 0
    ALIAS = 1 << 0
    TYPE_PARAMETER = 1 << 1
    TYPE_LITERAL = 1 << 2
    TRANSIENT = 1 << 3
    MODULE = 1 << 4  # a source file acting as a module
    NAMESPACE = 1 << 5
    CLASS = 1 << 6
    INTERFACE = 1 << 7
    ENUM = 1 << 8
    ENUM_MEMBER = 1 << 9
    FUNCTION = 1 << 10
    VARIABLE = 1 << 11
    TYPE_ALIAS = 1 << 12
    PROPERTY = 1 << 13
    METHOD = 1 << 14

    EXCLUDED = TYPE_PARAMETER | TYPE_LITERAL | TRANSIENT


class CheckerSymbol:
    """
    A symbol as the program provider sees it, before alias following.
    Declarations with the same name in the same scope share one symbol.
    """

    def __init__(
        self,
        name: str,
        flags: SymbolFlags,
        parent: Optional["CheckerSymbol"] = None,
    ) -> None:
        self.name = name
        self.flags = flags
        self.parent = parent
        self.declarations: List[SyntaxNode] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.flags!r})"


@dataclass
class FollowAliasesResult:
    followed_symbol: CheckerSymbol
    local_name: str
    is_ambient: bool = False
    import_info: Optional[ImportInfo] = None


class ProgramProvider(ABC):
    """
    Name-resolved view of a program. The rollup engine only talks to the
    input program through this interface.
    """

    @abstractmethod
    def get_source_file(self, path: str | Path) -> SourceFile: ...

    @abstractmethod
    def get_module_symbol(self, source_file: SourceFile) -> Optional[CheckerSymbol]:
        """Return the symbol of a source file that is a module, else None."""

    @abstractmethod
    def enumerate_exports(
        self, source_file: SourceFile
    ) -> List[Tuple[str, CheckerSymbol]]: ...

    @abstractmethod
    def resolve_symbol_at(self, node: SyntaxNode) -> Optional[CheckerSymbol]: ...

    @abstractmethod
    def get_symbol_of_declaration(self, node: SyntaxNode) -> Optional[CheckerSymbol]: ...

    @abstractmethod
    def follow_aliases(self, symbol: CheckerSymbol) -> FollowAliasesResult: ...

    @abstractmethod
    def get_doc_comment_ranges(self, node: SyntaxNode) -> List[CommentRange]: ...

    @abstractmethod
    def get_type_reference_directives(self, source_file: SourceFile) -> List[str]: ...

    @abstractmethod
    def get_lib_reference_directives(self, source_file: SourceFile) -> List[str]: ...
