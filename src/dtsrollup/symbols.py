from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from dtsrollup.errors import InternalError
from dtsrollup.models import ImportInfo
from dtsrollup.program import CheckerSymbol
from dtsrollup.syntax import SourceFile, SyntaxNode


class SymbolState(str, Enum):
    UNANALYZED = "unanalyzed"
    ANALYZED = "analyzed"


class RollupSymbol:
    """
    Deduplicated identity of a named entity, reached after following aliases.

    Imported symbols (``import_info`` is set) and source files used as
    namespaces get nominal analysis: they are marked analyzed without walking
    their declarations. The analysis state of a nested symbol is the state of
    its root symbol.
    """

    def __init__(
        self,
        local_name: str,
        followed_symbol: CheckerSymbol,
        *,
        import_info: Optional[ImportInfo] = None,
        nominal: bool = False,
        parent_symbol: Optional["RollupSymbol"] = None,
    ) -> None:
        self.local_name = local_name
        self.followed_symbol = followed_symbol
        self.import_info = import_info
        self.nominal = nominal
        self.parent_symbol = parent_symbol
        self.root_symbol: RollupSymbol = (
            parent_symbol.root_symbol if parent_symbol is not None else self
        )
        self.declarations: List[Declaration] = []
        self._state = SymbolState.UNANALYZED

    @property
    def imported(self) -> bool:
        return self.import_info is not None

    @property
    def state(self) -> SymbolState:
        return self.root_symbol._state

    @property
    def analyzed(self) -> bool:
        return self.state == SymbolState.ANALYZED

    def mark_analyzed(self) -> None:
        if self.parent_symbol is not None:
            raise InternalError(
                f"mark_analyzed() called for {self.local_name}, which is not a root symbol"
            )
        self._state = SymbolState.ANALYZED

    def attach_declaration(self, declaration: "Declaration") -> None:
        self.declarations.append(declaration)

    def for_each_declaration_recursive(
        self, callback: Callable[["Declaration"], None]
    ) -> None:
        for declaration in self.declarations:
            declaration.for_each_declaration_recursive(callback)

    def __repr__(self) -> str:
        origin = f" from {self.import_info.module_path!r}" if self.import_info else ""
        return f"RollupSymbol({self.local_name!r}{origin})"


class Declaration:
    """One syntactic occurrence of a RollupSymbol."""

    def __init__(
        self,
        node: SyntaxNode,
        symbol: RollupSymbol,
        parent: Optional["Declaration"] = None,
    ) -> None:
        self.node = node
        self.symbol = symbol
        self.parent = parent
        self._children: List[Declaration] = []
        # dict keeps discovery order and gives set semantics
        self._referenced_symbols: Dict[RollupSymbol, None] = {}

        if parent is not None:
            parent._children.append(self)

    @property
    def source_file(self) -> SourceFile:
        return self.node.source_file

    @property
    def children(self) -> List["Declaration"]:
        if not self.symbol.analyzed:
            raise InternalError(
                f"Declaration.children cannot be read before {self.symbol.local_name} is analyzed"
            )
        return self._children

    @property
    def referenced_symbols(self) -> List[RollupSymbol]:
        return list(self._referenced_symbols)

    def add_referenced_symbol(self, symbol: RollupSymbol) -> None:
        self._referenced_symbols.setdefault(symbol, None)

    def for_each_declaration_recursive(
        self, callback: Callable[["Declaration"], None]
    ) -> None:
        callback(self)
        for child in self.children:
            child.for_each_declaration_recursive(callback)

    def __repr__(self) -> str:
        return f"Declaration({self.symbol.local_name!r}, {self.node.kind.value})"


@dataclass(frozen=True)
class ExportedMember:
    name: str
    symbol: RollupSymbol


class EntryPoint:
    """Ordered, immutable list of the exports of one root module."""

    def __init__(self, source_file: SourceFile, exported_members: List[ExportedMember]) -> None:
        self.source_file = source_file
        self._exported_members: Tuple[ExportedMember, ...] = tuple(exported_members)

    @property
    def exported_members(self) -> Tuple[ExportedMember, ...]:
        return self._exported_members

    def get_exported_member(self, name: str) -> Optional[ExportedMember]:
        for member in self._exported_members:
            if member.name == name:
                return member
        return None
