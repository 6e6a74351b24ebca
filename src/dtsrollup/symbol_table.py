from typing import Dict, List, Optional

from dtsrollup.errors import InternalError, RollupInputError
from dtsrollup.logger import logger
from dtsrollup.models import SyntaxKind
from dtsrollup.program import CheckerSymbol, ProgramProvider, SymbolFlags
from dtsrollup.symbols import Declaration, EntryPoint, ExportedMember, RollupSymbol
from dtsrollup.syntax import SourceFile, SyntaxNode

DECLARATION_KINDS = frozenset(
    {
        SyntaxKind.CLASS,
        SyntaxKind.INTERFACE,
        SyntaxKind.ENUM,
        SyntaxKind.ENUM_MEMBER,
        SyntaxKind.FUNCTION,
        SyntaxKind.METHOD_DECLARATION,
        SyntaxKind.METHOD_SIGNATURE,
        SyntaxKind.MODULE,
        SyntaxKind.PROPERTY_DECLARATION,
        SyntaxKind.PROPERTY_SIGNATURE,
        SyntaxKind.SOURCE_FILE,
        SyntaxKind.TYPE_ALIAS,
        SyntaxKind.VARIABLE_DECLARATION,
    }
)

REFERENCE_KINDS = frozenset(
    {
        SyntaxKind.TYPE_REFERENCE,
        SyntaxKind.TYPE_IDENTIFIER,
        SyntaxKind.EXPRESSION_WITH_TYPE_ARGUMENTS,
        SyntaxKind.TYPE_QUERY,
    }
)

_IDENTIFIER_KINDS = (SyntaxKind.IDENTIFIER, SyntaxKind.TYPE_IDENTIFIER)

# Never walked: documentation is not code, and implementation bodies are not emitted.
_SKIPPED_KINDS = frozenset({SyntaxKind.JSDOC_COMMENT, SyntaxKind.COMMENT, SyntaxKind.BLOCK})


def is_declaration_node(node: SyntaxNode) -> bool:
    return node.kind in DECLARATION_KINDS


class SymbolTable:
    """
    Builds RollupSymbol and Declaration objects on demand and caches them.

    The table knows nothing about which symbols are exported by the package;
    it only maps checker symbols to deduplicated rollup symbols and records
    the references between them.
    """

    def __init__(self, program: ProgramProvider) -> None:
        self.program = program
        self._symbols_by_checker: Dict[CheckerSymbol, RollupSymbol] = {}
        self._symbols_by_import_key: Dict[str, RollupSymbol] = {}
        self._declarations_by_node: Dict[SyntaxNode, Declaration] = {}
        self._entry_points: Dict[SourceFile, EntryPoint] = {}

    # --- public API ---------------------------------------------------
    def fetch_entry_point(self, source_file: SourceFile) -> EntryPoint:
        entry_point = self._entry_points.get(source_file)
        if entry_point is not None:
            return entry_point

        module_symbol = self.program.get_module_symbol(source_file)
        if module_symbol is None or not module_symbol.declarations:
            raise RollupInputError(
                f"Unable to find a root declaration for {source_file.path}"
            )

        members = []
        for name, checker_symbol in self.program.enumerate_exports(source_file):
            symbol = self._fetch_symbol(checker_symbol, add_if_missing=True)
            if symbol is None:
                logger.warning(
                    "Skipping export that cannot be emitted",
                    path=str(source_file.path),
                    name=name,
                )
                continue
            self.analyze(symbol)
            members.append(ExportedMember(name=name, symbol=symbol))

        entry_point = EntryPoint(source_file, members)
        self._entry_points[source_file] = entry_point
        logger.debug(
            "Entry point analyzed",
            path=str(source_file.path),
            exports=len(members),
            symbols=len(set(self._symbols_by_checker.values())),
        )
        return entry_point

    def analyze(self, symbol: RollupSymbol) -> None:
        """
        Make sure ``symbol`` is analyzed: starting from its root symbol, every
        declaration subtree is walked, child declarations are created and
        reference edges are recorded. Local symbols referenced along the way
        are analyzed as well; imported ones only get their nominal analysis.
        """
        pending = [symbol]
        while pending:
            current = pending.pop()
            if current.analyzed:
                continue

            root = current.root_symbol
            if current.nominal:
                root.mark_analyzed()
                continue

            for declaration in root.declarations:
                self._analyze_child_tree(declaration.node, declaration)
            root.mark_analyzed()

            referenced: List[RollupSymbol] = []
            root.for_each_declaration_recursive(
                lambda d: referenced.extend(d.referenced_symbols)
            )
            # reversed so the first reference is analyzed first
            pending.extend(reversed(referenced))

    def is_declaration_node(self, node: SyntaxNode) -> bool:
        return is_declaration_node(node)

    def is_tracked_declaration_node(self, node: SyntaxNode) -> bool:
        """
        True for taxonomy nodes that own a Declaration. Taxonomy nodes without
        a bound symbol (such as members of a type literal) are part of their
        enclosing declaration instead.
        """
        if node.kind not in DECLARATION_KINDS or node.kind == SyntaxKind.SOURCE_FILE:
            return False
        return self.program.get_symbol_of_declaration(node) is not None

    def try_get_symbol(self, checker_symbol: CheckerSymbol) -> Optional[RollupSymbol]:
        """Alias-following lookup that never creates anything."""
        return self._fetch_symbol(checker_symbol, add_if_missing=False)

    def fetch_referenced_symbol(self, checker_symbol: CheckerSymbol) -> Optional[RollupSymbol]:
        return self._fetch_symbol(checker_symbol, add_if_missing=True)

    def get_child_declaration_by_node(
        self, node: SyntaxNode, parent_declaration: Declaration
    ) -> Declaration:
        if not parent_declaration.symbol.analyzed:
            raise InternalError(
                "get_child_declaration_by_node() cannot be used for a symbol that was not analyzed"
            )
        child = self._declarations_by_node.get(node)
        if child is None:
            raise InternalError("Child declaration not found for the specified node")
        if child.parent is not parent_declaration:
            raise InternalError("The found child is not attached to the parent declaration")
        return child

    # --- analysis -----------------------------------------------------
    def _analyze_child_tree(self, node: SyntaxNode, governing: Declaration) -> None:
        if node.kind in _SKIPPED_KINDS:
            return

        if node.kind in REFERENCE_KINDS:
            # For "a.b.C" only the leading identifier matters
            identifier = node.find_first(lambda n: n.kind in _IDENTIFIER_KINDS)
            if identifier is not None:
                checker_symbol = self.program.resolve_symbol_at(identifier)
                if checker_symbol is None:
                    logger.debug(
                        "Unresolved type reference",
                        path=str(node.source_file.path),
                        name=identifier.text,
                    )
                else:
                    referenced = self.fetch_referenced_symbol(checker_symbol)
                    if referenced is not None:
                        governing.add_referenced_symbol(referenced)

        new_governing = self._fetch_declaration(node)
        for child in node.children:
            self._analyze_child_tree(child, new_governing or governing)

    def _fetch_declaration(self, node: SyntaxNode) -> Optional[Declaration]:
        if not self.is_tracked_declaration_node(node):
            return None
        checker_symbol = self.program.get_symbol_of_declaration(node)
        symbol = self._fetch_symbol(checker_symbol, add_if_missing=True)
        if symbol is None:
            return None
        declaration = self._declarations_by_node.get(node)
        if declaration is None:
            raise InternalError("Unable to find constructed declaration")
        return declaration

    def _fetch_symbol(
        self, checker_symbol: CheckerSymbol, add_if_missing: bool
    ) -> Optional[RollupSymbol]:
        followed = self.program.follow_aliases(checker_symbol)
        followed_symbol = followed.followed_symbol

        if followed_symbol.flags & SymbolFlags.EXCLUDED:
            return None
        if followed.is_ambient:
            # ambient (global) declarations are never part of the rollup
            return None

        symbol = self._symbols_by_checker.get(followed_symbol)
        if symbol is None and followed.import_info is not None:
            symbol = self._symbols_by_import_key.get(followed.import_info.key)
            if symbol is not None:
                # found through another import site; needed later for renaming
                self._symbols_by_checker[followed_symbol] = symbol
        if symbol is not None or not add_if_missing:
            return symbol

        if not followed_symbol.declarations:
            raise InternalError("Followed a symbol with no declarations")

        nominal = followed.import_info is not None or (
            len(followed_symbol.declarations) == 1
            and followed_symbol.declarations[0].kind == SyntaxKind.SOURCE_FILE
        )

        parent_symbol: Optional[RollupSymbol] = None
        if not nominal:
            for node in followed_symbol.declarations:
                if not is_declaration_node(node):
                    raise RollupInputError(
                        f'The "{followed_symbol.name}" symbol uses the construct '
                        f'"{node.type_name}" which may be an unimplemented language feature'
                    )
            # Every declaration of a nested symbol has a parent, and all of
            # those parents belong to the same symbol.
            parent_node = self._find_parent_declaration_node(followed_symbol.declarations[0])
            if parent_node is not None:
                parent_checker = self.program.get_symbol_of_declaration(parent_node)
                parent_symbol = self._fetch_symbol(parent_checker, add_if_missing)
                if parent_symbol is None:
                    raise InternalError(
                        f"Unable to construct a parent symbol for {followed_symbol.name}"
                    )

        symbol = RollupSymbol(
            followed.local_name,
            followed_symbol,
            import_info=followed.import_info,
            nominal=nominal,
            parent_symbol=parent_symbol,
        )
        self._symbols_by_checker[followed_symbol] = symbol
        if followed.import_info is not None:
            self._symbols_by_import_key[followed.import_info.key] = symbol

        for node in followed_symbol.declarations:
            parent_declaration: Optional[Declaration] = None
            if parent_symbol is not None:
                parent_node = self._find_parent_declaration_node(node)
                if parent_node is None:
                    raise InternalError("Missing parent declaration")
                parent_declaration = self._declarations_by_node.get(parent_node)
                if parent_declaration is None:
                    raise InternalError("Missing parent declaration object")
            declaration = Declaration(node, symbol, parent_declaration)
            self._declarations_by_node[node] = declaration
            symbol.attach_declaration(declaration)

        logger.debug(
            "Symbol created",
            name=symbol.local_name,
            imported=symbol.imported,
            nominal=nominal,
            declarations=len(symbol.declarations),
        )
        return symbol

    def _find_parent_declaration_node(self, node: SyntaxNode) -> Optional[SyntaxNode]:
        current = node.parent
        while current is not None:
            if self.is_tracked_declaration_node(current):
                return current
            current = current.parent
        return None
