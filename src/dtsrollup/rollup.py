import re
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from dtsrollup.errors import InternalError, RollupInputError
from dtsrollup.helpers import convert_newlines, write_text_file
from dtsrollup.logger import logger
from dtsrollup.models import NewlineKind, ReleaseTag, RollupKind, SyntaxKind
from dtsrollup.program import ProgramProvider
from dtsrollup.span import Span
from dtsrollup.symbol_table import SymbolTable
from dtsrollup.symbols import Declaration, EntryPoint, RollupSymbol
from dtsrollup.syntax import SourceFile, SyntaxNode

_RELEASE_TAG_RE = re.compile(r"(?:\s|\*)@(internal|alpha|beta|public)(?:\s|\*)")
_PACKAGE_DOCUMENTATION_RE = re.compile(
    r"(?:\s|\*)@packagedocumentation(?:\s|\*)", re.IGNORECASE
)

_STRIPPED_KEYWORDS = frozenset(
    {SyntaxKind.EXPORT_KEYWORD, SyntaxKind.DEFAULT_KEYWORD, SyntaxKind.DECLARE_KEYWORD}
)
_PRIMARY_KEYWORDS = frozenset(
    {
        SyntaxKind.CLASS_KEYWORD,
        SyntaxKind.INTERFACE_KEYWORD,
        SyntaxKind.ENUM_KEYWORD,
        SyntaxKind.NAMESPACE_KEYWORD,
        SyntaxKind.MODULE_KEYWORD,
        SyntaxKind.TYPE_KEYWORD,
        SyntaxKind.FUNCTION_KEYWORD,
    }
)
_WRAPPER_KINDS = frozenset(
    {
        SyntaxKind.EXPORT_STATEMENT,
        SyntaxKind.AMBIENT_DECLARATION,
        SyntaxKind.EXPRESSION_STATEMENT,
    }
)
_IDENTIFIER_KINDS = frozenset({SyntaxKind.IDENTIFIER, SyntaxKind.TYPE_IDENTIFIER})


def get_sort_key(name: str) -> str:
    """
    Sort key for an emitted name: "_example" sorts as "example*", i.e. right
    after "example" and before "examplea".
    """
    if name.startswith("_"):
        return name[1:] + "*"
    return name


def should_include_release_tag(release_tag: ReleaseTag, kind: RollupKind) -> bool:
    if kind == RollupKind.INTERNAL_RELEASE:
        return True
    if kind == RollupKind.PREVIEW_RELEASE:
        # untagged declarations are kept: there is not enough information to trim them
        return release_tag in (ReleaseTag.BETA, ReleaseTag.PUBLIC, ReleaseTag.NONE)
    if kind == RollupKind.PUBLIC_RELEASE:
        return release_tag in (ReleaseTag.PUBLIC, ReleaseTag.NONE)
    raise InternalError(f"Release kind {kind!r} is not implemented")


class RollupEntry:
    """One emitted (or removed) unit of the rollup, one per RollupSymbol."""

    def __init__(self, symbol: RollupSymbol, original_name: str, exported: bool) -> None:
        self.symbol = symbol
        self.original_name = original_name
        self.exported = exported
        self.visibility_tier = ReleaseTag.NONE
        self._name_for_emit: Optional[str] = None
        self._sort_key: Optional[str] = None

    @property
    def name_for_emit(self) -> Optional[str]:
        return self._name_for_emit

    @name_for_emit.setter
    def name_for_emit(self, value: Optional[str]) -> None:
        self._name_for_emit = value
        self._sort_key = None

    @property
    def sort_key(self) -> str:
        if self._sort_key is None:
            self._sort_key = get_sort_key(self._name_for_emit or self.original_name)
        return self._sort_key

    def __repr__(self) -> str:
        return (
            f"RollupEntry({self.original_name!r}, emit={self._name_for_emit!r}, "
            f"exported={self.exported}, tier={self.visibility_tier.value})"
        )


class RollupGenerator:
    """
    Rolls the declarations reachable from one entry point into a single
    declaration document. ``analyze()`` runs once; ``write_output()`` can
    then be called for any release kind.
    """

    def __init__(
        self,
        program: ProgramProvider,
        entry_source_file: SourceFile,
        *,
        omit_trimming_comments: bool = False,
    ) -> None:
        self.program = program
        self.entry_source_file = entry_source_file
        self.omit_trimming_comments = omit_trimming_comments
        self.symbol_table = SymbolTable(program)

        self._entry_point: Optional[EntryPoint] = None
        self._entries: List[RollupEntry] = []
        self._entries_by_symbol: Dict[RollupSymbol, RollupEntry] = {}
        self._release_tags: Dict[RollupSymbol, ReleaseTag] = {}
        self._directive_files: Set[SourceFile] = set()
        self._type_reference_directives: Set[str] = set()
        self._lib_reference_directives: Set[str] = set()
        self._package_documentation: Optional[str] = None

    # --- results ------------------------------------------------------
    @property
    def entry_point(self) -> EntryPoint:
        if self._entry_point is None:
            raise InternalError("RollupGenerator.analyze() was not called")
        return self._entry_point

    @property
    def entries(self) -> Tuple[RollupEntry, ...]:
        return tuple(self._entries)

    @property
    def type_reference_directives(self) -> List[str]:
        return sorted(self._type_reference_directives)

    @property
    def lib_reference_directives(self) -> List[str]:
        return sorted(self._lib_reference_directives)

    @property
    def package_documentation(self) -> Optional[str]:
        return self._package_documentation

    def get_entry(self, symbol: RollupSymbol) -> Optional[RollupEntry]:
        return self._entries_by_symbol.get(symbol)

    def find_entry(self, name_for_emit: str) -> Optional[RollupEntry]:
        for entry in self._entries:
            if entry.name_for_emit == name_for_emit:
                return entry
        return None

    # --- analysis -----------------------------------------------------
    def analyze(self) -> None:
        if self._entry_point is not None:
            raise InternalError("RollupGenerator.analyze() was already called")

        self._entry_point = self.symbol_table.fetch_entry_point(self.entry_source_file)

        exported_symbols: List[RollupSymbol] = []
        for member in self._entry_point.exported_members:
            self._create_entry(member.symbol, member.name)
            exported_symbols.append(member.symbol)

        # Done after the loop above so references to exported symbols are
        # first seen as exports.
        seen: Set[RollupSymbol] = set()
        for symbol in exported_symbols:
            self._create_entries_for_references(symbol, seen)

        for entry in self._entries:
            entry.visibility_tier = self._get_release_tag(entry.symbol)

        self._make_unique_names()
        self._entries.sort(key=lambda e: (e.sort_key.lower(), e.sort_key))
        self._package_documentation = self._find_package_documentation()

        logger.debug(
            "Rollup analyzed",
            entry_point=str(self.entry_source_file.path),
            entries=len(self._entries),
            exported=len(exported_symbols),
            imports=sum(1 for e in self._entries if e.symbol.imported),
        )

    def _create_entry(self, symbol: RollupSymbol, exported_name: Optional[str]) -> None:
        entry = self._entries_by_symbol.get(symbol)
        if entry is None:
            if exported_name == "default":
                raise RollupInputError(
                    f"The default export {symbol.local_name} is not supported yet"
                )
            entry = RollupEntry(
                symbol,
                exported_name or symbol.local_name,
                exported=exported_name is not None,
            )
            self._entries_by_symbol[symbol] = entry
            self._entries.append(entry)
            self._collect_reference_directives(symbol)
        elif exported_name is not None:
            if not entry.exported:
                raise InternalError(
                    f"Program bug: the entry for {exported_name} should have been marked as exported"
                )
            if entry.original_name != exported_name:
                raise RollupInputError(
                    f"The symbol {exported_name} was also exported as "
                    f"{entry.original_name}; this is not supported yet"
                )

    def _create_entries_for_references(
        self, symbol: RollupSymbol, seen: Set[RollupSymbol]
    ) -> None:
        if symbol in seen:
            return
        seen.add(symbol)

        # depth-first, in the order references were discovered
        stack: List[Iterator[RollupSymbol]] = [self._get_referenced_roots(symbol)]
        while stack:
            root = next(stack[-1], None)
            if root is None:
                stack.pop()
                continue
            self._create_entry(root, None)
            if root not in seen:
                seen.add(root)
                stack.append(self._get_referenced_roots(root))

    def _get_referenced_roots(self, symbol: RollupSymbol) -> Iterator[RollupSymbol]:
        self.symbol_table.analyze(symbol)
        referenced: List[RollupSymbol] = []
        symbol.for_each_declaration_recursive(
            lambda declaration: referenced.extend(declaration.referenced_symbols)
        )
        # nested symbols are emitted as part of their root declaration
        return iter([target.root_symbol for target in referenced])

    def _make_unique_names(self) -> None:
        used_names: Set[str] = set()

        for entry in self._entries:
            if entry.exported:
                if entry.original_name in used_names:
                    raise InternalError(
                        f"Program bug: a package cannot have two exports with the name {entry.original_name}"
                    )
                entry.name_for_emit = entry.original_name
                used_names.add(entry.original_name)

        for entry in self._entries:
            if not entry.exported:
                suffix = 1
                name = entry.original_name
                while name in used_names:
                    suffix += 1
                    name = f"{entry.original_name}_{suffix}"
                entry.name_for_emit = name
                used_names.add(name)

    def _collect_reference_directives(self, symbol: RollupSymbol) -> None:
        if symbol.imported:
            return
        for declaration in symbol.declarations:
            source_file = declaration.source_file
            if source_file in self._directive_files:
                continue
            self._directive_files.add(source_file)
            self._type_reference_directives.update(
                self.program.get_type_reference_directives(source_file)
            )
            self._lib_reference_directives.update(
                self.program.get_lib_reference_directives(source_file)
            )

    def _get_release_tag(self, symbol: RollupSymbol) -> ReleaseTag:
        release_tag = self._release_tags.get(symbol)
        if release_tag is not None:
            return release_tag

        # First tag found wins. Untagged nested symbols inherit from their parent.
        release_tag = ReleaseTag.NONE
        current: Optional[RollupSymbol] = symbol
        while current is not None:
            for declaration in current.declarations:
                declaration_tag = self._get_release_tag_for_declaration(declaration)
                if release_tag != ReleaseTag.NONE and declaration_tag != release_tag:
                    if declaration_tag != ReleaseTag.NONE:
                        logger.debug(
                            "Conflicting release tags",
                            name=current.local_name,
                            kept=release_tag.value,
                            ignored=declaration_tag.value,
                        )
                    break
                release_tag = declaration_tag
            if release_tag != ReleaseTag.NONE:
                break
            current = current.parent_symbol

        self._release_tags[symbol] = release_tag
        return release_tag

    def _get_release_tag_for_declaration(self, declaration: Declaration) -> ReleaseTag:
        for comment in self.program.get_doc_comment_ranges(declaration.node):
            if _PACKAGE_DOCUMENTATION_RE.search(comment.text):
                continue
            match = _RELEASE_TAG_RE.search(comment.text)
            if match:
                return ReleaseTag(match.group(1))
        return ReleaseTag.NONE

    def _find_package_documentation(self) -> Optional[str]:
        root = self.entry_source_file.root
        if root is None:
            return None
        for child in root.children:
            if child.kind == SyntaxKind.JSDOC_COMMENT and _PACKAGE_DOCUMENTATION_RE.search(
                child.text
            ):
                return child.text
        return None

    # --- emission -----------------------------------------------------
    def write_output(self, kind: RollupKind) -> str:
        """Render the rollup for ``kind``. Line endings are always "\\n"."""
        entry_point = self.entry_point
        # fails fast on an unknown kind, even for an empty rollup
        should_include_release_tag(ReleaseTag.NONE, kind)

        lines: List[str] = []
        if self._package_documentation:
            lines.append(self._package_documentation)
            lines.append("")

        for name in self.type_reference_directives:
            lines.append(f'/// <reference types="{name}" />')
        for name in self.lib_reference_directives:
            lines.append(f'/// <reference lib="{name}" />')

        for entry in self._entries:
            import_info = entry.symbol.import_info
            if import_info is None:
                continue
            if import_info.export_name == "*":
                clause = f"* as {entry.name_for_emit}"
            elif import_info.export_name != entry.name_for_emit:
                clause = f"{{ {import_info.export_name} as {entry.name_for_emit} }}"
            else:
                clause = f"{{ {entry.name_for_emit} }}"
            lines.append(f"import {clause} from '{import_info.module_path}';")

        for entry in self._entries:
            if entry.symbol.imported:
                continue
            if not should_include_release_tag(entry.visibility_tier, kind):
                if not self.omit_trimming_comments:
                    lines.append("")
                    lines.append(f"// Removed for this release type: {entry.name_for_emit}")
                continue
            for declaration in entry.symbol.declarations:
                lines.append("")
                lines.append(self._emit_declaration(entry, declaration, kind))

        logger.debug(
            "Rollup rendered",
            entry_point=str(entry_point.source_file.path),
            kind=kind.value,
            lines=len(lines),
        )
        return convert_newlines("\n".join(lines) + "\n", NewlineKind.LF)

    def write_typings_file(
        self,
        path: str | Path,
        kind: RollupKind,
        newline_kind: NewlineKind = NewlineKind.LF,
    ) -> Path:
        target = write_text_file(path, self.write_output(kind), newline_kind)
        logger.info("Wrote declaration rollup", path=str(target), kind=kind.value)
        return target

    def _emit_declaration(
        self, entry: RollupEntry, declaration: Declaration, kind: RollupKind
    ) -> str:
        node = declaration.node
        if node.kind == SyntaxKind.SOURCE_FILE:
            raise RollupInputError(
                f"Unable to emit {entry.name_for_emit}: a namespace import of the local "
                f"module {node.source_file.path} is not supported"
            )

        root = node
        if node.kind != SyntaxKind.VARIABLE_DECLARATION:
            while root.parent is not None and root.parent.kind in _WRAPPER_KINDS:
                root = root.parent

        # the statement nodes whose export/declare/default tokens get replaced
        root_chain: Set[SyntaxNode] = set()
        current: Optional[SyntaxNode] = node
        while current is not None:
            root_chain.add(current)
            if current is root:
                break
            current = current.parent

        span = Span(root)
        self._modify_span(span, entry, declaration, kind, root_chain)

        comments = [
            comment.text
            for comment in self.program.get_doc_comment_ranges(node)
            if not _PACKAGE_DOCUMENTATION_RE.search(comment.text)
        ]
        return "\n".join(comments + [span.get_modified_text()])

    def _modify_span(
        self,
        span: Span,
        entry: RollupEntry,
        declaration: Declaration,
        kind: RollupKind,
        root_chain: Set[SyntaxNode],
    ) -> None:
        node = span.node
        recurse_children = True

        if node.kind == SyntaxKind.JSDOC_COMMENT:
            # The package documentation is emitted once at the top of the file
            if _PACKAGE_DOCUMENTATION_RE.search(node.text):
                span.modification.skip_all()
            recurse_children = False

        elif node.kind == SyntaxKind.BLOCK:
            recurse_children = False

        elif node.kind in _STRIPPED_KEYWORDS:
            if node.parent in root_chain:
                span.modification.skip_all()

        elif node.kind in _PRIMARY_KEYWORDS:
            if declaration.parent is None and node.parent is declaration.node:
                modifiers = "export declare " if entry.exported else "declare "
                # goes in front of modifiers such as "abstract" or "const"
                target = span
                while (
                    target.previous_sibling is not None
                    and target.previous_sibling.kind == SyntaxKind.MODIFIER
                ):
                    target = target.previous_sibling
                target.modification.prefix = modifiers + target.modification.prefix

        elif node.kind == SyntaxKind.VARIABLE_DECLARATION:
            if span.parent is None:
                # One standalone statement per declarator: copy the list prefix
                # ("const " in "const a = 1, b = 2") in front of it.
                var_list = node.parent
                if var_list is None or var_list.kind != SyntaxKind.VARIABLE_DECLARATION_LIST:
                    raise RollupInputError(
                        f"Unsupported variable declaration for {entry.name_for_emit}"
                    )
                first = next(
                    c for c in var_list.children if c.kind == SyntaxKind.VARIABLE_DECLARATION
                )
                list_prefix = node.source_file.get_text(var_list.start, first.start)
                prefix = "declare " + list_prefix + span.modification.prefix
                if entry.exported:
                    prefix = "export " + prefix
                span.modification.prefix = prefix
                span.modification.suffix = ";"

        elif node.kind in _IDENTIFIER_KINDS and not span.children:
            referenced = self._try_get_entry_for_identifier(node)
            if referenced is not None:
                if referenced.name_for_emit is None:
                    raise InternalError(
                        f"name_for_emit is undefined for {referenced.original_name}"
                    )
                span.modification.prefix = referenced.name_for_emit

        if not recurse_children:
            return

        for child in span.children:
            child_declaration = declaration
            if child.node is not declaration.node and self.symbol_table.is_tracked_declaration_node(
                child.node
            ):
                child_declaration = self.symbol_table.get_child_declaration_by_node(
                    child.node, declaration
                )
                release_tag = self._get_release_tag(child_declaration.symbol)
                if not should_include_release_tag(release_tag, kind):
                    self._trim_span(child, child_declaration.symbol.local_name)
                    continue
            self._modify_span(child, entry, child_declaration, kind, root_chain)

    def _trim_span(self, span: Span, name: str) -> None:
        target = span
        if span.kind == SyntaxKind.VARIABLE_DECLARATION:
            # trimming a variable removes its whole statement
            while target.parent is not None and (
                target.parent.kind == SyntaxKind.VARIABLE_DECLARATION_LIST
                or target.parent.kind in _WRAPPER_KINDS
            ):
                target = target.parent

        mod = target.modification
        mod.omit_children = True
        mod.prefix = (
            "" if self.omit_trimming_comments else f"/* Removed for this release type: {name} */"
        )
        # the line break after the member lives on its deepest last descendant
        mod.suffix = target.children[-1].get_last_inner_separator() if target.children else ""

        previous = target.previous_sibling
        while previous is not None and previous.kind == SyntaxKind.JSDOC_COMMENT:
            previous.modification.skip_all()
            previous = previous.previous_sibling

        following = target.next_sibling
        if following is not None and following.kind in (SyntaxKind.COMMA, SyntaxKind.SEMICOLON):
            mod.suffix += following.separator
            following.modification.skip_all()

    def _try_get_entry_for_identifier(self, node: SyntaxNode) -> Optional[RollupEntry]:
        checker_symbol = self.program.resolve_symbol_at(node)
        if checker_symbol is None:
            return None
        symbol = self.symbol_table.try_get_symbol(checker_symbol)
        if symbol is None:
            return None
        return self._entries_by_symbol.get(symbol)
