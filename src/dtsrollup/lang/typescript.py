import re
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import tree_sitter as ts
import tree_sitter_typescript as tsts

from dtsrollup.errors import RollupInputError
from dtsrollup.helpers import is_relative_module, strip_quotes
from dtsrollup.logger import logger
from dtsrollup.models import CommentRange, ImportInfo, SyntaxKind
from dtsrollup.program import (
    CheckerSymbol,
    FollowAliasesResult,
    ProgramProvider,
    SymbolFlags,
)
from dtsrollup.syntax import SourceFile, SyntaxNode

TS_LANGUAGE = ts.Language(tsts.language_typescript())
TSX_LANGUAGE = ts.Language(tsts.language_tsx())
_parsers: Dict[str, ts.Parser] = {}


def _get_parser(path: Path) -> ts.Parser:
    key = "tsx" if path.suffix == ".tsx" else "typescript"
    parser = _parsers.get(key)
    if parser is None:
        parser = ts.Parser(TSX_LANGUAGE if key == "tsx" else TS_LANGUAGE)
        _parsers[key] = parser
    return parser


# --------------------------------------------------------------------------- #
# Tree conversion
# --------------------------------------------------------------------------- #
_NODE_KINDS: Dict[str, SyntaxKind] = {
    "program": SyntaxKind.SOURCE_FILE,
    "class_declaration": SyntaxKind.CLASS,
    "abstract_class_declaration": SyntaxKind.CLASS,
    "interface_declaration": SyntaxKind.INTERFACE,
    "enum_declaration": SyntaxKind.ENUM,
    "enum_assignment": SyntaxKind.ENUM_MEMBER,
    "function_declaration": SyntaxKind.FUNCTION,
    "generator_function_declaration": SyntaxKind.FUNCTION,
    "function_signature": SyntaxKind.FUNCTION,
    "method_definition": SyntaxKind.METHOD_DECLARATION,
    "abstract_method_signature": SyntaxKind.METHOD_DECLARATION,
    "method_signature": SyntaxKind.METHOD_SIGNATURE,
    "internal_module": SyntaxKind.MODULE,
    "module": SyntaxKind.MODULE,
    "public_field_definition": SyntaxKind.PROPERTY_DECLARATION,
    "property_signature": SyntaxKind.PROPERTY_SIGNATURE,
    "type_alias_declaration": SyntaxKind.TYPE_ALIAS,
    "variable_declarator": SyntaxKind.VARIABLE_DECLARATION,
    "lexical_declaration": SyntaxKind.VARIABLE_DECLARATION_LIST,
    "variable_declaration": SyntaxKind.VARIABLE_DECLARATION_LIST,
    "export_statement": SyntaxKind.EXPORT_STATEMENT,
    "ambient_declaration": SyntaxKind.AMBIENT_DECLARATION,
    "expression_statement": SyntaxKind.EXPRESSION_STATEMENT,
    "generic_type": SyntaxKind.TYPE_REFERENCE,
    "nested_type_identifier": SyntaxKind.TYPE_REFERENCE,
    "extends_clause": SyntaxKind.EXPRESSION_WITH_TYPE_ARGUMENTS,
    "type_query": SyntaxKind.TYPE_QUERY,
    "identifier": SyntaxKind.IDENTIFIER,
    "property_identifier": SyntaxKind.IDENTIFIER,
}

_TOKEN_KINDS: Dict[str, SyntaxKind] = {
    "export": SyntaxKind.EXPORT_KEYWORD,
    "default": SyntaxKind.DEFAULT_KEYWORD,
    "declare": SyntaxKind.DECLARE_KEYWORD,
    "class": SyntaxKind.CLASS_KEYWORD,
    "interface": SyntaxKind.INTERFACE_KEYWORD,
    "enum": SyntaxKind.ENUM_KEYWORD,
    "namespace": SyntaxKind.NAMESPACE_KEYWORD,
    "module": SyntaxKind.MODULE_KEYWORD,
    "type": SyntaxKind.TYPE_KEYWORD,
    "function": SyntaxKind.FUNCTION_KEYWORD,
    "abstract": SyntaxKind.MODIFIER,
    "const": SyntaxKind.MODIFIER,
    "async": SyntaxKind.MODIFIER,
    ",": SyntaxKind.COMMA,
    ";": SyntaxKind.SEMICOLON,
}

# type_identifier in a "name" field of these is a reference, not a declaration name
_TYPE_REFERENCE_PARENTS = frozenset({"generic_type", "nested_type_identifier"})
# statement_block bodies that hold declarations rather than code
_NAMESPACE_PARENTS = frozenset({"internal_module", "module", "ambient_declaration"})
_QUALIFIED_PARENTS = frozenset({"nested_type_identifier", "nested_identifier", "member_expression"})
_PARAMETER_PARENTS = frozenset({"required_parameter", "optional_parameter"})
_COMMENT_KINDS = (SyntaxKind.COMMENT, SyntaxKind.JSDOC_COMMENT)
_WRAPPER_KINDS = (
    SyntaxKind.EXPORT_STATEMENT,
    SyntaxKind.AMBIENT_DECLARATION,
    SyntaxKind.EXPRESSION_STATEMENT,
)

_REFERENCE_DIRECTIVE_RE = re.compile(
    r"""^///\s*<reference\s+(types|lib|path)\s*=\s*["']([^"']*)["']"""
)


def _classify(
    ts_node: ts.Node, parent_type: Optional[str], field_name: Optional[str], data: bytes
) -> SyntaxKind:
    node_type = ts_node.type
    if not ts_node.is_named:
        return _TOKEN_KINDS.get(node_type, SyntaxKind.TOKEN)
    if node_type == "comment":
        text = data[ts_node.start_byte : ts_node.end_byte]
        if text.startswith(b"/**") and text != b"/**/":
            return SyntaxKind.JSDOC_COMMENT
        return SyntaxKind.COMMENT
    if node_type == "type_identifier":
        if parent_type == "infer_type" or (
            field_name == "name" and parent_type not in _TYPE_REFERENCE_PARENTS
        ):
            return SyntaxKind.IDENTIFIER
        return SyntaxKind.TYPE_IDENTIFIER
    if parent_type == "enum_body" and node_type in ("property_identifier", "string", "number"):
        return SyntaxKind.ENUM_MEMBER
    if node_type == "statement_block":
        return SyntaxKind.OTHER if parent_type in _NAMESPACE_PARENTS else SyntaxKind.BLOCK
    return _NODE_KINDS.get(node_type, SyntaxKind.OTHER)


def _convert(
    ts_node: ts.Node,
    source_file: SourceFile,
    parent_type: Optional[str] = None,
    field_name: Optional[str] = None,
) -> SyntaxNode:
    node = SyntaxNode(
        _classify(ts_node, parent_type, field_name, source_file.data),
        ts_node.type,
        ts_node.start_byte,
        ts_node.end_byte,
        source_file,
        field_name=field_name,
        is_named=ts_node.is_named,
    )
    for i, child in enumerate(ts_node.children):
        node.append(_convert(child, source_file, ts_node.type, ts_node.field_name_for_child(i)))
    return node


def _code_children(node: SyntaxNode) -> List[SyntaxNode]:
    return [c for c in node.named_children if c.kind not in _COMMENT_KINDS]


# --------------------------------------------------------------------------- #
# Symbols and scopes
# --------------------------------------------------------------------------- #
class TypeScriptSymbol(CheckerSymbol):
    """
    Binder symbol. Alias symbols (imports, re-exports, ``import X = N.Y``)
    point either at a module export (``alias_module``/``alias_export``) or at
    a local entity expression (``alias_target``).
    """

    def __init__(
        self,
        name: str,
        flags: SymbolFlags,
        parent: Optional["TypeScriptSymbol"] = None,
        *,
        source_file: Optional[SourceFile] = None,
        is_ambient: bool = False,
    ) -> None:
        super().__init__(name, flags, parent)
        self.source_file = source_file
        self.is_ambient = is_ambient
        self.exports: Dict[str, TypeScriptSymbol] = {}
        self.members: Dict[str, TypeScriptSymbol] = {}
        self.star_exports: List[str] = []

        self.alias_module: Optional[str] = None
        self.alias_export: Optional[str] = None
        self.alias_is_import = False
        self.alias_target: Optional[SyntaxNode] = None


class _Scope:
    def __init__(
        self,
        node: SyntaxNode,
        owner: Optional[TypeScriptSymbol],
        *,
        is_ambient: bool = False,
        implicit_export: bool = False,
        locals: Optional[Dict[str, TypeScriptSymbol]] = None,
    ) -> None:
        self.node = node
        self.owner = owner  # module or namespace symbol; None for the global scope
        self.is_ambient = is_ambient
        self.implicit_export = implicit_export
        self.locals: Dict[str, TypeScriptSymbol] = locals if locals is not None else {}

    @property
    def parent_symbol(self) -> Optional[TypeScriptSymbol]:
        if self.owner is not None and self.owner.flags & SymbolFlags.NAMESPACE:
            return self.owner
        return None


# --------------------------------------------------------------------------- #
# Program
# --------------------------------------------------------------------------- #
class TypeScriptProgram(ProgramProvider):
    """
    Name-resolved view of TypeScript declaration files, parsed with
    tree-sitter. Files are loaded lazily: the entry file first, then the
    relative modules its aliases point to.
    """

    _RESOLVE_SUFFIXES = (".d.ts", ".ts", ".tsx")

    def __init__(self, project_folder: str | Path = ".") -> None:
        self.project_folder = Path(project_folder).resolve()
        self._files: Dict[Path, SourceFile] = {}
        self._modules: Dict[SourceFile, Optional[TypeScriptSymbol]] = {}
        self._directives: Dict[SourceFile, Dict[str, List[str]]] = {}
        self._scopes: Dict[SyntaxNode, _Scope] = {}
        self._node_symbols: Dict[SyntaxNode, TypeScriptSymbol] = {}
        self._type_parameters: Dict[SyntaxNode, TypeScriptSymbol] = {}
        self._globals: Dict[str, TypeScriptSymbol] = {}

    # --- loading ------------------------------------------------------
    def get_source_file(self, path: str | Path) -> SourceFile:
        full_path = Path(path)
        if not full_path.is_absolute():
            full_path = self.project_folder / full_path
        full_path = full_path.resolve()

        source_file = self._files.get(full_path)
        if source_file is not None:
            return source_file

        try:
            data = full_path.read_bytes()
        except OSError as ex:
            raise RollupInputError(f"Unable to read {full_path}: {ex}") from ex

        source_file = SourceFile(full_path, data)
        tree = _get_parser(full_path).parse(data)
        if tree.root_node.has_error:
            logger.warning("Source file has syntax errors", path=str(full_path))
        source_file.root = _convert(tree.root_node, source_file)
        self._files[full_path] = source_file

        self._bind_file(source_file)
        logger.debug(
            "Loaded source file",
            path=str(full_path),
            module=self._modules[source_file] is not None,
        )

        for referenced in self._directives[source_file]["path"]:
            self.get_source_file(full_path.parent / referenced)
        return source_file

    def _resolve_module(self, specifier: str, from_file: SourceFile) -> Optional[SourceFile]:
        base = from_file.path.parent / specifier
        candidates = [base]
        stem = base
        if base.suffix == ".js":
            stem = base.with_suffix("")
        candidates.extend(stem.with_name(stem.name + suffix) for suffix in self._RESOLVE_SUFFIXES)
        candidates.extend(base / f"index{suffix}" for suffix in (".d.ts", ".ts"))
        for candidate in candidates:
            if candidate.is_file():
                return self.get_source_file(candidate)
        return None

    # --- binding ------------------------------------------------------
    def _bind_file(self, source_file: SourceFile) -> None:
        root = source_file.root
        assert root is not None
        self._directives[source_file] = self._scan_directives(root)

        is_module = any(
            c.type_name in ("import_statement", "export_statement") for c in root.children
        )
        if is_module:
            module_symbol = TypeScriptSymbol(
                str(source_file.path), SymbolFlags.MODULE, source_file=source_file
            )
            module_symbol.declarations.append(root)
            self._node_symbols[root] = module_symbol
            self._modules[source_file] = module_symbol
            scope = _Scope(root, module_symbol)
        else:
            # a script: everything it declares is global
            self._modules[source_file] = None
            scope = _Scope(root, None, is_ambient=True, locals=self._globals)

        self._scopes[root] = scope
        self._bind_statements(root, scope, source_file)

    def _scan_directives(self, root: SyntaxNode) -> Dict[str, List[str]]:
        directives: Dict[str, List[str]] = {"types": [], "lib": [], "path": []}
        for child in root.children:
            if child.kind not in _COMMENT_KINDS:
                break
            match = _REFERENCE_DIRECTIVE_RE.match(child.text)
            if match:
                directives[match.group(1)].append(match.group(2))
        return directives

    def _bind_statements(
        self, container: SyntaxNode, scope: _Scope, source_file: SourceFile
    ) -> None:
        for statement in container.children:
            if not statement.is_named or statement.kind in _COMMENT_KINDS:
                continue
            if statement.type_name == "export_statement":
                self._bind_export(statement, scope, source_file)
            elif statement.type_name == "import_statement":
                self._bind_import(statement, scope, source_file)
            elif statement.type_name == "expression_statement":
                for inner in _code_children(statement):
                    if inner.type_name == "internal_module":
                        self._bind_declaration(inner, scope, source_file, scope.implicit_export)
            else:
                self._bind_declaration(statement, scope, source_file, scope.implicit_export)

    def _bind_declaration(
        self,
        node: SyntaxNode,
        scope: _Scope,
        source_file: SourceFile,
        exported: bool,
        ambient: bool = False,
    ) -> List[TypeScriptSymbol]:
        node_type = node.type_name

        if node_type == "ambient_declaration":
            if any(c.type_name == "global" for c in node.children):
                block = next((c for c in node.children if c.type_name == "statement_block"), None)
                if block is not None:
                    global_scope = _Scope(block, None, is_ambient=True, locals=self._globals)
                    self._scopes[block] = global_scope
                    self._bind_statements(block, global_scope, source_file)
                return []
            symbols: List[TypeScriptSymbol] = []
            for inner in _code_children(node):
                symbols.extend(self._bind_declaration(inner, scope, source_file, exported, True))
            return symbols

        if node_type in ("lexical_declaration", "variable_declaration"):
            symbols = []
            for declarator in node.children_by_type("variable_declarator"):
                name = declarator.child_by_field("name")
                if name is None or name.type_name != "identifier":
                    logger.debug(
                        "Skipping destructuring declaration",
                        path=str(source_file.path),
                        text=declarator.text[:80],
                    )
                    continue
                symbols.append(
                    self._declare(scope, name.text, SymbolFlags.VARIABLE, declarator, exported)
                )
            return symbols

        if node_type in ("internal_module", "module"):
            return self._bind_namespace(node, scope, source_file, exported, ambient)

        if node_type == "import_alias":
            names = _code_children(node)
            if len(names) < 2:
                return []
            symbol = self._new_alias(names[0].text, scope, node)
            symbol.alias_target = names[1]
            scope.locals[symbol.name] = symbol
            if exported:
                self._export(scope, symbol.name, symbol)
            return [symbol]

        flags = {
            "class_declaration": SymbolFlags.CLASS,
            "abstract_class_declaration": SymbolFlags.CLASS,
            "interface_declaration": SymbolFlags.INTERFACE,
            "enum_declaration": SymbolFlags.ENUM,
            "function_declaration": SymbolFlags.FUNCTION,
            "generator_function_declaration": SymbolFlags.FUNCTION,
            "function_signature": SymbolFlags.FUNCTION,
            "type_alias_declaration": SymbolFlags.TYPE_ALIAS,
        }.get(node_type)
        if flags is None:
            return []

        name = node.child_by_field("name")
        if name is None:
            return []
        symbol = self._declare(scope, name.text, flags, node, exported)

        body = node.child_by_field("body")
        if body is not None and flags in (SymbolFlags.CLASS, SymbolFlags.INTERFACE, SymbolFlags.ENUM):
            self._bind_members(body, symbol)
        return [symbol]

    def _bind_namespace(
        self,
        node: SyntaxNode,
        scope: _Scope,
        source_file: SourceFile,
        exported: bool,
        ambient: bool,
    ) -> List[TypeScriptSymbol]:
        name = node.child_by_field("name")
        if name is None:
            return []
        if name.type_name == "string":
            logger.debug(
                "Skipping ambient module declaration",
                name=name.text,
                path=str(source_file.path),
            )
            return []
        if name.type_name == "nested_identifier":
            # "namespace A.B" is bound as "A"
            name = name.find_first(lambda n: n.type_name == "identifier") or name

        symbol = self._declare(scope, name.text, SymbolFlags.NAMESPACE, node, exported)
        body = node.child_by_field("body")
        if body is not None:
            inner_scope = _Scope(
                body,
                symbol,
                is_ambient=scope.is_ambient,
                implicit_export=(
                    ambient
                    or scope.implicit_export
                    or source_file.path.name.endswith(".d.ts")
                ),
            )
            self._scopes[body] = inner_scope
            self._bind_statements(body, inner_scope, source_file)
        return [symbol]

    def _bind_members(self, body: SyntaxNode, owner: TypeScriptSymbol) -> None:
        for member in body.children:
            if member.type_name in ("method_definition", "method_signature", "abstract_method_signature"):
                flags = SymbolFlags.METHOD
            elif member.type_name in ("public_field_definition", "property_signature"):
                flags = SymbolFlags.PROPERTY
            elif member.kind == SyntaxKind.ENUM_MEMBER:
                flags = SymbolFlags.ENUM_MEMBER
            else:
                continue

            if member.type_name == "enum_assignment" or flags != SymbolFlags.ENUM_MEMBER:
                name_node = member.child_by_field("name")
            else:
                name_node = member
            if name_node is None or name_node.type_name == "computed_property_name":
                continue

            name = strip_quotes(name_node.text)
            symbol = owner.members.get(name)
            if symbol is None:
                symbol = TypeScriptSymbol(
                    name,
                    flags,
                    owner,
                    source_file=owner.source_file,
                    is_ambient=owner.is_ambient,
                )
                owner.members[name] = symbol
            else:
                symbol.flags |= flags
            symbol.declarations.append(member)
            self._node_symbols[member] = symbol

    def _declare(
        self,
        scope: _Scope,
        name: str,
        flags: SymbolFlags,
        node: SyntaxNode,
        exported: bool,
    ) -> TypeScriptSymbol:
        symbol = scope.locals.get(name)
        if symbol is None or symbol.flags & SymbolFlags.ALIAS:
            symbol = TypeScriptSymbol(
                name,
                flags,
                scope.parent_symbol,
                source_file=node.source_file,
                is_ambient=scope.is_ambient,
            )
            scope.locals[name] = symbol
        else:
            # declaration merging
            symbol.flags |= flags
        symbol.declarations.append(node)
        self._node_symbols[node] = symbol
        if exported:
            self._export(scope, name, symbol)
        return symbol

    def _export(self, scope: _Scope, name: str, symbol: TypeScriptSymbol) -> None:
        if scope.owner is None:
            return
        scope.owner.exports[name] = symbol

    def _new_alias(self, name: str, scope: _Scope, node: SyntaxNode) -> TypeScriptSymbol:
        alias = TypeScriptSymbol(
            name,
            SymbolFlags.ALIAS,
            scope.parent_symbol,
            source_file=node.source_file,
            is_ambient=scope.is_ambient,
        )
        alias.declarations.append(node)
        return alias

    def _bind_export(self, node: SyntaxNode, scope: _Scope, source_file: SourceFile) -> None:
        declaration = node.child_by_field("declaration")
        source = node.child_by_field("source")
        module = strip_quotes(source.text) if source is not None else None
        is_default = any(c.kind == SyntaxKind.DEFAULT_KEYWORD for c in node.children)

        if declaration is not None:
            symbols = self._bind_declaration(declaration, scope, source_file, not is_default)
            if is_default and symbols:
                self._export(scope, "default", symbols[0])
            return

        value = node.child_by_field("value")
        if value is not None:
            if is_default and value.type_name in ("identifier", "member_expression"):
                alias = self._new_alias("default", scope, node)
                alias.alias_target = value
                self._export(scope, "default", alias)
            elif not is_default:
                logger.warning(
                    "Export assignments are not supported",
                    path=str(source_file.path),
                    text=node.text[:80],
                )
            return

        for child in node.children:
            if child.type_name == "export_clause":
                for specifier in child.children_by_type("export_specifier"):
                    name = specifier.child_by_field("name")
                    if name is None:
                        continue
                    alias_name = specifier.child_by_field("alias")
                    export_name = strip_quotes((alias_name or name).text)
                    alias = self._new_alias(export_name, scope, specifier)
                    if module is not None:
                        alias.alias_module = module
                        alias.alias_export = strip_quotes(name.text)
                    else:
                        alias.alias_target = name
                    self._export(scope, export_name, alias)
                return
            if child.type_name == "namespace_export":
                names = _code_children(child)
                if names and module is not None:
                    export_name = strip_quotes(names[-1].text)
                    alias = self._new_alias(export_name, scope, child)
                    alias.alias_module = module
                    alias.alias_export = "*"
                    self._export(scope, export_name, alias)
                return

        if module is not None and any(c.type_name == "*" for c in node.children):
            if scope.owner is not None:
                scope.owner.star_exports.append(module)
            return

        logger.debug("Ignoring export statement", path=str(source_file.path), text=node.text[:80])

    def _bind_import(self, node: SyntaxNode, scope: _Scope, source_file: SourceFile) -> None:
        source = node.child_by_field("source")
        module = strip_quotes(source.text) if source is not None else None

        def add(local: SyntaxNode, module_path: Optional[str], export_name: str) -> None:
            if module_path is None:
                return
            alias = self._new_alias(local.text, scope, local)
            alias.alias_module = module_path
            alias.alias_export = export_name
            alias.alias_is_import = True
            scope.locals[alias.name] = alias

        for child in node.named_children:
            if child.type_name == "import_clause":
                for part in child.named_children:
                    if part.type_name == "identifier":
                        add(part, module, "default")
                    elif part.type_name == "namespace_import":
                        local = part.find_first(lambda n: n.type_name == "identifier")
                        if local is not None:
                            add(local, module, "*")
                    elif part.type_name == "named_imports":
                        for specifier in part.children_by_type("import_specifier"):
                            name = specifier.child_by_field("name")
                            if name is None:
                                continue
                            local = specifier.child_by_field("alias") or name
                            add(local, module, strip_quotes(name.text))
            elif child.type_name == "import_require_clause":
                local = child.find_first(lambda n: n.type_name == "identifier")
                required = child.child_by_field("source")
                if local is not None and required is not None:
                    add(local, strip_quotes(required.text), "*")

    # --- ProgramProvider ----------------------------------------------
    def get_module_symbol(self, source_file: SourceFile) -> Optional[TypeScriptSymbol]:
        return self._modules.get(source_file)

    def enumerate_exports(self, source_file: SourceFile) -> List[Tuple[str, CheckerSymbol]]:
        module_symbol = self._modules.get(source_file)
        if module_symbol is None:
            return []
        result: List[Tuple[str, CheckerSymbol]] = []
        self._collect_exports(module_symbol, result, set(), set(), True)
        return result

    def _collect_exports(
        self,
        module_symbol: TypeScriptSymbol,
        result: List[Tuple[str, CheckerSymbol]],
        names: Set[str],
        visited: Set[TypeScriptSymbol],
        is_root: bool,
    ) -> None:
        if module_symbol in visited:
            return
        visited.add(module_symbol)

        for name, symbol in module_symbol.exports.items():
            # "export *" never re-exports a default export
            if name in names or (name == "default" and not is_root):
                continue
            names.add(name)
            result.append((name, symbol))

        for specifier in module_symbol.star_exports:
            target = self._resolve_star_module(specifier, module_symbol)
            if target is not None:
                self._collect_exports(target, result, names, visited, False)

    def _resolve_star_module(
        self, specifier: str, module_symbol: TypeScriptSymbol
    ) -> Optional[TypeScriptSymbol]:
        assert module_symbol.source_file is not None
        if not is_relative_module(specifier):
            logger.warning(
                "Skipping star re-export of an external package",
                module=specifier,
                path=str(module_symbol.source_file.path),
            )
            return None
        target_file = self._resolve_module(specifier, module_symbol.source_file)
        if target_file is None:
            logger.warning(
                "Unable to resolve module",
                module=specifier,
                path=str(module_symbol.source_file.path),
            )
            return None
        return self._modules.get(target_file)

    def _get_export(
        self, module_symbol: TypeScriptSymbol, name: str, visited: Set[TypeScriptSymbol]
    ) -> Optional[TypeScriptSymbol]:
        if module_symbol in visited:
            return None
        visited.add(module_symbol)

        symbol = module_symbol.exports.get(name)
        if symbol is not None or name == "default":
            return symbol
        for specifier in module_symbol.star_exports:
            target = self._resolve_star_module(specifier, module_symbol)
            if target is not None:
                symbol = self._get_export(target, name, visited)
                if symbol is not None:
                    return symbol
        return None

    def follow_aliases(self, symbol: CheckerSymbol) -> FollowAliasesResult:
        assert isinstance(symbol, TypeScriptSymbol)
        current = symbol
        seen: Set[TypeScriptSymbol] = set()

        while current.flags & SymbolFlags.ALIAS:
            if current in seen:
                raise RollupInputError(f"Circular alias while resolving {symbol.name}")
            seen.add(current)

            if current.alias_module is None:
                assert current.alias_target is not None
                target = self._resolve_entity(current.alias_target)
                if target is None:
                    raise RollupInputError(
                        f'Unable to resolve "{current.alias_target.text}" in '
                        f"{current.alias_target.source_file.path}"
                    )
                current = target
                continue

            assert current.alias_export is not None and current.source_file is not None
            target_file = None
            if is_relative_module(current.alias_module):
                target_file = self._resolve_module(current.alias_module, current.source_file)
                if target_file is None:
                    logger.warning(
                        "Unable to resolve module, treating it as external",
                        module=current.alias_module,
                        path=str(current.source_file.path),
                    )

            if target_file is None:
                local_name = current.name
                if not current.alias_is_import and current.alias_export != "*":
                    local_name = current.alias_export
                return FollowAliasesResult(
                    current,
                    local_name,
                    import_info=ImportInfo(
                        module_path=current.alias_module, export_name=current.alias_export
                    ),
                )

            module_symbol = self._modules.get(target_file)
            if module_symbol is None:
                raise RollupInputError(f"{target_file.path} is not a module")
            if current.alias_export == "*":
                return FollowAliasesResult(module_symbol, current.name)

            target = self._get_export(module_symbol, current.alias_export, set())
            if target is None:
                raise RollupInputError(
                    f'Module "{current.alias_module}" has no export named "{current.alias_export}"'
                )
            current = target

        return FollowAliasesResult(current, current.name, is_ambient=current.is_ambient)

    def get_symbol_of_declaration(self, node: SyntaxNode) -> Optional[TypeScriptSymbol]:
        symbol = self._node_symbols.get(node)
        if symbol is not None:
            return symbol
        if node.type_name in ("type_parameter", "mapped_type_clause", "infer_type"):
            return self._get_type_parameter(node)
        return None

    def resolve_symbol_at(self, node: SyntaxNode) -> Optional[TypeScriptSymbol]:
        symbol = self._node_symbols.get(node)
        if symbol is not None:
            return symbol

        parent = node.parent
        if parent is not None:
            if parent.type_name in _QUALIFIED_PARENTS and node.field_name in ("name", "property"):
                return self._resolve_entity(parent)
            if parent.type_name == "generic_type" and node.field_name == "name":
                return self._lookup(node.text, node)
            if parent.type_name in _PARAMETER_PARENTS and node.field_name == "pattern":
                return None
            if parent.type_name == "rest_pattern":
                return None
            if parent.type_name == "infer_type":
                return self._get_type_parameter(parent)
            if node.field_name in ("name", "alias"):
                return self.get_symbol_of_declaration(parent)

        if node.type_name in ("identifier", "type_identifier"):
            return self._lookup(node.text, node)
        return None

    def _resolve_entity(self, node: SyntaxNode) -> Optional[TypeScriptSymbol]:
        """Resolve ``A``, ``A.B`` or ``A.B.C`` to a symbol."""
        if node.type_name in ("identifier", "type_identifier"):
            return self._lookup(node.text, node)
        if node.type_name in _QUALIFIED_PARENTS:
            parts = _code_children(node)
            if not parts:
                return None
            left = node.child_by_field("object") or node.child_by_field("module") or parts[0]
            right = node.child_by_field("property") or node.child_by_field("name") or parts[-1]
            container = self._resolve_entity(left)
            if container is None:
                return None
            return self._get_member(container, right.text)
        return None

    def _get_member(self, container: TypeScriptSymbol, name: str) -> Optional[TypeScriptSymbol]:
        followed = self.follow_aliases(container)
        if followed.import_info is not None:
            # members of external packages are unknown
            return None
        target = followed.followed_symbol
        assert isinstance(target, TypeScriptSymbol)
        if target.flags & SymbolFlags.MODULE:
            return self._get_export(target, name, set())
        return target.exports.get(name) or target.members.get(name)

    def _lookup(self, name: str, node: SyntaxNode) -> Optional[TypeScriptSymbol]:
        """Lexical lookup from ``node`` outwards, ending in the global scope."""
        previous = node
        current = node.parent
        while current is not None:
            type_parameters = current.child_by_field("type_parameters")
            if type_parameters is not None:
                for param in type_parameters.children_by_type("type_parameter"):
                    param_name = param.child_by_field("name")
                    if param_name is not None and param_name.text == name:
                        return self._get_type_parameter(param)

            if current.type_name == "index_signature":
                for clause in current.children_by_type("mapped_type_clause"):
                    clause_name = clause.child_by_field("name")
                    if clause_name is not None and clause_name.text == name:
                        return self._get_type_parameter(clause)

            if current.type_name == "conditional_type" and previous.field_name in ("right", "consequence"):
                extends_type = current.child_by_field("right")
                if extends_type is not None:
                    for infer in extends_type.walk():
                        if infer.type_name == "infer_type" and self._type_parameter_name(infer) == name:
                            return self._get_type_parameter(infer)

            scope = self._scopes.get(current)
            if scope is not None:
                symbol = scope.locals.get(name)
                if symbol is None and scope.parent_symbol is not None:
                    symbol = scope.parent_symbol.exports.get(name)
                if symbol is not None:
                    return symbol

            previous = current
            current = current.parent

        return self._globals.get(name)

    def _type_parameter_name(self, node: SyntaxNode) -> str:
        if node.type_name == "infer_type":
            name = node.find_first(lambda n: n.type_name == "type_identifier")
        else:
            name = node.child_by_field("name")
        return name.text if name is not None else ""

    def _get_type_parameter(self, node: SyntaxNode) -> TypeScriptSymbol:
        symbol = self._type_parameters.get(node)
        if symbol is None:
            symbol = TypeScriptSymbol(
                self._type_parameter_name(node),
                SymbolFlags.TYPE_PARAMETER,
                source_file=node.source_file,
            )
            symbol.declarations.append(node)
            self._type_parameters[node] = symbol
        return symbol

    def get_doc_comment_ranges(self, node: SyntaxNode) -> List[CommentRange]:
        target = node
        if node.kind == SyntaxKind.VARIABLE_DECLARATION:
            # only a lone declarator owns the comments of its statement
            var_list = node.parent
            if (
                var_list is None
                or var_list.kind != SyntaxKind.VARIABLE_DECLARATION_LIST
                or len(var_list.children_by_type("variable_declarator")) != 1
            ):
                return self._leading_doc_comments(node)
            target = var_list
        while target.parent is not None and target.parent.kind in _WRAPPER_KINDS:
            target = target.parent
        return self._leading_doc_comments(target)

    def _leading_doc_comments(self, target: SyntaxNode) -> List[CommentRange]:
        ranges: List[CommentRange] = []
        sibling = target.previous_sibling
        while sibling is not None and sibling.kind in _COMMENT_KINDS:
            if sibling.kind == SyntaxKind.JSDOC_COMMENT:
                ranges.append(CommentRange(start=sibling.start, end=sibling.end, text=sibling.text))
            sibling = sibling.previous_sibling
        ranges.reverse()
        return ranges

    def get_type_reference_directives(self, source_file: SourceFile) -> List[str]:
        return list(self._directives.get(source_file, {}).get("types", []))

    def get_lib_reference_directives(self, source_file: SourceFile) -> List[str]:
        return list(self._directives.get(source_file, {}).get("lib", []))
