from pathlib import Path
from typing import List

from dtsrollup.models import SyntaxKind
from dtsrollup.span import Span
from dtsrollup.syntax import SourceFile, SyntaxNode


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #
def _leaf(sf: SourceFile, kind: SyntaxKind, start: int, end: int) -> SyntaxNode:
    return SyntaxNode(kind, kind.value, start, end, sf)


def _node(sf: SourceFile, kind: SyntaxKind, children: List[SyntaxNode]) -> SyntaxNode:
    node = SyntaxNode(kind, kind.value, children[0].start, children[-1].end, sf)
    for child in children:
        node.append(child)
    return node


def _interface_statement() -> SyntaxNode:
    # "export interface A {}"
    sf = SourceFile(Path("a.d.ts"), b"export interface A {}")
    body = _node(
        sf,
        SyntaxKind.OTHER,
        [_leaf(sf, SyntaxKind.TOKEN, 19, 20), _leaf(sf, SyntaxKind.TOKEN, 20, 21)],
    )
    declaration = _node(
        sf,
        SyntaxKind.INTERFACE,
        [
            _leaf(sf, SyntaxKind.INTERFACE_KEYWORD, 7, 16),
            _leaf(sf, SyntaxKind.IDENTIFIER, 17, 18),
            body,
        ],
    )
    return _node(
        sf,
        SyntaxKind.EXPORT_STATEMENT,
        [_leaf(sf, SyntaxKind.EXPORT_KEYWORD, 0, 6), declaration],
    )


def _nested() -> SyntaxNode:
    # "a {b} c": the gap before "c" belongs to the "}" leaf
    sf = SourceFile(Path("n.d.ts"), b"a {b} c")
    inner = _node(
        sf,
        SyntaxKind.OTHER,
        [
            _leaf(sf, SyntaxKind.TOKEN, 2, 3),
            _leaf(sf, SyntaxKind.IDENTIFIER, 3, 4),
            _leaf(sf, SyntaxKind.TOKEN, 4, 5),
        ],
    )
    outer = _node(sf, SyntaxKind.OTHER, [_leaf(sf, SyntaxKind.IDENTIFIER, 0, 1), inner])
    return _node(sf, SyntaxKind.OTHER, [outer, _leaf(sf, SyntaxKind.IDENTIFIER, 6, 7)])


# --------------------------------------------------------------------------- #
# Tests
# --------------------------------------------------------------------------- #
def test_span_is_lossless():
    span = Span(_interface_statement())
    assert span.get_text() == "export interface A {}"
    assert span.get_modified_text() == "export interface A {}"


def test_leaf_prefix_and_separator():
    span = Span(_interface_statement())
    export_keyword = span.children[0]
    assert export_keyword.prefix == "export"
    assert export_keyword.suffix == ""
    assert export_keyword.separator == " "


def test_gap_goes_to_deepest_last_descendant():
    span = Span(_nested())
    outer = span.children[0]
    closing = outer.children[1].children[2]

    assert outer.separator == ""
    assert closing.separator == " "
    assert outer.get_last_inner_separator() == " "
    assert span.get_text() == "a {b} c"


def test_skip_all_and_prefix_override():
    span = Span(_interface_statement())
    span.children[0].modification.skip_all()
    keyword = span.children[1].children[0]
    keyword.modification.prefix = "declare interface"

    assert span.get_modified_text() == "declare interface A {}"
    # the original text is untouched
    assert span.get_text() == "export interface A {}"


def test_omit_children_replaces_subtree():
    span = Span(_interface_statement())
    body = span.children[1].children[2]
    body.modification.omit_children = True
    body.modification.prefix = "{ /* empty */ }"

    assert span.get_modified_text() == "export interface A { /* empty */ }"


def test_reset_restores_original_text():
    span = Span(_interface_statement())
    modification = span.children[0].modification
    modification.skip_all()
    modification.reset()
    assert span.get_modified_text() == "export interface A {}"


def test_find_first_parent_and_for_each():
    span = Span(_interface_statement())
    identifier = span.children[1].children[1]
    assert identifier.find_first_parent(SyntaxKind.EXPORT_STATEMENT) is span
    assert identifier.find_first_parent(SyntaxKind.CLASS) is None

    kinds = []
    span.for_each(lambda s: kinds.append(s.kind))
    assert kinds[0] == SyntaxKind.EXPORT_STATEMENT
    assert len(kinds) == 8


def test_dump_lists_every_span():
    dump = Span(_interface_statement()).get_dump()
    assert dump.splitlines()[0].startswith("export_statement")
    assert "pre=[interface]" in dump
    assert "sep=[ ]" in dump
