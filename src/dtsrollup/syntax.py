from pathlib import Path
from typing import Callable, Iterator, List, Optional

from dtsrollup.models import SyntaxKind


class SourceFile:
    """
    One parsed input file. Offsets used by nodes are byte offsets into ``data``.
    """

    def __init__(self, path: Path, data: bytes) -> None:
        self.path = path
        self.data = data
        self.root: Optional["SyntaxNode"] = None

    @property
    def text(self) -> str:
        return self.data.decode("utf-8")

    def get_text(self, start: int, end: int) -> str:
        if end <= start:
            return ""
        return self.data[start:end].decode("utf-8")

    def __repr__(self) -> str:
        return f"SourceFile({str(self.path)!r})"


class SyntaxNode:
    """
    Language-neutral syntax node.

    ``kind`` is what the rollup engine reasons about; ``type_name`` keeps the
    grammar's own node type for the program provider that produced the tree.
    Nodes compare by identity, so they can be used as dictionary keys.
    """

    __slots__ = (
        "kind",
        "type_name",
        "start",
        "end",
        "source_file",
        "field_name",
        "is_named",
        "parent",
        "children",
        "index",
    )

    def __init__(
        self,
        kind: SyntaxKind,
        type_name: str,
        start: int,
        end: int,
        source_file: SourceFile,
        *,
        field_name: Optional[str] = None,
        is_named: bool = True,
    ) -> None:
        self.kind = kind
        self.type_name = type_name
        self.start = start
        self.end = end
        self.source_file = source_file
        self.field_name = field_name
        self.is_named = is_named
        self.parent: Optional[SyntaxNode] = None
        self.children: List[SyntaxNode] = []
        self.index = 0

    def append(self, child: "SyntaxNode") -> None:
        child.parent = self
        child.index = len(self.children)
        self.children.append(child)

    @property
    def text(self) -> str:
        return self.source_file.get_text(self.start, self.end)

    @property
    def previous_sibling(self) -> Optional["SyntaxNode"]:
        if self.parent is None or self.index == 0:
            return None
        return self.parent.children[self.index - 1]

    @property
    def next_sibling(self) -> Optional["SyntaxNode"]:
        if self.parent is None or self.index + 1 >= len(self.parent.children):
            return None
        return self.parent.children[self.index + 1]

    @property
    def named_children(self) -> List["SyntaxNode"]:
        return [c for c in self.children if c.is_named]

    def child_by_field(self, field_name: str) -> Optional["SyntaxNode"]:
        for child in self.children:
            if child.field_name == field_name:
                return child
        return None

    def children_by_type(self, *type_names: str) -> List["SyntaxNode"]:
        return [c for c in self.children if c.type_name in type_names]

    def walk(self) -> Iterator["SyntaxNode"]:
        """Pre-order iteration over this node and all descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find_first(self, predicate: Callable[["SyntaxNode"], bool]) -> Optional["SyntaxNode"]:
        for node in self.walk():
            if predicate(node):
                return node
        return None

    def find_parent(self, *kinds: SyntaxKind) -> Optional["SyntaxNode"]:
        current = self.parent
        while current is not None:
            if current.kind in kinds:
                return current
            current = current.parent
        return None

    def __repr__(self) -> str:
        return f"SyntaxNode({self.kind.value}, {self.type_name!r}, {self.start}:{self.end})"
