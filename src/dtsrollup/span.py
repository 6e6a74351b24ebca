from typing import Callable, List, Optional

from dtsrollup.models import SyntaxKind
from dtsrollup.syntax import SyntaxNode


class SpanModification:
    """Edits applied by ``Span.get_modified_text()``."""

    def __init__(self, span: "Span") -> None:
        self._span = span
        self.reset()

    @property
    def prefix(self) -> str:
        return self._prefix if self._prefix is not None else self._span.prefix

    @prefix.setter
    def prefix(self, value: str) -> None:
        self._prefix = value

    @property
    def suffix(self) -> str:
        return self._suffix if self._suffix is not None else self._span.suffix

    @suffix.setter
    def suffix(self, value: str) -> None:
        self._suffix = value

    def reset(self) -> None:
        self.omit_children = False
        self.omit_separator_after = False
        self._prefix: Optional[str] = None
        self._suffix: Optional[str] = None

    def skip_all(self) -> None:
        """Delete the span from the output, including its separator."""
        self.prefix = ""
        self.suffix = ""
        self.omit_children = True
        self.omit_separator_after = True


class Span:
    """
    Lossless view of a syntax subtree used to rewrite declarations as text.

    Every character between the start and end of the root node belongs to
    exactly one part of one span. A span is made of, in order:

    - a prefix: text before the first child (the whole text for a leaf)
    - the child spans
    - a suffix: text after the last child
    - a separator: the gap between this span and whatever comes next

    The gap between two siblings is handed to the deepest last descendant of
    the earlier sibling that ends where that sibling ends, so that it is
    printed after any suffix.
    """

    def __init__(self, node: SyntaxNode) -> None:
        self.node = node
        self.start = node.start
        self.end = node.end
        self.children: List[Span] = []
        self.modification = SpanModification(self)
        self.parent: Optional[Span] = None
        self.previous_sibling: Optional[Span] = None
        self.next_sibling: Optional[Span] = None
        self._separator_start = 0
        self._separator_end = 0

        previous: Optional[Span] = None
        for child_node in node.children:
            child = Span(child_node)
            child.parent = self
            child.previous_sibling = previous
            if previous is not None:
                previous.next_sibling = child
            self.children.append(child)

            # a child never lies outside its parent
            self.start = min(self.start, child.start)
            self.end = max(self.end, child.end)

            if previous is not None and previous.end < child.start:
                recipient = previous
                while recipient.children:
                    last = recipient.children[-1]
                    if last.end != recipient.end:
                        break
                    recipient = last
                recipient._separator_start = previous.end
                recipient._separator_end = child.start
            previous = child

    @property
    def kind(self) -> SyntaxKind:
        return self.node.kind

    @property
    def prefix(self) -> str:
        if self.children:
            return self._get_text(self.start, self.children[0].start)
        return self._get_text(self.start, self.end)

    @property
    def suffix(self) -> str:
        if self.children:
            return self._get_text(self.children[-1].end, self.end)
        return ""

    @property
    def separator(self) -> str:
        return self._get_text(self._separator_start, self._separator_end)

    def get_last_inner_separator(self) -> str:
        if self.separator:
            return self.separator
        if self.children:
            return self.children[-1].get_last_inner_separator()
        return ""

    def find_first_parent(self, *kinds: SyntaxKind) -> Optional["Span"]:
        current = self.parent
        while current is not None:
            if current.kind in kinds:
                return current
            current = current.parent
        return None

    def for_each(self, callback: Callable[["Span"], None]) -> None:
        callback(self)
        for child in self.children:
            child.for_each(callback)

    def get_text(self) -> str:
        parts: List[str] = []
        self._write_text(parts, modified=False)
        return "".join(parts)

    def get_modified_text(self) -> str:
        parts: List[str] = []
        self._write_text(parts, modified=True)
        return "".join(parts)

    def get_dump(self, indent: str = "") -> str:
        """Debug dump showing prefix, suffix and separator of every span."""
        result = f"{indent}{self.kind.value} ({self.node.type_name}):"
        if self.prefix:
            result += f" pre=[{_trimmed(self.prefix)}]"
        if self.suffix:
            result += f" suf=[{_trimmed(self.suffix)}]"
        if self.separator:
            result += f" sep=[{_trimmed(self.separator)}]"
        result += "\n"
        for child in self.children:
            result += child.get_dump(indent + "  ")
        return result

    def _write_text(self, parts: List[str], modified: bool) -> None:
        if not modified:
            parts.append(self.prefix)
            for child in self.children:
                child._write_text(parts, modified)
            parts.append(self.suffix)
            parts.append(self.separator)
            return

        mod = self.modification
        parts.append(mod.prefix)
        if not mod.omit_children:
            for child in self.children:
                child._write_text(parts, modified)
        parts.append(mod.suffix)
        if not mod.omit_separator_after:
            parts.append(self.separator)

    def _get_text(self, start: int, end: int) -> str:
        return self.node.source_file.get_text(start, end)


def _trimmed(text: str) -> str:
    text = text.replace("\r", "\\r").replace("\n", "\\n")
    if len(text) > 100:
        return text[:97] + "..."
    return text
