"""In-memory MSBuild project document with a format-preserving save.

``ProjectDocument`` wraps the XML of one ``.csproj``/``.vbproj``/``.fsproj``
file and exposes its items as ``Declaration`` records. Items can be added
and removed; ``save()`` writes the document back to the same path keeping
the original line endings, byte-order mark, XML prolog, comments,
indentation and root attribute order.

Elements are re-serialized by ElementTree, so markup that XML treats as
equivalent is normalized on save: an empty element written as
``<NoWarn></NoWarn>`` becomes ``<NoWarn />`` and attribute values are
re-quoted with double quotes. Line endings are preserved exactly.

Only items declared directly in the project file are visible; items from
imported ``.props``/``.targets`` files cannot be rewritten and are not
loaded.

Example::

    doc = ProjectDocument.load(Path("App.csproj"), {"Configuration": "Release"})
    for item in doc.items:
        print(item.item_type, item.evaluated_include)
    doc.save()
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from xml.etree import ElementTree

from refswap.exceptions import ProjectLoadError
from refswap.project.properties import evaluate_properties, expand, top_level_groups

logger = logging.getLogger(__name__)

_BOM = b"\xef\xbb\xbf"

# Attributes of an item element that are not metadata.
_ITEM_ATTRIBUTES: frozenset[str] = frozenset({
    "Include", "Exclude", "Remove", "Update", "Condition",
    "KeepMetadata", "RemoveMetadata", "KeepDuplicates", "MatchOnMetadata",
})

# Markup that may precede the root element.
_PROLOG_TOKEN_RE = re.compile(r"<!--.*?-->|<\?.*?\?>|<!DOCTYPE[^>]*>|<", re.S)

_DEFAULT_INDENT = "  "

_START_TAG_RE = re.compile(r"<[\w:.\-]+((?:\s+[\w:.\-]+\s*=\s*(?:\"[^\"]*\"|'[^']*'))*)\s*/?>")
_ATTRIBUTE_NAME_RE = re.compile(r"([\w:.\-]+)\s*=\s*(?:\"[^\"]*\"|'[^']*')")


@dataclass(eq=False)
class Declaration:
    """One item (dependency entry) of a project document.

    Attributes:
        item_type: Item element name, e.g. "Reference" or "PackageReference".
        evaluated_include: ``Include`` value after property expansion.
        direct_metadata: Metadata declared on the item (child elements and
            attributes) after property expansion, in document order.
        unevaluated_include: ``Include`` value as written in the file.
    """

    item_type: str
    evaluated_include: str
    direct_metadata: dict[str, str] = field(default_factory=dict)
    unevaluated_include: str = ""
    element: ElementTree.Element | None = field(default=None, repr=False)
    group: ElementTree.Element | None = field(default=None, repr=False)

    def metadata_value(self, name: str) -> str | None:
        """Look up metadata by case-insensitive name."""
        lowered = name.lower()
        for key, value in self.direct_metadata.items():
            if key.lower() == lowered:
                return value
        return None


class ProjectDocument:
    """A loaded, mutable MSBuild project file.

    Instances are owned by one task at a time and are not thread-safe.
    """

    def __init__(
        self,
        path: Path,
        root: ElementTree.Element,
        *,
        prolog: str = "",
        epilogue: str = "\n",
        newline: str = "\n",
        bom: bool = False,
        global_properties: Mapping[str, str] | None = None,
    ) -> None:
        self.path = path
        self.root = root
        self.prolog = prolog
        self.epilogue = epilogue
        self.newline = newline
        self.bom = bom
        self.properties = evaluate_properties(root, path, global_properties)
        self.modified = False
        self._items: list[Declaration] = self._read_items()

    # -- Loading ------------------------------------------------------------

    @classmethod
    def load(
        cls, path: str | Path, global_properties: Mapping[str, str] | None = None
    ) -> ProjectDocument:
        """Read and parse a project file.

        Args:
            path: Project file location.
            global_properties: MSBuild global properties for evaluation.

        Raises:
            ProjectLoadError: If the file is unreadable or not valid XML.
        """
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise ProjectLoadError(f"Cannot read project {path}: {exc}") from exc

        bom = raw.startswith(_BOM)
        try:
            text = raw[len(_BOM):].decode("utf-8") if bom else raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProjectLoadError(f"Project {path} is not UTF-8 encoded: {exc}") from exc
        newline = "\r\n" if "\r\n" in text else "\n"
        text = text.replace("\r\n", "\n")

        try:
            parser = ElementTree.XMLParser(target=ElementTree.TreeBuilder(insert_comments=True))
            root = ElementTree.fromstring(text, parser=parser)
        except ElementTree.ParseError as exc:
            raise ProjectLoadError(f"Malformed project {path}: {exc}") from exc

        namespace = _strip_namespaces(root)
        if root.tag != "Project":
            raise ProjectLoadError(f"{path} is not an MSBuild project (root is <{root.tag}>)")
        if namespace:
            root.set("xmlns", namespace)

        prolog, epilogue = _split_outer_text(text, root.tag)
        _restore_attribute_order(root, text[len(prolog):])
        return cls(
            path, root,
            prolog=prolog, epilogue=epilogue, newline=newline, bom=bom,
            global_properties=global_properties,
        )

    # -- Items --------------------------------------------------------------

    @property
    def items(self) -> list[Declaration]:
        """All items declared in the project, in document order."""
        return list(self._items)

    def add_item(
        self,
        item_type: str,
        include: str,
        metadata: Sequence[tuple[str, str]] = (),
    ) -> Declaration:
        """Add an item, grouping it with existing items of the same type.

        The item joins the first unconditioned ``<ItemGroup>`` that already
        holds items of *item_type*, in alphabetical position when those
        items are sorted, otherwise after them. Without such a group a new
        ``<ItemGroup>`` is appended after the last existing one. Metadata is
        written as child elements.
        """
        element = ElementTree.Element(item_type, {"Include": include})
        group = self._group_for(item_type)
        index = self._insert_position(group, item_type, include)
        level = self._depth(group) + 1
        _insert_indented(group, index, element, self._indent(level), self._indent(level - 1))

        for position, (name, value) in enumerate(metadata):
            child = ElementTree.SubElement(element, name)
            child.text = value
            child.tail = self._indent(level + 1)
            if position == 0:
                element.text = self._indent(level + 1)
        if len(element):
            element[-1].tail = self._indent(level)

        self._items = self._read_items()
        self.modified = True
        logger.debug("Added %s %s to %s", item_type, include, self.path)
        return next(d for d in self._items if d.element is element)

    def remove_item(self, declaration: Declaration) -> None:
        """Remove an item; an ``<ItemGroup>`` left empty is removed too.

        Raises:
            ValueError: If the declaration does not belong to this document.
        """
        group = declaration.group
        element = declaration.element
        owned = any(item.element is element for item in self._items)
        if group is None or element is None or not owned:
            raise ValueError(f"{declaration.evaluated_include!r} is not an item of {self.path}")
        _remove_indented(group, element)
        if not len(group):
            parent = self._parent_of(group)
            if parent is not None:
                _remove_indented(parent, group)
        declaration.element = None
        declaration.group = None
        self._items = self._read_items()
        self.modified = True
        logger.debug("Removed %s %s from %s", declaration.item_type,
                     declaration.evaluated_include, self.path)

    # -- Saving -------------------------------------------------------------

    def to_text(self) -> str:
        """Serialize the document with its original line endings."""
        body = ElementTree.tostring(self.root, encoding="unicode")
        text = self.prolog + body + self.epilogue
        if self.newline != "\n":
            text = text.replace("\n", self.newline)
        return text

    def save(self, path: str | Path | None = None) -> Path:
        """Write the document back to disk (default: where it was loaded).

        Returns:
            The path written.
        """
        target = Path(path) if path is not None else self.path
        data = self.to_text().encode("utf-8")
        target.write_bytes(_BOM + data if self.bom else data)
        self.modified = False
        logger.info("Saved %s", target)
        return target

    # -- Internal helpers ---------------------------------------------------

    def _read_items(self) -> list[Declaration]:
        items: list[Declaration] = []
        for group in top_level_groups(self.root, "ItemGroup"):
            for element in group:
                if not isinstance(element.tag, str):
                    continue
                include = element.get("Include")
                if include is None:
                    continue
                metadata = {
                    name: expand(value, self.properties)
                    for name, value in element.attrib.items()
                    if name not in _ITEM_ATTRIBUTES
                }
                for child in element:
                    if isinstance(child.tag, str):
                        metadata[child.tag] = expand((child.text or "").strip(), self.properties)
                items.append(Declaration(
                    item_type=element.tag,
                    evaluated_include=expand(include.strip(), self.properties),
                    direct_metadata=metadata,
                    unevaluated_include=include,
                    element=element,
                    group=group,
                ))
        return items

    def _group_for(self, item_type: str) -> ElementTree.Element:
        for group in self.root.findall("ItemGroup"):
            if group.get("Condition") is None and group.find(item_type) is not None:
                return group
        groups = self.root.findall("ItemGroup")
        index = list(self.root).index(groups[-1]) + 1 if groups else len(self.root)
        group = ElementTree.Element("ItemGroup")
        _insert_indented(self.root, index, group, self._indent(1), self._indent(0))
        return group

    @staticmethod
    def _insert_position(group: ElementTree.Element, item_type: str, include: str) -> int:
        children = list(group)
        same = [i for i, child in enumerate(children) if child.tag == item_type]
        if not same:
            return len(children)
        names = [children[i].get("Include", "").lower() for i in same]
        if names == sorted(names):
            for i, name in zip(same, names):
                if include.lower() < name:
                    return i
        return same[-1] + 1

    def _parent_of(self, target: ElementTree.Element) -> ElementTree.Element | None:
        for parent in self.root.iter():
            if any(child is target for child in parent):
                return parent
        return None

    def _depth(self, target: ElementTree.Element) -> int:
        depth = 0
        node = target
        while node is not self.root:
            parent = self._parent_of(node)
            if parent is None:
                break
            depth += 1
            node = parent
        return depth

    def _indent(self, level: int) -> str:
        return "\n" + _indent_unit(self.root) * level


def _strip_namespaces(root: ElementTree.Element) -> str:
    """Remove ``{ns}`` prefixes from element tags, returning the namespace."""
    namespace = ""
    for element in root.iter():
        if isinstance(element.tag, str) and element.tag.startswith("{"):
            ns, _, local = element.tag[1:].partition("}")
            namespace = namespace or ns
            element.tag = local
    return namespace


def _split_outer_text(text: str, root_tag: str) -> tuple[str, str]:
    """Return the text before the root start tag and after its end tag."""
    pos = 0
    start = 0
    while True:
        match = _PROLOG_TOKEN_RE.search(text, pos)
        if match is None:
            break
        if match.group() == "<":
            start = match.start()
            break
        pos = match.end()
    closing = list(re.finditer(rf"</{re.escape(root_tag)}\s*>", text))
    if closing:
        end = closing[-1].end()
    else:
        stripped = text.rstrip()
        end = len(stripped)
    return text[:start], text[end:]


def _restore_attribute_order(root: ElementTree.Element, markup: str) -> None:
    """Reorder the root's attributes as written in its start tag.

    The parser reports ``xmlns`` separately from the other attributes, so
    it would otherwise move to the end of the tag on save.
    """
    start_tag = _START_TAG_RE.match(markup)
    if start_tag is None:
        return
    written = _ATTRIBUTE_NAME_RE.findall(start_tag.group(1))
    remaining = dict(root.attrib)
    root.attrib.clear()
    for name in written:
        if name in remaining:
            root.attrib[name] = remaining.pop(name)
    root.attrib.update(remaining)


def _indent_unit(root: ElementTree.Element) -> str:
    """Infer one indentation step from the whitespace before the first child."""
    lead = root.text or ""
    if "\n" in lead:
        unit = lead.rsplit("\n", 1)[1]
        if unit and not unit.strip():
            return unit
    return _DEFAULT_INDENT


def _insert_indented(
    parent: ElementTree.Element,
    index: int,
    element: ElementTree.Element,
    child_indent: str,
    closing_indent: str,
) -> None:
    """Insert *element* at *index*, fixing up surrounding whitespace."""
    count = len(parent)
    if count == 0:
        parent.text = child_indent
        element.tail = closing_indent
    elif index >= count:
        last = parent[count - 1]
        before_last = parent.text if count == 1 else parent[count - 2].tail
        element.tail = last.tail
        last.tail = before_last if before_last and before_last.strip() == "" else child_indent
        index = count
    else:
        before = parent.text if index == 0 else parent[index - 1].tail
        element.tail = before if before and before.strip() == "" else child_indent
    parent.insert(index, element)


def _remove_indented(parent: ElementTree.Element, element: ElementTree.Element) -> None:
    """Remove *element*, keeping the closing whitespace of *parent* intact."""
    children = list(parent)
    index = next(i for i, child in enumerate(children) if child is element)
    if index == len(children) - 1 and index > 0:
        children[index - 1].tail = element.tail
    elif index == 0 and len(children) == 1:
        parent.text = None
    parent.remove(element)
