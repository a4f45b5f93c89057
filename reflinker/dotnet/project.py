"""Parse and write .csproj reference lists (XML with MSBuild schema)."""

from __future__ import annotations

import copy
import logging
import os
import re
import xml.etree.ElementTree as ET

from reflinker.config import CsprojProjectReference, CsprojReference
from reflinker.dotnet.paths import relative_path, resolve_path
from reflinker.errors import MalformedInputError, NotFoundError

logger = logging.getLogger(__name__)

MSBUILD_NS = "http://schemas.microsoft.com/developer/msbuild/2003"

# Write MSBuild elements without a prefix
ET.register_namespace("", MSBUILD_NS)

_BOM = b"\xef\xbb\xbf"
_DECLARATION_RE = re.compile(rb"^<\?xml[^>]*\?>")
_INDENT_RE = re.compile(r"^\n([ \t]+)$")


def _build_parent_map(root: ET.Element) -> dict[ET.Element, ET.Element]:
    return {child: parent for parent in root.iter() for child in parent}


def _index_path(root: ET.Element, node: ET.Element, parents: dict) -> list[int]:
    """Child indices leading from ``root`` to ``node``."""
    path = []
    while node is not root:
        parent = parents[node]
        path.append(list(parent).index(node))
        node = parent
    path.reverse()
    return path


def _follow(root: ET.Element, path: list[int]) -> ET.Element:
    node = root
    for index in path:
        node = node[index]
    return node


def _detach(parent: ET.Element, elem: ET.Element) -> None:
    """Remove ``elem`` while keeping the whitespace that closes ``parent``."""
    children = list(parent)
    index = children.index(elem)
    if index == len(children) - 1:
        if index > 0:
            children[index - 1].tail = elem.tail
        else:
            parent.text = elem.tail
    parent.remove(elem)
    elem.tail = None


class CsprojDocument:
    """The reference lists of a .csproj file.

    ``references`` and ``project_references`` are plain lists owned by the
    document. Their elements are taken out of the XML tree on load; on save
    they are rebuilt from the lists and put back into the remembered
    ItemGroups. The rest of the file passes through untouched.
    """

    def __init__(self, path: str, root: ET.Element) -> None:
        self.path = os.path.abspath(path)
        self.references: list[CsprojReference] = []
        self.project_references: list[CsprojProjectReference] = []
        self.project_guid = ""

        self._root = root
        self._ns = root.tag[1:].split("}")[0] if root.tag.startswith("{") else ""
        self._indent_unit = "  "
        self._ref_group_path: list[int] = []
        self._proj_ref_group_path: list[int] = []
        self.declaration: str | None = None
        self.newline = "\r\n"
        self.bom = False
        self.trailing_newline = True

        match = _INDENT_RE.match(root.text or "")
        if match:
            self._indent_unit = match.group(1)

    def _q(self, tag: str) -> str:
        return f"{{{self._ns}}}{tag}" if self._ns else tag

    # --- Parsing ---

    @classmethod
    def load(cls, path: str) -> CsprojDocument:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            raise NotFoundError(f"Project file '{path}' not found") from None
        except OSError as e:
            raise MalformedInputError(f"Unable to read project file '{path}': {e}") from e
        return cls.parse(data, path)

    @classmethod
    def parse(cls, data: bytes, path: str) -> CsprojDocument:
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        try:
            parser.feed(data)
            root = parser.close()
        except ET.ParseError as e:
            raise MalformedInputError(f"Unable to parse project file '{path}': {e}") from e

        doc = cls(path, root)
        doc.bom = data.startswith(_BOM)
        doc.newline = "\r\n" if b"\r\n" in data else "\n"
        doc.trailing_newline = data.rstrip(b" \t").endswith(b"\n")
        match = _DECLARATION_RE.match(data[len(_BOM):] if doc.bom else data)
        if match:
            doc.declaration = match.group(0).decode("ascii", errors="replace")

        ref_group = doc._extract_references()
        proj_ref_group = doc._extract_project_references()

        guid = root.find(f".//{doc._q('ProjectGuid')}")
        if guid is None or not (guid.text or "").strip():
            raise MalformedInputError(f"Project file '{path}' has no ProjectGuid")
        doc.project_guid = guid.text.strip()

        # Insertion points as index paths, valid for any copy of the tree
        parents = _build_parent_map(root)
        doc._ref_group_path = _index_path(root, ref_group, parents)
        doc._proj_ref_group_path = _index_path(root, proj_ref_group, parents)

        logger.debug(
            f"Parsed {path}: {len(doc.references)} references, "
            f"{len(doc.project_references)} project references"
        )
        return doc

    def _take_elements(self, tag: str) -> tuple[list[ET.Element], ET.Element]:
        """Remove every ``tag`` element from the tree.

        Returns the removed elements and the ItemGroup that held the first
        of them, or a new ItemGroup after the last PropertyGroup.
        """
        parents = _build_parent_map(self._root)
        elems = list(self._root.iter(self._q(tag)))

        if elems:
            group = parents[elems[0]]
        else:
            group = self._new_item_group()

        for elem in elems:
            _detach(parents[elem], elem)
        return elems, group

    def _new_item_group(self) -> ET.Element:
        root = self._root
        group = ET.Element(self._q("ItemGroup"))
        children = list(root)
        property_groups = [
            i for i, child in enumerate(children) if child.tag == self._q("PropertyGroup")
        ]
        index = property_groups[-1] + 1 if property_groups else len(children)

        indent = "\n" + self._indent_unit
        if index > 0:
            group.tail = children[index - 1].tail
            children[index - 1].tail = indent
        else:
            group.tail = root.text
            root.text = indent
        root.insert(index, group)
        return group

    def _extract_references(self) -> ET.Element:
        proj_dir = os.path.dirname(self.path)
        elems, group = self._take_elements("Reference")

        for elem in elems:
            name = elem.get("Include")
            if not name:
                raise MalformedInputError(f"Project file '{self.path}' has a Reference without Include")
            hint_text = (elem.findtext(self._q("HintPath")) or "").strip()
            self.references.append(CsprojReference(
                name=name,
                hint_path=resolve_path(hint_text, proj_dir) if hint_text else None,
                element=elem,
            ))
        return group

    def _extract_project_references(self) -> ET.Element:
        proj_dir = os.path.dirname(self.path)
        elems, group = self._take_elements("ProjectReference")

        for elem in elems:
            include = elem.get("Include")
            if not include:
                raise MalformedInputError(
                    f"Project file '{self.path}' has a ProjectReference without Include"
                )
            include = resolve_path(include, proj_dir)
            name = (elem.findtext(self._q("Name")) or "").strip()
            if not name:
                name = os.path.splitext(os.path.basename(include))[0]
            self.project_references.append(CsprojProjectReference(
                name=name,
                include=include,
                guid=(elem.findtext(self._q("Project")) or "").strip(),
                element=elem,
            ))
        return group

    # --- Edits ---

    def remove_references(self, assembly_name: str) -> list[CsprojReference]:
        """Remove assembly references to ``assembly_name`` (strong names included)."""
        removed = [r for r in self.references if r.assembly_name == assembly_name]
        self.references = [r for r in self.references if r.assembly_name != assembly_name]
        return removed

    def remove_project_references(self, name: str) -> list[CsprojProjectReference]:
        removed = [pr for pr in self.project_references if pr.name == name]
        self.project_references = [pr for pr in self.project_references if pr.name != name]
        return removed

    # --- Writing ---

    def _indent(self, depth: int) -> str:
        return "\n" + self._indent_unit * depth

    def _append(self, group: ET.Element, elem: ET.Element, depth: int) -> None:
        children = list(group)
        if children:
            children[-1].tail = self._indent(depth)
        else:
            group.text = self._indent(depth)
        elem.tail = self._indent(depth - 1)
        group.append(elem)

    def _set_child_text(self, elem: ET.Element, tag: str, text: str, depth: int) -> None:
        child = elem.find(self._q(tag))
        if child is None:
            child = ET.Element(self._q(tag))
            self._append(elem, child, depth + 1)
        child.text = text

    def _reference_element(self, ref: CsprojReference, dest: str, depth: int) -> ET.Element:
        if ref.element is not None:
            elem = copy.deepcopy(ref.element)
        else:
            elem = ET.Element(self._q("Reference"))
        elem.set("Include", ref.name)

        if ref.hint_path is not None:
            self._set_child_text(elem, "HintPath", relative_path(ref.hint_path, dest), depth)
        else:
            hint = elem.find(self._q("HintPath"))
            if hint is not None:
                _detach(elem, hint)
        return elem

    def _project_reference_element(
        self, proj_ref: CsprojProjectReference, dest: str, depth: int
    ) -> ET.Element:
        if proj_ref.element is not None:
            elem = copy.deepcopy(proj_ref.element)
        else:
            elem = ET.Element(self._q("ProjectReference"))
        elem.set("Include", relative_path(proj_ref.include, dest))
        self._set_child_text(elem, "Project", proj_ref.guid, depth)
        self._set_child_text(elem, "Name", proj_ref.name, depth)
        return elem

    def dumps(self, path: str) -> bytes:
        """Serialize with reference paths relative to ``path``."""
        root = copy.deepcopy(self._root)
        dest = os.path.abspath(path)

        ref_group = _follow(root, self._ref_group_path)
        proj_ref_group = _follow(root, self._proj_ref_group_path)
        ref_depth = len(self._ref_group_path) + 1
        proj_ref_depth = len(self._proj_ref_group_path) + 1

        for ref in self.references:
            elem = self._reference_element(ref, dest, ref_depth)
            self._append(ref_group, elem, ref_depth)
        for proj_ref in self.project_references:
            elem = self._project_reference_element(proj_ref, dest, proj_ref_depth)
            self._append(proj_ref_group, elem, proj_ref_depth)

        parents = _build_parent_map(root)
        for group in list(root.iter(self._q("ItemGroup"))):
            if len(group) == 0:
                _detach(parents[group], group)

        text = ET.tostring(root, encoding="unicode")
        if self.declaration:
            text = self.declaration + "\n" + text
        if self.trailing_newline:
            text += "\n"
        if self.newline != "\n":
            text = text.replace("\n", self.newline)

        data = text.encode("utf-8")
        return _BOM + data if self.bom else data

    def save(self, path: str) -> None:
        with open(path, "wb") as f:
            f.write(self.dumps(path))
        logger.info(f"Wrote {path}")
