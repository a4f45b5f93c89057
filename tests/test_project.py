"""Tests for the .csproj reference model."""

from __future__ import annotations

import os
import xml.etree.ElementTree as ET

import pytest

from reflinker.config import CsprojProjectReference, CsprojReference
from reflinker.dotnet.project import MSBUILD_NS, CsprojDocument
from reflinker.errors import MalformedInputError, NotFoundError

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")
A_CSPROJ = os.path.join(FIXTURES_DIR, "app", "A", "A.csproj")
B_CSPROJ = os.path.join(FIXTURES_DIR, "app", "B", "B.csproj")
WIDGETS_DLL = os.path.normpath(
    os.path.join(FIXTURES_DIR, "app", "packages", "Widgets.1.2.0", "lib", "net45", "Widgets.dll")
)

NS = {"msb": MSBUILD_NS}

STRONG_NAMED = b"""<?xml version="1.0" encoding="utf-8"?>\r
<Project ToolsVersion="4.0" xmlns="http://schemas.microsoft.com/developer/msbuild/2003">\r
  <PropertyGroup>\r
    <ProjectGuid>{0C0C0C0C-0000-4000-8000-00000000000C}</ProjectGuid>\r
  </PropertyGroup>\r
  <ItemGroup>\r
    <Reference Include="Widgets, Version=1.2.0.0, Culture=neutral, processorArchitecture=MSIL">\r
      <HintPath>..\\packages\\Widgets.1.2.0\\lib\\net45\\Widgets.dll</HintPath>\r
      <Private>True</Private>\r
    </Reference>\r
    <Reference Include="Widgets.Extras" />\r
  </ItemGroup>\r
</Project>"""


def _item_groups(data: bytes) -> list[ET.Element]:
    root = ET.fromstring(data)
    return root.findall("msb:ItemGroup", NS)


class TestCsprojParser:
    def test_references(self):
        doc = CsprojDocument.load(A_CSPROJ)

        assert [r.name for r in doc.references] == ["System", "Widgets"]
        assert doc.references[0].hint_path is None
        assert doc.references[1].hint_path == WIDGETS_DLL

    def test_project_references(self):
        doc = CsprojDocument.load(B_CSPROJ)

        assert len(doc.project_references) == 1
        ref = doc.project_references[0]
        assert ref.name == "A"
        assert ref.include == os.path.normpath(A_CSPROJ)
        assert ref.guid == "{1a1a1a1a-0000-4000-8000-00000000000a}"

    def test_project_guid(self):
        doc = CsprojDocument.load(A_CSPROJ)

        assert doc.project_guid == "{1A1A1A1A-0000-4000-8000-00000000000A}"

    def test_missing_project_guid(self):
        data = STRONG_NAMED.replace(b"<ProjectGuid>{0C0C0C0C-0000-4000-8000-00000000000C}</ProjectGuid>", b"")
        with pytest.raises(MalformedInputError, match="ProjectGuid"):
            CsprojDocument.parse(data, "/src/C/C.csproj")

    def test_invalid_xml(self):
        with pytest.raises(MalformedInputError, match="C.csproj"):
            CsprojDocument.parse(b"<Project><ItemGroup></Project>", "/src/C/C.csproj")

    def test_missing_file(self):
        with pytest.raises(NotFoundError):
            CsprojDocument.load("/nonexistent/C.csproj")

    def test_strong_named_reference_matches_simple_name(self):
        doc = CsprojDocument.parse(STRONG_NAMED, "/src/C/C.csproj")

        removed = doc.remove_references("Widgets")

        assert len(removed) == 1
        assert [r.name for r in doc.references] == ["Widgets.Extras"]


class TestCsprojWriter:
    def test_untouched_structure_survives(self):
        doc = CsprojDocument.load(A_CSPROJ)

        out = doc.dumps(A_CSPROJ).decode("utf-8")

        assert out.startswith('<?xml version="1.0" encoding="utf-8"?>\n<Project ')
        assert '<Compile Include="Class1.cs" />' in out
        assert '<None Include="packages.config" />' in out
        assert "<!-- Build targets -->" in out
        assert "msb:" not in out and "ns0:" not in out
        reparsed = CsprojDocument.parse(out.encode("utf-8"), A_CSPROJ)
        assert [(r.name, r.hint_path) for r in reparsed.references] == [
            ("System", None),
            ("Widgets", WIDGETS_DLL),
        ]

    def test_new_reference_matches_group_indentation(self):
        doc = CsprojDocument.load(A_CSPROJ)
        doc.remove_references("Widgets")
        doc.references.append(CsprojReference(name="Widgets", hint_path=WIDGETS_DLL))

        out = doc.dumps(A_CSPROJ).decode("utf-8")

        assert (
            "  <ItemGroup>\n"
            '    <Reference Include="System" />\n'
            '    <Reference Include="Widgets">\n'
            "      <HintPath>..\\packages\\Widgets.1.2.0\\lib\\net45\\Widgets.dll</HintPath>\n"
            "    </Reference>\n"
            "  </ItemGroup>\n"
        ) in out

    def test_project_reference_group_after_last_property_group(self):
        doc = CsprojDocument.load(A_CSPROJ)
        widgets = os.path.join(FIXTURES_DIR, "Widgets", "Widgets", "Widgets.csproj")
        doc.project_references.append(CsprojProjectReference(
            name="Widgets", include=widgets, guid="{5d5d5d5d-0000-4000-8000-00000000005d}",
        ))

        out = doc.dumps(A_CSPROJ)

        root = ET.fromstring(out)
        tags = [child.tag.split("}")[1] for child in root if isinstance(child.tag, str)]
        assert tags[:3] == ["PropertyGroup", "PropertyGroup", "ItemGroup"]
        assert root[2].find("msb:ProjectReference", NS) is not None

        reparsed = CsprojDocument.parse(out, A_CSPROJ)
        ref = reparsed.project_references[0]
        assert ref.include == os.path.normpath(widgets)
        assert ref.name == "Widgets"
        assert ref.guid == "{5d5d5d5d-0000-4000-8000-00000000005d}"

    def test_empty_item_groups_removed(self):
        doc = CsprojDocument.load(A_CSPROJ)
        doc.remove_references("System")
        doc.remove_references("Widgets")

        out = doc.dumps(A_CSPROJ)

        groups = _item_groups(out)
        assert len(groups) == 2
        assert all(len(group) > 0 for group in groups)

    def test_dumps_does_not_change_document(self):
        doc = CsprojDocument.load(A_CSPROJ)

        assert doc.dumps(A_CSPROJ) == doc.dumps(A_CSPROJ)

    def test_hint_path_relative_to_destination(self):
        doc = CsprojDocument.load(A_CSPROJ)

        out = doc.dumps(os.path.join(FIXTURES_DIR, "app", "A", "sub", "A.csproj")).decode("utf-8")

        assert "<HintPath>..\\..\\packages\\Widgets.1.2.0\\lib\\net45\\Widgets.dll</HintPath>" in out

    def test_unmodelled_reference_children_kept(self):
        doc = CsprojDocument.parse(STRONG_NAMED, "/src/C/C.csproj")

        out = doc.dumps("/src/C/C.csproj")

        assert b"<Private>True</Private>" in out

    def test_crlf_preserved(self):
        doc = CsprojDocument.parse(STRONG_NAMED, "/src/C/C.csproj")
        doc.remove_references("Widgets")

        out = doc.dumps("/src/C/C.csproj")

        assert b"\r\n" in out
        assert b"\n" not in out.replace(b"\r\n", b"")
        assert not out.endswith(b"\n")

    def test_save(self, tmp_path):
        doc = CsprojDocument.load(A_CSPROJ)
        dest = tmp_path / "A.csproj"

        doc.save(str(dest))

        assert dest.read_bytes() == doc.dumps(str(dest))
