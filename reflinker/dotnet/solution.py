"""Parse and write .sln files (custom text format, not XML)."""

from __future__ import annotations

import logging
import os
import re

from reflinker.config import (
    GlobalSection,
    ProjectConfiguration,
    SolutionConfiguration,
    SolutionProject,
)
from reflinker.dotnet.paths import relative_path, resolve_path
from reflinker.errors import AmbiguousInputError, MalformedInputError, NotFoundError

logger = logging.getLogger(__name__)

BANNER = "Microsoft Visual Studio Solution File, Format Version"
DEFAULT_HEADER = [
    "Microsoft Visual Studio Solution File, Format Version 12.00",
    "# Visual Studio 2012",
]

# Known project type GUIDs
CSHARP_GUID = "{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}"
SOLUTION_FOLDER_GUID = "{2150E333-8FDC-42A3-9474-1A3956D46DE8}"

SOLUTION_CONFIGS = "SolutionConfigurationPlatforms"
PROJECT_CONFIGS = "ProjectConfigurationPlatforms"

_EOL = "\r\n"
_BOM = "\ufeff"

# Project("{TYPE-GUID}") = "Name", "Path\To\Project.csproj", "{PROJECT-GUID}"
_PROJECT_RE = re.compile(
    r'^Project\("(\{[^}]+\})"\)\s*=\s*"([^"]*)"\s*,\s*"([^"]*)"\s*,\s*"(\{[^}]+\})"\s*$'
)
# GlobalSection(Name) = preSolution
_SECTION_RE = re.compile(r"^GlobalSection\(([^)]+)\)\s*=\s*(preSolution|postSolution)$")
# Debug|Any CPU = Debug|Any CPU
_SLN_CONFIG_RE = re.compile(r"^([^|=]+)\|([^=]+?)\s*=\s*(.*)$")
# {GUID}.Debug|Any CPU.ActiveCfg = Debug|Any CPU
_PRJ_CONFIG_RE = re.compile(
    r"^(\{[^}]+\})\.([^|]+)\|(.+?)\.(ActiveCfg|Build\.0)\s*=\s*([^|]*)\|(.*)$"
)


def _is_file_path(project_type: str, path: str) -> bool:
    """Solution folders and web-site URLs are not paths on disk."""
    return project_type.upper() != SOLUTION_FOLDER_GUID and "://" not in path


def _split_lines(text: str) -> list[str]:
    lines = re.split(r"\r?\n", text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


class _LineScanner:
    """Cursor over the lines of a solution file, for error reporting."""

    def __init__(self, lines: list[str], path: str) -> None:
        self.lines = lines
        self.path = path
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.lines)

    def peek(self) -> str:
        return self.lines[self.pos]

    def next(self) -> str:
        line = self.lines[self.pos]
        self.pos += 1
        return line

    def error(self, message: str) -> MalformedInputError:
        return MalformedInputError(f"{self.path}({self.pos}): {message}")


class SolutionDocument:
    """Structural model of a .sln file.

    Projects, opaque global sections and their order are preserved. The
    configuration sections are held as ``solution_configurations`` and
    ``project_configurations`` and regenerated on save.
    """

    def __init__(self) -> None:
        self.header: list[str] = list(DEFAULT_HEADER)
        self.projects: list[SolutionProject] = []
        self.solution_configurations: list[SolutionConfiguration] = []
        self.project_configurations: list[ProjectConfiguration] = []
        self.global_sections: list[GlobalSection] = []
        self.bom = False

    # --- Parsing ---

    @classmethod
    def load(cls, path: str) -> SolutionDocument:
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                text = f.read()
        except FileNotFoundError:
            raise NotFoundError(f"Solution file '{path}' not found") from None
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedInputError(f"Unable to read solution file '{path}': {e}") from e
        return cls.parse(text, path)

    @classmethod
    def parse(cls, text: str, path: str) -> SolutionDocument:
        doc = cls()
        if text.startswith(_BOM):
            doc.bom = True
            text = text[len(_BOM):]

        scanner = _LineScanner(_split_lines(text), path)
        sln_dir = os.path.dirname(os.path.abspath(path))

        doc.header = doc._parse_header(scanner)
        while not scanner.at_end() and scanner.peek().startswith("Project("):
            doc.projects.append(doc._parse_project(scanner, sln_dir))
        doc._parse_global(scanner)

        if not scanner.at_end():
            raise scanner.error(f"unexpected content after EndGlobal: {scanner.peek()!r}")

        logger.debug(
            f"Parsed {path}: {len(doc.projects)} projects, "
            f"{len(doc.solution_configurations)} solution configurations"
        )
        return doc

    def _parse_header(self, scanner: _LineScanner) -> list[str]:
        header = []
        while not scanner.at_end():
            line = scanner.peek()
            if line.startswith("Project(") or line.strip() == "Global":
                break
            header.append(scanner.next())

        if not any(line.startswith(BANNER) for line in header):
            raise MalformedInputError(f"'{scanner.path}' is not a solution file: missing '{BANNER}' header")
        return header

    def _parse_project(self, scanner: _LineScanner, sln_dir: str) -> SolutionProject:
        match = _PROJECT_RE.match(scanner.next())
        if match is None:
            raise scanner.error("invalid project definition")
        type_guid, name, path, project_guid = match.groups()

        content = []
        while True:
            if scanner.at_end():
                raise scanner.error(f"project '{name}' has no EndProject")
            line = scanner.next()
            if line.strip() == "EndProject":
                break
            content.append(line)

        trailer = []
        while not scanner.at_end() and not scanner.peek().strip():
            trailer.append(scanner.next())

        if _is_file_path(type_guid, path):
            path = resolve_path(path, sln_dir)

        return SolutionProject(
            type_guid=type_guid,
            name=name,
            path=path,
            project_guid=project_guid,
            content=content,
            trailer=trailer,
        )

    def _parse_global(self, scanner: _LineScanner) -> None:
        if scanner.at_end() or scanner.next().strip() != "Global":
            raise scanner.error("expected 'Global'")

        while True:
            if scanner.at_end():
                raise scanner.error("missing EndGlobal")
            line = scanner.next().strip()
            if line == "EndGlobal":
                return

            match = _SECTION_RE.match(line)
            if match is None:
                raise scanner.error(f"expected GlobalSection, found {line!r}")
            name, order = match.groups()

            content = []
            while True:
                if scanner.at_end():
                    raise scanner.error(f"GlobalSection({name}) has no EndGlobalSection")
                body_line = scanner.next()
                if body_line.strip() == "EndGlobalSection":
                    break
                content.append(body_line)

            if name == SOLUTION_CONFIGS:
                self._parse_solution_configs(scanner, content)
                content = []
            elif name == PROJECT_CONFIGS:
                self._parse_project_configs(scanner, content)
                content = []

            self.global_sections.append(GlobalSection(name=name, order=order, content=content))

    def _parse_solution_configs(self, scanner: _LineScanner, content: list[str]) -> None:
        for line in content:
            line = line.strip()
            if not line:
                continue
            match = _SLN_CONFIG_RE.match(line)
            if match is None:
                raise scanner.error(f"invalid solution configuration {line!r}")
            config = SolutionConfiguration(match.group(1).strip(), match.group(2).strip())
            if config not in self.solution_configurations:
                self.solution_configurations.append(config)

    def _parse_project_configs(self, scanner: _LineScanner, content: list[str]) -> None:
        seen = set()
        for line in content:
            line = line.strip()
            if not line:
                continue
            match = _PRJ_CONFIG_RE.match(line)
            if match is None:
                raise scanner.error(f"invalid project configuration {line!r}")
            guid, sln_config, sln_platform, tag, prj_config, prj_platform = match.groups()

            # Build.0 always mirrors ActiveCfg and is regenerated on save
            if tag != "ActiveCfg":
                continue

            sln_cfg = SolutionConfiguration(sln_config, sln_platform)
            key = (guid.upper(), sln_cfg)
            if key in seen:
                continue
            seen.add(key)

            self.project_configurations.append(ProjectConfiguration(
                guid=guid,
                solution_configuration=sln_cfg,
                project_configuration=SolutionConfiguration(prj_config.strip(), prj_platform.strip()),
            ))

    # --- Queries and edits ---

    def find_project(self, name: str) -> SolutionProject | None:
        for project in self.projects:
            if project.name == name:
                return project
        return None

    def configurations_for(self, guid: str) -> list[ProjectConfiguration]:
        return [pc for pc in self.project_configurations if pc.guid.upper() == guid.upper()]

    def add_project(
        self, project: SolutionProject, configurations: list[ProjectConfiguration]
    ) -> None:
        """Add a project together with its configuration entries."""
        for pc in configurations:
            if pc.guid.upper() != project.project_guid.upper():
                raise ValueError(f"Configuration for {pc.guid} does not belong to {project.name}")
        self.projects.append(project)
        self.project_configurations.extend(configurations)

    def remove_project(self, guid: str) -> SolutionProject | None:
        """Remove a project and every configuration entry that refers to it."""
        removed = None
        for project in self.projects:
            if project.project_guid.upper() == guid.upper():
                removed = project
                break
        if removed is not None:
            self.projects.remove(removed)
        self.project_configurations = [
            pc for pc in self.project_configurations if pc.guid.upper() != guid.upper()
        ]
        return removed

    # --- Writing ---

    def _sections_for_output(self) -> list[GlobalSection]:
        sections = list(self.global_sections)
        names = [s.name for s in sections]
        if SOLUTION_CONFIGS not in names and self.solution_configurations:
            sections.insert(0, GlobalSection(SOLUTION_CONFIGS, "preSolution"))
            names.insert(0, SOLUTION_CONFIGS)
        if PROJECT_CONFIGS not in names and self.project_configurations:
            index = names.index(SOLUTION_CONFIGS) + 1 if SOLUTION_CONFIGS in names else 0
            sections.insert(index, GlobalSection(PROJECT_CONFIGS, "postSolution"))
        return sections

    def dumps(self, path: str) -> str:
        """Serialize with project paths relative to ``path``."""
        lines = list(self.header)

        for project in self.projects:
            project_path = project.path
            if _is_file_path(project.type_guid, project.path):
                project_path = relative_path(project.path, path)
            lines.append(
                f'Project("{project.type_guid}") = "{project.name}", '
                f'"{project_path}", "{project.project_guid}"'
            )
            lines.extend(project.content)
            lines.append("EndProject")
            lines.extend(project.trailer)

        lines.append("Global")
        for section in self._sections_for_output():
            lines.append(f"\tGlobalSection({section.name}) = {section.order}")
            if section.name == SOLUTION_CONFIGS:
                for config in self.solution_configurations:
                    lines.append(f"\t\t{config} = {config}")
            elif section.name == PROJECT_CONFIGS:
                for pc in self.project_configurations:
                    sln_cfg = pc.solution_configuration
                    lines.append(f"\t\t{pc.guid}.{sln_cfg}.ActiveCfg = {pc.project_configuration}")
                    lines.append(f"\t\t{pc.guid}.{sln_cfg}.Build.0 = {pc.project_configuration}")
            else:
                lines.extend(section.content)
            lines.append("\tEndGlobalSection")
        lines.append("EndGlobal")

        text = _EOL.join(lines) + _EOL
        return _BOM + text if self.bom else text

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(self.dumps(path))
        logger.info(f"Wrote {path}")


def solution_files_in(directory: str) -> list[str]:
    """Return the .sln files directly inside ``directory``, sorted."""
    try:
        names = os.listdir(directory)
    except OSError:
        return []
    return sorted(
        os.path.join(directory, name)
        for name in names
        if name.lower().endswith(".sln") and os.path.isfile(os.path.join(directory, name))
    )


def find_solution(directory: str, search_parents: bool = True) -> str:
    """Locate the single .sln file for ``directory``.

    With ``search_parents`` the nearest ancestor (``directory`` included)
    holding any .sln file wins. That directory must hold exactly one.
    """
    current = os.path.abspath(directory)
    while True:
        candidates = solution_files_in(current)
        if len(candidates) > 1:
            names = ", ".join(os.path.basename(c) for c in candidates)
            raise AmbiguousInputError(f"Directory '{current}' contains more than one .sln file ({names})")
        if candidates:
            return candidates[0]
        if not search_parents:
            raise NotFoundError(f"Directory '{current}' is not a .sln directory")

        parent = os.path.dirname(current)
        if parent == current:
            raise NotFoundError(f"Unable to find a .sln file in '{directory}' or its parent directories")
        current = parent
