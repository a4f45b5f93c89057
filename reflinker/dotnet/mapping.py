"""Read the mapping file that locates local project files by name.

Example::

    <Projects>
      <Project Name="Widgets" ProjectFile="$(SRC)\\Widgets\\Widgets.csproj"/>
    </Projects>
"""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from typing import Mapping

from reflinker.dotnet.paths import resolve_path
from reflinker.errors import MalformedInputError, NotFoundError

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"\$\(([^)]*)\)")


def replace_tags(text: str, environ: Mapping[str, str]) -> str:
    """Substitute ``$(NAME)`` tags from ``environ``; unknown tags are an error."""

    def _lookup(match: re.Match) -> str:
        name = match.group(1)
        if name in environ:
            return environ[name]
        # Environment names are case-insensitive on Windows
        for key, value in environ.items():
            if key.upper() == name.upper():
                return value
        raise NotFoundError(f"Unknown tag '$({name})' in '{text}'")

    return _TAG_RE.sub(_lookup, text)


class ProjectMapping:
    """Project name -> absolute path of its local .csproj file."""

    def __init__(self, path: str, projects: dict[str, str]) -> None:
        self.path = path
        self.projects = projects

    def __contains__(self, name: str) -> bool:
        return name in self.projects

    def get(self, name: str) -> str:
        try:
            return self.projects[name]
        except KeyError:
            raise NotFoundError(f"'{self.path}' does not contain a location for project '{name}'") from None

    @classmethod
    def load(cls, path: str, environ: Mapping[str, str]) -> ProjectMapping:
        if not os.path.isfile(path):
            raise NotFoundError(f"'{path}' file not found.  Stopping.")
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise MalformedInputError(f"Unable to read configuration file '{path}': {e}") from e

        base_dir = os.path.dirname(os.path.abspath(path))
        projects = {}
        for elem in root.iter("Project"):
            name = elem.get("Name")
            project_file = elem.get("ProjectFile")
            if not name or not project_file:
                raise MalformedInputError(
                    f"Unable to read configuration file '{path}': "
                    "Project entries need Name and ProjectFile attributes"
                )
            projects[name] = resolve_path(replace_tags(project_file, environ), base_dir)
            logger.debug(f"Mapped {name} -> {projects[name]}")

        return cls(path, projects)
