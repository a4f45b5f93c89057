"""Core data types and configuration for a reference swap."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class SwapDirection(str, Enum):
    TO_PACKAGE = "package"
    TO_PROJECT = "project"


@dataclass(frozen=True)
class SolutionConfiguration:
    """A ``Config|Platform`` pair, e.g. ``Debug|Any CPU``."""
    configuration: str
    platform: str

    def __str__(self) -> str:
        return f"{self.configuration}|{self.platform}"


@dataclass
class SolutionProject:
    """A ``Project(...) ... EndProject`` block from a .sln file."""
    type_guid: str
    name: str
    path: str
    project_guid: str
    content: list[str] = field(default_factory=list)
    # Blank lines after EndProject
    trailer: list[str] = field(default_factory=list)


@dataclass
class ProjectConfiguration:
    """Which project configuration builds for a given solution configuration."""
    guid: str
    solution_configuration: SolutionConfiguration
    project_configuration: SolutionConfiguration


@dataclass
class GlobalSection:
    name: str
    order: str
    content: list[str] = field(default_factory=list)


@dataclass
class CsprojReference:
    """An assembly ``<Reference>``; ``hint_path`` is absolute when set."""
    name: str
    hint_path: str | None = None
    # Source element, kept so unmodelled children (Private, SpecificVersion) survive a save
    element: Any = field(default=None, repr=False, compare=False)

    @property
    def assembly_name(self) -> str:
        return self.name.split(",")[0].strip()


@dataclass
class CsprojProjectReference:
    """A ``<ProjectReference>``; ``include`` is absolute."""
    name: str
    include: str
    guid: str
    element: Any = field(default=None, repr=False, compare=False)


@dataclass
class LinkerConfig:
    project_name: str
    solution_dir: str | None = None
    working_dir: str = "."
    environ: Mapping[str, str] = field(default_factory=dict)
    dry_run: bool = False
    mapping_file_name: str = "reflinker.config"
    dry_run_marker: str = "test"


@dataclass
class SwapResult:
    direction: SwapDirection
    solution_path: str
    local_project_path: str
    modified_projects: list[str] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
