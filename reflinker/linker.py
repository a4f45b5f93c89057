"""Swap a dependency between a packaged reference and a local project reference.

Everything is read and changed in memory first. Files are written only
after every project and the solution have been processed, so a failure at
any step leaves the disk untouched.
"""

from __future__ import annotations

import logging
import os

from reflinker.config import (
    CsprojProjectReference,
    CsprojReference,
    LinkerConfig,
    ProjectConfiguration,
    SolutionConfiguration,
    SolutionProject,
    SwapDirection,
    SwapResult,
)
from reflinker.dotnet.mapping import ProjectMapping
from reflinker.dotnet.packages import PackageManifest
from reflinker.dotnet.paths import marked_path
from reflinker.dotnet.project import CsprojDocument
from reflinker.dotnet.solution import CSHARP_GUID, SolutionDocument, find_solution
from reflinker.errors import LinkerError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM = "AnyCPU"


def _solution_guid(guid: str) -> str:
    """Normalise a GUID to the ``{UPPER-CASE}`` form used in .sln files."""
    return "{" + guid.strip().strip("{}").upper() + "}"


class ReferenceLinker:
    """Toggle ``config.project_name`` across every C# project of a solution."""

    def __init__(self, config: LinkerConfig) -> None:
        self.config = config

    def run(self) -> SwapResult:
        config = self.config
        name = config.project_name
        if not name:
            raise LinkerError("A project name must be given")

        sln_path = self._locate_solution()
        sln_dir = os.path.dirname(sln_path)

        mapping = ProjectMapping.load(os.path.join(sln_dir, config.mapping_file_name), config.environ)
        local_path = mapping.get(name)
        if not os.path.isfile(local_path):
            raise NotFoundError(f"The project '{name}' does not exist at location '{local_path}'")

        local_csproj = CsprojDocument.load(local_path)
        local_sln = SolutionDocument.load(find_solution(os.path.dirname(local_path)))

        sln = SolutionDocument.load(sln_path)
        if sln.find_project(name) is not None:
            direction = SwapDirection.TO_PACKAGE
            logger.info(f"Swapping '{name}' to NuGet package")
        else:
            direction = SwapDirection.TO_PROJECT
            logger.info(f"Swapping '{name}' to local project '{local_path}'")

        result = SwapResult(
            direction=direction,
            solution_path=sln_path,
            local_project_path=local_path,
        )

        staged = []
        for project in sln.projects:
            if project.type_guid.upper() != CSHARP_GUID or project.name == name:
                continue

            csproj = CsprojDocument.load(project.path)
            if direction is SwapDirection.TO_PROJECT:
                changed = self._link_project(csproj, local_csproj)
            else:
                changed = self._link_package(csproj, sln_dir)

            if changed:
                staged.append(csproj)
                result.modified_projects.append(csproj.path)

        if not staged:
            logger.warning(f"No project in '{sln_path}' references '{name}'")

        if direction is SwapDirection.TO_PROJECT:
            self._add_to_solution(sln, local_csproj, local_sln)
        else:
            self._remove_from_solution(sln)

        # Nothing has been written before this point
        for csproj in staged:
            dest = self._destination(csproj.path)
            csproj.save(dest)
            result.written.append(dest)

        dest = self._destination(sln_path)
        sln.save(dest)
        result.written.append(dest)

        return result

    def _locate_solution(self) -> str:
        config = self.config
        if config.solution_dir:
            directory = os.path.join(config.working_dir, config.solution_dir)
            return find_solution(directory, search_parents=False)
        return find_solution(config.working_dir)

    def _destination(self, path: str) -> str:
        if self.config.dry_run:
            return marked_path(path, self.config.dry_run_marker)
        return path

    def _link_project(self, csproj: CsprojDocument, local_csproj: CsprojDocument) -> bool:
        """Replace the packaged reference with a reference to the local project."""
        name = self.config.project_name
        removed = csproj.remove_references(name)
        if not removed:
            return False

        logger.info(f"{csproj.path}: removed {len(removed)} package reference(s) to '{name}'")
        if not any(pr.name == name for pr in csproj.project_references):
            csproj.project_references.append(CsprojProjectReference(
                name=name,
                include=local_csproj.path,
                guid=_solution_guid(local_csproj.project_guid).lower(),
            ))
        return True

    def _link_package(self, csproj: CsprojDocument, sln_dir: str) -> bool:
        """Replace the local project reference with the packaged assembly."""
        name = self.config.project_name
        removed = csproj.remove_project_references(name)
        if not removed:
            return False

        logger.info(f"{csproj.path}: removed {len(removed)} project reference(s) to '{name}'")
        if not any(r.assembly_name == name for r in csproj.references):
            manifest = PackageManifest.for_project(csproj.path)
            csproj.references.append(CsprojReference(
                name=name,
                hint_path=manifest.assembly_path(name, sln_dir),
            ))
        return True

    def _add_to_solution(
        self, sln: SolutionDocument, local_csproj: CsprojDocument, local_sln: SolutionDocument
    ) -> None:
        guid = _solution_guid(local_csproj.project_guid)
        local_configs = local_sln.configurations_for(guid)

        configurations = []
        for sln_config in sln.solution_configurations:
            project_config = self._match_configuration(sln_config, local_configs)
            configurations.append(ProjectConfiguration(
                guid=guid,
                solution_configuration=sln_config,
                project_configuration=project_config,
            ))

        sln.add_project(
            SolutionProject(
                type_guid=CSHARP_GUID,
                name=self.config.project_name,
                path=local_csproj.path,
                project_guid=guid,
            ),
            configurations,
        )

    def _match_configuration(
        self, sln_config: SolutionConfiguration, local_configs: list[ProjectConfiguration]
    ) -> SolutionConfiguration:
        """Pick the project configuration the local solution builds for ``sln_config``."""
        for pc in local_configs:
            if pc.solution_configuration == sln_config:
                return pc.project_configuration
        for pc in local_configs:
            if pc.solution_configuration.configuration == sln_config.configuration:
                return pc.project_configuration

        logger.warning(
            f"No configuration for '{self.config.project_name}' matches {sln_config}; "
            f"using {sln_config.configuration}|{DEFAULT_PLATFORM}"
        )
        return SolutionConfiguration(sln_config.configuration, DEFAULT_PLATFORM)

    def _remove_from_solution(self, sln: SolutionDocument) -> None:
        project = sln.find_project(self.config.project_name)
        sln.remove_project(project.project_guid)


def swap(config: LinkerConfig) -> SwapResult:
    return ReferenceLinker(config).run()
