"""Parse packages.config manifests (legacy NuGet, XML)."""

from __future__ import annotations

import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from reflinker.errors import MalformedInputError, NotFoundError

MANIFEST_NAME = "packages.config"


@dataclass
class PackageEntry:
    id: str
    version: str
    target_framework: str = ""


class PackageManifest:
    def __init__(self, path: str, packages: dict[str, PackageEntry]) -> None:
        self.path = path
        self.packages = packages

    @classmethod
    def load(cls, path: str) -> PackageManifest:
        if not os.path.isfile(path):
            raise NotFoundError(f"Package manifest '{path}' not found")
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise MalformedInputError(f"Unable to parse package manifest '{path}': {e}") from e

        packages = {}
        for elem in root.iter("package"):
            package_id = elem.get("id")
            version = elem.get("version")
            if not package_id or not version:
                raise MalformedInputError(f"Package manifest '{path}' has an entry without id or version")
            packages[package_id] = PackageEntry(
                id=package_id,
                version=version,
                target_framework=elem.get("targetFramework", ""),
            )
        return cls(path, packages)

    @classmethod
    def for_project(cls, project_path: str) -> PackageManifest:
        """Load the manifest that sits next to a project file."""
        return cls.load(os.path.join(os.path.dirname(os.path.abspath(project_path)), MANIFEST_NAME))

    def assembly_path(self, package_id: str, root_dir: str) -> str:
        """Path of the package's assembly under ``root_dir/packages``.

        ``packages/{id}.{version}/lib/{targetFramework}/{id}.dll``
        """
        entry = self.packages.get(package_id)
        if entry is None:
            raise NotFoundError(f"'{self.path}' does not contain package '{package_id}'")

        parts = [root_dir, "packages", f"{entry.id}.{entry.version}", "lib"]
        if entry.target_framework:
            parts.append(entry.target_framework)
        parts.append(f"{entry.id}.dll")
        return os.path.normpath(os.path.join(*parts))
