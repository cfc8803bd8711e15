"""Pydantic models for item manifests.

A manifest is the file form of the scheduler input: a list of items, each
with its dependencies and an optional shell command for
:class:`~lockstep.execution.executors.command.CommandExecutor`. JSON is a
subset of YAML, so both formats load through the same path.

Usage::

    from lockstep.execution.manifest import Manifest

    manifest = Manifest.from_file("Lockfile.yaml")
    items = manifest.to_items()

Example YAML::

    items:
      - name: rack
        command: ./install.sh rack
      - name: rails
        dependencies:
          - rack
          - {name: rspec, type: development}
        command: ./install.sh rails

Tags:
    lockstep, manifest, yaml, declarative, config-driven

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from lockstep.core.errors import ManifestError

from .spec import Dependency, DependencyType, ItemSpec


class DependencyEntry(BaseModel):
    """One dependency of a manifest item. A bare string means a runtime dependency."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Name of the required item")
    type: DependencyType = Field(default=DependencyType.RUNTIME, description="runtime or development")

    def to_dependency(self) -> Dependency:
        return Dependency(self.name, self.type)


class ItemEntry(BaseModel):
    """Manifest entry for one item."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Unique item name")
    dependencies: list[DependencyEntry] = Field(default_factory=list, description="Declared dependencies")
    command: str | None = Field(default=None, description="Shell command run by the command executor")
    params: dict[str, Any] = Field(default_factory=dict, description="Extra executor payload")

    @field_validator("dependencies", mode="before")
    @classmethod
    def _coerce_dependencies(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [{"name": dep} if isinstance(dep, str) else dep for dep in value]
        return value

    def to_item(self) -> ItemSpec:
        payload: dict[str, Any] = dict(self.params)
        if self.command is not None:
            payload["command"] = self.command
        return ItemSpec(
            name=self.name,
            dependencies=tuple(dep.to_dependency() for dep in self.dependencies),
            payload=payload,
        )


class Manifest(BaseModel):
    """A validated list of items."""

    model_config = ConfigDict(extra="forbid")

    items: list[ItemEntry] = Field(default_factory=list, description="Items to process, in dispatch order")

    def to_items(self) -> list[ItemSpec]:
        return [entry.to_item() for entry in self.items]

    @property
    def names(self) -> list[str]:
        return [entry.name for entry in self.items]

    @classmethod
    def from_data(cls, data: Any, source: str | None = None) -> Manifest:
        """Validate already-parsed data.

        Raises:
            ManifestError: If the data does not match the schema.
        """
        if data is None:
            data = {}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            where = f" in {source}" if source else ""
            raise ManifestError(f"Invalid manifest{where}:\n{exc}", source=source, cause=exc) from exc

    @classmethod
    def from_yaml(cls, content: str, source: str | None = None) -> Manifest:
        """Parse and validate YAML (or JSON) content.

        Raises:
            ManifestError: If the content is not valid YAML or doesn't match the schema.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            where = f" {source}" if source else ""
            raise ManifestError(f"Could not parse manifest{where}: {exc}", source=source, cause=exc) from exc
        return cls.from_data(data, source=source)

    @classmethod
    def from_file(cls, path: str | Path) -> Manifest:
        """Load and validate a manifest file.

        Raises:
            ManifestError: If the file cannot be read or is invalid.
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestError(f"Could not read manifest {path}: {exc}", source=str(path), cause=exc) from exc
        return cls.from_yaml(content, source=str(path))

    def to_yaml(self) -> str:
        """Serialise back to YAML."""
        return yaml.safe_dump(self.model_dump(mode="json", exclude_defaults=True), sort_keys=False)
