"""Item specification - what to run.

``ItemSpec`` is the input contract of the scheduler: an identity, the
dependencies it declares and an opaque payload for the executor. The
scheduler never looks inside the payload.

Manifesto:
    Items arrive already annotated with their own dependency names; the
    scheduler does not resolve a dependency graph, it only orders work.
    Keeping an item spec a small frozen value object means it can be handed to
    worker threads without copying or locking.

Tags:
    lockstep, execution, spec, item-spec, request-model

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DependencyType(str, Enum):
    """Kind of dependency. Development dependencies never gate submission."""

    RUNTIME = "runtime"
    DEVELOPMENT = "development"


@dataclass(frozen=True)
class Dependency:
    """A declared prerequisite of an item.

    Example:
        >>> Dependency("rack")
        Dependency(name='rack', type=<DependencyType.RUNTIME: 'runtime'>)
        >>> Dependency("rspec", DependencyType.DEVELOPMENT).is_development
        True
    """

    name: str
    type: DependencyType = DependencyType.RUNTIME

    @property
    def is_development(self) -> bool:
        return self.type == DependencyType.DEVELOPMENT


@dataclass(frozen=True)
class ItemSpec:
    """A unit of work with an identity and its prerequisites.

    Example:
        >>> spec = ItemSpec("rails", (Dependency("rack"),), {"command": "make install"})
        >>> spec = item_spec("rails", "rack", command="make install")  # convenience
    """

    name: str
    """Unique identity, stable for the scheduler's lifetime"""

    dependencies: tuple[Dependency, ...] = ()
    """Declared dependencies, in declaration order"""

    payload: Mapping[str, Any] = field(default_factory=dict)
    """Executor input (command, params, ...). Opaque to the scheduler"""

    @property
    def dependency_names(self) -> list[str]:
        return [dep.name for dep in self.dependencies]


def _as_dependency(dep: str | Dependency) -> Dependency:
    if isinstance(dep, Dependency):
        return dep
    return Dependency(dep)


def item_spec(
    name: str,
    *dependencies: str | Dependency,
    dev: Iterable[str] = (),
    **payload: Any,
) -> ItemSpec:
    """Convenience constructor for item specs.

    Positional dependencies are runtime dependencies; ``dev`` names are added
    as development dependencies after them.

    Example:
        >>> spec = item_spec("rails", "rack", "activesupport", dev=["rspec"])
        >>> [d.name for d in spec.dependencies]
        ['rack', 'activesupport', 'rspec']
    """
    deps = [_as_dependency(d) for d in dependencies]
    deps.extend(Dependency(d, DependencyType.DEVELOPMENT) for d in dev)
    return ItemSpec(name=name, dependencies=tuple(deps), payload=dict(payload))
