"""Static analysis of registered dependency graphs.

Nothing here constructs services: the analyzer only walks declared dependency
tokens of registered descriptors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from servicewire.descriptors import DescriptorSource
from servicewire.types import Token, token_name

CIRCULAR: Final = "CIRCULAR"
NOT_REGISTERED: Final = "NOT_REGISTERED"


@dataclass(slots=True, kw_only=True)
class DependencyTreeNode:
    """A node of a dependency tree produced by ``get_dependency_tree``."""

    token: Token
    name: str
    lifetime: str
    """Lifetime value of the descriptor, or ``CIRCULAR`` / ``NOT_REGISTERED``."""
    depth: int
    dependencies: list[DependencyTreeNode] = field(default_factory=list)
    is_circular: bool = False
    circular_path: list[Token] | None = None


@dataclass(slots=True, kw_only=True)
class CircularDependency:
    """One cycle found in the registry, first token repeated at the end."""

    path: list[Token]

    @property
    def names(self) -> list[str]:
        return [token_name(token) for token in self.path]


class DependencyGraphAnalyzer:
    """Walk descriptors of a ``DescriptorSource`` to build trees and find cycles."""

    def __init__(self, source: DescriptorSource) -> None:
        self._source = source

    def get_dependency_tree(self, token: Token) -> DependencyTreeNode:
        """Expand declared dependencies of ``token`` into a tree.

        A token repeated on the current expansion path becomes a ``CIRCULAR``
        leaf carrying the full path, so expansion always terminates.
        """
        return self._build_tree(token, depth=0, path=[])

    def _build_tree(self, token: Token, *, depth: int, path: list[Token]) -> DependencyTreeNode:
        if token in path:
            return DependencyTreeNode(
                token=token,
                name=token_name(token),
                lifetime=CIRCULAR,
                depth=depth,
                is_circular=True,
                circular_path=[*path, token],
            )

        descriptor = self._source.lookup(token)
        if descriptor is None:
            return DependencyTreeNode(
                token=token,
                name=token_name(token),
                lifetime=NOT_REGISTERED,
                depth=depth,
            )

        node_path = [*path, token]
        return DependencyTreeNode(
            token=token,
            name=token_name(token),
            lifetime=descriptor.lifetime.value,
            depth=depth,
            dependencies=[
                self._build_tree(dependency, depth=depth + 1, path=node_path)
                for dependency in descriptor.dependencies
            ],
        )

    def get_circular_dependencies(self) -> list[CircularDependency]:
        """Find cycles reachable from any registered token.

        Every registered token is used as a search root, so disconnected
        cycles are all reported.
        """
        cycles: list[CircularDependency] = []
        visited: set[Token] = set()
        visiting: set[Token] = set()

        def visit(token: Token, path: list[Token]) -> None:
            if token in visiting:
                start = path.index(token)
                cycles.append(CircularDependency(path=[*path[start:], token]))
                return
            if token in visited:
                return

            visited.add(token)
            visiting.add(token)
            descriptor = self._source.lookup(token)
            if descriptor is not None:
                for dependency in descriptor.dependencies:
                    visit(dependency, [*path, token])
            visiting.discard(token)

        for token in list(self._source.tokens()):
            if token not in visited:
                visit(token, [])

        return cycles

    def visualize_dependency_tree(self, token: Token) -> str:
        return render_dependency_tree(self.get_dependency_tree(token))

    def visualize_circular_dependencies(self) -> str:
        return render_circular_dependencies(self.get_circular_dependencies())


def render_dependency_tree(tree: DependencyTreeNode) -> str:
    """Render a dependency tree with box-drawing connectors."""
    lines: list[str] = []

    def render(node: DependencyTreeNode, prefix: str, is_last: bool) -> None:
        connector = "└── " if is_last else "├── "
        marker = " ⚠️ CIRCULAR" if node.is_circular else ""
        lines.append(f"{prefix}{connector}{node.name} [{node.lifetime}]{marker}")

        child_prefix = prefix + ("    " if is_last else "│   ")
        last_index = len(node.dependencies) - 1
        for index, child in enumerate(node.dependencies):
            render(child, child_prefix, index == last_index)

    render(tree, "", True)
    return "\n".join(lines)


def render_circular_dependencies(cycles: list[CircularDependency]) -> str:
    if not cycles:
        return "No circular dependencies found."

    lines = [f"Found {len(cycles)} circular dependency/ies:\n"]
    for number, cycle in enumerate(cycles, start=1):
        lines.append(f"Circular Dependency {number}:")
        lines.append("  " + " → ".join(cycle.names))
        lines.append("")
    return "\n".join(lines)
