"""Dependency graph diagnostics.

The analyzer walks declared dependencies without constructing anything, so it
works on a collection before it is built and reports unregistered tokens and
cycles.
"""

from __future__ import annotations

from servicewire import ServiceCollection


class Component:
    pass


def main() -> None:
    services = ServiceCollection()
    services.add_singleton("App", Component, dependencies=["Logger", "Repository"])
    services.add_singleton("Logger", Component)
    services.add_scoped("Repository", Component, dependencies=["Database", "Cache"])
    services.add_scoped("Database", Component, dependencies=["Repository"])

    tree = services.get_dependency_tree("App")
    print(f"children={[child.name for child in tree.dependencies]}")  # => children=['Logger', 'Repository']

    repository = tree.dependencies[1]
    print(f"cache={repository.dependencies[1].lifetime}")  # => cache=NOT_REGISTERED
    print(f"database_dep={repository.dependencies[0].dependencies[0].lifetime}")  # => database_dep=CIRCULAR

    rendered = services.visualize_dependency_tree("App").splitlines()
    print(rendered[0])  # => └── App [SINGLETON]
    print(f"rendered_lines={len(rendered)}")  # => rendered_lines=6

    cycles = services.get_circular_dependencies()
    print(" → ".join(cycles[0].names))  # => Repository → Database → Repository


if __name__ == "__main__":
    main()
