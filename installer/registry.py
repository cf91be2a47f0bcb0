# installer/registry.py
# -*- coding: utf-8 -*-
"""
Registry for package installer plugins.

Plugins register themselves with a decorator when their module is imported;
manifest entries refer to them by name through ``installer: <name>``.
"""

import importlib
import logging
import pkgutil
from typing import Any, Dict, List, Optional, Set, Type

from installer.base_installer import PackageInstaller

module_logger = logging.getLogger(__name__)

BUILTIN_PACKAGE = "installer.components"


class InstallerRegistry:
    """
    Registry for package installer plugins.

    This class provides a decorator for installer classes to register
    themselves and methods for looking them up and ordering them.
    """

    _registry: Dict[str, Type[PackageInstaller]] = {}

    @classmethod
    def register(cls, name: str, metadata: Optional[Dict[str, Any]] = None):
        """
        Decorator for registering installer classes.

        Args:
            name: The name manifests use to refer to the installer.
            metadata: Optional metadata such as dependencies and a description.

        Returns:
            A decorator function that registers the installer class.
        """

        def decorator(
            installer_class: Type[PackageInstaller],
        ) -> Type[PackageInstaller]:
            if name in cls._registry:
                raise ValueError(
                    f"Installer with name '{name}' already registered"
                )

            if metadata:
                installer_class.metadata = metadata
            installer_class.name = name

            cls._registry[name] = installer_class
            return installer_class

        return decorator

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._registry

    @classmethod
    def get_installer(cls, name: str) -> Type[PackageInstaller]:
        """
        Get an installer class by name.

        Raises:
            KeyError: If no installer with the given name is registered.
        """
        if name not in cls._registry:
            raise KeyError(f"No installer registered with name '{name}'")

        return cls._registry[name]

    @classmethod
    def get_all_installers(cls) -> Dict[str, Type[PackageInstaller]]:
        return cls._registry.copy()

    @classmethod
    def get_installer_dependencies(cls, name: str) -> Set[str]:
        installer_class = cls.get_installer(name)
        metadata = getattr(installer_class, "metadata", {})
        return set(metadata.get("dependencies", []))

    @classmethod
    def resolve_dependencies(cls, installers: List[str]) -> List[str]:
        """
        Resolve dependencies for a list of installers.

        Args:
            installers: A list of installer names.

        Returns:
            The names in the order they should be processed, dependencies first.

        Raises:
            KeyError: If any of the installers or their dependencies are not registered.
            ValueError: If there is a circular dependency.
        """
        result = []
        visited = set()
        temp_visited = set()

        def visit(installer_name: str):
            if installer_name in temp_visited:
                raise ValueError(
                    f"Circular dependency detected involving '{installer_name}'"
                )

            if installer_name in visited:
                return

            temp_visited.add(installer_name)

            for dependency in sorted(cls.get_installer_dependencies(installer_name)):
                visit(dependency)

            temp_visited.remove(installer_name)
            visited.add(installer_name)
            result.append(installer_name)

        for installer_name in installers:
            if installer_name not in visited:
                visit(installer_name)

        return result


def load_builtin_installers(
    package_name: str = BUILTIN_PACKAGE,
    current_logger: Optional[logging.Logger] = None,
) -> List[str]:
    """
    Import every module of the built-in components package so their
    decorators run. Returns the imported module names.
    """
    logger_to_use = current_logger if current_logger else module_logger
    package = importlib.import_module(package_name)
    loaded = []
    for module_info in pkgutil.iter_modules(package.__path__, f"{package_name}."):
        importlib.import_module(module_info.name)
        loaded.append(module_info.name)
    logger_to_use.debug(f"Loaded installer modules: {', '.join(loaded)}")
    return loaded
