# bootstrap/__init__.py
# -*- coding: utf-8 -*-
"""
Bootstrap for the WSL-side entry points.

Runs before any third-party import: makes sure the scripts execute inside the
project's virtual environment with the dependencies from pyproject.toml.
Only the standard library may be used here.
"""

from bootstrap.venv_bootstrap import ensure_venv_and_dependencies

__all__ = ["ensure_venv_and_dependencies"]
