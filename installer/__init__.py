# installer/__init__.py
# -*- coding: utf-8 -*-
"""
WSL-side installation package.

This package holds the installation framework, the package installer plugins
and the YAML dispatcher that drives them.
"""

__version__ = "1.0.0"
