# installer/components/__init__.py
# -*- coding: utf-8 -*-
"""
Built-in package installer plugins.

Each module registers one installer with the InstallerRegistry when it is
imported; installer.registry.load_builtin_installers() imports them all.
"""
