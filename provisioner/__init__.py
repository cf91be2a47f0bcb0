# provisioner/__init__.py
# -*- coding: utf-8 -*-
"""
Run orchestration across the Windows host and the WSL distribution.

Host side: WslClient, LogMonitor, user bootstrap and the WslProvisioner that
ties them together. WSL side: the temp-copy runner and its LogStreamer.
"""
