# bootstrap/venv_bootstrap.py
# -*- coding: utf-8 -*-

import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

REQUIRED_SYSTEM_PACKAGES = ["python3-venv", "python3-pip"]
VENV_DIR_NAME = ".venv"
SKIP_ENV_VAR = "WSL_INSTALL_SKIP_BOOTSTRAP"


def _find_project_root(start: Path) -> Optional[Path]:
    candidate = start
    while not (candidate / "pyproject.toml").exists():
        if candidate == candidate.parent:
            return None
        candidate = candidate.parent
    return candidate


def _run_or_exit(command: List[str], failure_title: str, cwd: Optional[Path] = None) -> None:
    try:
        subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.CalledProcessError as e:
        print(f"--- {failure_title} ---")
        print(f"Command failed: {' '.join(command)}")
        print("Exit Code:", e.returncode)
        print("\n--- STDOUT ---\n", e.stdout)
        print("\n--- STDERR ---\n", e.stderr)
        print("-" * (len(failure_title) + 8))
        sys.exit(1)


def _check_and_install_system_prerequisites() -> None:
    """
    Ensure the distribution has python3-venv and python3-pip. A freshly
    installed Ubuntu in WSL ships without both.
    """
    for package in REQUIRED_SYSTEM_PACKAGES:
        try:
            subprocess.run(
                ["dpkg", "-s", package],
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except (subprocess.CalledProcessError, FileNotFoundError):
            print(f"System package '{package}' is required but not installed.")
            print("Attempting to install it using 'apt-get'.")
            prefix = [] if os.geteuid() == 0 else ["sudo"]
            install_command = prefix + [
                "env",
                "DEBIAN_FRONTEND=noninteractive",
                "apt-get",
                "install",
                "-y",
                "-qq",
                package,
            ]
            _run_or_exit(install_command, "SYSTEM PACKAGE INSTALL FAILED")
            print(f"Successfully installed '{package}'.")


def ensure_venv_and_dependencies() -> None:
    """
    Ensures the calling script runs in the project's virtual environment
    with all dependencies installed.

    1. Returns at once inside any virtual environment, or when
       WSL_INSTALL_SKIP_BOOTSTRAP=1.
    2. Installs python3-venv and python3-pip if missing.
    3. Creates '.venv' next to pyproject.toml and installs 'uv' into it.
    4. Uses 'uv' to install the project from pyproject.toml.
    5. Re-launches the original script with the venv interpreter.
    """
    if sys.prefix != sys.base_prefix or os.environ.get(SKIP_ENV_VAR) == "1":
        return

    script_path = Path(sys.argv[0]).resolve()
    project_root = _find_project_root(script_path.parent)
    if project_root is None:
        print(
            "Error: Could not find pyproject.toml above "
            f"{script_path.parent}. Run the script from within the project."
        )
        sys.exit(1)

    venv_dir = project_root / VENV_DIR_NAME
    venv_python = venv_dir / "bin" / "python"
    venv_pip = venv_dir / "bin" / "pip"
    venv_uv = venv_dir / "bin" / "uv"

    _check_and_install_system_prerequisites()

    if not venv_python.exists():
        print(f"Creating virtual environment in: {venv_dir}")
        _run_or_exit(
            [sys.executable, "-m", "venv", str(venv_dir)], "VENV CREATION FAILED"
        )

    if not venv_uv.exists():
        print("Installing 'uv' into the virtual environment...")
        _run_or_exit([str(venv_pip), "install", "uv"], "FAILED TO INSTALL UV")

    print("Installing project dependencies with uv...")
    _run_or_exit(
        [str(venv_uv), "pip", "install", "--python", str(venv_python), "-e", "."],
        "UV PIP INSTALL FAILED",
        cwd=project_root,
    )

    print("Re-launching inside the virtual environment...")
    os.execv(
        str(venv_python),
        [str(venv_python), str(script_path)] + sys.argv[1:],
    )
