# tests/installer/test_registry.py
import pytest

from installer.base_installer import PackageInstaller
from installer.registry import InstallerRegistry, load_builtin_installers

TEST_NAMES = ("test-alpha", "test-beta", "test-gamma", "test-loop-a", "test-loop-b")


@pytest.fixture(autouse=True)
def _clean_test_entries():
    yield
    for name in TEST_NAMES:
        InstallerRegistry._registry.pop(name, None)


def _register(name, dependencies=()):
    @InstallerRegistry.register(name=name, metadata={"dependencies": list(dependencies), "description": name})
    class _Installer(PackageInstaller):
        def install(self):
            pass

    return _Installer


def test_register_sets_name_and_metadata():
    installer_class = _register("test-alpha")

    assert InstallerRegistry.get_installer("test-alpha") is installer_class
    assert installer_class.name == "test-alpha"
    assert InstallerRegistry.get_installer_dependencies("test-alpha") == set()


def test_duplicate_registration():
    _register("test-alpha")

    with pytest.raises(ValueError, match="already registered"):
        _register("test-alpha")


def test_unknown_installer():
    with pytest.raises(KeyError):
        InstallerRegistry.get_installer("test-missing")
    assert not InstallerRegistry.is_registered("test-missing")


def test_resolve_dependencies_orders_dependencies_first():
    _register("test-alpha")
    _register("test-beta", ["test-alpha"])
    _register("test-gamma", ["test-beta"])

    assert InstallerRegistry.resolve_dependencies(["test-gamma"]) == ["test-alpha", "test-beta", "test-gamma"]
    assert InstallerRegistry.resolve_dependencies(["test-alpha", "test-gamma"]) == [
        "test-alpha",
        "test-beta",
        "test-gamma",
    ]


def test_circular_dependency():
    _register("test-loop-a", ["test-loop-b"])
    _register("test-loop-b", ["test-loop-a"])

    with pytest.raises(ValueError, match="Circular dependency"):
        InstallerRegistry.resolve_dependencies(["test-loop-a"])


def test_builtin_installers_load():
    loaded = load_builtin_installers()

    assert "installer.components.kubectl_installer" in loaded
    for name in ("docker", "kubectl", "helm", "terraform", "nodejs", "golang"):
        assert InstallerRegistry.is_registered(name)
    assert InstallerRegistry.resolve_dependencies(["helm"]) == ["kubectl", "helm"]
