# tests/common/test_system_utils.py
import pytest

from common.system_utils import get_architecture, get_system_info, is_wsl, read_os_release


def test_read_os_release(tmp_path):
    os_release = tmp_path / "os-release"
    os_release.write_text(
        '# comment\nPRETTY_NAME="Ubuntu 24.04 LTS"\nVERSION_CODENAME=noble\n\nID=ubuntu\n',
        encoding="utf-8",
    )

    values = read_os_release(os_release)

    assert values == {"PRETTY_NAME": "Ubuntu 24.04 LTS", "VERSION_CODENAME": "noble", "ID": "ubuntu"}


def test_read_os_release_missing(tmp_path):
    assert read_os_release(tmp_path / "missing") == {}


def test_is_wsl(mocker):
    mocker.patch("common.system_utils.platform.release", return_value="5.15.146.1-microsoft-standard-WSL2")
    assert is_wsl() is True
    mocker.patch("common.system_utils.platform.release", return_value="6.8.0-31-generic")
    assert is_wsl() is False


def test_get_system_info(mocker):
    mocker.patch("common.system_utils.read_os_release", return_value={"PRETTY_NAME": "Ubuntu 24.04 LTS"})
    mocker.patch("common.system_utils.platform.release", return_value="5.15.0-microsoft-standard-WSL2")
    mocker.patch("common.system_utils.platform.machine", return_value="x86_64")

    info = get_system_info()

    assert info["OS"] == "Ubuntu 24.04 LTS"
    assert info["Architecture"] == "x86_64"
    assert info["WSL"] == "yes"


@pytest.mark.parametrize(
    "machine, expected", [("x86_64", "amd64"), ("AMD64", "amd64"), ("aarch64", "arm64"), ("arm64", "arm64")]
)
def test_get_architecture(machine, expected):
    assert get_architecture(machine) == expected


def test_get_architecture_unsupported():
    with pytest.raises(ValueError, match="Unsupported architecture: riscv64"):
        get_architecture("riscv64")
