import pytest

from Butterfly.errors import FilesystemError
from Butterfly.mod_state import (
    installed_folder,
    is_enabled,
    is_installed,
    is_valid_mod_name,
    mod_path,
    scan_mod_folders,
    validate_mod_name,
)

BAD_NAMES = ["", ".", "..", "Disabled", "../Managed", "a/b", "a\\b"]


def test_nothing_present(mods_root):
    assert not is_installed(mods_root, "QoL")
    assert not is_enabled(mods_root, "QoL")
    assert installed_folder(mods_root, "QoL") is None


def test_enabled_mod(mods_root):
    (mods_root / "QoL").mkdir()
    assert is_installed(mods_root, "QoL")
    assert is_enabled(mods_root, "QoL")


def test_disabled_mod(mods_root):
    (mods_root / "Disabled" / "QoL").mkdir(parents=True)
    assert is_installed(mods_root, "QoL")
    assert not is_enabled(mods_root, "QoL")
    assert installed_folder(mods_root, "QoL") == mods_root / "Disabled" / "QoL"


def test_present_in_both_places_counts_as_disabled(mods_root):
    (mods_root / "QoL").mkdir()
    (mods_root / "Disabled" / "QoL").mkdir(parents=True)
    assert is_installed(mods_root, "QoL")
    assert not is_enabled(mods_root, "QoL")


def test_empty_name_is_never_installed(mods_root):
    assert not is_installed(mods_root, "")
    assert not is_enabled(mods_root, "")


def test_state_is_read_fresh_each_call(mods_root):
    assert not is_enabled(mods_root, "QoL")
    (mods_root / "QoL").mkdir()
    assert is_enabled(mods_root, "QoL")
    (mods_root / "QoL").rmdir()
    assert not is_installed(mods_root, "QoL")


def test_scan_lists_enabled_then_disabled(mods_root):
    (mods_root / "b_mod").mkdir()
    (mods_root / "A_mod").mkdir()
    (mods_root / "stray.dll").write_bytes(b"")
    (mods_root / "Disabled" / "Old").mkdir(parents=True)
    found = [(name, enabled) for name, enabled, _ in scan_mod_folders(mods_root)]
    assert found == [("A_mod", True), ("b_mod", True), ("Old", False)]


def test_scan_without_disabled_folder(mods_root):
    (mods_root / "QoL").mkdir()
    assert [n for n, _, _ in scan_mod_folders(mods_root)] == ["QoL"]


def test_names_outside_a_single_mod_folder_are_rejected(mods_root):
    (mods_root / "Disabled" / "Practice").mkdir(parents=True)
    for name in BAD_NAMES:
        assert not is_valid_mod_name(name)
        assert not is_installed(mods_root, name)
        assert not is_enabled(mods_root, name)
        assert installed_folder(mods_root, name) is None
        with pytest.raises(FilesystemError) as excinfo:
            validate_mod_name(name)
        assert excinfo.value.mod_name == name
        with pytest.raises(FilesystemError):
            mod_path(mods_root, name)


def test_ordinary_names_are_accepted(mods_root):
    for name in ("QoL", "Custom Knight", "Benchwarp.v2", "..hidden"):
        assert validate_mod_name(name) == name
    assert mod_path(mods_root, "QoL") == mods_root / "QoL"
