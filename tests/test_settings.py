import json

import pytest

from Butterfly.errors import CorruptSettingsError, FilesystemError
from Butterfly.settings import (
    Profile,
    Settings,
    decode_settings_text,
    load_settings,
    save_settings,
)
from ModLinks.mod_links import LocalModRecord, ModLink


def _sample_settings():
    return Settings(
        current_profile="Speedrun",
        language="Deutsch",
        mods_path="/games/hk/hollow_knight_Data/Managed/Mods",
        theme="Light",
        theme_path="/themes/light.css",
        profiles=[Profile("Speedrun", ["QoL", "Practice"])],
        mod_links=[
            LocalModRecord(name="QoL", description="fixes", version="1.2.0",
                           link=ModLink("https://example/qol.zip", "ab12"),
                           dependencies=["Satchel"], repository="https://github.com/x/qol",
                           tags=["Utility"], enabled=True, installed=True),
            LocalModRecord(name="Satchel", version="0.8.1"),
        ],
    )


def test_missing_file_loads_defaults(tmp_path):
    settings = load_settings(tmp_path / "Settings.json")
    assert settings == Settings()
    assert settings.language == "English"
    assert settings.theme == "Dark"


def test_save_then_load_round_trips(tmp_path):
    path = tmp_path / "Butterfly" / "Settings.json"
    original = _sample_settings()
    save_settings(path, original)
    assert load_settings(path) == original


def test_round_trip_survives_trailing_garbage(tmp_path):
    path = tmp_path / "Settings.json"
    original = _sample_settings()
    save_settings(path, original)
    with open(path, "a", encoding="utf-8") as fh:
        fh.write("}\x00]")
    assert load_settings(path) == original


def test_saved_file_uses_persisted_key_names(tmp_path):
    path = tmp_path / "Settings.json"
    save_settings(path, _sample_settings())
    data = json.loads(path.read_text(encoding="utf-8"))
    assert set(data) == {"Current Profile", "Language", "Mods Path", "Mod Links",
                         "Profiles", "Theme", "Theme Path"}
    assert data["Profiles"] == [{"name": "Speedrun", "mods": ["QoL", "Practice"]}]
    assert data["Mod Links"]["Manifest"][0]["Name"] == "QoL"


def test_save_leaves_no_temp_files(tmp_path):
    path = tmp_path / "Settings.json"
    save_settings(path, Settings())
    save_settings(path, _sample_settings())
    assert [p.name for p in tmp_path.iterdir()] == ["Settings.json"]


def test_save_failure_is_a_filesystem_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("file")
    with pytest.raises(FilesystemError):
        save_settings(blocker / "Settings.json", Settings())


def test_empty_file_loads_defaults(tmp_path):
    path = tmp_path / "Settings.json"
    path.write_text("  \n", encoding="utf-8")
    assert load_settings(path) == Settings()


def test_undecodable_file_is_corrupt(tmp_path):
    path = tmp_path / "Settings.json"
    path.write_text("not json at all", encoding="utf-8")
    with pytest.raises(CorruptSettingsError) as info:
        load_settings(path)
    assert info.value.path == path


def test_non_object_document_is_corrupt():
    with pytest.raises(CorruptSettingsError):
        decode_settings_text("[1, 2, 3]")


def test_wrongly_typed_fields_fall_back_to_defaults():
    text = json.dumps({"Language": 5, "Theme": None, "Profiles": "x",
                       "Mod Links": {"Manifest": [{"Name": "QoL"}, "junk"]},
                       "Unknown": True})
    settings = decode_settings_text(text)
    assert settings.language == "English"
    assert settings.theme == "Dark"
    assert settings.profiles == []
    assert [r.name for r in settings.mod_links] == ["QoL"]


def test_profiles_accept_exported_key_names():
    settings = decode_settings_text(json.dumps({"Profiles": [{"Name": "A", "Mods": ["m"]}]}))
    assert settings.profiles == [Profile("A", ["m"])]


def test_copy_is_deep():
    original = _sample_settings()
    clone = original.copy()
    clone.mod_links[0].enabled = False
    clone.profiles[0].mods.append("Extra")
    assert original.mod_links[0].enabled is True
    assert original.profiles[0].mods == ["QoL", "Practice"]
