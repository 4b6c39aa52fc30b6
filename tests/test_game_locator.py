import pytest

from Butterfly.errors import FilesystemError
from Butterfly.game_locator import (
    GameDirModsRoot,
    StaticModsRoot,
    StaticPrompter,
    SteamModsRoot,
    default_saves_dir,
    ensure_mods_root,
    find_steam_libraries,
    mods_dir_for_game,
    parse_vdf_libraries,
)
from Butterfly.settings import Settings
from Butterfly.state_store import SettingsStore


@pytest.fixture
def empty_store(tmp_path):
    return SettingsStore(tmp_path / "Settings.json", Settings())


def _make_game(base, suffix="hollow_knight_Data/Managed"):
    game = base / "Hollow Knight"
    (game / suffix).mkdir(parents=True)
    return game


def test_mods_dir_for_each_known_layout(tmp_path):
    for i, suffix in enumerate(["Hollow Knight_Data/Managed", "hollow_knight_Data/Managed",
                                "Contents/Resources/Data/Managed"]):
        game = _make_game(tmp_path / str(i), suffix)
        assert mods_dir_for_game(game) == game / suffix / "Mods"
    assert mods_dir_for_game(tmp_path / "nothing") is None


def test_parse_vdf_libraries(tmp_path):
    lib = tmp_path / "lib"
    (lib / "steamapps" / "common").mkdir(parents=True)
    vdf = tmp_path / "libraryfolders.vdf"
    vdf.write_text(f'"libraryfolders"\n{{\n  "0"\n  {{\n    "path"    "{lib}"\n  }}\n'
                   f'  "1"\n  {{\n    "path"    "{tmp_path / "gone"}"\n  }}\n}}\n')
    assert parse_vdf_libraries(vdf) == [lib / "steamapps" / "common"]


def test_steam_resolver_finds_game_in_library(tmp_path):
    steam = tmp_path / "Steam"
    common = steam / "steamapps" / "common"
    game = _make_game(common)
    (steam / "steamapps" / "libraryfolders.vdf").write_text(f'"path" "{steam}"')
    assert find_steam_libraries([steam]) == [common]
    resolver = SteamModsRoot(steam_roots=[steam], search_bases=[])
    assert resolver.resolve() == game / "hollow_knight_Data" / "Managed" / "Mods"


def test_steam_resolver_falls_back_to_static_paths(tmp_path):
    base = tmp_path / "drive"
    game = _make_game(base / "GOG Galaxy" / "Games", "Hollow Knight_Data/Managed")
    resolver = SteamModsRoot(steam_roots=[], search_bases=[base])
    assert resolver.resolve() == game / "Hollow Knight_Data" / "Managed" / "Mods"
    assert SteamModsRoot(steam_roots=[], search_bases=[tmp_path / "x"]).resolve() is None


def test_ensure_mods_root_uses_resolver_and_persists(empty_store, tmp_path):
    game = _make_game(tmp_path)
    mods = ensure_mods_root(empty_store, GameDirModsRoot(game))
    assert mods == game / "hollow_knight_Data" / "Managed" / "Mods"
    assert mods.is_dir()
    assert empty_store.reload().mods_path == str(mods)


def test_ensure_mods_root_falls_back_to_prompter(empty_store, tmp_path):
    game = _make_game(tmp_path)
    mods = ensure_mods_root(empty_store, GameDirModsRoot(tmp_path / "wrong"),
                            StaticPrompter(game))
    assert mods.parent == game / "hollow_knight_Data" / "Managed"


def test_ensure_mods_root_keeps_configured_path(empty_store, tmp_path):
    configured = tmp_path / "custom" / "Mods"
    empty_store.update(lambda s: setattr(s, "mods_path", str(configured)))
    assert ensure_mods_root(empty_store, StaticModsRoot(tmp_path / "other")) == configured
    assert configured.is_dir()


def test_ensure_mods_root_fails_when_nothing_found(empty_store, tmp_path):
    with pytest.raises(FilesystemError):
        ensure_mods_root(empty_store, GameDirModsRoot(tmp_path / "wrong"), StaticPrompter(None))


def test_default_saves_dir_per_platform(monkeypatch, tmp_path):
    monkeypatch.setattr("Butterfly.game_locator._HOME", tmp_path)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("USERPROFILE", str(tmp_path / "User"))

    assert default_saves_dir("Linux") == tmp_path / ".config" / "unity3d" / "Team Cherry" / "Hollow Knight"
    assert default_saves_dir("Darwin") == (tmp_path / "Library" / "Application Support"
                                           / "unity.Team Cherry.Hollow Knight")
    assert default_saves_dir("Windows") == (tmp_path / "User" / "AppData" / "LocalLow"
                                            / "Team Cherry" / "Hollow Knight")

    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    assert default_saves_dir("Linux") == tmp_path / "xdg" / "unity3d" / "Team Cherry" / "Hollow Knight"
