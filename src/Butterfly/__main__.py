"""
Run from project root:
  python -m Butterfly list                              # catalog with install state
  python -m Butterfly refresh                           # fetch ModLinks.xml and reconcile
  python -m Butterfly install QoL                       # install from the stored catalog
  python -m Butterfly disable QoL / enable QoL / uninstall QoL
  python -m Butterfly profiles                          # list profiles
  python -m Butterfly profile-create Speedrun QoL Practice
  python -m Butterfly profile-set Speedrun
  python -m Butterfly manual path/to/Mod.dll            # install a local file
  python -m Butterfly import-save user1.dat 2            # copy a save into slot 2
  python -m Butterfly api-toggle                        # switch vanilla/modded assembly
  python -m Butterfly --mods-root /games/hk/Mods list   # override the mods folder
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from Butterfly.app_log import set_app_log, setup_file_log
from Butterfly.commands import AppState, Commands
from Butterfly.game_locator import PathPrompter, SteamModsRoot, ensure_mods_root
from Butterfly.errors import ButterflyError
from version import __version__


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="butterfly",
                                 description="Install and manage Hollow Knight mods.")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("--mods-root", type=Path, help="Mods folder to use (saved to settings)")
    ap.add_argument("--settings", type=Path, help="Settings.json to use instead of the default")
    ap.add_argument("-v", "--verbose", action="store_true", help="Echo log messages to stderr")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List the catalog with install state")
    sub.add_parser("refresh", help="Fetch the remote catalog and reconcile")
    for name in ("install", "enable", "disable", "uninstall"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a mod")
        p.add_argument("name")
    sub.add_parser("profiles", help="List profiles")
    p = sub.add_parser("profile-create", help="Create a profile")
    p.add_argument("name")
    p.add_argument("mods", nargs="*")
    p = sub.add_parser("profile-set", help="Activate a profile ('' clears)")
    p.add_argument("name")
    p = sub.add_parser("manual", help="Install a local .dll or archive")
    p.add_argument("path", type=Path)
    p = sub.add_parser("import-save", help="Copy a .dat save file into a save slot")
    p.add_argument("path", type=Path)
    p.add_argument("slot", type=int)
    p.add_argument("--saves-dir", type=Path, help="Saves folder (default: the game's for this OS)")
    sub.add_parser("api-toggle", help="Switch between the vanilla and modded assembly")
    return ap


def _run(cmds: Commands, args: argparse.Namespace) -> bool:
    if args.command == "list":
        records = cmds.fetch_mod_list()
        for r in records:
            state = "enabled" if r.enabled else ("disabled" if r.installed else "-")
            print(f"  {r.name:<32} {r.version:<12} {state}")
        print(f"{len(records)} mod(s)")
        return True

    if args.command == "refresh":
        result = cmds.refresh_catalog()
        print(f"{len(result.catalog)} mod(s), {len(result.new_mods)} new, "
              f"{len(result.outdated_mods)} outdated")
        for name in result.outdated_mods:
            print(f"  update available: {name}")
        return cmds.last_error is None

    if args.command == "install":
        record = next((r for r in cmds.fetch_mod_list() if r.name == args.name), None)
        if record is None:
            print(f"Unknown mod {args.name!r} (run 'refresh' first)", file=sys.stderr)
            return False
        handle = cmds.start_install(record.name, record.version, record.link.sha256,
                                    record.link.link)
        if handle is None:
            return False
        try:
            handle.result()
        except ButterflyError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return False
        print(f"Installed {record.name} {record.version}")
        return True

    if args.command == "enable":
        return cmds.enable_mod(args.name)
    if args.command == "disable":
        return cmds.disable_mod(args.name)
    if args.command == "uninstall":
        return cmds.uninstall_mod(args.name)

    if args.command == "profiles":
        profiles, active = cmds.fetch_profiles()
        for p in profiles:
            marker = "*" if p.name == active else " "
            print(f"{marker} {p.name}: {', '.join(p.mods)}")
        return True
    if args.command == "profile-create":
        return cmds.create_profile(args.name, args.mods)
    if args.command == "profile-set":
        return cmds.set_profile(args.name)

    if args.command == "manual":
        name = cmds.manually_install_mod(args.path)
        if name:
            print(f"Installed {name}")
        return cmds.last_error is None

    if args.command == "import-save":
        dest = cmds.import_save(args.path, args.slot, args.saves_dir)
        if dest is None:
            return False
        print(f"Imported save into {dest}")
        return True

    if args.command == "api-toggle":
        active = cmds.toggle_api()
        if cmds.last_error is not None:
            return False
        print(f"Modding API {'enabled' if active else 'disabled'}")
        return True
    return False


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.verbose:
        set_app_log(lambda msg: print(msg, file=sys.stderr))

    try:
        state = AppState(settings_path=args.settings)
    except ButterflyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    with state:
        setup_file_log(state.store.path.parent)
        cmds = Commands(state, notify=lambda msg: print(f"Error: {msg}", file=sys.stderr))
        if args.mods_root is not None:
            cmds.set_mods_path(str(args.mods_root.resolve()))
        try:
            ensure_mods_root(state.store, SteamModsRoot(), PathPrompter())
        except ButterflyError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        return 0 if _run(cmds, args) else 1


if __name__ == "__main__":
    sys.exit(main())
