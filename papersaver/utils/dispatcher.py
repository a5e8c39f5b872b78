"""
Dispatcher for PaperSaver CLI commands.
Connects parsed arguments to the PaperSaver facade.
"""

import json

from dataclasses import asdict

from ..core.paper_saver import PaperSaver
from ..core.wallpaper import WallpaperOptions


def _print_json(value):
    print(json.dumps(value, indent=2, default=str))


def _resolve_read_target(saver, args):
    """Turn --display/--space numbers into the UUIDs the facade reads with."""
    display_number = args.get("display")
    space_number = args.get("space")
    space_uuid = args.get("space_uuid")
    if display_number is None:
        return None, space_uuid

    index = saver.index_provider()
    display_uuid = index.display_by_number(display_number).uuid
    if space_number is not None:
        space_uuid = index.space_uuid(display_number, space_number)
    return display_uuid, space_uuid


def dispatch_screensaver(saver, command, args):
    if command == "list":
        modules = saver.list_screensavers()
        if args.get("json"):
            _print_json([dict(asdict(m), type=m.type.value) for m in modules])
            return
        for module in modules:
            origin = "system" if module.is_system else "user"
            print(f"{module.name} ({module.type.display_name}, {origin})")

    elif command == "get":
        display_uuid, space_uuid = _resolve_read_target(saver, args)
        info = saver.get_active_screensaver(display_uuid, space_uuid)
        if args.get("json"):
            _print_json(dict(asdict(info), type=info.type.value) if info else None)
        elif info is None:
            print("No active screensaver")
        else:
            print(f"{info.name} ({info.type.display_name})")

    elif command == "set":
        leaves = saver.set_screensaver(
            args.get("module"),
            display_number=args.get("display"),
            space_number=args.get("space"),
            space_uuid=args.get("space_uuid"),
            skip_restart=args.get("no_restart", False),
        )
        print(f"Screensaver set to {args.get('module')} ({len(leaves)} entries updated)")

    elif command == "idle-time":
        if args.get("idle_command") == "get":
            print(saver.get_idle_time())
        else:
            saver.set_idle_time(args.get("seconds"))
            print(f"Idle time set to {args.get('seconds')} seconds")


def dispatch_wallpaper(saver, command, args):
    if command == "get-paper":
        display_uuid, space_uuid = _resolve_read_target(saver, args)
        info = saver.get_wallpaper(display_uuid, space_uuid)
        if args.get("json"):
            if info is None:
                _print_json(None)
            else:
                _print_json(dict(asdict(info), style=info.style.value if info.style else None, image_path=info.image_path))
        elif info is None:
            print("No wallpaper configured")
        else:
            style = f" ({info.style.value})" if info.style else ""
            print(f"{info.image_path}{style}")

    elif command == "set-paper":
        options = WallpaperOptions.from_name(args.get("style"))
        leaves = saver.set_wallpaper(
            args.get("image"),
            options,
            display_number=args.get("display"),
            space_number=args.get("space"),
            space_uuid=args.get("space_uuid"),
            skip_restart=args.get("no_restart", False),
        )
        print(f"Wallpaper set to {args.get('image')} ({len(leaves)} entries updated)")


def dispatch_layout(saver, command, args):
    if command == "list-spaces":
        spaces = saver.list_spaces(include_historical=args.get("all", False))
        if args.get("json"):
            _print_json([dict(asdict(s), is_historical=s.is_historical) for s in spaces])
            return
        for space in spaces:
            flags = [label for label, on in (("current", space.is_current), ("collapsed", space.is_collapsed)) if on]
            suffix = f" [{', '.join(flags)}]" if flags else ""
            print(f"Space {space.space_id}: {space.uuid or '(no uuid)'} on {space.display_identifier}{suffix}")

    elif command == "list-displays":
        displays = saver.list_displays()
        if args.get("json"):
            _print_json([dict(asdict(d), friendly_name=d.friendly_name) for d in displays])
            return
        for display in displays:
            number = display.number if display.number is not None else "-"
            print(f"{number}. {display.friendly_name} - {display.description} ({display.uuid})")


def dispatch_store(saver, command, args):
    if command == "backup":
        print(saver.backup())
    elif command == "restore-backup":
        saver.restore(args.get("path"))
        print("Wallpaper store restored")
    elif command == "checksum":
        print(saver.checksum())


def dispatch_command(command, args, saver=None):
    saver = saver or PaperSaver(store_path=args.get("store"))
    if command in ("list", "get", "set", "idle-time"):
        dispatch_screensaver(saver, command, args)
    elif command in ("get-paper", "set-paper"):
        dispatch_wallpaper(saver, command, args)
    elif command in ("list-spaces", "list-displays"):
        dispatch_layout(saver, command, args)
    elif command in ("backup", "restore-backup", "checksum"):
        dispatch_store(saver, command, args)
    else:
        raise ValueError(f"Unsupported operation: {command}")
