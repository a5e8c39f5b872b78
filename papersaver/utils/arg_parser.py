import sys
import argparse

from papersaver.utils.definitions import WALLPAPER_STYLES


class ConfigsParser(argparse.ArgumentParser):
    """
    ArgumentParser that hands back ``(command, options dict)`` pairs.
    """

    def parse_process_args(self, args=None):
        if args is None:
            args = sys.argv[1:]

        opts = vars(super().parse_args(list(args)))
        return opts.get("command"), opts


class LowercaseAction(argparse.Action):
    def __call__(self, parser, namespace, values, option_string=None):
        if values is not None:
            values = str(values).lower()
        setattr(namespace, self.dest, values)


def positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a number from 1, got {value}")
    return number


def non_negative_int(value):
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative number, got {value}")
    return number


# ==============================================================================
#
# ARGUMENT BUILDER FUNCTIONS
#
# ==============================================================================


def add_target_args(parser):
    """
    Adds the --display/--space/--space-uuid targeting options shared by the
    get and set commands.
    """
    parser.add_argument("--display", "-d", type=positive_int, help="Display number (see list-displays)")
    parser.add_argument("--space", "-s", type=positive_int, help="Space number on the display (needs --display)")
    parser.add_argument("--space-uuid", type=str, dest="space_uuid", help="Space UUID (see list-spaces)")
    return parser


def add_screensaver_args(subparsers):
    list_parser = subparsers.add_parser("list", help="List installed screensavers")
    list_parser.add_argument("--json", action="store_true", help="Print JSON")

    get_parser = subparsers.add_parser("get", help="Show the active screensaver")
    add_target_args(get_parser)
    get_parser.add_argument("--json", action="store_true", help="Print JSON")

    set_parser = subparsers.add_parser("set", help="Set the screensaver")
    set_parser.add_argument("module", type=str, help="Screensaver name or bundle path")
    add_target_args(set_parser)
    set_parser.add_argument("--no-restart", action="store_true", dest="no_restart", help="Do not restart the wallpaper agent")

    idle_parser = subparsers.add_parser("idle-time", help="Get or set the screensaver idle time")
    idle_subparsers = idle_parser.add_subparsers(help="Idle time operations", dest="idle_command", required=True)
    idle_subparsers.add_parser("get", help="Show the idle time in seconds")
    idle_set_parser = idle_subparsers.add_parser("set", help="Set the idle time")
    idle_set_parser.add_argument("seconds", type=non_negative_int, help="Seconds of inactivity, 0 disables")
    return subparsers


def add_wallpaper_args(subparsers):
    get_parser = subparsers.add_parser("get-paper", help="Show the current wallpaper")
    add_target_args(get_parser)
    get_parser.add_argument("--json", action="store_true", help="Print JSON")

    set_parser = subparsers.add_parser("set-paper", help="Set the wallpaper")
    set_parser.add_argument("image", type=str, help="Path to the image")
    set_parser.add_argument("--style", type=str, action=LowercaseAction, default="fill", help="Scaling style: " + ", ".join(WALLPAPER_STYLES))
    add_target_args(set_parser)
    set_parser.add_argument("--no-restart", action="store_true", dest="no_restart", help="Do not restart the wallpaper agent")
    return subparsers


def add_layout_args(subparsers):
    spaces_parser = subparsers.add_parser("list-spaces", help="List spaces (virtual desktops)")
    spaces_parser.add_argument("--all", action="store_true", help="Include collapsed and auto-created spaces")
    spaces_parser.add_argument("--json", action="store_true", help="Print JSON")

    displays_parser = subparsers.add_parser("list-displays", help="List known displays")
    displays_parser.add_argument("--json", action="store_true", help="Print JSON")
    return subparsers


def add_store_args(subparsers):
    subparsers.add_parser("backup", help="Copy the wallpaper store next to itself")
    restore_parser = subparsers.add_parser("restore-backup", help="Restore the wallpaper store from a backup")
    restore_parser.add_argument("path", nargs="?", default=None, help="Backup file (defaults to the store path + .backup)")
    subparsers.add_parser("checksum", help="Print the SHA-256 of the wallpaper store")
    return subparsers


def get_main_parser():
    """
    Builds the main parser with all sub-commands.
    """
    parser = ConfigsParser(
        prog="papersaver",
        description="Manage macOS screensavers and wallpapers per display and space",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=str, dest="log_file", default=None, help="Write logs to this file")
    parser.add_argument("--store", type=str, default=None, help="Wallpaper store file to operate on")

    subparsers = parser.add_subparsers(help="Command", dest="command", required=True)
    add_screensaver_args(subparsers)
    add_wallpaper_args(subparsers)
    add_layout_args(subparsers)
    add_store_args(subparsers)
    return parser


def parse_params(args=None):
    """
    Parses arguments, determines the command, and performs necessary validation.
    Returns: (command, validated_opts)
    """
    parser = get_main_parser()
    command, opts = parser.parse_process_args(args)

    if command in ("get", "set", "get-paper", "set-paper"):
        if opts.get("space") is not None and opts.get("display") is None:
            parser.error("--space requires --display")
        if opts.get("space") is not None and opts.get("space_uuid"):
            parser.error("--space and --space-uuid are mutually exclusive")
    return command, opts
