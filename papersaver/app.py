import sys
import logging
import traceback

from papersaver.core.errors import PaperSaverError, UnknownError
from papersaver.utils.arg_parser import parse_params
from papersaver.utils.definitions import LOG_FORMAT, LOG_LEVEL
from papersaver.utils.dispatcher import dispatch_command


def log_uncaught_exceptions(ex_type, ex_value, ex_traceback):
    """Handler for uncaught exceptions that logs the traceback before exiting."""
    logging.getLogger("papersaver").critical(
        "Uncaught exception:\n%s",
        "".join(traceback.format_exception(ex_type, ex_value, ex_traceback)),
    )
    sys.__excepthook__(ex_type, ex_value, ex_traceback)


def configure_logging(verbose=False, log_file=None):
    level = logging.DEBUG if verbose else getattr(logging, LOG_LEVEL, logging.WARNING)
    logging.basicConfig(filename=log_file, level=level, format=LOG_FORMAT, force=True)


def launch_app(argv=None):
    """Run one CLI command. Returns the process exit code."""
    command, opts = parse_params(argv)
    configure_logging(opts.get("verbose", False), opts.get("log_file"))

    try:
        dispatch_command(command, opts)
    except PaperSaverError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logging.getLogger(__name__).debug("Unexpected failure", exc_info=True)
        print(f"Error: {UnknownError(e)}", file=sys.stderr)
        return 1
    return 0


def main():
    sys.excepthook = log_uncaught_exceptions
    sys.exit(launch_app())


if __name__ == "__main__":
    main()
