import argparse
import logging
import sys

from clipdash import __version__
from clipdash.config import LOG_PATH, DaemonConfig
from clipdash.utils import ensure_dirs

# Subcommand -> protocol verb
CLIENT_COMMANDS = {
    "add-text": "ADD_TEXT",
    "add-html": "ADD_HTML",
    "list": "LIST",
    "get": "GET",
    "paste": "GET",
    "copy": "PASTE",
    "pin": "PIN",
    "delete": "DELETE",
    "clear": "CLEAR",
}


def build_command(command: str, args: list[str]) -> str:
    """Turn a CLI subcommand and its arguments into one protocol line."""
    verb = CLIENT_COMMANDS[command]
    if command == "list" and not args:
        args = ["50"]
    text = " ".join(args)
    # The protocol is line based; embedded newlines would end the command early
    text = text.replace("\r", " ").replace("\n", " ")
    return f"{verb} {text}" if text else verb


def run_client(command: str, args: list[str]) -> int:
    from clipdash.client import send

    try:
        response = send(build_command(command, args))
    except OSError as e:
        print(f"clipdash: cannot reach daemon: {e}", file=sys.stderr)
        return 1
    if command == "paste":
        return print_raw_text(response)
    sys.stdout.write(response)
    if response and not response.endswith("\n"):
        sys.stdout.write("\n")
    return 1 if response.startswith("ERR") else 0


def print_raw_text(response: str) -> int:
    """Print a GET response's text without the protocol prefix."""
    if not response.startswith("TEXT\n"):
        print("clipdash: ERR unsupported kind or not found", file=sys.stderr)
        return 1
    sys.stdout.write(response[len("TEXT\n") :])
    return 0


def run_app() -> None:
    """Run the clipdash daemon in the foreground."""
    ensure_dirs()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            logging.StreamHandler(sys.stderr),
        ],
    )

    from clipdash.app import ClipdashApp

    app = ClipdashApp(DaemonConfig.from_env())
    app.run()


def main():
    parser = argparse.ArgumentParser(
        description=f"clipdash {__version__} - clipboard history daemon and client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  daemon              Run the daemon in the foreground (default)
  add-text <text>     Add a text entry
  add-html <html>     Add an HTML entry
  list [limit] [query]
  get <id>            Print an entry
  paste <id>          Print a text entry's raw content
  copy <id>           Put an entry back on the system clipboard
  pin <id> <0|1>      Pin or unpin an entry
  delete <id>         Delete an entry
  clear               Delete every entry, pinned ones included

Examples:
  clipdash daemon &
  clipdash list 10 invoice
  clipdash copy 42
""",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="daemon",
        choices=["daemon", *CLIENT_COMMANDS],
        help="Command to run",
    )
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Command arguments")

    args = parser.parse_args()

    if args.command == "daemon":
        run_app()
    else:
        sys.exit(run_client(args.command, args.args))


if __name__ == "__main__":
    main()
