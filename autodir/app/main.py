from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

from PySide6.QtWidgets import QApplication

from autodir.app import config
from autodir.app.direction import Direction
from autodir.app.markdown_renderer import render_markdown


# ============================================================================
# DEBUG CONFIGURATION - Environment Variables
# ============================================================================
# AUTODIR_DEBUG - debug-level logging (cache activation, evictions, config)
#
# Example:
#   AUTODIR_DEBUG=1 autodir notes/today.md
# ============================================================================

logger = logging.getLogger(__name__)


def _debug_enabled(var_name: str) -> bool:
    """Check if a debug flag is enabled."""
    return os.getenv(var_name, "0") not in ("0", "false", "False", "", None)


def _configure_logging() -> None:
    level = logging.DEBUG if _debug_enabled("AUTODIR_DEBUG") else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AutoDir markdown editor with per-line text direction.")
    parser.add_argument("file", nargs="?", help="Markdown note to open.")
    parser.add_argument(
        "--direction",
        choices=[d.value for d in Direction],
        help="Document direction (default: configured default_direction).",
    )
    parser.add_argument("--render", action="store_true", help="Print the rendered HTML of FILE and exit.")
    parser.add_argument("--webserver", nargs="?", const="127.0.0.1:0", help="Start web server mode [bind:port]. Default: 127.0.0.1:0")
    parser.add_argument("--vault", help="Notes folder served in web server mode.")
    return parser.parse_args(argv)


def _resolve_direction(args: argparse.Namespace) -> Direction:
    if args.direction:
        return Direction.parse(args.direction, Direction.AUTO)
    return config.load_default_direction()


def _parse_bind(bind_str: str) -> tuple[str, int]:
    if ":" in bind_str:
        host, port_str = bind_str.rsplit(":", 1)
        try:
            port = int(port_str)
        except ValueError:
            port = 0
    else:
        host = bind_str
        port = 0
    return host or "127.0.0.1", port


def _run_render_mode(args: argparse.Namespace) -> int:
    if not args.file:
        print("Error: --render needs a FILE", file=sys.stderr)
        return 2
    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Error: cannot read {path}: {exc}", file=sys.stderr)
        return 1
    direction = _resolve_direction(args)
    body = render_markdown(
        text,
        direction=direction,
        fallback=config.load_fallback_direction(),
        detector=config.load_direction_detector(),
    )
    dir_attr = "" if direction is Direction.AUTO else f' dir="{direction.value}"'
    print(f'<article class="markdown-preview-view"{dir_attr}>\n{body}\n</article>')
    return 0


def _run_webserver_mode(args: argparse.Namespace) -> int:
    """Run in headless web server mode."""
    import signal
    from autodir.webserver.server import WebServer

    host, port = _parse_bind(args.webserver)
    vault_path = args.vault
    if not vault_path:
        print("Error: No notes folder specified. Use --vault <path>", file=sys.stderr)
        return 1
    vault_path = Path(vault_path).resolve()
    if not vault_path.is_dir():
        print(f"Error: Notes folder not found: {vault_path}", file=sys.stderr)
        return 1

    web_server = WebServer(
        str(vault_path),
        direction=_resolve_direction(args),
        fallback=config.load_fallback_direction(),
        detector=config.load_direction_detector(),
    )
    web_server.start(host, port)
    print("\nAutoDir Web Server started")
    print(f"  Notes: {vault_path}")
    print(f"  URL:   {web_server.get_url()}")
    print("\nPress Ctrl+C to stop.\n")

    def signal_handler(sig, frame):
        print("\n\nShutting down web server...")
        web_server.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        while web_server.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n\nShutting down web server...")
        web_server.stop()
    return 0


def _run_editor(args: argparse.Namespace) -> int:
    from autodir.app.ui.page_editor_window import PageEditorWindow

    qt_app = QApplication.instance() or QApplication(sys.argv)
    file_path: Optional[str] = args.file or config.load_last_file()
    # Without --direction the note's remembered direction applies.
    window = PageEditorWindow(file_path=file_path, direction=Direction.parse(args.direction))
    window.show()
    return qt_app.exec()


def main(argv: Optional[list[str]] = None) -> None:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    _configure_logging()
    config.init_settings()
    if args.render:
        rc = _run_render_mode(args)
    elif args.webserver:
        rc = _run_webserver_mode(args)
    else:
        rc = _run_editor(args)
    logger.debug("Exiting with status %s", rc)
    sys.exit(rc)


if __name__ == "__main__":
    main()
