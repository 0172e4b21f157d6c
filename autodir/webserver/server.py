"""
AutoDir Web Server - rendered note preview.

Serves a folder of markdown notes as HTML; every block of a rendered note
carries a direction class so mixed RTL/LTR notes read correctly in a browser.
"""

import logging
import socket
import threading
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote

from flask import Flask, abort, render_template, request, send_file
from markupsafe import Markup

from autodir.app.direction import Direction
from autodir.app.markdown_renderer import render_markdown

logger = logging.getLogger(__name__)

NOTE_SUFFIXES = (".md", ".txt")


class WebServer:
    """Web server for previewing a notes folder as HTML."""

    def __init__(
        self,
        vault_root: str,
        direction: Direction = Direction.AUTO,
        fallback: Direction = Direction.LTR,
        detector: Optional[Callable[[str], Optional[Direction]]] = None,
    ):
        """
        Initialize web server.

        Args:
            vault_root: Folder holding the notes
            direction: Document direction used when a request does not ask for one
            fallback: Direction for blocks before any detectable text
            detector: Optional direction detector (configured script groups)
        """
        self.vault_root = Path(vault_root).resolve()
        self.direction = direction
        self.fallback = fallback
        self.detector = detector
        self.app = Flask(
            __name__,
            template_folder=str(Path(__file__).parent / "templates"),
            static_folder=None,
        )
        self.server_thread: Optional[threading.Thread] = None
        self.is_running = False
        self.host = "127.0.0.1"
        self.port = 0
        self.actual_port = 0

        self._setup_routes()
        self._setup_template_filters()

    def _setup_template_filters(self):
        """Setup Jinja2 template filters."""

        @self.app.template_filter("safe_markdown")
        def safe_markdown(text: str, direction: str = "auto") -> Markup:
            """Render markdown to HTML with direction classes."""
            return Markup(
                render_markdown(
                    text,
                    direction=Direction.parse(direction, Direction.AUTO),
                    fallback=self.fallback,
                    detector=self.detector,
                )
            )

    def _setup_routes(self):
        """Setup Flask routes."""

        @self.app.route("/")
        def index():
            """List the notes of the folder."""
            return self._render_directory()

        @self.app.route("/wiki/<path:page_path>")
        def wiki_page(page_path: str):
            """Render a markdown page."""
            page_path = unquote(page_path)
            if not page_path.endswith(NOTE_SUFFIXES):
                for ext in NOTE_SUFFIXES:
                    if (self.vault_root / (page_path + ext)).exists():
                        page_path += ext
                        break
                else:
                    page_path += ".md"
            return self._render_page(page_path)

        @self.app.route("/static/<path:filename>")
        def serve_static(filename: str):
            """Serve static assets (CSS)."""
            static_dir = (Path(__file__).parent / "static").resolve()
            file_path = (static_dir / filename).resolve()
            try:
                file_path.relative_to(static_dir)
            except ValueError:
                abort(403)
            if not file_path.is_file():
                abort(404)
            return send_file(str(file_path))

    def _resolve_inside_vault(self, rel_path: str) -> Path:
        full_path = (self.vault_root / rel_path).resolve()
        # Security check - ensure the path stays within the folder
        try:
            full_path.relative_to(self.vault_root)
        except ValueError:
            abort(403)
        return full_path

    def _request_direction(self) -> Direction:
        return Direction.parse(request.args.get("dir"), self.direction)

    def _render_page(self, page_path: str) -> str:
        """
        Render a markdown page.

        Args:
            page_path: Relative path to the markdown file

        Returns:
            Rendered HTML
        """
        full_path = self._resolve_inside_vault(page_path)
        if not full_path.is_file():
            abort(404)
        try:
            content = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading file {full_path}: {e}")
            abort(500)

        direction = self._request_direction()
        return render_template(
            "page.html",
            title=full_path.stem,
            content=content,
            page_path=page_path,
            direction=direction.value,
            container_dir=None if direction is Direction.AUTO else direction.value,
        )

    def _render_directory(self) -> str:
        """Render the listing of every note below the folder."""
        if not self.vault_root.is_dir():
            abort(404)
        items = []
        for item in sorted(self.vault_root.rglob("*")):
            if item.is_file() and item.suffix in NOTE_SUFFIXES:
                rel_path = item.relative_to(self.vault_root)
                items.append({
                    "name": rel_path.as_posix(),
                    "url": f"/wiki/{rel_path.with_suffix('').as_posix()}",
                })
        return render_template("index.html", title=self.vault_root.name or "Notes", items=items)

    def _find_free_port(self) -> int:
        """Ask the OS for an unused TCP port to serve the preview on."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("", 0))
            s.listen(1)
            port = s.getsockname()[1]
        return port

    def start(self, host: str = "127.0.0.1", port: int = 0) -> tuple[str, int]:
        """Serve the notes folder from a daemon thread.

        Port 0 picks a free port. Returns the (host, port) pair the preview
        is reachable on; a second call returns the running pair.
        """
        if self.is_running:
            logger.warning("Preview server already running on port %s", self.actual_port)
            return self.host, self.actual_port

        self.host = host
        self.port = port if port > 0 else self._find_free_port()

        if host not in ("127.0.0.1", "localhost"):
            logger.warning(f"Serving notes over the network at {host}:{self.port}")

        def run_server():
            try:
                self.app.run(host=self.host, port=self.port, debug=False, use_reloader=False)
            except OSError as e:
                logger.error(f"Preview server failed on port {self.port}: {e}")
                self.is_running = False

        self.server_thread = threading.Thread(target=run_server, daemon=True)
        self.server_thread.start()
        self.is_running = True
        self.actual_port = self.port
        logger.info(f"Serving {self.vault_root} at {self.get_url()}")
        return self.host, self.actual_port

    def stop(self):
        """Mark the preview as stopped; get_url() returns None afterwards."""
        if not self.is_running:
            return
        # Werkzeug's run() has no shutdown hook; the thread exits with the process.
        self.is_running = False
        logger.info("Preview server for %s stopped", self.vault_root)

    def get_url(self) -> Optional[str]:
        """Base URL of the note listing, None while stopped."""
        if not self.is_running:
            return None
        return f"http://{self.host}:{self.actual_port}/"
