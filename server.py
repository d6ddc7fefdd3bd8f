"""Static-file HTTP server over an AssetFS, built on http.server."""

import email.utils
import html
import logging
import shutil
from datetime import timezone
from http.server import HTTPServer, BaseHTTPRequestHandler
from urllib.parse import unquote, quote, urlparse

from assetfs import AssetFS, AssetError, NotFoundError, _join

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "OPTIONS, GET, HEAD"
INDEX_PAGE = "index.html"


def _http_date(timestamp: float) -> str:
    return email.utils.formatdate(timestamp, usegmt=True)


def _not_modified(since: str | None, mtime: float) -> bool:
    """True if an If-Modified-Since header value is not older than mtime."""
    if not since:
        return False
    try:
        parsed = email.utils.parsedate_to_datetime(since)
    except (TypeError, ValueError):
        return False
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    # HTTP dates have second resolution
    return int(mtime) <= parsed.timestamp()


def _listing_html(path: str, children) -> bytes:
    """Render a directory listing page."""
    title = html.escape(path)
    lines = [f"<html><head><title>{title}</title></head><body>"]
    lines.append(f"<h1>{title}</h1><ul>")
    if path != "/":
        lines.append('<li><a href="../">..</a></li>')
    for child in children:
        suffix = "/" if child.is_dir else ""
        href = quote(child.name, safe="") + suffix
        lines.append(f'<li><a href="{href}">{html.escape(child.name)}{suffix}</a></li>')
    lines.append("</ul></body></html>")
    return "\n".join(lines).encode("utf-8")


class StaticFileHandler(BaseHTTPRequestHandler):
    """HTTP request handler serving files and listings from an AssetFS."""

    filesystem: AssetFS

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send(self, status: int, body: bytes, content_type: str, include_body: bool = True):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def _try(self, fn, include_body: bool = True):
        """Call fn(), returning its result. On asset errors, send an error response and return None."""
        try:
            return fn()
        except NotFoundError:
            self._send(404, b"Not Found", "text/plain", include_body)
            return None
        except AssetError as e:
            logger.warning("Error serving %s: %s", self.path, e)
            self._send(500, str(e).encode(), "text/plain", include_body)
            return None

    def do_OPTIONS(self):
        self.send_response(200)
        self.send_header("Allow", ALLOWED_METHODS)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self):
        self._handle_get(include_body=True)

    def do_HEAD(self):
        self._handle_get(include_body=False)

    def _handle_get(self, include_body: bool):
        raw_path = urlparse(self.path).path
        # rooted, so ".." cannot climb above the filesystem prefix
        path = _join("/", unquote(raw_path))

        f = self._try(lambda: self.filesystem.open(path), include_body)
        if f is None:
            return

        with f:
            info = f.stat()
            if not info.is_dir:
                return self._send_file(f, include_body)

            if not raw_path.endswith("/"):
                return self._redirect(quote(path.rstrip("/")) + "/")

            children = f.readdir(0)
            for child in children:
                if child.name == INDEX_PAGE and not child.is_dir:
                    index = self._try(lambda: self.filesystem.open(_join(path, INDEX_PAGE)), include_body)
                    if index is None:
                        return
                    with index:
                        return self._send_file(index, include_body)

            body = _listing_html(path.rstrip("/") + "/", children)
            return self._send(200, body, "text/html; charset=utf-8", include_body)

    def _send_file(self, f, include_body: bool):
        info = f.stat()
        mtime = info.mtime
        if _not_modified(self.headers.get("If-Modified-Since"), mtime):
            self.send_response(304)
            self.send_header("Last-Modified", _http_date(mtime))
            self.end_headers()
            return

        self.send_response(200)
        self.send_header("Content-Type", info.content_type)
        self.send_header("Content-Length", str(info.size))
        self.send_header("Last-Modified", _http_date(mtime))
        self.end_headers()
        if include_body:
            shutil.copyfileobj(f, self.wfile)

    def _redirect(self, location: str):
        self.send_response(301)
        self.send_header("Location", location)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _method_not_allowed(self):
        self.send_response(405)
        self.send_header("Allow", ALLOWED_METHODS)
        self.send_header("Content-Length", "0")
        self.end_headers()

    do_PUT = lambda self: self._method_not_allowed()
    do_DELETE = lambda self: self._method_not_allowed()
    do_POST = lambda self: self._method_not_allowed()
    do_PATCH = lambda self: self._method_not_allowed()
    do_PROPFIND = lambda self: self._method_not_allowed()
    do_MKCOL = lambda self: self._method_not_allowed()


def make_server(filesystem: AssetFS, host: str = "localhost", port: int = 8080) -> HTTPServer:
    """Create a static-file server for the given asset filesystem."""
    handler_class = type("Handler", (StaticFileHandler,), {"filesystem": filesystem})
    return HTTPServer((host, port), handler_class)
