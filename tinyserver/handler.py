import html
import mimetypes
import os
from urllib.parse import quote

from .models import Request, ResponseSpec, text_response


class FileHandler:
    def __init__(self, document_root: str) -> None:
        self.root_real = os.path.realpath(document_root)

    def handle(self, req: Request) -> ResponseSpec:
        if req.method.upper() not in ("GET", "HEAD"):
            return text_response(405, "Method Not Allowed", "Method Not Allowed", headers={"Allow": "GET, HEAD"})

        try:
            abs_path = self._safe_join(self.root_real, req.path)
        except PermissionError:
            return text_response(403, "Forbidden", "403 Forbidden")

        if not os.path.exists(abs_path):
            return text_response(404, "Not Found", "404 page not found")

        if os.path.isdir(abs_path):
            if not req.path.endswith("/"):
                return ResponseSpec(301, "Moved Permanently", headers={"Location": quote(req.path) + "/"})
            index = os.path.join(abs_path, "index.html")
            if not os.path.isfile(index):
                return self._listing(abs_path)
            abs_path = index

        if not os.path.isfile(abs_path) or not os.access(abs_path, os.R_OK):
            return text_response(403, "Forbidden", "403 Forbidden")

        try:
            st = os.stat(abs_path)
        except OSError:
            return text_response(404, "Not Found", "404 page not found")

        ctype, _ = mimetypes.guess_type(abs_path)
        return ResponseSpec(
            200,
            "OK",
            headers={"Content-Type": ctype or "application/octet-stream"},
            body_path=abs_path,
            body_size=st.st_size,
        )

    def _listing(self, directory: str) -> ResponseSpec:
        try:
            names = sorted(os.listdir(directory))
        except OSError:
            return text_response(403, "Forbidden", "403 Forbidden")

        lines = ["<pre>"]
        for name in names:
            if os.path.isdir(os.path.join(directory, name)):
                name += "/"
            lines.append(f'<a href="{quote(name)}">{html.escape(name)}</a>')
        lines.append("</pre>")
        body = ("\n".join(lines) + "\n").encode("utf-8")
        return ResponseSpec(
            200,
            "OK",
            headers={"Content-Type": "text/html; charset=utf-8"},
            body=body,
            body_size=len(body),
        )

    def _safe_join(self, root_real: str, url_path: str) -> str:
        rel = url_path.lstrip("/")
        norm = os.path.normpath(rel)
        candidate = os.path.join(root_real, norm)
        real = os.path.realpath(candidate)

        root_prefix = root_real + os.sep
        if real != root_real and not real.startswith(root_prefix):
            raise PermissionError("escape root")
        return real
