"""
Echo backend for offline development. Returns canned output shaped like a
real provider's so the whole pipeline can run without network access.
"""

import html

from nevra.llm.json_parsing import parse_backend_content
from nevra.schemas import BackendCall, BackendPayload, GenerationMode


class EchoClient:
    def __init__(self):
        self.model = "echo-dev"

    def complete(self, call: BackendCall) -> BackendPayload:
        if call.mode == GenerationMode.TUTOR:
            return BackendPayload(content=f"[ECHO RESPONSE]\n{call.prompt}")

        heading = html.escape(call.prompt.splitlines()[0] if call.prompt.strip() else "(no prompt)")
        document = (
            "<!DOCTYPE html>\n<html lang=\"en\">\n<head>\n  <meta charset=\"UTF-8\" />\n"
            "  <script src=\"https://cdn.tailwindcss.com\"></script>\n</head>\n"
            "<body class=\"min-h-screen flex items-center justify-center bg-slate-950 text-white\">\n"
            f"  <h1 class=\"text-3xl font-bold\">{heading}</h1>\n</body>\n</html>"
        )
        return parse_backend_content(f"[ECHO RESPONSE]\n```html\n{document}\n```")
