"""
Preview Harness - self-contained HTML documents for the sandboxed preview.

Every document produced here is standalone: runtimes come from fixed CDN
references and nothing refers back to the host application.
"""

import html
import re
from typing import Optional, Sequence

from nevra.sandbox.preprocess import Preprocessor, anonymous_default_name, default_chain


# =============================================================================
# CONFIGURATION
# =============================================================================

TAILWIND_CDN = "https://cdn.tailwindcss.com"
REACT_CDN = "https://unpkg.com/react@18/umd/react.production.min.js"
REACT_DOM_CDN = "https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"
BABEL_CDN = "https://unpkg.com/@babel/standalone/babel.min.js"

DEFAULT_COMPONENT_NAME = "App"
PLACEHOLDER_TEXT = "No code to display"
ERROR_TITLE = "Error Rendering Component"
ERROR_TEXT = "Code generation failed. Please try again with a different prompt or provider."

COMPONENT_NAME_PATTERNS = (
    re.compile(r"export\s+default\s+function\s+(\w+)"),
    re.compile(r"export\s+default\s+(?:const\s+)?([A-Za-z_$][\w$]*)\b(?!\s*\()"),
    re.compile(r"export\s+function\s+(\w+)"),
    re.compile(r"export\s+const\s+(\w+)\s*="),
    re.compile(r"function\s+([A-Z]\w*)\s*\("),
    re.compile(r"const\s+([A-Z]\w*)\s*(?::[^=\n]+)?=\s*(?:\(|function|React\.)"),
)
_RESERVED_NAMES = {"function", "class", "async", "const"}


# =============================================================================
# HELPERS
# =============================================================================

def escape_for_template_literal(source: str) -> str:
    """
    Escape source for embedding in a JavaScript template literal inside a
    <script> element.
    """
    escaped = source.replace("\\", "\\\\")
    escaped = escaped.replace("`", "\\`")
    escaped = escaped.replace("${", "\\${")
    escaped = re.sub(r"</(script)", r"<\\/\1", escaped, flags=re.IGNORECASE)
    return escaped


def detect_component_name(source: str) -> str:
    """Find the component to mount, defaulting to App."""
    binding = anonymous_default_name(source)
    if binding:
        return binding
    for pattern in COMPONENT_NAME_PATTERNS:
        match = pattern.search(source or "")
        if match and match.group(1) not in _RESERVED_NAMES:
            return match.group(1)
    return DEFAULT_COMPONENT_NAME


# =============================================================================
# DOCUMENTS
# =============================================================================

_COMPONENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>__TITLE__</title>
  <script src="__TAILWIND__"></script>
  <script crossorigin src="__REACT__"></script>
  <script crossorigin src="__REACT_DOM__"></script>
  <script src="__BABEL__"></script>
  <style>
    body { margin: 0; font-family: system-ui, sans-serif; }
    .nevra-render-error { margin: 16px; padding: 16px; border-radius: 8px; background: #7f1d1d; border: 1px solid #ef4444; color: #fff; }
    .nevra-render-error pre { white-space: pre-wrap; font-size: 12px; opacity: 0.85; }
  </style>
</head>
<body>
  <div id="root"></div>
  <script>
    (function () {
      var rootEl = document.getElementById('root');
      function showError(err) {
        rootEl.innerHTML = '';
        var box = document.createElement('div');
        box.className = 'nevra-render-error';
        var title = document.createElement('strong');
        title.textContent = 'Error rendering component';
        var detail = document.createElement('pre');
        detail.textContent = String(err && err.message ? err.message : err);
        box.appendChild(title);
        box.appendChild(detail);
        rootEl.appendChild(box);
      }
      try {
        var source = `__SOURCE__`;
        var compiled;
        try {
          compiled = Babel.transform(source, { presets: ['react', 'typescript', 'env'], filename: 'component.tsx' }).code;
        } catch (tsError) {
          compiled = Babel.transform(source, { presets: ['react', 'env'] }).code;
        }
        var factory = new Function(
          'React', 'ReactDOM', 'useState', 'useEffect', 'useRef', 'useMemo', 'useCallback', 'useReducer', 'useContext',
          compiled + '\\nreturn typeof __COMPONENT__ !== "undefined" ? __COMPONENT__ : null;'
        );
        var Component = factory(
          React, ReactDOM, React.useState, React.useEffect, React.useRef, React.useMemo,
          React.useCallback, React.useReducer, React.useContext
        );
        if (!Component) {
          throw new Error('Component "__COMPONENT__" was not defined');
        }
        ReactDOM.createRoot(rootEl).render(React.createElement(Component));
      } catch (err) {
        showError(err);
      }
    })();
  </script>
</body>
</html>
"""


def build_component_document(
    source: str,
    preprocessor: Optional[Preprocessor] = None,
    extra_sources: Sequence[str] = (),
    title: str = "Preview",
) -> str:
    """
    Wrap component source in an executable React harness.

    Args:
        source: Entry component source (TSX/JSX/JS)
        preprocessor: Source rewrite applied before embedding; defaults to the standard chain
        extra_sources: Sibling component sources inlined ahead of the entry
        title: Document title

    Returns:
        A complete HTML document
    """
    preprocessor = preprocessor or default_chain()
    component_name = detect_component_name(source)

    parts = [preprocessor.process(extra) for extra in extra_sources]
    parts.append(preprocessor.process(source))
    escaped = escape_for_template_literal("\n\n".join(parts))

    document = _COMPONENT_TEMPLATE
    document = document.replace("__TITLE__", html.escape(title))
    document = document.replace("__TAILWIND__", TAILWIND_CDN)
    document = document.replace("__REACT_DOM__", REACT_DOM_CDN)
    document = document.replace("__REACT__", REACT_CDN)
    document = document.replace("__BABEL__", BABEL_CDN)
    document = document.replace("__COMPONENT__", component_name)
    # Source goes in last so its text is never scanned for placeholders
    return document.replace("__SOURCE__", escaped)


def build_error_document(detail: Optional[str] = None) -> str:
    """Static document shown when generation produced an error instead of code."""
    detail_html = f"\n    <pre>{html.escape(detail)}</pre>" if detail else ""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Error</title>
  <style>
    body {{ margin: 0; padding: 20px; font-family: system-ui, sans-serif; background: #050505; color: #fff; }}
    .error {{ background: #7f1d1d; border: 1px solid #ef4444; padding: 16px; border-radius: 8px; }}
    h1 {{ color: #ef4444; margin: 0 0 12px 0; }}
    pre {{ white-space: pre-wrap; font-size: 12px; opacity: 0.8; }}
  </style>
</head>
<body>
  <div class="error">
    <h1>{ERROR_TITLE}</h1>
    <p>{ERROR_TEXT}</p>{detail_html}
  </div>
</body>
</html>
"""


def build_placeholder_document() -> str:
    """Neutral document for empty input."""
    return (
        "<!DOCTYPE html><html><head><meta charset=\"UTF-8\"></head>"
        "<body style=\"margin:0;display:flex;align-items:center;justify-content:center;"
        "height:100vh;font-family:system-ui,sans-serif;color:#888;\">"
        f"<p>{PLACEHOLDER_TEXT}</p></body></html>"
    )


def wrap_markup_document(fragment: str, title: str = "Preview") -> str:
    """Wrap a markup fragment (or a <body> span) in a minimal document with Tailwind."""
    body = fragment.strip()
    body_match = re.search(r"<body[^>]*>([\s\S]*?)(?:</body>|$)", body, re.IGNORECASE)
    if body_match:
        body = body_match.group(1).strip()
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{html.escape(title)}</title>
  <script src="{TAILWIND_CDN}"></script>
</head>
<body>
{body}
</body>
</html>
"""
