"""Tests for preview rendering, the harness and source preprocessing."""

from urllib.parse import unquote

import pytest

from nevra.project_store import VirtualProjectStore
from nevra.sandbox.harness import (
    PLACEHOLDER_TEXT,
    ERROR_TITLE,
    build_component_document,
    detect_component_name,
    escape_for_template_literal,
)
from nevra.sandbox.preprocess import (
    ModuleSyntaxStripper,
    PreprocessorChain,
    RegexTypeStripper,
    anonymous_default_name,
    default_chain,
    strip_param_types,
)
from nevra.sandbox.renderer import (
    DATA_URI_PREFIX,
    SANDBOX_PERMISSIONS,
    SandboxRenderer,
    embed_iframe,
)
from tests.conftest import HTML_DOCUMENT


COMPONENT = """import React, { useState } from 'react';

interface Props {
  title: string;
}

export default function Counter({ title }: Props) {
  const [count, setCount] = useState<number>(0);
  return <button onClick={() => setCount(count + 1)}>{title} {count}</button>;
}
"""


class TestRenderer:
    """Choosing and building preview documents."""

    @pytest.mark.parametrize("content", ["", "   \n\t", None])
    def test_empty_content_renders_placeholder(self, renderer, content):
        document = renderer.render(content)
        assert document.kind == "placeholder"
        assert PLACEHOLDER_TEXT in document.html

    def test_error_signature_renders_error_document(self, renderer):
        document = renderer.render('<div class="text-red-500">OpenRouter API Error</div>')
        assert document.kind == "error"
        assert ERROR_TITLE in document.html

    def test_red_styled_page_is_not_an_error(self, renderer):
        page = '<!DOCTYPE html><html><body><p class="text-red-500 bg-red-900">Sale!</p></body></html>'
        assert renderer.render(page).kind == "passthrough"

    def test_full_document_passes_through(self, renderer):
        document = renderer.render(HTML_DOCUMENT)
        assert document.kind == "passthrough"
        assert document.html == HTML_DOCUMENT

    def test_fragment_is_wrapped(self, renderer):
        document = renderer.render("<div>hello</div>")
        assert document.kind == "markup"
        assert document.html.startswith("<!DOCTYPE html>")
        assert "<div>hello</div>" in document.html

    def test_component_by_extension(self, renderer):
        document = renderer.render("const x = 1;", framework="react", entry_path="src/App.tsx")
        assert document.kind == "component"

    def test_component_by_shape(self, renderer):
        assert renderer.render(COMPONENT).kind == "component"

    def test_rendering_is_deterministic(self, renderer):
        first = renderer.render(COMPONENT, "react", "src/App.tsx")
        second = SandboxRenderer().render(COMPONENT, "react", "src/App.tsx")
        assert first.html == second.html
        assert first.digest() == second.digest()

    def test_data_uri_round_trips(self, renderer):
        document = renderer.render(HTML_DOCUMENT)
        uri = document.data_uri()
        assert uri.startswith(DATA_URI_PREFIX)
        assert unquote(uri[len(DATA_URI_PREFIX):]) == HTML_DOCUMENT

    def test_render_store_inlines_sibling_components(self, renderer):
        store = VirtualProjectStore()
        store.add_file("src/main.tsx", "ReactDOM.createRoot(root).render(<App />);")
        store.add_file("src/components/Header.tsx", "export function Header() { return <h1>Top</h1>; }")
        store.add_file("src/App.tsx", "export default function App() { return <Header />; }")
        store.set_entry("src/App.tsx")

        document = renderer.render_store(store, "react")
        assert document.kind == "component"
        assert "function Header()" in document.html
        assert "createRoot(root)" not in document.html

    def test_render_empty_store(self, renderer):
        assert renderer.render_store(VirtualProjectStore()).kind == "placeholder"


class TestEmbedding:
    """Iframe isolation."""

    def test_iframe_sandbox_permissions(self, renderer):
        markup = embed_iframe(renderer.render(HTML_DOCUMENT))
        assert f'sandbox="{" ".join(SANDBOX_PERMISSIONS)}"' in markup
        assert "allow-same-origin" not in markup

    def test_iframe_src_is_data_uri(self, renderer):
        markup = embed_iframe(renderer.render(HTML_DOCUMENT), height=300)
        assert 'src="data:text/html' in markup
        assert "height:300px" in markup


class TestHarness:
    """Component harness documents."""

    def test_escape_for_template_literal(self):
        source = "const a = `x ${y}`; // \\n </script>"
        escaped = escape_for_template_literal(source)
        assert "\\`x \\${y}\\`" in escaped
        assert "\\\\n" in escaped
        assert "<\\/script>" in escaped

    @pytest.mark.parametrize("source,name", [
        ("export default function Dashboard() {}", "Dashboard"),
        ("const Page = () => <div />;\nexport default Page;", "Page"),
        ("export function Hero() {}", "Hero"),
        ("function Card() { return null; }", "Card"),
        ("const x = 1;", "App"),
        ("export default () => <div>Hi</div>;", "App"),
        ("export default function () { return null; }", "App"),
        ("function App() { return null; }\nexport default memo(App);", "DefaultExport"),
    ])
    def test_detect_component_name(self, source, name):
        assert detect_component_name(source) == name

    def test_document_mounts_detected_component(self):
        document = build_component_document(COMPONENT)
        assert "Counter" in document
        assert "__SOURCE__" not in document
        assert "import React" not in document

    def test_anonymous_arrow_default_is_mounted(self):
        document = build_component_document("import React from 'react';\nexport default () => <div>Hi</div>;\n")
        assert "const App = () =>" in document
        assert "export default" not in document
        assert "__COMPONENT__" not in document

    def test_source_placeholders_are_not_expanded(self):
        document = build_component_document("export default function App() { return '__TITLE__'; }")
        assert "'__TITLE__'" in document


class TestPreprocess:
    """Best-effort source rewrites."""

    def test_module_syntax_is_removed(self):
        source = (
            "'use client';\n"
            "import React from 'react';\n"
            "import { a,\n  b } from './x';\n"
            "import './styles.css';\n"
            "export const Button = () => null;\n"
            "export default App;\n"
        )
        result = ModuleSyntaxStripper().process(source)
        assert "import" not in result
        assert "use client" not in result
        assert "export" not in result
        assert "const Button = () => null;" in result

    def test_anonymous_arrow_default_is_bound(self):
        result = default_chain().process("export default () => <div>Hi</div>;")
        assert result.startswith("const App = () =>")
        assert "export" not in result

    def test_anonymous_function_default_is_named(self):
        result = default_chain().process("export default function () { return null; }")
        assert result.startswith("function App() {")
        assert "export" not in result

    def test_anonymous_class_default_is_named(self):
        result = ModuleSyntaxStripper().process("export default class extends React.Component {}")
        assert result.startswith("class App extends React.Component")

    def test_wrapped_default_does_not_redeclare_app(self):
        source = "function App() { return null; }\nexport default memo(App);\n"
        result = ModuleSyntaxStripper().process(source)
        assert "const DefaultExport = memo(App);" in result
        assert result.count("App()") == 1

    def test_named_defaults_are_left_alone(self):
        assert anonymous_default_name("export default function Hero() {}") is None
        assert anonymous_default_name("export default Page;") is None
        assert anonymous_default_name("const x = 1;") is None

    def test_interfaces_and_aliases_are_removed(self):
        source = (
            "interface Props {\n  a: string;\n  nested: { b: number };\n}\n"
            "type Mode = 'a' | 'b';\n"
            "type Shape = {\n  x: number;\n};\n"
            "const keep = 1;\n"
        )
        result = RegexTypeStripper().process(source)
        assert "interface" not in result
        assert "type " not in result
        assert "const keep = 1;" in result

    def test_annotations_are_removed(self):
        source = (
            "const [items, setItems] = useState<string[]>([]);\n"
            "const total: number = 0;\n"
            "function add(a: number, b: number = 2): number { return a + b; }\n"
            "const handler = (e: React.MouseEvent<HTMLButtonElement>): void => {};\n"
            "const el = document.getElementById('x') as HTMLElement;\n"
        )
        result = RegexTypeStripper().process(source)
        assert "useState([])" in result
        assert "const total = 0;" in result
        assert "function add(a, b = 2) {" in result
        assert "const handler = (e) => {};" in result
        assert "as HTMLElement" not in result

    def test_object_literals_are_untouched(self):
        source = "const style = { color: 'red', margin: 0 };\n"
        assert RegexTypeStripper().process(source) == source

    def test_destructured_params_keep_defaults(self):
        assert strip_param_types("{ a, b }: Props, c = 3") == "{ a, b }, c = 3"

    def test_chain_order(self):
        chain = default_chain()
        assert [step.name for step in chain.steps] == ["module-syntax-stripper", "regex-type-stripper"]

    def test_custom_chain(self):
        class Upper:
            name = "upper"

            def process(self, source):
                return source.upper()

        assert PreprocessorChain([Upper()]).process("abc") == "ABC"
