"""Tests for the server/client serialization boundary rule."""

import pytest

from scx_analyzer.models import DiagnosticLevel
from scx_analyzer.rules.serialization_boundary import RULE_ID, analyze_serialization_boundary

CLIENT_COMPONENTS = {"ClientButton", "ClientCard"}


def analyze(source: str, components=CLIENT_COMPONENTS):
    return analyze_serialization_boundary("test.tsx", source, components)


class TestNonSerializableProps:
    """Test detection of each non-serializable kind."""

    def test_arrow_function_through_variable(self):
        source = """
export default function ServerComponent() {
  const handleClick = () => console.log('clicked');
  return <ClientButton onClick={handleClick} />;
}
"""
        diagnostics = analyze(source)
        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert diagnostic.rule == RULE_ID
        assert diagnostic.level == DiagnosticLevel.ERROR
        assert "arrow function" in diagnostic.message
        assert "onClick" in diagnostic.message
        assert "Server Actions" in diagnostic.message
        assert source.encode()[diagnostic.loc.start:diagnostic.loc.end] == b"handleClick"

    def test_inline_arrow_function(self):
        diagnostics = analyze("export default function S() { return <ClientButton onClick={() => 1} />; }")
        assert len(diagnostics) == 1
        assert "arrow function" in diagnostics[0].message

    def test_function_declaration_reference(self):
        source = """
function submit() {}
export default function S() { return <ClientButton onSubmit={submit} />; }
"""
        diagnostics = analyze(source)
        assert len(diagnostics) == 1
        assert "(function)" in diagnostics[0].message

    def test_inline_function_expression(self):
        diagnostics = analyze("export default function S() { return <ClientButton onClick={function() {}} />; }")
        assert len(diagnostics) == 1
        assert "(function)" in diagnostics[0].message

    @pytest.mark.parametrize(
        "expression, label, hint",
        [
            ("new Date()", "Date instance", "ISO string"),
            ("new Map([['k', 'v']])", "Map instance", "array or plain object"),
            ("new Set([1])", "Set instance", "array or plain object"),
            ("new Promise(r => r(1))", "Promise", "Await the Promise"),
            ("new User('John')", "class instance", "plain object"),
        ],
    )
    def test_constructed_values(self, expression, label, hint):
        source = f"""
export default function S() {{
  const value = {expression};
  return <ClientCard value={{value}} />;
}}
"""
        diagnostics = analyze(source)
        assert len(diagnostics) == 1
        assert f"({label})" in diagnostics[0].message
        assert hint in diagnostics[0].message

    def test_symbol(self):
        source = "const key = Symbol('key');\nexport default function S() { return <ClientCard id={key} />; }"
        diagnostics = analyze(source)
        assert len(diagnostics) == 1
        assert "Symbol" in diagnostics[0].message
        assert diagnostics[0].message.endswith("Pass a string key instead of a Symbol.")

    def test_react_element_prop(self):
        source = """
export default function S() {
  const icon = <svg><path d="M0 0" /></svg>;
  return <ClientButton icon={icon} />;
}
"""
        diagnostics = analyze(source)
        assert len(diagnostics) == 1
        assert "React element" in diagnostics[0].message
        assert "Pass the element as children" in diagnostics[0].message

    def test_multiple_violations_in_source_order(self):
        source = """
export default function S() {
  const handleClick = () => {};
  const timestamp = new Date();
  const data = new Map();
  return <ClientCard onClick={handleClick} createdAt={timestamp} metadata={data} />;
}
"""
        messages = [d.message for d in analyze(source)]
        assert len(messages) == 3
        assert "arrow function" in messages[0]
        assert "Date instance" in messages[1]
        assert "Map instance" in messages[2]


class TestAllowedProps:
    """Test props and situations that must not be flagged."""

    def test_children_elements_allowed(self):
        source = """
export default function S() {
  return (
    <ClientCard>
      <div>allowed as children</div>
    </ClientCard>
  );
}
"""
        assert analyze(source) == []

    def test_serializable_values(self):
        source = """
export default function S() {
  const data = { name: 'John' };
  const list = [1, 2, 3];
  return <ClientCard user={data} items={list} count={42} label="test" active={true} value={null} />;
}
"""
        assert analyze(source) == []

    def test_spread_props_not_followed(self):
        source = """
export default function S() {
  const props = { onClick: () => {} };
  return <ClientButton {...props} />;
}
"""
        assert analyze(source) == []

    def test_parameter_bound_value_not_followed(self):
        source = "export default function S({ onClick }) { return <ClientButton onClick={onClick} />; }"
        assert analyze(source) == []

    def test_native_elements_ignored(self):
        source = """
export default function S() {
  const handleClick = () => {};
  return (
    <>
      <div onClick={handleClick}>native</div>
      <ClientButton onClick={handleClick}>flag</ClientButton>
    </>
  );
}
"""
        diagnostics = analyze(source)
        assert len(diagnostics) == 1
        assert "ClientButton" in diagnostics[0].message

    def test_client_file_is_skipped(self):
        source = """'use client';
export default function C() {
  const handleClick = () => {};
  return <ClientButton onClick={handleClick} />;
}
"""
        assert analyze(source) == []

    def test_no_known_components(self):
        assert analyze("export default () => <ClientButton onClick={() => 1} />;", components=set()) == []
