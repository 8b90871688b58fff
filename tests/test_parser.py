from __future__ import annotations

from typing import List

import pytest
from lark import Tree

from tests.support.harness import (
    TT,
    DiagnosticKind,
    labels,
    parse_ok,
    parse_source,
    src,
    statements,
    tokenize,
)
from squirrel_ref.parser_rd import ParseError, Parser
from squirrel_ref.tree import iter_tokens


def only_stmt(source: str) -> Tree:
    stmts = statements(source)
    assert len(stmts) == 1, [s.data for s in stmts]
    return stmts[0]


def only_expr(source: str) -> Tree:
    stmt = only_stmt(source)
    assert stmt.data == "expr_stmt"
    return stmt.children[0]


def shape(node) -> object:
    """Nested (label, ...) tuples with token values as leaves."""
    if isinstance(node, Tree):
        return (node.data, *[shape(child) for child in node.children])
    return node.value


STATEMENT_CASES = [
    pytest.param("local x = 1;", "local_decl", id="local"),
    pytest.param("local a, b = 2", "local_decl", id="local-multi"),
    pytest.param("const MAX = 10;", "const_decl", id="const"),
    pytest.param("function f(a) { return a; }", "function_decl", id="function"),
    pytest.param("local function f() {}", "function_decl", id="local-function"),
    pytest.param("function Foo::bar() {}", "function_decl", id="function-path"),
    pytest.param("if (a) b(); else c();", "if_stmt", id="if-else"),
    pytest.param("while (a) a--;", "while_stmt", id="while"),
    pytest.param("do { a++; } while (a < 3);", "do_while_stmt", id="do-while"),
    pytest.param("for (local i = 0; i < 3; i++) {}", "for_stmt", id="for"),
    pytest.param("for (;;) {}", "for_stmt", id="for-empty"),
    pytest.param("foreach (k, v in t) {}", "foreach_stmt", id="foreach"),
    pytest.param("switch (x) { case 1: break; default: y(); }", "switch_stmt", id="switch"),
    pytest.param("try { a(); } catch (e) { b(e); }", "try_stmt", id="try"),
    pytest.param("throw \"boom\";", "throw_stmt", id="throw"),
    pytest.param("return;", "return_stmt", id="return"),
    pytest.param("{ a(); }", "block", id="block"),
    pytest.param(";", "empty_stmt", id="empty"),
    pytest.param("x <- 1;", "expr_stmt", id="newslot-stmt"),
]


@pytest.mark.parametrize("source, label", STATEMENT_CASES)
def test_statement_forms(source: str, label: str) -> None:
    assert only_stmt(source).data == label


def test_precedence_multiplicative_over_additive() -> None:
    assert shape(only_expr("a + b * c")) == (
        "binary", ("name", "a"), "+", ("binary", ("name", "b"), "*", ("name", "c")),
    )


def test_binary_is_left_associative() -> None:
    assert shape(only_expr("a - b - c")) == (
        "binary", ("binary", ("name", "a"), "-", ("name", "b")), "-", ("name", "c"),
    )


def test_logical_and_binds_tighter_than_or() -> None:
    assert shape(only_expr("a || b && c")) == (
        "logical", ("name", "a"), "||", ("logical", ("name", "b"), "&&", ("name", "c")),
    )


def test_assignment_is_right_associative() -> None:
    assert shape(only_expr("a = b = 1")) == (
        "assign", ("name", "a"), "=", ("assign", ("name", "b"), "=", ("literal", "1")),
    )


def test_ternary_and_newslot() -> None:
    assert shape(only_expr("::x <- c ? 1 : 2")) == (
        "newslot",
        ("root_ref", "::", "x"),
        "<-",
        ("ternary", ("name", "c"), "?", ("literal", "1"), ":", ("literal", "2")),
    )


def test_unary_and_postfix() -> None:
    assert shape(only_expr("-a++")) == ("unary", "-", ("postfix", ("name", "a"), "++"))
    assert shape(only_expr("typeof x")) == ("unary", "typeof", ("name", "x"))


def test_member_index_and_call_chain() -> None:
    assert labels(only_expr("a.b[0](1, 2)")) == [
        "call", "index", "member", "name", "literal", "args", "literal", "literal",
    ]


def test_inherit_call_is_captured() -> None:
    expr = only_expr("::Mod <- inherit(\"scripts/base\", { x = 1 })")
    assert expr.data == "newslot"
    assert expr.children[2].data == "inherit_call"


@pytest.mark.parametrize(
    "source",
    [
        pytest.param("inherit(a)", id="one-arg"),
        pytest.param("inherit(a, b)", id="non-table"),
        pytest.param("extend(a, {})", id="other-callee"),
    ],
)
def test_plain_calls_are_not_inherit(source: str) -> None:
    assert only_expr(source).data == "call"


def test_member_inherit_is_captured() -> None:
    assert only_expr("this.inherit(a, {})").data == "inherit_call"


def test_lambda_forms() -> None:
    assert only_expr("f(@(x) x + 1)").children[1].children[1].data == "lambda_expr"

    body = only_expr("f(@(x) { return x; })").children[1].children[1].children[-1]
    assert body.data == "block"


def test_hook_wrapper() -> None:
    expr = only_expr("o.f = @(__original) function(a) { return __original(a); }")
    assert expr.children[2].data == "hook_wrap"


def test_lambda_with_other_param_is_not_hook() -> None:
    expr = only_expr("o.f = @(orig) function(a) { return orig(a); }")
    assert expr.children[2].data == "lambda_expr"


def test_table_entry_forms() -> None:
    table = only_expr(src("""
        t <- {
            a = 1,
            [k] = 2
            "json": 3,
            function m() {}
        }
    """)).children[2]

    entries = [child.data for child in table.children if isinstance(child, Tree)]
    assert entries == ["table_slot", "table_computed", "table_json", "table_method"]


def test_array_commas_are_optional() -> None:
    array = only_expr("x = [1, 2 3]").children[2]
    assert [shape(c) for c in array.children if isinstance(c, Tree)] == [
        ("literal", "1"), ("literal", "2"), ("literal", "3"),
    ]


def test_params_with_default_and_varargs() -> None:
    stmt = only_stmt("function f(a, b = 2, ...) {}")
    params = stmt.children[2]
    assert params.data == "params"
    assert [shape(p) for p in params.children if isinstance(p, Tree)] == [
        ("param", "a"),
        ("param", "b", "=", ("literal", "2")),
        ("param", "..."),
    ]


def test_function_name_path() -> None:
    stmt = only_stmt("function ::Mod.hooks.run() {}")
    assert shape(stmt.children[1]) == ("fn_name", "::", "Mod", ".", "hooks", ".", "run")


def test_newline_ends_statements() -> None:
    stmts = statements("local a = 1\nlocal b = a\nb++")
    assert [s.data for s in stmts] == ["local_decl", "local_decl", "expr_stmt"]


def test_return_value_must_share_line() -> None:
    body = only_stmt("function f() {\n\treturn\n\tx\n}").children[3]
    stmts = [c for c in body.children if isinstance(c, Tree)]
    assert [s.data for s in stmts] == ["return_stmt", "expr_stmt"]
    assert len(stmts[0].children) == 1


def test_bracket_on_new_line_starts_array() -> None:
    stmts = statements("foo\n[1, 2]")
    assert [shape(s.children[0])[0] for s in stmts] == ["name", "array"]


def test_for_clauses_are_always_present() -> None:
    stmt = only_stmt("for (;;) {}")
    assert [c.data for c in stmt.children if isinstance(c, Tree)][:3] == [
        "for_init", "for_cond", "for_step",
    ]
    assert all(c.children == [] for c in stmt.children[2:7] if isinstance(c, Tree))


def test_switch_clauses_hold_bodies() -> None:
    stmt = only_stmt("switch (x) { case 1: case 2: a(); break; default: }")
    clauses = [c for c in stmt.children if isinstance(c, Tree) and c.data.endswith("clause")]

    assert [c.data for c in clauses] == ["case_clause", "case_clause", "default_clause"]
    assert [len(c.children[-1].children) for c in clauses] == [0, 2, 0]


def test_tree_keeps_every_token() -> None:
    source = src("""
        // header
        local t = { a = 1, b = [2, 3] }; /* tail */
        function f(x) { return x ? t.a : null }
    """)
    tree = parse_ok(source)
    assert [t.value for t in iter_tokens(tree)] == [t.value for t in tokenize(source)]


# ============================================================================
# Recovery
# ============================================================================

def syntax_messages(source: str) -> List[str]:
    _, diagnostics = parse_source(source)
    return [d.message for d in diagnostics if d.kind is DiagnosticKind.SYNTAX_ERROR]


def test_bad_statement_recovers_at_next_line() -> None:
    tree, diagnostics = parse_source("local = 5;\nlocal y = 2;")

    assert [d.message for d in diagnostics] == ["Expected variable name but found '='"]
    assert [c.data for c in tree.children if isinstance(c, Tree)] == ["error", "local_decl"]


def test_error_node_keeps_tokens() -> None:
    source = "x = = 1\ny <- 2"
    tree, _ = parse_source(source)
    error = tree.children[0]

    assert error.data == "error"
    assert [t.value for t in error.children] == ["x", "=", "=", "1"]
    assert [t.value for t in iter_tokens(tree)] == [t.value for t in tokenize(source)]


def test_recovery_inside_block_keeps_closing_brace() -> None:
    tree, diagnostics = parse_source("function f() {\n\tlocal = 1\n\treturn 2\n}")

    assert len(diagnostics) == 1
    fn = tree.children[0]
    assert fn.data == "function_decl"
    body = [c.data for c in fn.children[3].children if isinstance(c, Tree)]
    assert body == ["error", "return_stmt"]


def test_missing_separator_between_statements() -> None:
    assert syntax_messages("a = 1 b = 2") == ["Expected ';' or newline before 'b'"]


def test_table_entry_recovery() -> None:
    tree, diagnostics = parse_source("t <- { a = 1, +, b = 2 }")
    table = tree.children[0].children[0].children[2]

    assert [d.message for d in diagnostics] == ["Expected table entry but found '+'"]
    assert [c.data for c in table.children if isinstance(c, Tree)] == [
        "table_slot", "error", "table_slot",
    ]


@pytest.mark.parametrize(
    "source, message",
    [
        pytest.param("f(", "Unexpected token end of input", id="open-call"),
        pytest.param("if (a {}", "Expected ')' but found '{'", id="open-paren"),
        pytest.param("{ a()", "Expected '}' but found end of input", id="open-block"),
        pytest.param("x.", "Expected member name after '.' but found end of input", id="dangling-dot"),
        pytest.param("switch (x) { y }", "Expected 'case' or 'default' but found 'y'", id="switch-body"),
    ],
)
def test_syntax_error_messages(source: str, message: str) -> None:
    assert syntax_messages(source)[0] == message


def test_lex_errors_flow_into_tree() -> None:
    tree, diagnostics = parse_source("x = $")

    assert [d.kind for d in diagnostics] == [DiagnosticKind.LEX_ERROR]
    assert "error" in labels(tree)


def test_deep_nesting_does_not_raise() -> None:
    source = "(" * 5000 + "1" + ")" * 5000
    tree, diagnostics = parse_source(source)

    assert tree.data == "program"
    assert "Nesting too deep" in [d.message for d in diagnostics]


def test_diagnostics_are_ordered() -> None:
    _, diagnostics = parse_source("a = = 1\nb = $\nc = ]")
    starts = [d.span.start for d in diagnostics]
    assert starts == sorted(starts)
    assert len(diagnostics) == 3


def test_expect_raises_parse_error() -> None:
    parser = Parser(tokenize("x"))
    with pytest.raises(ParseError) as exc_info:
        parser.expect(TT.LPAR)

    assert exc_info.value.message == "Expected '(' but found 'x'"
    assert str(exc_info.value).endswith("at line 1, col 1")
