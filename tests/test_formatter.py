from __future__ import annotations

import pytest

from tests.support.harness import TT, fmt, parse_source, src, tokenize
from squirrel_ref import FormatOptions, format, format_or_diagnostics
from squirrel_ref.diagnostics import Diagnostic, DiagnosticKind


LAYOUT_CASES = [
    pytest.param(
        "local x=1;if(x==1){return true;}else{return false;}",
        "local x = 1;\nif (x == 1) {\n\treturn true;\n} else {\n\treturn false;\n}\n",
        id="if-else-blocks",
    ),
    pytest.param(
        "if(a)b();else if(c)d();else e();",
        "if (a)\n\tb();\nelse if (c)\n\td();\nelse\n\te();\n",
        id="if-else-chain",
    ),
    pytest.param(
        "while(i<3)i++;",
        "while (i < 3)\n\ti++;\n",
        id="while-statement-body",
    ),
    pytest.param(
        "do{i--;}while(i>0);",
        "do {\n\ti--;\n} while (i > 0);\n",
        id="do-while",
    ),
    pytest.param(
        "for(local i=0;i<10;i++){}",
        "for (local i = 0; i < 10; i++) {}\n",
        id="for",
    ),
    pytest.param("for(;;){}", "for (;;) {}\n", id="for-empty-clauses"),
    pytest.param("foreach(k,v in t){}", "foreach (k, v in t) {}\n", id="foreach"),
    pytest.param(
        "switch(x){case 1:case 2:a();break;default:b();}",
        "switch (x) {\ncase 1:\ncase 2:\n\ta();\n\tbreak;\ndefault:\n\tb();\n}\n",
        id="switch-fallthrough",
    ),
    pytest.param(
        "try{a();}catch(e){b(e);}",
        "try {\n\ta();\n} catch (e) {\n\tb(e);\n}\n",
        id="try-catch",
    ),
    pytest.param("function f(){\n\n}", "function f() {}\n", id="empty-function-body"),
    pytest.param("if (a) {\n}", "if (a) {}\n", id="empty-if-body"),
    pytest.param(
        "local f = function (a,b) { return a+b; }",
        "local f = function(a, b) {\n\treturn a + b;\n}\n",
        id="function-expression",
    ),
    pytest.param("g(@ (x) x*2)", "g(@(x) x * 2)\n", id="lambda"),
    pytest.param("::Mod.f <- function(){}", "::Mod.f <- function() {}\n", id="root-newslot"),
    pytest.param("function Foo::bar(a,b=1,...){}", "function Foo::bar(a, b = 1, ...) {}\n", id="function-path"),
    pytest.param("x = - -y", "x = - -y\n", id="unary-minus-minus"),
    pytest.param("x = typeof y", "x = typeof y\n", id="unary-keyword"),
    pytest.param("x = !(a)", "x = !(a)\n", id="unary-not-paren"),
    pytest.param("a . b [ 0 ] ( 1 , 2 )", "a.b[0](1, 2)\n", id="postfix-chain"),
    pytest.param("const  LIMIT=5", "const LIMIT = 5\n", id="const"),
    pytest.param("return", "return\n", id="bare-return"),
    pytest.param("x = [1,2 3]", "x = [1, 2, 3]\n", id="array-missing-comma"),
    pytest.param("x = [ ]", "x = []\n", id="empty-array"),
    pytest.param("t <- {}", "t <- {}\n", id="empty-table"),
    pytest.param("t <- { a = 1, b = 2 };", "t <- { a = 1, b = 2 };\n", id="flat-table"),
    pytest.param("t <- {\na = 1\nb = 2\n}", "t <- { a = 1, b = 2 }\n", id="table-no-commas-flat"),
    pytest.param(
        "t <- {\n\ta = 1,\n\tb = 2,\n};",
        "t <- { a = 1, b = 2 };\n",
        id="trailing-comma-dropped-when-flat",
    ),
    pytest.param(
        "t <- { [k]=1, \"x\":2, function m(){} }",
        "t <- { [k] = 1, \"x\": 2, function m() {} }\n",
        id="table-entry-forms",
    ),
]


@pytest.mark.parametrize("source, expected", LAYOUT_CASES)
def test_layout(source: str, expected: str) -> None:
    assert fmt(source) == expected


NARROW_CASES = [
    pytest.param(
        "local v = flag ? first_value : second_value;",
        20,
        "local v = flag\n\t? first_value\n\t: second_value;\n",
        id="ternary-breaks",
    ),
    pytest.param(
        "t <- { alpha = 1, beta = 2, gamma = 3 };",
        30,
        "t <- {\n\talpha = 1,\n\tbeta = 2,\n\tgamma = 3\n};\n",
        id="table-breaks",
    ),
    pytest.param(
        "t <- {\n\ta = 1,\n\tb = 2,\n};",
        12,
        "t <- {\n\ta = 1,\n\tb = 2,\n};\n",
        id="trailing-comma-kept-when-broken",
    ),
    pytest.param(
        "t <- {\na = 1\nb = 2\n}",
        10,
        "t <- {\n\ta = 1\n\tb = 2\n}\n",
        id="commaless-table-stays-commaless",
    ),
    pytest.param(
        "x = [first_item, second_item]",
        20,
        "x = [\n\tfirst_item,\n\tsecond_item\n]\n",
        id="array-breaks",
    ),
    pytest.param(
        "call(alpha, beta, gamma)",
        20,
        "call(\n\talpha,\n\tbeta,\n\tgamma\n)\n",
        id="args-one-per-line",
    ),
    pytest.param(
        "function f(alpha, beta, gamma) {}",
        20,
        "function f(\n\talpha,\n\tbeta,\n\tgamma\n) {}\n",
        id="params-one-per-line",
    ),
    pytest.param(
        "ok = first_condition && second_condition && third",
        30,
        "ok = first_condition\n\t&& second_condition\n\t&& third\n",
        id="logical-chain-breaks-before-operator",
    ),
    pytest.param(
        "foo(1, { a = 1, b = 2 })",
        20,
        "foo(1, {\n\ta = 1,\n\tb = 2\n})\n",
        id="hug-last-table",
    ),
]


@pytest.mark.parametrize("source, width, expected", NARROW_CASES)
def test_width_driven_layout(source: str, width: int, expected: str) -> None:
    assert fmt(source, width=width) == expected


def test_ternary_that_fits_stays_flat() -> None:
    source = "local v = flag ? first_value : second_value;"
    assert fmt(source) == source + "\n"


def test_inconsistent_logical_breaks_are_normalized() -> None:
    assert fmt("ok = a &&\n\tb && c") == "ok = a && b && c\n"


def test_function_argument_hugs() -> None:
    assert fmt("run(function() { return 1; })") == "run(function() {\n\treturn 1;\n})\n"


def test_blank_lines_collapse_to_one() -> None:
    source = "local a = 1\n\n\n\nlocal b = 2\n"
    assert fmt(source) == "local a = 1\n\nlocal b = 2\n"


def test_blank_lines_between_entries_collapse() -> None:
    source = "t <- {\n\ta = 1,\n\n\n\tb = 2\n};"
    assert fmt(source) == "t <- {\n\ta = 1,\n\n\tb = 2\n};\n"


def test_leading_blank_lines_are_dropped() -> None:
    assert fmt("\n\n\nx = 1\n\n\n") == "x = 1\n"


def test_spaces_indent_option() -> None:
    assert fmt("if (a) { b(); }", indent="    ") == "if (a) {\n    b();\n}\n"


def test_no_final_newline_option() -> None:
    options = FormatOptions(insert_final_newline=False)
    assert format("x=1", options) == "x = 1"


def test_empty_source() -> None:
    assert fmt("") == ""
    assert fmt("\n\n") == ""


# ============================================================================
# Comments
# ============================================================================

def test_comments_keep_their_places() -> None:
    source = src("""
        // header
        local x = 1; // trailing

        /* block */ local y = 2;
    """)
    assert fmt(source) == source


def test_comment_only_file() -> None:
    assert fmt("// only\n") == "// only\n"


def test_trailing_comment_breaks_table() -> None:
    source = "t <- { a = 1, // first\nb = 2 }"
    assert fmt(source) == "t <- {\n\ta = 1, // first\n\tb = 2\n}\n"


def test_comment_before_closing_brace() -> None:
    source = "function f() {\n\tg();\n\t// done\n}"
    assert fmt(source) == "function f() {\n\tg();\n\t// done\n}\n"


def test_comment_in_empty_block() -> None:
    source = "function f() {\n\t// nothing yet\n}"
    assert fmt(source) == "function f() {\n\t// nothing yet\n}\n"


def test_comments_between_case_labels() -> None:
    source = "switch (x) {\ncase 1:\n\t// one\n\ta();\n}"
    assert fmt(source) == "switch (x) {\ncase 1:\n\t// one\n\ta();\n}\n"


COMMENT_ONLY_CASES = [
    pytest.param("local t = {\n\t// only comment\n};\n", "local t = {\n\t// only comment\n};\n", id="table"),
    pytest.param("local a = [\n\t// only comment\n];\n", "local a = [\n\t// only comment\n];\n", id="array"),
    pytest.param("local t = {\n/* b */ }", "local t = {\n\t/* b */\n}\n", id="table-block-comment"),
    pytest.param("switch (x) {\n// c\n}", "switch (x) {\n\t// c\n}\n", id="switch"),
    pytest.param("foo(\n// c\n)", "foo(\n\t// c\n)\n", id="call"),
    pytest.param("function f(\n// none\n) {}", "function f(\n\t// none\n) {}\n", id="params"),
]


@pytest.mark.parametrize("source, expected", COMMENT_ONLY_CASES)
def test_lone_comment_inside_brackets_is_indented(source: str, expected: str) -> None:
    assert fmt(source) == expected
    assert fmt(expected) == expected


CONTINUATION_COMMENT_CASES = [
    pytest.param(
        "if (x) { a(); } // c1\nelse { b(); }",
        "if (x) {\n\ta();\n} // c1\nelse {\n\tb();\n}\n",
        id="else",
    ),
    pytest.param(
        "do { a(); } // c\nwhile (x);",
        "do {\n\ta();\n} // c\nwhile (x);\n",
        id="do-while",
    ),
    pytest.param(
        "try { a(); } // c\ncatch (e) { b(e); }",
        "try {\n\ta();\n} // c\ncatch (e) {\n\tb(e);\n}\n",
        id="catch",
    ),
]


@pytest.mark.parametrize("source, expected", CONTINUATION_COMMENT_CASES)
def test_comment_after_block_stays_before_continuation(source: str, expected: str) -> None:
    assert fmt(source) == expected


# ============================================================================
# Malformed input
# ============================================================================

def test_malformed_statement_is_echoed() -> None:
    source = "local x=1;\nlocal = = 2;\nif(x){y();}"
    assert fmt(source) == "local x = 1;\nlocal = = 2;\nif (x) {\n\ty();\n}\n"


def test_malformed_spacing_is_not_touched() -> None:
    source = "local a = 1\nfoo(  1,, 2 )\nlocal   b = 2"
    assert fmt(source) == "local a = 1\nfoo(  1,, 2 )\nlocal b = 2\n"


def test_malformed_table_entry_only_affects_entry() -> None:
    source = "t <- {\n\ta=1,\n\t+ +,\n\tb=2\n}"
    assert fmt(source) == "t <- {\n\ta = 1,\n\t+ +,\n\tb = 2\n}\n"


def test_deep_nesting_does_not_raise() -> None:
    source = "(" * 5000 + ")" * 5000
    assert format(source).rstrip("\n") == source


def test_strict_mode_returns_diagnostics() -> None:
    result = format_or_diagnostics("x = = 1")

    assert isinstance(result, list)
    assert all(isinstance(d, Diagnostic) for d in result)
    assert result[0].kind is DiagnosticKind.SYNTAX_ERROR


def test_strict_mode_formats_clean_input() -> None:
    assert format_or_diagnostics("x=1") == "x = 1\n"


def test_lenient_mode_echoes_malformed_input() -> None:
    assert format_or_diagnostics("x = = 1", strict=False) == "x = = 1\n"


# ============================================================================
# Properties
# ============================================================================

PROPERTY_SOURCES = [
    pytest.param("local x=1;if(x==1){return true;}else{return false;}", id="scenario"),
    pytest.param(src("""
        // Mod hooks
        ::Mod <- {
            name = "x", // display name
            function create() {
                this.m.Hits <- 0;
                foreach (i, v in this.m.Items) if (v != null) v.update(i)
            }
        }
    """), id="mod-table"),
    pytest.param(src("""
        local very_long_result = compute_something(first_argument, second_argument) ? fallback_value_a : fallback_value_b
        local chain = first_condition_name && second_condition_name || third_condition_name && fourth_condition
    """), id="long-lines"),
    pytest.param(src("""
        switch (kind) {
            case "a":
            case "b":
                handle(kind)
                break
            /* odd */ default:
                throw "unknown"
        }
    """), id="switch"),
    pytest.param("o.f = @(__original) function(a) { return __original(a) + 1; }", id="hook"),
    pytest.param("x = [1, 2, [3, 4], { a = [], b = {} }]", id="nested-literals"),
    pytest.param("local t = {\n\t// only comment\n};\nlocal a = [\n\t// only\n];\n", id="comment-only-literals"),
    pytest.param("if (x) { a(); } // c1\nelse { b(); }", id="comment-before-else"),
]


@pytest.mark.parametrize("source", PROPERTY_SOURCES)
def test_formatting_is_idempotent(source: str) -> None:
    once = fmt(source)
    assert fmt(once) == once


@pytest.mark.parametrize("source", PROPERTY_SOURCES)
def test_formatting_preserves_tokens(source: str) -> None:
    def significant(text: str):
        return [(t.type, t.value) for t in tokenize(text) if t.type not in (TT.COMMA, TT.EOF)]

    assert significant(fmt(source)) == significant(source)


@pytest.mark.parametrize("source", PROPERTY_SOURCES)
def test_property_sources_parse_cleanly(source: str) -> None:
    _, diagnostics = parse_source(source)
    assert diagnostics == []
