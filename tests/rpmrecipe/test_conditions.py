import pytest

from rpmrecipe import conditions
from rpmrecipe.conditions import ArchTest, Binary, Term, Unary
from rpmrecipe.exc import ParseError, UnresolvedConditionError
from rpmrecipe.macros import MacroExpander


@pytest.fixture
def expander():
    return MacroExpander({"suse_version": "1600", "_arch": "x86_64", "flavor": "big"})


def test_tokenize():
    assert conditions.tokenize('0%{?suse_version} >= 1500 && "%{flavor}" != "small"') == [
        ("word", "0%{?suse_version}"),
        ("op", ">="),
        ("word", "1500"),
        ("op", "&&"),
        ("string", "%{flavor}"),
        ("op", "!="),
        ("string", "small"),
    ]


def test_tokenize_macro_with_spaces():
    assert conditions.tokenize("%{with docs} || 0") == [
        ("word", "%{with docs}"),
        ("op", "||"),
        ("word", "0"),
    ]


@pytest.mark.parametrize(
    "text, error",
    (
        ('"unterminated', "Unterminated string"),
        ("%{foo", "Unterminated macro"),
        ("a = b", "Bad operator"),
    ),
)
def test_tokenize_errors(text, error):
    with pytest.raises(ParseError, match=error):
        conditions.tokenize(text, 12)


def test_parse_expression_precedence():
    expr = conditions.parse_expression("a || b && !c == d")

    assert expr == Binary(
        "||",
        Term("a"),
        Binary("&&", Term("b"), Binary("==", Unary("!", Term("c")), Term("d"))),
    )


def test_parse_expression_parentheses():
    expr = conditions.parse_expression("!(0%{?suse_version} > 1500)")

    assert expr == Unary("!", Binary(">", Term("0%{?suse_version}"), Term("1500")))
    assert str(expr) == "!(0%{?suse_version} > 1500)"


@pytest.mark.parametrize(
    "text, error",
    (
        ("", "Empty condition"),
        ("(1", "Missing '\\)'"),
        ("1 ==", "Missing operand"),
        ("1 2", "Unexpected '2'"),
        (")", "Unexpected '\\)'"),
    ),
)
def test_parse_expression_errors(text, error):
    with pytest.raises(ParseError, match=error) as exc_info:
        conditions.parse_expression(text, 7)

    assert exc_info.value.lineno == 7


def test_parse_arch_test():
    assert conditions.parse_arch_test("ifarch", "x86_64, aarch64") == ArchTest(
        "ifarch", ("x86_64", "aarch64")
    )

    with pytest.raises(ParseError, match="at least one"):
        conditions.parse_arch_test("ifnarch", "  ", 3)


@pytest.mark.parametrize(
    "first, second, expected",
    (
        ("0%{?suse_version}", "!0%{?suse_version}", True),
        ("0%{?suse_version} > 1500", "!(0%{?suse_version} > 1500)", True),
        ("!(0%{?fedora})", "0%{?fedora}", True),
        ("0%{?suse_version}", "0%{?fedora}", False),
        ("0%{?suse_version} > 1500", "0%{?suse_version} <= 1500", False),
    ),
)
def test_is_negation(first, second, expected):
    assert (
        conditions.is_negation(
            conditions.parse_expression(first), conditions.parse_expression(second)
        )
        is expected
    )


def test_is_negation_arch():
    ifarch = conditions.parse_arch_test("ifarch", "x86_64 aarch64")
    ifnarch = conditions.parse_arch_test("ifnarch", "aarch64 x86_64")
    other = conditions.parse_arch_test("ifnarch", "s390x")

    assert conditions.is_negation(ifarch, ifnarch)
    assert not conditions.is_negation(ifarch, other)
    assert not conditions.is_negation(ifarch, ifarch)


@pytest.mark.parametrize(
    "text, expected",
    (
        ("1", True),
        ("0", False),
        ("0%{?suse_version}", True),
        ("0%{?fedora}", False),
        ("%{?fedora}", False),
        ("0%{?suse_version} > 1500", True),
        ("0%{?suse_version} >= 1600 && 0%{?suse_version} < 1700", True),
        ("0%{?fedora} || 0%{?suse_version} == 1500", False),
        ("!0%{?fedora}", True),
        ('"%{flavor}" == "big"', True),
        ('"%{flavor}" != "big"', False),
        ('"%{?nothing}" == ""', True),
        ("%{with docs}", False),
    ),
)
def test_evaluate(expander, text, expected):
    assert conditions.evaluate(conditions.parse_expression(text), expander) is expected


@pytest.mark.parametrize(
    "keyword, arches, expected",
    (
        ("ifarch", "x86_64 aarch64", True),
        ("ifarch", "s390x", False),
        ("ifnarch", "x86_64", False),
        ("ifnarch", "ppc64le", True),
    ),
)
def test_evaluate_arch(expander, keyword, arches, expected):
    guard = conditions.parse_arch_test(keyword, arches)
    assert conditions.evaluate(guard, expander) is expected


def test_evaluate_type_mismatch(expander):
    with pytest.raises(UnresolvedConditionError, match="Types must match") as exc_info:
        conditions.evaluate(conditions.parse_expression('1 == "1"'), expander)

    assert exc_info.value.code == "type-mismatch"
