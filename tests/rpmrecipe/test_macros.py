import pytest

from rpmrecipe.exc import MacroExpansionError
from rpmrecipe.macros import MAX_DEPTH, MacroExpander


@pytest.fixture
def expander():
    return MacroExpander(
        {
            "name": "foo",
            "version": "1.0",
            "nvr": "%{name}-%{version}",
            "_sourcedir": "/src",
            "SOURCE0": "https://example.com/%{name}-%{version}.tar.gz",
            "with_docs": "1",
            "py3_install": "python3 setup.py install --root /root %*",
            "two": "first=%1 second=%{2} third=%3",
        }
    )


@pytest.mark.parametrize(
    "text, expected",
    (
        ("plain text", "plain text"),
        ("%name", "foo"),
        ("%{name}", "foo"),
        ("%{nvr}", "foo-1.0"),
        ("100%%", "100%"),
        ("%{?name}", "foo"),
        ("%{?undefined}", ""),
        ("%{!?undefined:fallback}", "fallback"),
        ("%{!?name:fallback}", ""),
        ("%{?name:is set}", "is set"),
        ("%?name", "foo"),
        ("%{undefined}", "%{undefined}"),
        ("%undefined", "%undefined"),
        ("a%{nil}b", "ab"),
        ("%{with docs}", "1"),
        ("%{with tests}", "0"),
        ("%{without tests}", "1"),
        ("%{expand:%%{name}}", "foo"),
        ("%{S:0}", "/src/foo-1.0.tar.gz"),
        ("50 % off", "50 % off"),
        ("trailing %", "trailing %"),
    ),
)
def test_expand(expander, text, expected):
    assert expander.expand(text) == expected


def test_define_undefine(expander):
    assert "greeting" not in expander

    expander.define("greeting", "hello %{name}")
    assert "greeting" in expander
    assert expander.expand("%greeting") == "hello foo"

    expander.undefine("greeting")
    assert "greeting" not in expander
    # undefining twice is fine
    expander.undefine("greeting")


def test_copy(expander):
    copied = expander.copy()
    copied.define("name", "bar")

    assert expander.expand("%name") == "foo"
    assert copied.expand("%name") == "bar"


def test_expand_recursion():
    expander = MacroExpander({"loop": "%{loop}"})

    with pytest.raises(MacroExpansionError, match="recursion"):
        expander.expand("%{loop}")

    assert MAX_DEPTH > 1


def test_expand_unterminated(expander):
    with pytest.raises(MacroExpansionError, match="Unterminated"):
        expander.expand("%{name")


def test_source_path_undefined(expander):
    with pytest.raises(MacroExpansionError, match="No SOURCE1 defined"):
        expander.expand("%{S:1}")


def test_source_path_without_sourcedir():
    expander = MacroExpander({"PATCH3": "fix.patch"})
    assert expander.expand("%{P:3}") == "fix.patch"


@pytest.mark.parametrize(
    "line, expected",
    (
        ("%py3_install", "python3 setup.py install --root /root "),
        (
            "%py3_install --prefix %{_prefix}",
            "python3 setup.py install --root /root --prefix %{_prefix}",
        ),
        ("%two a b", "first=a second=b third="),
        ("echo %{name}", "echo foo"),
        ("%undefined arg", "%undefined arg"),
    ),
)
def test_expand_command(expander, line, expected):
    assert expander.expand_command(line) == expected
