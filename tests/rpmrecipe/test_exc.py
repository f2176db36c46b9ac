from rpmrecipe import exc


class TestRpmrecipeException:
    def test___init__(self):
        e = exc.RpmrecipeException("foo", "bar", code="code", detail="detail")
        assert e.args == ("foo", "bar")
        assert e.code == "code"
        assert e.detail == "detail"

    def test___str__(self):
        e = exc.RpmrecipeException("foo", "bar", code="code", detail="detail")
        assert str(e) == "foo, bar:\ndetail"


class TestParseError:
    def test___str__(self):
        assert str(exc.ParseError("Boo", lineno=5)) == "line 5: Boo"
        assert str(exc.ParseError("Boo")) == "Boo"

    def test_macro_expansion_error(self):
        assert issubclass(exc.MacroExpansionError, exc.ParseError)


def test_ambiguous_is_unresolved():
    assert issubclass(exc.AmbiguousConditionError, exc.UnresolvedConditionError)


def test_stage_execution_error():
    e = exc.StageExecutionError(
        "Bad exit status", stage="build", command="false", returncode=1, detail="false"
    )
    assert e.stage == "build"
    assert e.command == "false"
    assert e.returncode == 1
    assert str(e) == "Bad exit status:\nfalse"
