import pytest

from rpmrecipe.context import BuildContext
from rpmrecipe.exc import UnresolvedConditionError
from rpmrecipe.subcommands import query


@pytest.mark.parametrize(
    "profile, fields, expected",
    (
        ("other", None, {"Name": "foo", "Epoch": None, "Version": "1.0", "Release": "1"}),
        ("suse", ["release", "URL"], {"release": "1.suse", "URL": "https://example.com/foo"}),
        ("suse", ["packages"], {"packages": "foo-suse"}),
        ("other", ["Packages", "Vendor"], {"Packages": "foo", "Vendor": None}),
    ),
)
def test_do_query(profile, fields, expected, specfile):
    context = BuildContext.for_profile(profile, arch="x86_64")

    assert query.do_query(specfile, context, fields=fields) == expected


@pytest.mark.parametrize("recipe_name", ("python-maturin",), indirect=True)
def test_do_query_unmatched(specfile):
    # no branch matches without any sub-package declared
    text = specfile.read_text().replace("%if !(0%{?suse_version} > 1500)", "%if 0%{?fedora}")
    specfile.write_text(text)
    context = BuildContext.for_profile("other", arch="x86_64")

    with pytest.raises(UnresolvedConditionError):
        query.do_query(specfile, context)

    assert query.do_query(specfile, context, fields=["packages"], allow_unmatched=True) == {
        "packages": ""
    }
