import pytest

from nixkit.flake_url import FlakeAttr, FlakeUrl


def test_flake_url_and_attr():
    url = FlakeUrl("github:srid/nixci")
    assert url.split_attr() == (url, FlakeAttr(None))
    assert url.split_attr()[1].as_list() == []

    url = FlakeUrl("github:srid/nixci#extra-tests")
    assert url.split_attr() == (FlakeUrl("github:srid/nixci"), FlakeAttr("extra-tests"))
    assert url.split_attr()[1].as_list() == ["extra-tests"]

    url = FlakeUrl(".#foo.bar.qux")
    assert url.split_attr() == (FlakeUrl("."), FlakeAttr("foo.bar.qux"))
    assert url.split_attr()[1].as_list() == ["foo", "bar", "qux"]


@pytest.mark.parametrize(
    "url, expected",
    [
        ("github:srid/nixci", None),
        (".", "."),
        ("/foo", "/foo"),
        ("./foo?q=bar", "./foo"),
        ("./foo#attr", "./foo"),
        ("/foo?q=bar#attr", "/foo"),
        ("path:.", "."),
        ("path:./foo", "./foo"),
        ("path:./foo?q=bar", "./foo"),
        ("path:./foo#attr", "./foo"),
        ("path:/foo?q=bar#attr", "/foo"),
    ],
)
def test_as_local_path(url, expected):
    assert FlakeUrl(url).as_local_path() == expected


def test_sub_flake_url():
    url = FlakeUrl(".")
    assert url.sub_flake_url(".") == url
    assert url.sub_flake_url("sub") == FlakeUrl("./sub")

    url = FlakeUrl("github:srid/nixci")
    assert url.sub_flake_url(".") == url
    assert url.sub_flake_url("dev") == FlakeUrl("github:srid/nixci?dir=dev")


def test_sub_flake_url_with_query():
    url = FlakeUrl("git+https://example.org/my/repo?ref=master")
    assert url.sub_flake_url(".") == url
    assert url.sub_flake_url("dev") == FlakeUrl(
        "git+https://example.org/my/repo?ref=master&dir=dev"
    )


def test_with_attr():
    url = FlakeUrl("github:srid/nixci")
    assert url.with_attr("foo") == FlakeUrl("github:srid/nixci#foo")

    url = FlakeUrl.parse("github:srid/nixci#foo")
    assert url.with_attr("bar") == FlakeUrl("github:srid/nixci#bar")


def test_parse_trims_and_rejects_empty():
    assert FlakeUrl.parse("  github:srid/nixci \n") == FlakeUrl("github:srid/nixci")
    with pytest.raises(ValueError):
        FlakeUrl.parse("   ")


def test_get_attr_and_without_attr():
    url = FlakeUrl("github:srid/nixci#foo")
    assert url.get_attr() == FlakeAttr("foo")
    assert url.without_attr() == FlakeUrl("github:srid/nixci")


def test_attr_name_defaults():
    assert FlakeAttr().get_name() == "default"
    assert FlakeAttr().is_none() is True
    assert FlakeAttr("foo").get_name() == "foo"
    assert FlakeAttr("foo").is_none() is False


def test_from_path_and_str():
    assert FlakeUrl.from_path("/tmp/flake") == FlakeUrl("/tmp/flake")
    assert str(FlakeUrl("github:srid/nixci")) == "github:srid/nixci"