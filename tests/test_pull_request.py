from unittest import mock

import pytest
import requests

from nixkit.ci.pull_request import PullRequest, PullRequestRef
from nixkit.flake_url import FlakeUrl

PR_JSON = {
    "url": "https://api.github.com/repos/srid/nixci/pulls/19",
    "head": {"ref": "feature/x", "repo": {"full_name": "srid/nixci"}},
}


def test_from_web_url():
    assert PullRequestRef.from_web_url(
        "https://github.com/srid/nixci/pull/19"
    ) == PullRequestRef("srid", "nixci", 19)


@pytest.mark.parametrize(
    "url",
    [
        "http://github.com/srid/nixci/pull/19",
        "https://gitlab.com/srid/nixci/pull/19",
        "https://github.com/srid/nixci/issues/19",
        "https://github.com/srid/nixci/pull/abc",
        "https://github.com/srid/nixci/pull/19/files",
        "github:srid/nixci",
        ".",
    ],
)
def test_from_web_url_rejects(url):
    assert PullRequestRef.from_web_url(url) is None


def test_str_round_trip():
    ref = PullRequestRef("srid", "nixci", 19)
    assert str(ref) == "https://github.com/srid/nixci/pull/19"
    assert PullRequestRef.from_web_url(str(ref)) == ref


def test_api_url():
    ref = PullRequestRef("srid", "nixci", 19)
    assert ref.api_url() == "https://api.github.com/repos/srid/nixci/pulls/19"


def test_from_json_and_flake_url():
    pr = PullRequest.from_json(PR_JSON)
    assert pr.head_ref == "feature/x"
    assert pr.head_repo_full_name == "srid/nixci"
    assert pr.flake_url() == FlakeUrl("git+https://github.com/srid/nixci?ref=feature%2Fx")


def test_from_json_missing_field():
    with pytest.raises(ValueError):
        PullRequest.from_json({"url": "x", "head": {"ref": "main"}})


def _response(status, payload):
    resp = mock.Mock()
    resp.status_code = status
    resp.json.return_value = payload
    return resp


def test_get_success():
    with mock.patch("requests.get", return_value=_response(200, PR_JSON)) as get:
        pr = PullRequest.get(PullRequestRef("srid", "nixci", 19))
    assert pr == PullRequest.from_json(PR_JSON)
    args, kwargs = get.call_args
    assert args[0] == "https://api.github.com/repos/srid/nixci/pulls/19"
    assert "User-Agent" in kwargs["headers"]


def test_get_failure_status():
    with mock.patch("requests.get", return_value=_response(404, {})):
        with pytest.raises(RuntimeError, match="cannot make request"):
            PullRequest.get(PullRequestRef("srid", "nixci", 19))


def test_get_bad_response():
    with mock.patch("requests.get", return_value=_response(200, {"url": "x"})):
        with pytest.raises(RuntimeError, match="cannot parse response"):
            PullRequest.get(PullRequestRef("srid", "nixci", 19))


def test_get_network_error():
    with mock.patch("requests.get", side_effect=requests.ConnectionError("down")):
        with pytest.raises(RuntimeError, match="cannot create request"):
            PullRequest.get(PullRequestRef("srid", "nixci", 19))