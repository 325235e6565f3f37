"""Unit tests for GitHub adapter (mocked API)."""

import threading
from unittest.mock import Mock, patch

import pytest
import requests

from issuesync.adapters.base import TrackerError
from issuesync.adapters.github import GitHubAdapter
from issuesync.models import Issue, IssueChange, IssueState


@pytest.fixture
def adapter() -> GitHubAdapter:
    return GitHubAdapter(token="test-token", repo="owner/repo", api_url="https://api.github.com")


def _resp(data, status: int = 200, text: str = "") -> Mock:
    mock_resp = Mock()
    mock_resp.status_code = status
    mock_resp.json.return_value = data
    mock_resp.text = text
    return mock_resp


def _node(number: int, **extra) -> dict:
    node = {
        "number": number,
        "title": f"Issue {number}",
        "body": "Body text",
        "state": "OPEN",
        "stateReason": None,
        "labels": {"nodes": [{"name": "bug", "color": "d73a4a"}]},
        "assignees": {"nodes": [{"login": "octocat"}]},
        "milestone": None,
        "issueType": None,
        "projectItems": {"nodes": []},
        "parent": None,
        "blockedBy": {"nodes": []},
        "blocking": {"nodes": []},
    }
    node.update(extra)
    return node


def test_get_issue_success(adapter: GitHubAdapter) -> None:
    """get_issue maps the GraphQL issue including relationships."""
    node = _node(
        1,
        state="CLOSED",
        stateReason="NOT_PLANNED",
        milestone={"title": "v1"},
        issueType={"name": "Bug"},
        projectItems={"nodes": [{"project": {"title": "Roadmap"}}]},
        parent={"number": 10},
        blockedBy={"nodes": [{"number": 3}]},
        blocking={"nodes": [{"number": 4}]},
    )
    with patch.object(adapter._session, "request", return_value=_resp({"data": {"repository": {"issue": node}}})) as req:
        issue = adapter.get_issue("1")

    assert isinstance(issue, Issue)
    assert issue.number == "1"
    assert issue.labels == ["bug"]
    assert issue.assignees == ["octocat"]
    assert issue.state is IssueState.CLOSED
    assert issue.state_reason == "not_planned"
    assert issue.milestone == "v1"
    assert issue.issue_type == "Bug"
    assert issue.projects == ["Roadmap"]
    assert issue.parent == "10"
    assert issue.blocked_by == ["3"]
    assert issue.blocks == ["4"]
    args, kwargs = req.call_args
    assert args == ("POST", "https://api.github.com/graphql")
    assert kwargs["json"]["variables"] == {"owner": "owner", "repo": "repo", "number": 1}


def test_get_issue_not_found_raises(adapter: GitHubAdapter) -> None:
    """A null issue with a NOT_FOUND error becomes TrackerError."""
    body = {"data": {"repository": {"issue": None}}, "errors": [{"type": "NOT_FOUND", "message": "Could not resolve"}]}
    with patch.object(adapter._session, "request", return_value=_resp(body)):
        with pytest.raises(TrackerError, match="Not found"):
            adapter.get_issue("999")


def test_api_error_raises(adapter: GitHubAdapter) -> None:
    """HTTP errors raise TrackerError with the API message."""
    with patch.object(adapter._session, "request", return_value=_resp({"message": "API rate limit exceeded"}, 403, "Forbidden")):
        with pytest.raises(TrackerError) as exc_info:
            adapter.create_comment("1", "hi")
    assert "403" in str(exc_info.value)
    assert "rate limit" in str(exc_info.value)


def test_graphql_errors_raise(adapter: GitHubAdapter) -> None:
    body = {"data": None, "errors": [{"message": "Bad credentials"}]}
    with patch.object(adapter._session, "request", return_value=_resp(body)):
        with pytest.raises(TrackerError, match="Bad credentials"):
            adapter.list_issues()


def test_connection_error_raises(adapter: GitHubAdapter) -> None:
    with patch.object(adapter._session, "request", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(TrackerError, match="refused"):
            adapter.list_labels()


def test_list_issues_paginates_and_collects_colors(adapter: GitHubAdapter) -> None:
    page1 = {"data": {"repository": {"issues": {
        "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
        "nodes": [_node(1)],
    }}}}
    page2 = {"data": {"repository": {"issues": {
        "pageInfo": {"hasNextPage": False, "endCursor": None},
        "nodes": [_node(2, labels={"nodes": [{"name": "UI", "color": "00ff00"}]})],
    }}}}
    with patch.object(adapter._session, "request", side_effect=[_resp(page1), _resp(page2)]) as req:
        result = adapter.list_issues("all", label="bug")

    assert [i.number for i in result.issues] == ["1", "2"]
    assert result.label_colors == {"bug": "d73a4a", "ui": "00ff00"}
    first, second = req.call_args_list
    assert first.kwargs["json"]["variables"]["states"] == ["OPEN", "CLOSED"]
    assert first.kwargs["json"]["variables"]["labels"] == ["bug"]
    assert second.kwargs["json"]["variables"]["cursor"] == "c1"


def test_get_issues_batch_skips_missing(adapter: GitHubAdapter) -> None:
    body = {
        "data": {"repository": {"i1": _node(1), "i2": None}},
        "errors": [{"type": "NOT_FOUND", "message": "Could not resolve to an Issue with the number of 2."}],
    }
    with patch.object(adapter._session, "request", return_value=_resp(body)) as req:
        found = adapter.get_issues_batch(["1", "2"])
    assert list(found) == ["1"]
    query = req.call_args.kwargs["json"]["query"]
    assert "i1: issue(number: 1)" in query
    assert "i2: issue(number: 2)" in query


def test_create_issue(adapter: GitHubAdapter) -> None:
    created = {
        "number": 201,
        "title": "Fix X",
        "body": "blocks #Tdef2",
        "state": "open",
        "labels": [{"name": "bug"}],
        "assignees": [],
        "milestone": None,
        "type": {"name": "Bug"},
    }
    with patch.object(adapter._session, "request", return_value=_resp(created, 201)) as req:
        issue = adapter.create_issue(Issue(number="Tabc1", title="Fix X", body="blocks #Tdef2", labels=["bug"], issue_type="Bug"))

    assert issue.number == "201"
    assert issue.issue_type == "Bug"
    args, kwargs = req.call_args
    assert args == ("POST", "https://api.github.com/repos/owner/repo/issues")
    assert kwargs["json"] == {"title": "Fix X", "body": "blocks #Tdef2", "labels": ["bug"], "type": "Bug"}


def test_update_issue_fields_and_labels(adapter: GitHubAdapter) -> None:
    change = IssueChange(
        title="New title",
        state_transition="close",
        state_reason="completed",
        add_labels=["bug"],
        remove_labels=["needs info"],
    )
    with patch.object(adapter._session, "request", return_value=_resp({})) as req:
        adapter.update_issue("7", change)

    calls = [(c.args[0], c.args[1].replace("https://api.github.com", ""), c.kwargs.get("json")) for c in req.call_args_list]
    assert calls == [
        ("PATCH", "/repos/owner/repo/issues/7", {"title": "New title", "state": "closed", "state_reason": "completed"}),
        ("POST", "/repos/owner/repo/issues/7/labels", {"labels": ["bug"]}),
        ("DELETE", "/repos/owner/repo/issues/7/labels/needs%20info", None),
    ]


def test_update_issue_milestone_by_title(adapter: GitHubAdapter) -> None:
    milestones = _resp([{"title": "v1", "number": 3}])
    with patch.object(adapter._session, "request", side_effect=[milestones, _resp({})]) as req:
        adapter.update_issue("7", IssueChange(milestone="v1"))
    patch_call = req.call_args_list[-1]
    assert patch_call.args[0] == "PATCH"
    assert patch_call.kwargs["json"] == {"milestone": 3}


def test_update_issue_unknown_milestone_raises(adapter: GitHubAdapter) -> None:
    with patch.object(adapter._session, "request", return_value=_resp([])):
        with pytest.raises(TrackerError, match="unknown milestone"):
            adapter.update_issue("7", IssueChange(milestone="v9"))


def test_update_issue_relationships(adapter: GitHubAdapter) -> None:
    issue7 = _resp({"id": 7007, "number": 7})
    issue3 = _resp({"id": 3003, "number": 3})
    ok = _resp({})
    with patch.object(adapter._session, "request", side_effect=[issue7, ok, issue3, ok]) as req:
        adapter.update_issue("7", IssueChange(parent="10", add_blocked_by=["3"]))

    calls = [(c.args[0], c.args[1].replace("https://api.github.com", ""), c.kwargs.get("json")) for c in req.call_args_list]
    assert calls[1] == ("POST", "/repos/owner/repo/issues/10/sub_issues", {"sub_issue_id": 7007, "replace_parent": True})
    assert calls[3] == ("POST", "/repos/owner/repo/issues/7/dependencies/blocked_by", {"issue_id": 3003})


def test_list_labels(adapter: GitHubAdapter) -> None:
    data = [{"name": "bug", "color": "d73a4a"}, {"name": "ui", "color": "00ff00"}]
    with patch.object(adapter._session, "request", return_value=_resp(data)) as req:
        labels = adapter.list_labels()
    assert [(lb.name, lb.color) for lb in labels] == [("bug", "d73a4a"), ("ui", "00ff00")]
    assert req.call_args.kwargs["params"] == {"per_page": 100, "page": 1}


def test_list_projects_and_issue_types(adapter: GitHubAdapter) -> None:
    projects = {"data": {"repository": {"projectsV2": {"nodes": [{"id": "P_1", "title": "Roadmap"}]}}}}
    types = {"data": {"repository": {"issueTypes": None}}}
    with patch.object(adapter._session, "request", side_effect=[_resp(projects), _resp(types)]):
        assert [p.title for p in adapter.list_projects()] == ["Roadmap"]
        assert adapter.list_issue_types() == []


def test_malformed_number_raises_tracker_error(adapter: GitHubAdapter) -> None:
    with patch.object(adapter._session, "request") as req:
        with pytest.raises(TrackerError, match="invalid issue number"):
            adapter.get_issue("12a")
        with pytest.raises(TrackerError, match="invalid issue number"):
            adapter.get_issues_batch(["1", "oops"])
    req.assert_not_called()


def test_each_thread_gets_its_own_session(adapter: GitHubAdapter) -> None:
    sessions = []
    worker = threading.Thread(target=lambda: sessions.append(adapter._session))
    worker.start()
    worker.join()
    assert adapter._session is adapter._session
    assert sessions[0] is not adapter._session
    assert sessions[0].headers["Authorization"] == "token test-token"
