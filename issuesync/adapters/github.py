"""GitHub adapter.

Reads go through GraphQL so one round trip returns an issue with its
relationships (parent, blocked by, blocking), issue type and projects.
Writes use the REST API, except project membership which only exists in
GraphQL.
"""

import logging
import threading
from typing import Any, Dict, List
from urllib.parse import quote

import requests

from issuesync.adapters.base import IssueTrackerAdapter, TrackerError
from issuesync.models import Issue, IssueChange, IssueType, Label, ListIssuesResult, Milestone, Project

LOG = logging.getLogger("issuesync.adapters.github")

PAGE_SIZE = 100
BATCH_SIZE = 50

ISSUE_FIELDS = """
    number
    title
    body
    state
    stateReason
    labels(first: 100) { nodes { name color } }
    assignees(first: 50) { nodes { login } }
    milestone { title }
    issueType { name }
    projectItems(first: 20) { nodes { project { title } } }
    parent { number }
    blockedBy(first: 50) { nodes { number } }
    blocking(first: 50) { nodes { number } }
"""

LIST_QUERY = """
query($owner: String!, $repo: String!, $states: [IssueState!], $labels: [String!], $cursor: String) {
  repository(owner: $owner, name: $repo) {
    issues(first: %d, after: $cursor, states: $states, labels: $labels, orderBy: {field: CREATED_AT, direction: ASC}) {
      pageInfo { hasNextPage endCursor }
      nodes { %s }
    }
  }
}
""" % (PAGE_SIZE, ISSUE_FIELDS)

GET_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) { %s }
  }
}
""" % ISSUE_FIELDS

ISSUE_TYPES_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    issueTypes(first: 50) { nodes { id name description } }
  }
}
"""

PROJECTS_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    projectsV2(first: 50) { nodes { id title } }
  }
}
"""

PROJECT_ITEMS_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) { projectItems(first: 50) { nodes { id project { id title } } } }
  }
}
"""

ADD_PROJECT_ITEM = """
mutation($project: ID!, $content: ID!) {
  addProjectV2ItemById(input: {projectId: $project, contentId: $content}) { item { id } }
}
"""

DELETE_PROJECT_ITEM = """
mutation($project: ID!, $item: ID!) {
  deleteProjectV2Item(input: {projectId: $project, itemId: $item}) { deletedItemId }
}
"""


def _issue_number(number: str) -> int:
    if not str(number).isdigit():
        raise TrackerError(f"invalid issue number {number!r}")
    return int(number)


def _nodes(data: Dict[str, Any] | None, key: str) -> List[Dict[str, Any]]:
    conn = (data or {}).get(key) or {}
    return [n for n in (conn.get("nodes") or []) if n]


def _issue_from_graphql(node: Dict[str, Any], colors: Dict[str, str] | None = None) -> Issue:
    labels = _nodes(node, "labels")
    if colors is not None:
        for lb in labels:
            colors[lb["name"].lower()] = lb.get("color") or ""
    parent = node.get("parent") or {}
    return Issue(
        number=node["number"],
        title=node.get("title") or "",
        body=node.get("body") or "",
        labels=[lb["name"] for lb in labels],
        assignees=[a["login"] for a in _nodes(node, "assignees")],
        projects=[p["project"]["title"] for p in _nodes(node, "projectItems") if p.get("project")],
        milestone=(node.get("milestone") or {}).get("title") or "",
        issue_type=(node.get("issueType") or {}).get("name") or "",
        state=(node.get("state") or "open").lower(),
        state_reason=(node.get("stateReason") or "").lower() or None,
        parent=parent.get("number"),
        blocked_by=[n["number"] for n in _nodes(node, "blockedBy")],
        blocks=[n["number"] for n in _nodes(node, "blocking")],
    )


def _issue_from_rest(data: Dict[str, Any]) -> Issue:
    labels = [lb["name"] for lb in (data.get("labels") or []) if isinstance(lb, dict) and "name" in lb]
    return Issue(
        number=data["number"],
        title=data.get("title") or "",
        body=data.get("body") or "",
        labels=labels,
        assignees=[a["login"] for a in (data.get("assignees") or []) if a],
        milestone=(data.get("milestone") or {}).get("title") or "",
        issue_type=(data.get("type") or {}).get("name") or "",
        state=data.get("state", "open"),
        state_reason=data.get("state_reason"),
    )


class GitHubAdapter(IssueTrackerAdapter):
    """GitHub API implementation for one repository."""

    def __init__(
        self,
        token: str,
        repo: str,
        api_url: str = "https://api.github.com",
        timeout: int = 30,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._owner, _, self._name = repo.partition("/")
        self._repo = repo
        self._timeout = timeout
        self._headers = {"Authorization": f"token {token}", "Accept": "application/vnd.github+json"}
        self._local = threading.local()
        self._milestone_numbers: Dict[str, int] | None = None
        self._project_ids: Dict[str, str] | None = None

    @property
    def _session(self) -> requests.Session:
        """Session of the calling thread; pull runs the list and batch fetches in parallel."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._headers)
            self._local.session = session
        return session

    def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        json: Any = None,
    ) -> requests.Response:
        url = f"{self._api_url}{path}" if path.startswith("/") else f"{self._api_url}/{path}"
        try:
            resp = self._session.request(method, url, params=params, json=json, timeout=self._timeout)
        except requests.RequestException as e:
            raise TrackerError(f"{method} {path}: {e}") from e
        if resp.status_code >= 400:
            msg = resp.text or str(resp.status_code)
            try:
                data = resp.json()
                if isinstance(data, dict) and "message" in data:
                    msg = data["message"]
            except ValueError:
                pass
            raise TrackerError(f"{resp.status_code}: {msg}")
        return resp

    def _graphql(self, query: str, variables: Dict[str, Any], allow_partial: bool = False) -> Dict[str, Any]:
        payload = {"query": query, "variables": {"owner": self._owner, "repo": self._name, **variables}}
        resp = self._request("POST", "/graphql", json=payload)
        body = resp.json() or {}
        errors = body.get("errors") or []
        if errors and not (allow_partial and body.get("data")):
            raise TrackerError("; ".join(e.get("message", str(e)) for e in errors))
        return body.get("data") or {}

    def get_issue(self, number: str) -> Issue:
        data = self._graphql(GET_QUERY, {"number": _issue_number(number)}, allow_partial=True)
        node = (data.get("repository") or {}).get("issue")
        if not node:
            raise TrackerError(f"Not found: issue #{number}")
        return _issue_from_graphql(node)

    def list_issues(self, state: str = "open", label: str | None = None) -> ListIssuesResult:
        states = ["OPEN", "CLOSED"] if state == "all" else [state.upper()]
        variables: Dict[str, Any] = {"states": states, "labels": [label] if label else None, "cursor": None}
        result = ListIssuesResult()
        while True:
            data = self._graphql(LIST_QUERY, variables)
            conn = (data.get("repository") or {}).get("issues") or {}
            for node in conn.get("nodes") or []:
                if node:
                    result.issues.append(_issue_from_graphql(node, result.label_colors))
            page = conn.get("pageInfo") or {}
            if not page.get("hasNextPage"):
                break
            variables["cursor"] = page.get("endCursor")
        LOG.debug("Listed %d %s issues", len(result.issues), state)
        return result

    def get_issues_batch(self, numbers: List[str]) -> Dict[str, Issue]:
        found: Dict[str, Issue] = {}
        for start in range(0, len(numbers), BATCH_SIZE):
            chunk = numbers[start:start + BATCH_SIZE]
            fields = "\n".join(f"i{n}: issue(number: {_issue_number(n)}) {{ {ISSUE_FIELDS} }}" for n in chunk)
            query = (
                "query($owner: String!, $repo: String!) {\n"
                f"  repository(owner: $owner, name: $repo) {{ {fields} }}\n"
                "}"
            )
            repo = self._graphql(query, {}, allow_partial=True).get("repository") or {}
            for n in chunk:
                node = repo.get(f"i{n}")
                if node:
                    found[str(node["number"])] = _issue_from_graphql(node)
        return found

    def _milestone_number(self, title: str) -> int:
        if self._milestone_numbers is None:
            resp = self._request("GET", f"/repos/{self._repo}/milestones", params={"state": "all", "per_page": PAGE_SIZE})
            self._milestone_numbers = {m["title"]: m["number"] for m in resp.json() or []}
        if title not in self._milestone_numbers:
            raise TrackerError(f"unknown milestone {title!r}")
        return self._milestone_numbers[title]

    def _project_id(self, title: str) -> str:
        if self._project_ids is None:
            self._project_ids = {p.title: p.id for p in self.list_projects()}
        if title not in self._project_ids:
            raise TrackerError(f"unknown project {title!r}")
        return self._project_ids[title]

    def create_issue(self, issue: Issue) -> Issue:
        payload: Dict[str, Any] = {"title": issue.title, "body": issue.body}
        if issue.labels:
            payload["labels"] = issue.labels
        if issue.assignees:
            payload["assignees"] = issue.assignees
        if issue.milestone:
            payload["milestone"] = self._milestone_number(issue.milestone)
        if issue.issue_type:
            payload["type"] = issue.issue_type
        resp = self._request("POST", f"/repos/{self._repo}/issues", json=payload)
        return _issue_from_rest(resp.json())

    def update_issue(self, number: str, change: IssueChange) -> None:
        base = f"/repos/{self._repo}/issues/{number}"
        patch: Dict[str, Any] = {}
        if change.title is not None:
            patch["title"] = change.title
        if change.body is not None:
            patch["body"] = change.body
        if change.milestone is not None:
            patch["milestone"] = self._milestone_number(change.milestone) if change.milestone else None
        if change.issue_type is not None:
            patch["type"] = change.issue_type or None
        if change.state_transition is not None:
            patch["state"] = "closed" if change.state_transition == "close" else "open"
        if change.state_reason:
            patch["state_reason"] = change.state_reason
        if patch:
            self._request("PATCH", base, json=patch)

        if change.add_labels:
            self._request("POST", f"{base}/labels", json={"labels": change.add_labels})
        for name in change.remove_labels:
            self._request("DELETE", f"{base}/labels/{quote(name, safe='')}")
        if change.add_assignees:
            self._request("POST", f"{base}/assignees", json={"assignees": change.add_assignees})
        if change.remove_assignees:
            self._request("DELETE", f"{base}/assignees", json={"assignees": change.remove_assignees})

        if change.parent is not None:
            self._set_parent(number, change.parent)
        for blocker in change.add_blocked_by:
            self._request("POST", f"{base}/dependencies/blocked_by", json={"issue_id": self._issue_id(blocker)})
        for blocker in change.remove_blocked_by:
            self._request("DELETE", f"{base}/dependencies/blocked_by/{self._issue_id(blocker)}")

        if change.add_projects or change.remove_projects:
            self._update_projects(number, change.add_projects, change.remove_projects)

    def _issue_rest(self, number: str) -> Dict[str, Any]:
        return self._request("GET", f"/repos/{self._repo}/issues/{number}").json()

    def _issue_id(self, number: str) -> int:
        return self._issue_rest(number)["id"]

    def _set_parent(self, number: str, parent: str) -> None:
        sub_issue_id = self._issue_id(number)
        if parent:
            self._request(
                "POST",
                f"/repos/{self._repo}/issues/{parent}/sub_issues",
                json={"sub_issue_id": sub_issue_id, "replace_parent": True},
            )
            return
        current = self.get_issue(number).parent
        if current:
            self._request(
                "DELETE",
                f"/repos/{self._repo}/issues/{current}/sub_issue",
                json={"sub_issue_id": sub_issue_id},
            )

    def _update_projects(self, number: str, add: List[str], remove: List[str]) -> None:
        if add:
            node_id = self._issue_rest(number)["node_id"]
            for title in add:
                self._graphql(ADD_PROJECT_ITEM, {"project": self._project_id(title), "content": node_id})
        if remove:
            data = self._graphql(PROJECT_ITEMS_QUERY, {"number": _issue_number(number)})
            issue = (data.get("repository") or {}).get("issue") or {}
            for item in _nodes(issue, "projectItems"):
                project = item.get("project") or {}
                if project.get("title") in remove:
                    self._graphql(DELETE_PROJECT_ITEM, {"project": project["id"], "item": item["id"]})

    def create_comment(self, number: str, body: str) -> None:
        self._request("POST", f"/repos/{self._repo}/issues/{number}/comments", json={"body": body})

    def list_labels(self) -> List[Label]:
        labels: List[Label] = []
        page = 1
        while True:
            resp = self._request("GET", f"/repos/{self._repo}/labels", params={"per_page": PAGE_SIZE, "page": page})
            data = resp.json() or []
            labels.extend(Label(name=d["name"], color=d.get("color") or "") for d in data)
            if len(data) < PAGE_SIZE:
                return labels
            page += 1

    def create_label(self, name: str, color: str) -> None:
        self._request("POST", f"/repos/{self._repo}/labels", json={"name": name, "color": color})

    def list_milestones(self) -> List[Milestone]:
        resp = self._request("GET", f"/repos/{self._repo}/milestones", params={"state": "all", "per_page": PAGE_SIZE})
        return [
            Milestone(
                title=m["title"],
                description=m.get("description") or "",
                due_on=m.get("due_on"),
                state=m.get("state") or "open",
            )
            for m in resp.json() or []
        ]

    def list_issue_types(self) -> List[IssueType]:
        data = self._graphql(ISSUE_TYPES_QUERY, {}, allow_partial=True)
        return [
            IssueType(id=n["id"], name=n["name"], description=n.get("description") or "")
            for n in _nodes(data.get("repository"), "issueTypes")
        ]

    def list_projects(self) -> List[Project]:
        data = self._graphql(PROJECTS_QUERY, {})
        return [Project(id=n["id"], title=n["title"]) for n in _nodes(data.get("repository"), "projectsV2")]
