"""Tests for the work item pipelines."""

import argparse

import pytest

from conftest import BASE, FakeClient, work_item
from devops_cli import commands
from devops_cli.errors import ApiError, Forbidden, NotFound, TransportError, ValidationError
from devops_cli.wiql import FilterSet, link_query


def link_result(parent, children):
    rels = [{"source": None, "target": {"id": parent}, "rel": None}]
    rels.extend({"source": {"id": parent}, "target": {"id": c}, "rel": "System.LinkTypes.Hierarchy-Forward"} for c in children)
    return {"workItemRelations": rels}


def update_args(**kwargs):
    defaults = dict(state=None, title=None, assign=None, tags=None, description=None,
                    acceptance_criteria=None, area_path=None, iteration=None, block=None, unblock=None)
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


class TestListWorkItems:
    """Tests for the project-scoped list pipeline."""

    def test_parent_filter_end_to_end(self):
        """Parent + state: link query for the parent, state applied after hydration."""
        client = FakeClient(
            items=[
                work_item(100, type="Feature", state="Active"),
                work_item(101, state="New"),
                work_item(102, state="Active"),
                work_item(103, state="New"),
            ],
            wiql=link_result(100, [101, 102, 103]),
        )
        rows = commands.list_work_items(client, FilterSet(parent=100, state="New"))
        assert client.calls[0]["body"] == {"query": link_query(100)}
        assert [r.id for r in rows] == [101, 103]
        assert all(r.state == "New" for r in rows)
        # the parent itself is not listed
        assert "100" not in client.calls[1]["path"].split("ids=")[1].split("&")[0].split(",")

    def test_empty_short_circuits(self):
        """No ids means no hydration call."""
        client = FakeClient(wiql={"workItems": []})
        assert commands.list_work_items(client, FilterSet(state="New")) == []
        assert len(client.calls) == 1

    def test_top_caps_ids_before_hydration(self):
        """Without a parent, top limits the ids that get fetched."""
        client = FakeClient(
            items=[work_item(i) for i in range(1, 6)],
            wiql={"workItems": [{"id": i} for i in range(1, 6)]},
        )
        rows = commands.list_work_items(client, FilterSet(top=2))
        assert [r.id for r in rows] == [1, 2]
        assert client.calls[1]["path"].startswith("/wit/workitems?ids=1,2&fields=")

    def test_top_caps_rows_after_post_filter_with_parent(self):
        """With a parent, top applies after filtering (documented quirk)."""
        client = FakeClient(
            items=[work_item(1, state="Active"), work_item(2, state="New"),
                   work_item(3, state="New"), work_item(4, state="New")],
            wiql=link_result(50, [1, 2, 3, 4]),
        )
        rows = commands.list_work_items(client, FilterSet(parent=50, state="New", top=2))
        assert [r.id for r in rows] == [2, 3]
        assert client.calls[1]["path"].startswith("/wit/workitems?ids=1,2,3,4&")

    def test_priority_defaults(self):
        client = FakeClient(items=[work_item(1)], wiql={"workItems": [{"id": 1}]})
        assert commands.list_work_items(client, FilterSet())[0].priority == 0


class TestQueryWorkItems:
    """Tests for raw WIQL queries."""

    def test_link_response_uses_root_edges(self):
        client = FakeClient(
            items=[work_item(1), work_item(2), work_item(3)],
            wiql={"workItemRelations": [
                {"source": None, "target": {"id": 1}},
                {"source": {"id": 1}, "target": {"id": 3}},
                {"source": None, "target": {"id": 2}},
                {"source": None, "target": {"id": 1}},
            ]},
        )
        rows = commands.query_work_items(client, "SELECT ...")
        assert [r.id for r in rows] == [1, 2]

    def test_query_text_passed_through(self):
        client = FakeClient()
        commands.query_work_items(client, "SELECT [System.Id] FROM WorkItems")
        assert client.calls == [{
            "path": "/wit/wiql", "method": "POST",
            "body": {"query": "SELECT [System.Id] FROM WorkItems"},
            "content_type": "application/json", "api_version": None,
        }]


class TestOrgCommands:
    """Tests for org list and org status."""

    def test_org_list_top(self):
        client = FakeClient(
            items=[work_item(i, **{"System.TeamProject": "P"}) for i in (9, 8, 7)],
            wiql={"workItems": [{"id": 9}, {"id": 8}, {"id": 7}]},
        )
        rows = commands.org_list_work_items(client, FilterSet(top=2))
        assert [(r.id, r.project) for r in rows] == [(9, "P"), (8, "P")]
        assert "ORDER BY" in client.calls[0]["body"]["query"]

    def test_org_status(self):
        client = FakeClient(
            items=[
                work_item(1, type="Bug", **{"System.TeamProject": "ProjectX", "System.ChangedDate": "2024-01-05T00:00:00Z"}),
                work_item(2, type="Task", **{"System.TeamProject": "ProjectX", "System.ChangedDate": "2024-01-10T00:00:00Z"}),
            ],
            wiql={"workItems": [{"id": 1}, {"id": 2}]},
        )
        report = commands.org_status(client, FilterSet())
        assert report.item_count == 2
        assert report.since == 90
        assert [g.as_dict() for g in report.groups] == [
            {"group": "ProjectX", "counts": {"Bug": 1, "Task": 1}, "total": 2, "newest": "2024-01-10"}
        ]
        assert "ORDER BY" not in client.calls[0]["body"]["query"]

    def test_org_status_empty(self):
        client = FakeClient()
        report = commands.org_status(client, FilterSet(assigned_to="me"))
        assert report.item_count == 0
        assert report.since == 0
        assert len(client.calls) == 1


class TestShow:
    """Tests for work item details."""

    def test_show_pairs(self):
        item = work_item(5, type="Bug", state="Active", title="Crash", **{
            "System.TeamProject": "Sandbox",
            "Microsoft.VSTS.Common.Priority": 1,
            "System.AssignedTo": {"displayName": "Jane Doe", "uniqueName": "jane@contoso.com"},
            "System.ChangedDate": "2024-03-04T05:06:07Z",
            "System.Description": "<p>Line one</p><p>Line &amp; two</p>",
        })
        pairs = dict(commands.show_pairs(item))
        assert pairs["priority"] == "1"
        assert pairs["assigned"] == "Jane Doe"
        assert pairs["changed"] == "2024-03-04"
        assert pairs["description"] == "Line one\\n\\nLine & two"
        assert "tags" not in pairs
        assert "comments" not in pairs

    def test_relation_titles(self):
        item = work_item(5, relations=[
            {"rel": "System.LinkTypes.Hierarchy-Reverse", "url": f"{BASE}1"},
            {"rel": "System.LinkTypes.Dependency-Forward", "url": f"{BASE}2"},
            {"rel": "AttachedFile", "url": "https://example.com/file"},
        ])
        client = FakeClient(items=[work_item(1, title="Epic"), work_item(2, title="Other")])
        assert commands.relation_titles(client, item) == [
            ("Parent", 1, "Epic"),
            ("Successor", 2, "Other"),
        ]
        assert client.paths() == ["/wit/workitems?ids=1,2&fields=System.Title"]

    def test_comments_api_version(self):
        client = FakeClient(items=[work_item(5)])
        client.execute = lambda *a, **kw: client.calls.append(kw) or {"comments": [{"text": "hi"}]}
        assert commands.list_comments(client, 5) == [{"text": "hi"}]
        assert client.calls[0]["api_version"] == commands.COMMENTS_API_VERSION


class TestCreate:
    """Tests for work item creation."""

    def create_args(self, **kwargs):
        defaults = dict(type="Task", title="T", description="D", acceptance_criteria=None,
                        parent=None, block=None, area_path=None, iteration=None, tags=None)
        defaults.update(kwargs)
        return argparse.Namespace(**defaults)

    def test_user_story_requires_acceptance_criteria(self):
        client = FakeClient()
        with pytest.raises(ValidationError):
            commands.create_work_item(client, self.create_args(type="User Story"))
        assert client.calls == []

    def test_invalid_parent_before_request(self):
        client = FakeClient()
        with pytest.raises(ValidationError):
            commands.create_work_item(client, self.create_args(parent="abc"))
        assert client.calls == []

    def test_create_request(self):
        client = FakeClient()
        client.execute = lambda path, method, body, content_type: client.calls.append(
            (path, method, body, content_type)) or {"id": 77, "fields": {"System.Title": "T"}}
        result = commands.create_work_item(client, self.create_args(type="User Story", acceptance_criteria="AC", parent="12"))
        assert result["id"] == 77
        path, method, body, content_type = client.calls[0]
        assert path == "/wit/workitems/$User%20Story"
        assert method == "POST"
        assert content_type == "application/json-patch+json"
        assert body[-1] == {
            "op": "add",
            "path": "/relations/-",
            "value": {
                "rel": "System.LinkTypes.Hierarchy-Reverse",
                "url": "https://dev.azure.com/contoso/_apis/wit/workItems/12",
            },
        }


class TestUpdate:
    """Tests for batch updates."""

    def test_no_options(self):
        client = FakeClient()
        with pytest.raises(ValidationError):
            commands.update_work_items(client, "1", update_args())
        assert client.calls == []

    def test_invalid_block_before_any_patch(self):
        client = FakeClient(items=[work_item(1)])
        with pytest.raises(ValidationError):
            commands.update_work_items(client, "1,2", update_args(state="Active", block="0"))
        assert client.calls == []

    def test_partial_failure(self, capsys):
        """A network failure on one id is reported; the others are still updated."""
        client = FakeClient(items=[work_item(1), work_item(2), work_item(3)])
        client.patch_errors[2] = TransportError("Network error: connection reset")
        updated = []
        outcome = commands.update_work_items(client, "1, 2,3", update_args(state="Active"), on_updated=updated.append)
        assert [i["id"] for i in outcome.results] == [1, 3]
        assert updated == outcome.results
        assert outcome.errors == ["#2: Network error: connection reset"]
        assert "Error updating #2" in capsys.readouterr().err
        assert [c["method"] for c in client.calls] == ["PATCH", "PATCH", "PATCH"]

    def test_auth_failure_stops_batch(self):
        client = FakeClient(items=[work_item(1), work_item(2)])
        client.patch_errors[1] = Forbidden("403 Forbidden. PAT lacks required permissions.", 403)
        with pytest.raises(Forbidden):
            commands.update_work_items(client, "1,2", update_args(title="x"))
        assert len(client.calls) == 1

    def test_field_and_block_ops(self):
        client = FakeClient(items=[work_item(1)])
        commands.update_work_items(client, "1", update_args(state="Closed", tags="a, b,,c", block="9"))
        ops = client.calls[0]["body"]
        assert ops[0] == {"op": "replace", "path": "/fields/System.State", "value": "Closed"}
        assert ops[1] == {"op": "replace", "path": "/fields/System.Tags", "value": "a; b; c"}
        assert ops[2]["value"]["rel"] == "System.LinkTypes.Dependency-Forward"
        assert client.calls[0]["content_type"] == "application/json-patch+json"

    def test_unblock_removes_matching_relation(self):
        item = work_item(1, relations=[
            {"rel": "System.LinkTypes.Related", "url": f"{BASE}9"},
            {"rel": "System.LinkTypes.Dependency-Forward", "url": f"{BASE}9"},
        ])
        client = FakeClient(items=[item])
        commands.update_work_items(client, "1", update_args(unblock="9"))
        assert client.calls[0]["path"] == "/wit/workitems/1?$expand=relations"
        assert client.calls[1]["body"] == [{"op": "remove", "path": "/relations/1"}]

    def test_unblock_missing_link(self, capsys):
        """A missing link is reported and nothing is patched when no other ops remain."""
        client = FakeClient(items=[work_item(1)])
        outcome = commands.update_work_items(client, "1", update_args(unblock="9"))
        assert outcome.results == []
        assert outcome.errors == []
        assert "No dependency link to #9 found." in capsys.readouterr().err
        assert [c["method"] for c in client.calls] == ["GET"]

    def test_not_found_stops_batch(self):
        """A 404 on the first id propagates and later ids are never patched."""
        client = FakeClient(items=[work_item(1), work_item(2)])
        client.patch_errors[1] = NotFound("404 Not Found. Check org/project/path.", 404)
        with pytest.raises(NotFound):
            commands.update_work_items(client, "1,2", update_args(title="x"))
        assert client.paths() == ["/wit/workitems/1"]

    def test_server_error_stops_batch(self):
        client = FakeClient(items=[work_item(1), work_item(2)])
        client.patch_errors[1] = ApiError("API returned 500: boom", 500)
        with pytest.raises(ApiError) as exc_info:
            commands.update_work_items(client, "1,2", update_args(title="x"))
        assert exc_info.value.status == 500
        assert [c["method"] for c in client.calls] == ["PATCH"]

    def test_unblock_lookup_not_found_stops_batch(self):
        client = FakeClient(items=[work_item(2)])
        with pytest.raises(NotFound):
            commands.update_work_items(client, "1,2", update_args(unblock="9"))
        assert client.paths() == ["/wit/workitems/1?$expand=relations"]
