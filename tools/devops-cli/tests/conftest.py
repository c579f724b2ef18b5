"""Shared fixtures for devops-cli tests."""

import os
import re
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from devops_cli.config import Config
from devops_cli.errors import NotFound

BASE = "https://dev.azure.com/contoso/_apis/wit/workItems/"


def work_item(item_id, type="Task", state="New", title=None, children=(), relations=None, **fields):
    """Build an API-shaped work item; ``children`` become Hierarchy-Forward links."""
    bag = {
        "System.Id": item_id,
        "System.WorkItemType": type,
        "System.State": state,
        "System.Title": title or f"Item {item_id}",
    }
    bag.update(fields)
    rels = list(relations or [])
    rels.extend(
        {"rel": "System.LinkTypes.Hierarchy-Forward", "url": f"{BASE}{cid}", "attributes": {}}
        for cid in children
    )
    item = {"id": item_id, "fields": bag}
    if rels:
        item["relations"] = rels
    return item


class FakeClient:
    """Records ``execute`` calls and answers them from in-memory work items."""

    def __init__(self, items=(), wiql=None, config=None):
        self.items = {i["id"]: i for i in items}
        self.wiql = wiql if wiql is not None else {"workItems": []}
        self.config = config or Config(org="contoso", pat="secret", project="Sandbox")
        self.calls = []
        self.patch_errors = {}

    def execute(self, path, method="GET", body=None, content_type="application/json", api_version=None):
        self.calls.append({"path": path, "method": method, "body": body,
                           "content_type": content_type, "api_version": api_version})
        if path == "/wit/wiql":
            return self.wiql
        if path.startswith("/wit/workitems?ids="):
            ids = [int(i) for i in path.split("ids=")[1].split("&")[0].split(",")]
            value = [self.items[i] for i in ids if i in self.items]
            return {"count": len(value), "value": value}
        match = re.match(r"^/wit/workitems/(\d+)", path)
        if match:
            item_id = int(match.group(1))
            if item_id in self.patch_errors and method == "PATCH":
                raise self.patch_errors[item_id]
            if item_id not in self.items:
                raise NotFound("404 Not Found. Check org/project/path.", 404)
            return self.items[item_id]
        raise AssertionError(f"unexpected request: {method} {path}")

    def paths(self, prefix=""):
        return [c["path"] for c in self.calls if c["path"].startswith(prefix)]


@pytest.fixture
def make_client():
    return FakeClient
