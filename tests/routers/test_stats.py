from __future__ import annotations

import pytest

from research_tasks.services.stats import RECENT_TASKS_LIMIT
from tests.helpers import submit_ok


@pytest.mark.integration
async def test_supporter_sees_counts_after_approval(client, alice, admin, supporter):
    task = await submit_ok(client, alice)
    await client.post(f"/tasks/{task['id']}/approve", headers=admin["headers"])

    resp = await client.get("/tasks/stats", headers=supporter["headers"])
    assert resp.status_code == 200
    stats = resp.json()["stats"]
    assert stats["totalTasks"] == 1
    assert stats["completedTasks"] == 1
    assert stats["pendingTasks"] == 0
    assert stats["reviewTasks"] == 0


@pytest.mark.integration
async def test_counts_reconcile(client, alice, bob, admin):
    tasks = [await submit_ok(client, alice, f"day{i}") for i in range(4)]
    tasks.append(await submit_ok(client, bob))
    await client.post(f"/tasks/{tasks[0]['id']}/approve", headers=admin["headers"])
    await client.post(f"/tasks/{tasks[1]['id']}/reject", headers=admin["headers"])
    for content in ("a", "b"):
        await client.post(f"/comments/{tasks[2]['id']}", json={"content": content}, headers=admin["headers"])

    resp = await client.get("/tasks/stats", headers=admin["headers"])
    body = resp.json()
    stats = body["stats"]
    assert stats["totalTasks"] == 5
    assert stats["completedTasks"] + stats["pendingTasks"] + stats["reviewTasks"] == stats["totalTasks"]
    assert (stats["completedTasks"], stats["reviewTasks"], stats["pendingTasks"]) == (1, 1, 3)
    assert stats["activeUsers"] == 2
    assert stats["totalComments"] == 2

    recent = body["recentTasks"]
    assert len(recent) == RECENT_TASKS_LIMIT
    assert recent[0]["id"] == tasks[-1]["id"]
    assert recent[0]["owner"]["email"] == "bob@x.com"
    by_id = {t["id"]: t for t in recent}
    assert by_id[tasks[2]["id"]]["commentCount"] == 2
    assert recent[0]["ownerEmail"] == "bob@x.com"
    assert "comment_count" not in recent[0]


@pytest.mark.integration
async def test_empty_dashboard(client, supporter):
    resp = await client.get("/tasks/stats", headers=supporter["headers"])
    assert resp.json() == {
        "stats": {
            "totalTasks": 0,
            "completedTasks": 0,
            "pendingTasks": 0,
            "reviewTasks": 0,
            "activeUsers": 0,
            "totalComments": 0,
        },
        "recentTasks": [],
    }


@pytest.mark.integration
async def test_plain_users_are_forbidden(client, alice):
    resp = await client.get("/tasks/stats", headers=alice["headers"])
    assert resp.status_code == 403


@pytest.mark.integration
async def test_recent_tasks_use_camel_case_throughout(client, alice, supporter):
    png = b"\x89PNG\r\n\x1a\n"
    resp = await client.post(
        "/tasks/submit",
        data={"research": "with a chart"},
        files=[("files", ("chart.png", png, "image/png"))],
        headers=alice["headers"],
    )
    assert resp.status_code == 201

    resp = await client.get("/tasks/stats", headers=supporter["headers"])
    [recent] = resp.json()["recentTasks"]
    assert {"ownerEmail", "submittedAt", "updatedAt", "commentCount"} <= set(recent)
    assert not any("_" in key for key in recent)
    [attachment] = recent["attachments"]
    assert attachment["mimeType"] == "image/png"
    assert "publicId" in attachment
