"""回复测试

测试内容：
1. 回复广播 reply_created（带线程定位字段）并更新 reply_count
2. 回复派生的任务关联到父消息，同一父消息至多一个任务
3. 回复编辑/删除权限
"""

import pytest_asyncio
from httpx import AsyncClient


@pytest_asyncio.fixture
async def parent(client: AsyncClient, alice, workspace) -> dict:
    resp = await client.post(
        f"/api/threads/{workspace['thread_id']}/messages",
        json={"content": "release checklist"},
        headers=alice["headers"],
    )
    return resp.json()


async def _reply(client: AsyncClient, user, message_id: int, content: str, **extra):
    return await client.post(
        f"/api/messages/{message_id}/replies",
        json={"content": content, **extra},
        headers=user["headers"],
    )


class TestReplies:
    async def test_reply_created(self, client: AsyncClient, alice, workspace, parent, hub_events):
        resp = await _reply(client, alice, parent["id"], "looks good")
        assert resp.status_code == 201
        reply = resp.json()
        assert reply["message_id"] == parent["id"]
        assert reply["user_name"] == "alice"

        frames = await hub_events()
        assert [f["type"] for f in frames] == ["reply_created"]
        assert frames[0]["message_id"] == parent["id"]
        assert frames[0]["thread_id"] == workspace["thread_id"]
        assert frames[0]["channel_name"] == "eng"

        messages = await client.get(
            f"/api/threads/{workspace['thread_id']}/messages", headers=alice["headers"]
        )
        assert messages.json()[0]["reply_count"] == 1

    async def test_reply_task_links_parent(self, client: AsyncClient, alice, parent, hub_events):
        await _reply(client, alice, parent["id"], "tag release :task")
        frames = await hub_events()
        assert [f["type"] for f in frames] == ["reply_created", "task_created"]
        assert frames[1]["task"]["message_id"] == parent["id"]
        assert frames[1]["task"]["title"] == "tag release"

        await _reply(client, alice, parent["id"], "another :task")
        frames = await hub_events()
        assert [f["type"] for f in frames] == ["reply_created"]

        tasks = await client.get("/api/tasks", headers=alice["headers"])
        assert len(tasks.json()) == 1

    async def test_list_replies_in_order(self, client: AsyncClient, alice, parent):
        for text in ("one", "two"):
            await _reply(client, alice, parent["id"], text)
        resp = await client.get(f"/api/messages/{parent['id']}/replies", headers=alice["headers"])
        assert [r["content"] for r in resp.json()] == ["one", "two"]

    async def test_reply_to_unknown_message(self, client: AsyncClient, alice):
        resp = await _reply(client, alice, 999, "hi")
        assert resp.status_code == 404

    async def test_edit_and_delete(self, client: AsyncClient, signup, alice, parent, hub_events):
        bob = await signup("bob")
        reply = (await _reply(client, alice, parent["id"], "typo")).json()
        await hub_events()

        forbidden = await client.patch(
            f"/api/replies/{reply['id']}", json={"content": "x"}, headers=bob["headers"]
        )
        assert forbidden.status_code == 403

        edited = await client.patch(
            f"/api/replies/{reply['id']}", json={"content": "fixed"}, headers=alice["headers"]
        )
        assert edited.json()["content"] == "fixed"

        deleted = await client.delete(f"/api/replies/{reply['id']}", headers=alice["headers"])
        assert deleted.json() == {"ok": True}

        frames = await hub_events()
        assert [f["type"] for f in frames] == ["reply_updated", "reply_deleted"]
        assert frames[1]["reply_id"] == reply["id"]

    async def test_reply_checklist(self, client: AsyncClient, alice, parent):
        reply = (await _reply(client, alice, parent["id"], "- [ ] verify")).json()
        resp = await client.post(
            f"/api/replies/{reply['id']}/checklist",
            json={"ordinal": 0, "checked": True},
            headers=alice["headers"],
        )
        assert resp.json()["content"] == "- [x] verify"
