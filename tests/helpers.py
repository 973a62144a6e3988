"""Request helpers shared by the router tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from research_tasks.models import Role, Task, User

if TYPE_CHECKING:
    from fastapi import FastAPI
    from httpx import AsyncClient, Response

PASSWORD = "pw123"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register(client: AsyncClient, email: str, password: str = PASSWORD) -> dict[str, Any]:
    resp = await client.post("/users/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    data = resp.json()
    return {"id": data["user"]["id"], "email": data["user"]["email"], "headers": bearer(data["token"])}


async def set_role(app: FastAPI, email: str, role: Role) -> None:
    """Role changes that the API itself refuses (e.g. minting an admin)."""
    async with app.state.db.sessionmaker() as db:
        await db.execute(update(User).where(User.email == email).values(role=role))
        await db.commit()


async def submit(
    client: AsyncClient,
    account: dict[str, Any],
    research: str = "day1",
    challenges: str | None = None,
    files: list[tuple[str, tuple[str, bytes, str]]] | None = None,
) -> Response:
    data = {"research": research}
    if challenges is not None:
        data["challenges"] = challenges
    return await client.post("/tasks/submit", data=data, files=files, headers=account["headers"])


async def submit_ok(client: AsyncClient, account: dict[str, Any], research: str = "day1") -> dict[str, Any]:
    resp = await submit(client, account, research)
    assert resp.status_code == 201, resp.text
    return resp.json()["task"]


async def count_tasks(app: FastAPI) -> int:
    async with app.state.db.sessionmaker() as db:
        result = await db.execute(select(Task.id))
        return len(result.all())
