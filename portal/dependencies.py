"""FastAPI dependency helpers."""
from collections.abc import AsyncIterator
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from portal.database import get_session

CANDIDATE_ROLE = "candidate"
ORGANIZATION_ROLE = "organization"


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: str


async def db_session() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


def current_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """Actor identity as handed over by the upstream session provider."""

    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing actor identity")
    role = (x_actor_role or "").strip().lower()
    if role not in (CANDIDATE_ROLE, ORGANIZATION_ROLE):
        raise HTTPException(status_code=401, detail="Unknown actor role")
    return Actor(actor_id=x_actor_id, role=role)


def candidate_actor(actor: Actor = Depends(current_actor)) -> Actor:
    if actor.role != CANDIDATE_ROLE:
        raise HTTPException(status_code=403, detail="Only candidates can apply to opportunities")
    return actor
