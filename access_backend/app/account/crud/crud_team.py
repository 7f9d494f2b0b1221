"""CRUD operations for team access inheritance."""

from typing import Any, Dict, Optional

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy_crud_plus import CRUDPlus

from access_backend.app.account.model import Team, TeamMember, TeamSubscription
from access_backend.database.db import upsert


class CRUDTeam(CRUDPlus[Team]):
    """CRUD operations for Team, TeamMember and TeamSubscription models."""

    async def get_by_customer_id(self, db: AsyncSession, customer_id: str) -> Optional[Team]:
        """
        Get the team billed to a Stripe customer.

        :param db: Database session
        :param customer_id: Stripe customer ID
        :return: Team or None
        """
        result = await db.execute(select(Team).where(Team.stripe_customer_id == customer_id))
        return result.scalar_one_or_none()

    async def get_inherited_subscription(self, db: AsyncSession, user_id: str) -> Optional[TeamSubscription]:
        """
        Get the subscription of the active team the user actively belongs to.

        :param db: Database session
        :param user_id: Member user ID
        :return: Team subscription or None
        """
        result = await db.execute(
            select(TeamSubscription)
            .join(Team, Team.id == TeamSubscription.team_id)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(
                and_(
                    TeamMember.user_id == user_id,
                    TeamMember.status == 'active',
                    Team.status == 'active',
                )
            )
        )
        rows = result.scalars().all()
        # Prefer an active subscription when the user is in several teams
        return next((row for row in rows if row.status == 'active'), rows[0] if rows else None)

    async def upsert_subscription(self, db: AsyncSession, values: Dict[str, Any]) -> None:
        """
        Replace a team's subscription mirror.

        :param db: Database session
        :param values: Column values, must include ``team_id``
        """
        await db.execute(upsert(db, TeamSubscription, values, ['team_id']))

    async def delete_memberships(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(delete(TeamMember).where(TeamMember.user_id == user_id))
        return result.rowcount


# Singleton instance
team_dao: CRUDTeam = CRUDTeam(Team)
