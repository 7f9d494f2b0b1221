"""Team models.

Only what access inheritance needs: a member inherits paid access while the
team's own subscription is active on a team-tier price.
"""

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from access_backend.common.model import Base, id_key


class Team(Base):
    """A team owned by an admin user."""

    __tablename__ = 'teams'

    id: Mapped[id_key] = mapped_column(init=False)
    name: Mapped[str] = mapped_column(sa.String(255), comment='Team name')
    admin_user_id: Mapped[str] = mapped_column(sa.String(36), index=True, comment='Owning user ID')
    stripe_customer_id: Mapped[str | None] = mapped_column(
        sa.String(255), default=None, unique=True, index=True, comment='Team Stripe customer ID'
    )
    stripe_subscription_id: Mapped[str | None] = mapped_column(
        sa.String(255), default=None, comment='Team Stripe subscription ID'
    )
    max_members: Mapped[int] = mapped_column(default=5, comment='Seat limit')
    status: Mapped[str] = mapped_column(sa.String(32), default='active', comment='active, suspended, cancelled')


class TeamMember(Base):
    """Membership of a user in a team."""

    __tablename__ = 'team_members'

    id: Mapped[id_key] = mapped_column(init=False)
    team_id: Mapped[int] = mapped_column(
        sa.BigInteger().with_variant(sa.Integer(), 'sqlite'),
        sa.ForeignKey('teams.id', ondelete='CASCADE'),
        index=True,
        comment='Team ID',
    )
    user_id: Mapped[str] = mapped_column(sa.String(36), index=True, comment='Member user ID')
    role: Mapped[str] = mapped_column(sa.String(16), default='member', comment='admin, member')
    status: Mapped[str] = mapped_column(sa.String(16), default='active', comment='active, suspended')

    __table_args__ = (
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_member'),
        {'comment': 'Team memberships'},
    )


class TeamSubscription(Base):
    """Mirror of a team's own Stripe subscription, one row per team."""

    __tablename__ = 'team_subscriptions'

    id: Mapped[id_key] = mapped_column(init=False)
    team_id: Mapped[int] = mapped_column(
        sa.BigInteger().with_variant(sa.Integer(), 'sqlite'),
        sa.ForeignKey('teams.id', ondelete='CASCADE'),
        unique=True,
        index=True,
        comment='Team ID',
    )
    customer_id: Mapped[str] = mapped_column(sa.String(255), index=True, comment='Stripe customer ID')
    subscription_id: Mapped[str] = mapped_column(sa.String(255), comment='Stripe subscription ID')
    status: Mapped[str] = mapped_column(sa.String(32), comment='Stripe status')
    price_id: Mapped[str | None] = mapped_column(sa.String(255), default=None, comment='Team price ID')
    current_period_start: Mapped[int | None] = mapped_column(sa.BigInteger, default=None, comment='Epoch seconds')
    current_period_end: Mapped[int | None] = mapped_column(sa.BigInteger, default=None, comment='Epoch seconds')
    cancel_at_period_end: Mapped[bool] = mapped_column(default=False, comment='Cancels when the period ends')
