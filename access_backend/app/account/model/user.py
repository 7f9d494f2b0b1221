"""Identity, profile and account-state models."""

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from access_backend.common.model import Base, id_key


class AuthUser(Base):
    """Authentication identity. ``id`` is the ``sub`` claim of the user's JWT."""

    __tablename__ = 'auth_users'

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, comment='User ID (JWT subject)')
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, index=True, comment='Login email')


class UserProfile(Base):
    """Public profile row, one per identity."""

    __tablename__ = 'user_profiles'

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, comment='User ID')
    email: Mapped[str] = mapped_column(sa.String(255), index=True, comment='Profile email')
    full_name: Mapped[str | None] = mapped_column(sa.String(255), default=None, comment='Display name')


class UserAccountState(Base):
    """
    Coarse account flags.

    Not an access decision (that is always recomputed); used to flip an
    account to a terminal state ahead of physical deletion so access checks
    fail closed.
    """

    __tablename__ = 'user_account_state'

    id: Mapped[id_key] = mapped_column(init=False)
    user_id: Mapped[str] = mapped_column(sa.String(36), unique=True, index=True, comment='User ID')
    account_status: Mapped[str] = mapped_column(
        sa.String(32), default='trial_active', comment='trial_active, subscribed, deleted, ...'
    )
    has_access: Mapped[bool] = mapped_column(default=True, comment='Coarse access flag')
    access_level: Mapped[str] = mapped_column(sa.String(32), default='trial', comment='trial, paid, suspended')
    trial_days_remaining: Mapped[int] = mapped_column(default=0, comment='Days left when last written')
