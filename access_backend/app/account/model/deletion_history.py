"""Account deletion history.

Append-only and keyed by email so it outlives the account. It is the only
record that stops a deleted user from signing up again for a fresh trial.
"""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from access_backend.common.model import Base, TimeZone, id_key


class DeletionHistory(Base):
    __tablename__ = 'deletion_history'

    id: Mapped[id_key] = mapped_column(init=False)
    email: Mapped[str] = mapped_column(sa.String(255), index=True, comment='Email of the deleted account')
    original_user_id: Mapped[str] = mapped_column(sa.String(36), comment='User ID at deletion time')
    deleted_at: Mapped[datetime] = mapped_column(TimeZone, comment='Deletion time')
    has_used_trial: Mapped[bool] = mapped_column(default=True, comment='A trial was consumed')
    ever_subscribed: Mapped[bool] = mapped_column(default=False, comment='A subscription ever existed')
    deletion_reason: Mapped[str] = mapped_column(sa.String(64), default='immediate_deletion', comment='Why')
