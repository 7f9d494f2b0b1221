"""Trial record model."""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from access_backend.common.model import Base, TimeZone, id_key


class UserTrial(Base):
    """
    Per-user free-trial window and deletion scheduling.

    ``deletion_scheduled_at`` is set only for ``scheduled_for_deletion`` and
    ``canceled`` trials; see ``trial_state_fields``.
    """

    __tablename__ = 'user_trials'

    id: Mapped[id_key] = mapped_column(init=False)
    user_id: Mapped[str] = mapped_column(sa.String(36), unique=True, index=True, comment='User ID')
    trial_start: Mapped[datetime] = mapped_column(TimeZone, comment='Trial window start')
    trial_end: Mapped[datetime] = mapped_column(TimeZone, index=True, comment='Trial window end')
    trial_status: Mapped[str] = mapped_column(
        sa.String(32),
        default='active',
        index=True,
        comment='active, expired, converted_to_paid, scheduled_for_deletion, canceled, deleted',
    )
    deletion_scheduled_at: Mapped[datetime | None] = mapped_column(
        TimeZone, default=None, index=True, comment='When the account is due for teardown'
    )
