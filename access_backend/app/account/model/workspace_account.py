"""Workspace (Axie Studio) account link."""

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from access_backend.common.model import Base, id_key


class WorkspaceAccount(Base):
    """
    Minimal local cache of a user's external workspace account.

    The workspace product owns the account lifecycle; only the identifiers
    and the last known active flag are kept here. Passwords are never stored.
    """

    __tablename__ = 'workspace_accounts'

    id: Mapped[id_key] = mapped_column(init=False)
    user_id: Mapped[str] = mapped_column(sa.String(36), unique=True, index=True, comment='User ID')
    email: Mapped[str] = mapped_column(sa.String(255), index=True, comment='Workspace login email')
    workspace_user_id: Mapped[str | None] = mapped_column(
        sa.String(255), default=None, comment='User ID inside the workspace product'
    )
    is_active: Mapped[bool] = mapped_column(default=True, comment='Last known active flag')
