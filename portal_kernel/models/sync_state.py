"""
Module: portal_kernel.models.sync_state
Responsibility: Persistence of the NSI synchronization cursor and per-run
    statistics (table ``nsi_sync_state``).

Invariants enforced:
    - ``version`` is UNIQUE; re-applying the same version updates its row.
    - The cursor in effect is the row with the greatest (synced_at, version).
    - A row is written once per completed run, after all items were applied.
    - A fresh or reset system has version 0 ("fetch everything").
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import PortalBase


class NSISyncStateModel(PortalBase):
    __tablename__ = "nsi_sync_state"

    __table_args__ = (Index("ix_nsi_sync_state_synced_at", "synced_at"),)

    version: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    items_synced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<NSISyncState v{self.version} synced={self.items_synced} at {self.synced_at}>"
