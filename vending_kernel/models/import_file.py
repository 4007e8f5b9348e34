"""
Module: vending_kernel.models.import_file
Responsibility: Metadata of an archived copy of an uploaded spreadsheet.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - batch_id is unique: at most one archived file per import batch.
    - Rows exist only when the archive sink returned a receipt; missing
      rows mean archiving was disabled or failed, never that the import
      failed.
"""

from datetime import datetime

from sqlalchemy import Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from vending_kernel.db.base import Base, UTCDateTime


class ImportFile(Base):
    """Archive handle for the original bytes of one import batch."""

    __tablename__ = "import_files"

    batch_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_ref: Mapped[str] = mapped_column(String(255), nullable=False)
    message_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.current_timestamp(),
        nullable=False,
    )
