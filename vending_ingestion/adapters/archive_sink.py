"""
Local-directory ArchiveSink.

Writes each upload as ``<directory>/<batch_id>_<file name>`` with the
caption beside it in a ``.txt`` file. Used by the command line tool when
archiving is enabled; deployments with a remote store supply their own sink.
"""

from __future__ import annotations

import re
from pathlib import Path

from vending_ingestion.domain.types import ArchiveReceipt

_UNSAFE_CHARS = re.compile(r"[^\w.\-]+")


class DirectoryArchiveSink:
    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def store(
        self,
        data: bytes,
        batch_id: str,
        file_name: str,
        caption: str,
    ) -> ArchiveReceipt | None:
        self.directory.mkdir(parents=True, exist_ok=True)
        safe_name = _UNSAFE_CHARS.sub("_", Path(file_name).name) or "upload.xlsx"
        target = self.directory / f"{batch_id}_{safe_name}"
        target.write_bytes(data)
        caption_path = target.with_name(target.name + ".txt")
        caption_path.write_text(caption, encoding="utf-8")
        return ArchiveReceipt(file_ref=str(target), message_ref=caption_path.name)
