"""Config backup download models.

The ``FILEDOWNLOAD`` handshake interleaves JSON status records with raw
binary chunks on ``stat/<device>/FILEDOWNLOAD``. JSON records are parsed
into :class:`FileDownloadReply`; everything else is file data.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from pydantic import Field

from pytasmota.models._base import TasmotaBaseModel


class FileDownloadStatus(enum.StrEnum):
    """Known values of the ``FileDownload`` status field."""

    STARTED = "Started"
    ABORTED = "Aborted"
    DONE = "Done"
    INVALID_PASSWORD = "Error 1"
    BAD_CHUNK_SIZE = "Error 2"
    INVALID_FILE_TYPE = "Error 3"


class FileDownloadReply(TasmotaBaseModel):
    """One JSON record of the download handshake.

    All fields are optional; a record may carry only a status or only the
    file metadata.
    """

    status: str | None = Field(default=None, validation_alias="FileDownload")
    file: str | None = Field(default=None, validation_alias="File")
    size: int | None = Field(default=None, validation_alias="Size")
    id: int | None = Field(default=None, validation_alias="Id")
    type: int | None = Field(default=None, validation_alias="Type")
    md5: str | None = Field(default=None, validation_alias="Md5")


@dataclass(frozen=True)
class DownloadedFile:
    """A downloaded config backup, returned verbatim from the device."""

    name: str
    data: bytes
