"""Storage for uploaded video bytes.

Transcoding and distribution of video payloads live outside the access core; the
ledger only keeps the opaque file reference returned by ``MediaStore.save``.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import AsyncIterator

from ulid import ULID

from social.tube.pod.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".webm", ".mp4", ".ogv")


def video_extension(filename: str) -> str:
    """Return the lowercase extension of an accepted video filename."""
    _, extension = os.path.splitext(filename or "")
    extension = extension.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError.unsupported_media(filename)
    return extension


class MediaStore(ABC):
    @abstractmethod
    async def save(self, chunks: AsyncIterator[bytes], filename: str) -> str:
        """Persist the streamed bytes and return the file reference."""

    @abstractmethod
    async def remove(self, file_ref: str) -> None:
        """Discard stored bytes. Unknown references are ignored."""


class LocalMediaStore(MediaStore):
    """Writes uploads to a local directory, named ``<ulid><extension>``."""

    def __init__(self, root: str) -> None:
        self.root = root

    def _path(self, file_ref: str) -> str:
        return os.path.join(self.root, os.path.basename(file_ref))

    async def save(self, chunks: AsyncIterator[bytes], filename: str) -> str:
        file_ref = f"{str(ULID()).lower()}{video_extension(filename)}"
        path = self._path(file_ref)
        await asyncio.to_thread(os.makedirs, self.root, exist_ok=True)

        fd = await asyncio.to_thread(open, path, "wb")
        try:
            async for chunk in chunks:
                await asyncio.to_thread(fd.write, chunk)
        except BaseException:
            await asyncio.to_thread(fd.close)
            await self.remove(file_ref)
            raise
        await asyncio.to_thread(fd.close)

        logger.debug("Stored upload %s as %s", filename, file_ref)
        return file_ref

    async def remove(self, file_ref: str) -> None:
        path = self._path(file_ref)
        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError:
            logger.debug("Media file already gone: %s", file_ref)
