import os

import pytest

from social.tube.pod.errors import ValidationError
from social.tube.pod.library.media import LocalMediaStore, video_extension


async def chunks(*parts):
    for part in parts:
        yield part


def test_video_extension():
    assert video_extension("clip.WEBM") == ".webm"
    assert video_extension("clip.mp4") == ".mp4"
    with pytest.raises(ValidationError):
        video_extension("clip.exe")
    with pytest.raises(ValidationError):
        video_extension("")


class TestLocalMediaStore:
    """Chunked writes under the uploads directory."""

    async def test_save_and_remove(self, tmp_path):
        store = LocalMediaStore(str(tmp_path / "uploads"))

        file_ref = await store.save(chunks(b"abc", b"def"), "holiday.webm")

        assert file_ref.endswith(".webm")
        path = tmp_path / "uploads" / file_ref
        assert path.read_bytes() == b"abcdef"

        await store.remove(file_ref)
        assert not path.exists()

        # Removing twice is not an error.
        await store.remove(file_ref)

    async def test_save_rejects_unknown_types(self, tmp_path):
        store = LocalMediaStore(str(tmp_path / "uploads"))

        with pytest.raises(ValidationError):
            await store.save(chunks(b"abc"), "script.sh")

        assert not os.path.exists(tmp_path / "uploads") or not os.listdir(tmp_path / "uploads")

    async def test_failed_upload_leaves_no_file(self, tmp_path):
        store = LocalMediaStore(str(tmp_path / "uploads"))

        async def broken():
            yield b"abc"
            raise ConnectionResetError("client went away")

        with pytest.raises(ConnectionResetError):
            await store.save(broken(), "clip.webm")

        assert os.listdir(tmp_path / "uploads") == []
