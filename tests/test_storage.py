import io
import logging

import pytest
from PIL import Image

from twilsta.core.exceptions import AppError
from twilsta.services import storage_service
from twilsta.services.storage_service import (
    AVATAR_UPLOAD,
    STORY_UPLOAD,
    LocalStorage,
    TransformProfile,
    delete_media_quietly,
    transform_image,
)


def _png(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), (200, 10, 10, 255)).save(buf, format="PNG")
    return buf.getvalue()


def test_fill_crops_to_exact_box():
    data, width, height = transform_image(_png(800, 600), AVATAR_UPLOAD.transform)
    assert (width, height) == (400, 400)
    with Image.open(io.BytesIO(data)) as image:
        assert image.format == "JPEG"
        assert image.size == (400, 400)


def test_fit_keeps_aspect_ratio():
    _, width, height = transform_image(_png(2160, 1080), STORY_UPLOAD.transform)
    assert (width, height) == (1080, 540)


def test_fit_never_upscales():
    _, width, height = transform_image(_png(300, 200), TransformProfile(1080, 1920, "fit"))
    assert (width, height) == (300, 200)


def test_invalid_image_is_rejected():
    with pytest.raises(AppError) as excinfo:
        transform_image(b"definitely not an image", AVATAR_UPLOAD.transform)
    assert excinfo.value.code == "FILE_VALIDATION_ERROR"


def test_local_storage_save_and_delete(tmp_path):
    storage = LocalStorage(base_dir=str(tmp_path), base_url="http://cdn.test/")
    stored = storage.save(_png(800, 600), folder="avatars", key="avatar_u1_1", content_type="image/png", transform=AVATAR_UPLOAD.transform)

    assert stored.url == "http://cdn.test/uploads/avatars/avatar_u1_1.jpg"
    assert stored.media_type == "IMAGE"
    assert (stored.width, stored.height) == (400, 400)
    assert (tmp_path / "avatars" / "avatar_u1_1.jpg").exists()

    assert storage.delete(stored.url) is True
    assert storage.delete(stored.url) is False
    assert not (tmp_path / "avatars" / "avatar_u1_1.jpg").exists()


def test_local_storage_keeps_videos_untouched(tmp_path):
    storage = LocalStorage(base_dir=str(tmp_path), base_url="http://cdn.test")
    stored = storage.save(b"\x00\x00video", folder="posts", key="post_u1_1", content_type="video/mp4", transform=STORY_UPLOAD.transform)

    assert stored.media_type == "VIDEO"
    assert stored.width is None
    assert (tmp_path / "posts" / "post_u1_1.mp4").read_bytes() == b"\x00\x00video"


def test_local_storage_refuses_paths_outside_base(tmp_path):
    storage = LocalStorage(base_dir=str(tmp_path / "media"), base_url="http://cdn.test")
    outside = tmp_path / "secret.txt"
    outside.write_text("keep")

    assert storage.delete("http://cdn.test/uploads/../secret.txt") is False
    assert storage.delete("http://elsewhere.test/secret.txt") is False
    assert outside.exists()


def test_delete_media_quietly_swallows_failures(fake_storage, caplog):
    fake_storage.fail_deletes = True
    logger = logging.getLogger("twilsta")
    logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.WARNING, logger="twilsta"):
            assert delete_media_quietly("http://media.test/uploads/posts/x", context="test") is False
    finally:
        logger.removeHandler(caplog.handler)

    assert "media_delete_failed" in caplog.text
    assert delete_media_quietly(None, context="test") is False


def test_get_storage_defaults_to_local(monkeypatch):
    monkeypatch.setattr(storage_service, "_storage", None)
    assert isinstance(storage_service.get_storage(), LocalStorage)
