"""
Tests for the chunked image store and the public image stream.
"""
import pytest

from admin_panel.articles.router import _guarded_chunks
from admin_panel.images.storage import ImageNotFound, ImageStore


def leaf_errors(exc):
    """Flatten exception groups raised through anyio task groups."""
    if hasattr(exc, "exceptions"):
        return [leaf for inner in exc.exceptions for leaf in leaf_errors(inner)]
    return [exc]


async def failing_after_first_chunk(self, file_id):
    yield b"01234"
    raise RuntimeError("chunk store down")


class TestImageStore:

    async def test_chunks_are_read_back_in_order(self, context):
        store = ImageStore(context.session_factory, chunk_size=4)
        stored = await store.save(b"0123456789", "digits.bin", "application/octet-stream")
        assert stored.size == 10
        chunks = [chunk async for chunk in store.iter_chunks(stored.file_id)]
        assert chunks == [b"0123", b"4567", b"89"]

    async def test_get_missing_file(self, context):
        with pytest.raises(ImageNotFound):
            await context.images.get(12345)

    async def test_delete_is_idempotent(self, context):
        stored = await context.images.save(b"abc", "a.png", "image/png")
        await context.images.delete(stored.file_id)
        await context.images.delete(stored.file_id)
        with pytest.raises(ImageNotFound):
            await context.images.get(stored.file_id)

    async def test_chunk_size_must_be_positive(self, context):
        with pytest.raises(ValueError):
            ImageStore(context.session_factory, chunk_size=0)


class TestStreamImage:

    async def test_stream_is_public_with_headers(self, client, context, editor, make_article):
        payload = b"\x89PNG" + b"\x00" * 600_000  # spans several chunks
        image = await context.images.save(payload, 'my "holiday"/pic.png', "image/png")
        article = await make_article(editor, image=image)

        response = await client.get(f"/api/articles/{article.id}/image")
        assert response.status_code == 200
        assert response.content == payload
        assert response.headers["content-type"] == "image/png"
        assert response.headers["cache-control"] == "public, max-age=3600"
        assert response.headers["content-disposition"] == 'inline; filename="my _holiday__pic.png"'

    async def test_missing_mimetype_and_name_fall_back(self, client, context, editor, make_article):
        image = await context.images.save(b"raw", None, None)
        article = await make_article(editor, image=image)

        response = await client.get(f"/api/articles/{article.id}/image")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/octet-stream"
        assert response.headers["content-disposition"] == 'inline; filename="article-image"'

    async def test_article_without_image(self, client, editor, make_article):
        article = await make_article(editor)
        response = await client.get(f"/api/articles/{article.id}/image")
        assert response.status_code == 404
        assert response.json() == {"error": "Image not found"}

    async def test_unknown_article(self, client, context):
        response = await client.get("/api/articles/999/image")
        assert response.status_code == 404
        assert response.json() == {"error": "Image not found"}

    async def test_blob_gone_from_store(self, client, context, editor, make_article):
        image = await context.images.save(b"soon gone", "x.png", "image/png")
        article = await make_article(editor, image=image)
        await context.images.delete(image.file_id)

        response = await client.get(f"/api/articles/{article.id}/image")
        assert response.status_code == 404
        assert response.json() == {"error": "Image not found"}

    async def test_store_failure_before_streaming(self, client, context, editor, make_article, monkeypatch):
        image = await context.images.save(b"data", "x.png", "image/png")
        article = await make_article(editor, image=image)

        async def broken_get(self, file_id):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(ImageStore, "get", broken_get)
        response = await client.get(f"/api/articles/{article.id}/image")
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to stream image"}

    async def test_read_error_mid_stream_propagates(self, context, monkeypatch):
        monkeypatch.setattr(ImageStore, "iter_chunks", failing_after_first_chunk)
        received = []
        with pytest.raises(RuntimeError, match="chunk store down"):
            async for chunk in _guarded_chunks(context.images, 1, 1):
                received.append(chunk)
        assert received == [b"01234"]

    async def test_read_error_mid_stream_aborts_the_response(self, client, context, editor, make_article,
                                                             monkeypatch):
        image = await context.images.save(b"0123456789", "x.png", "image/png")
        article = await make_article(editor, image=image)
        monkeypatch.setattr(ImageStore, "iter_chunks", failing_after_first_chunk)

        # The status line has gone out already, so the only signal left is an aborted body
        with pytest.raises(Exception) as excinfo:
            await client.get(f"/api/articles/{article.id}/image")
        assert any(
            isinstance(e, RuntimeError) and "chunk store down" in str(e) for e in leaf_errors(excinfo.value)
        )
