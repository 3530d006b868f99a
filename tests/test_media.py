"""Tests for media payload resolution."""

import asyncio
import base64
from unittest.mock import MagicMock, patch

import pytest
import requests

from warelay.domain import media as media_module
from warelay.domain.media import (
    MediaFromInlineData,
    MediaFromUrl,
    ResolvedMedia,
    resolve_media,
    resolve_media_async,
)
from warelay.errors import MediaResolutionError

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"
PNG_B64 = base64.b64encode(PNG_BYTES).decode()


def _mock_response(chunks, content_type="image/png"):
    resp = MagicMock()
    resp.__enter__.return_value = resp
    resp.iter_content.return_value = chunks
    resp.headers = {"Content-Type": content_type} if content_type else {}
    return resp


class TestInlineMedia:
    def test_valid_base64(self):
        resolved = resolve_media(MediaFromInlineData(mimetype="image/png", data=PNG_B64))
        assert resolved == ResolvedMedia(mimetype="image/png", data=PNG_B64)

    def test_data_uri_prefix_stripped_and_mimetype_taken(self):
        resolved = resolve_media(
            MediaFromInlineData(mimetype="", data=f"data:image/jpeg;base64,{PNG_B64}")
        )
        assert resolved.mimetype == "image/jpeg"
        assert resolved.data == PNG_B64

    def test_explicit_mimetype_wins_over_data_uri(self):
        resolved = resolve_media(
            MediaFromInlineData(mimetype="image/png", data=f"data:image/jpeg;base64,{PNG_B64}")
        )
        assert resolved.mimetype == "image/png"

    def test_whitespace_in_base64_removed(self):
        wrapped = PNG_B64[:4] + "\n" + PNG_B64[4:]
        resolved = resolve_media(MediaFromInlineData(mimetype="image/png", data=wrapped))
        assert resolved.data == PNG_B64

    def test_invalid_base64(self):
        with pytest.raises(MediaResolutionError, match="invalid base64"):
            resolve_media(MediaFromInlineData(mimetype="image/png", data="not base64!!"))

    def test_missing_mimetype(self):
        with pytest.raises(MediaResolutionError, match="mimetype"):
            resolve_media(MediaFromInlineData(mimetype="", data=PNG_B64))

    def test_oversized_inline(self):
        with patch.object(media_module, "MAX_MEDIA_BYTES", 4):
            with pytest.raises(MediaResolutionError, match="exceeds"):
                resolve_media(MediaFromInlineData(mimetype="image/png", data=PNG_B64))


class TestUrlMedia:
    def test_download_encodes_and_keeps_filename(self):
        resp = _mock_response([PNG_BYTES[:4], PNG_BYTES[4:]], "image/png; charset=binary")
        with patch("warelay.domain.media.requests.get", return_value=resp) as get:
            resolved = resolve_media(MediaFromUrl(url="https://cdn.test/img/photo.png?x=1"))

        assert resolved.mimetype == "image/png"
        assert base64.b64decode(resolved.data) == PNG_BYTES
        assert resolved.filename == "photo.png"
        assert get.call_args.kwargs["stream"] is True

    def test_mimetype_guessed_from_extension(self):
        resp = _mock_response([b"%PDF-1.4"], content_type=None)
        with patch("warelay.domain.media.requests.get", return_value=resp):
            resolved = resolve_media(MediaFromUrl(url="https://cdn.test/report.pdf"))
        assert resolved.mimetype == "application/pdf"
        assert resolved.kind == "document"

    def test_network_error(self):
        with patch(
            "warelay.domain.media.requests.get",
            side_effect=requests.ConnectionError("refused"),
        ):
            with pytest.raises(MediaResolutionError, match="could not download"):
                resolve_media(MediaFromUrl(url="https://cdn.test/a.png"))

    def test_http_error(self):
        resp = _mock_response([])
        resp.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
        with patch("warelay.domain.media.requests.get", return_value=resp):
            with pytest.raises(MediaResolutionError):
                resolve_media(MediaFromUrl(url="https://cdn.test/missing.png"))

    def test_empty_download(self):
        with patch("warelay.domain.media.requests.get", return_value=_mock_response([])):
            with pytest.raises(MediaResolutionError, match="empty"):
                resolve_media(MediaFromUrl(url="https://cdn.test/a.png"))

    def test_oversized_download_stops(self):
        resp = _mock_response([b"12345", b"67890"])
        with patch.object(media_module, "MAX_MEDIA_BYTES", 6):
            with patch("warelay.domain.media.requests.get", return_value=resp):
                with pytest.raises(MediaResolutionError, match="exceeds"):
                    resolve_media(MediaFromUrl(url="https://cdn.test/a.png"))

    @pytest.mark.parametrize("url", ["ftp://cdn.test/a.png", "/relative/a.png", "file:///etc/passwd"])
    def test_non_http_url_rejected(self, url):
        with patch("warelay.domain.media.requests.get") as get:
            with pytest.raises(MediaResolutionError, match="http"):
                resolve_media(MediaFromUrl(url=url))
        get.assert_not_called()

    def test_async_wrapper(self):
        resolved = asyncio.run(
            resolve_media_async(MediaFromInlineData(mimetype="image/png", data=PNG_B64))
        )
        assert resolved.data == PNG_B64


class TestResolvedMediaKind:
    @pytest.mark.parametrize(
        "mimetype, kind",
        [
            ("image/png", "image"),
            ("video/mp4", "video"),
            ("audio/ogg", "audio"),
            ("application/pdf", "document"),
            ("text/plain", "document"),
        ],
    )
    def test_kind(self, mimetype, kind):
        assert ResolvedMedia(mimetype=mimetype, data="").kind == kind
