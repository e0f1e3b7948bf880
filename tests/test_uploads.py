import io

import pytest
from botocore.exceptions import EndpointConnectionError
from PIL import Image

from app.distro.modules.uploads.service import (
    UploadError,
    build_storage_key,
    check_file_name,
    file_extension,
    inspect_artwork,
)
from app.distro.storage import S3Storage, StorageError


def _release_with_track(api):
    rel = api.post("/api/releases", json={"title": "Uploads"}).get_json()["release"]
    track = api.post(f"/api/releases/{rel['id']}/tracks", json={"title": "Song"}).get_json()["track"]
    return rel, track


def _png(width, height, fmt="PNG"):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 40, 40)).save(buf, format=fmt)
    buf.seek(0)
    return buf


def test_check_file_name():
    assert check_file_name("AUDIO", "My Song.MP3") == ".mp3"
    assert check_file_name("ARTWORK", "cover.jpeg") == ".jpeg"
    with pytest.raises(UploadError, match="AUDIO or ARTWORK"):
        check_file_name("VIDEO", "clip.mp4")
    with pytest.raises(UploadError):
        check_file_name("AUDIO", "song.wav")
    with pytest.raises(UploadError):
        check_file_name("ARTWORK", "cover")


def test_non_latin_file_names_keep_their_extension(artist):
    assert check_file_name("AUDIO", "गाना.mp3") == ".mp3"
    assert check_file_name("ARTWORK", "आवरण.PNG") == ".png"
    assert file_extension("C:\\music\\song.MP3") == ".mp3"
    assert file_extension("../../cover.jpg") == ".jpg"

    rel, _ = _release_with_track(artist)
    r = artist.post(
        "/api/upload/presigned-url",
        json={"fileType": "AUDIO", "fileName": "गाना.mp3", "releaseId": rel["id"]},
    )
    assert r.status_code == 200
    assert r.get_json()["fileUrl"].endswith(".mp3")


def test_storage_keys_are_scoped_to_release():
    k1 = build_storage_key(7, "AUDIO", ".mp3")
    k2 = build_storage_key(7, "AUDIO", ".mp3")
    assert k1.startswith("releases/7/audio/") and k1.endswith(".mp3")
    assert k1 != k2
    assert build_storage_key(7, "ARTWORK", ".png").startswith("releases/7/artwork/")


def test_audio_upload_and_link(artist, admin):
    rel, track = _release_with_track(artist)

    r = artist.post("/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "song.mp3", "releaseId": rel["id"]})
    assert r.status_code == 200
    issued = r.get_json()
    assert issued["uploadUrl"].startswith("/storage/")
    assert issued["fileUrl"].startswith(f"releases/{rel['id']}/audio/")

    r = artist.client.put(issued["uploadUrl"], data=b"ID3-fake-mp3-bytes", content_type="audio/mpeg")
    assert r.status_code == 200

    r = artist.post("/api/upload/track-audio", json={"trackId": track["id"], "audioUrl": issued["fileUrl"]})
    assert r.status_code == 200
    assert r.get_json()["track"]["audioUrl"] == issued["fileUrl"]

    downloads = admin.get(f"/api/admin/releases/{rel['id']}/downloads").get_json()["downloads"]
    assert [(d["type"], d["name"]) for d in downloads] == [("AUDIO", "Song")]
    r = admin.client.get(downloads[0]["url"])
    assert r.status_code == 200
    assert r.data == b"ID3-fake-mp3-bytes"
    r.close()


def test_audio_from_another_release_is_refused(artist):
    rel_a, track_a = _release_with_track(artist)
    rel_b, _ = _release_with_track(artist)
    issued = artist.post(
        "/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "b.mp3", "releaseId": rel_b["id"]}
    ).get_json()

    r = artist.post("/api/upload/track-audio", json={"trackId": track_a["id"], "audioUrl": issued["fileUrl"]})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Audio file does not belong to this release"

    r = artist.post(
        "/api/upload/track-audio",
        json={"trackId": track_a["id"], "audioUrl": f"releases/{rel_a['id']}/audio/../../{rel_b['id']}/audio/x.mp3"},
    )
    assert r.status_code == 400


def test_artwork_upload_sets_release_artwork(artist):
    rel, _ = _release_with_track(artist)
    issued = artist.post(
        "/api/upload/presigned-url", json={"fileType": "ARTWORK", "fileName": "cover.png", "releaseId": rel["id"]}
    ).get_json()

    body = artist.get(f"/api/releases/{rel['id']}").get_json()["release"]
    assert body["artworkKey"] == issued["fileUrl"]
    assert body["artworkUrl"] is None

    artist.client.put(issued["uploadUrl"], data=_png(1400, 1400).getvalue(), content_type="image/png")
    body = artist.get(f"/api/releases/{rel['id']}").get_json()["release"]
    assert body["artworkUrl"].startswith("/storage/")


def test_presign_validation(artist, login):
    rel, _ = _release_with_track(artist)

    r = artist.post("/api/upload/presigned-url", json={"fileType": "AUDIO", "releaseId": rel["id"]})
    assert r.status_code == 400
    r = artist.post("/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "a.flac", "releaseId": rel["id"]})
    assert r.status_code == 400
    r = artist.post("/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "a.mp3", "releaseId": 9999})
    assert r.status_code == 404

    other = login("other@example.com")
    r = other.post("/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "a.mp3", "releaseId": rel["id"]})
    assert r.status_code == 403


def test_presign_refused_once_release_is_locked(artist, admin):
    rel, _ = _release_with_track(artist)
    artist.post(f"/api/releases/{rel['id']}/submit")
    admin.post(f"/api/admin/releases/{rel['id']}/approve")

    r = artist.post("/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "a.mp3", "releaseId": rel["id"]})
    assert r.status_code == 400
    assert r.get_json()["action"] == "edit"


def test_storage_token_cannot_be_reused_for_another_operation(artist):
    rel, _ = _release_with_track(artist)
    issued = artist.post(
        "/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "a.mp3", "releaseId": rel["id"]}
    ).get_json()
    assert artist.client.get(issued["uploadUrl"]).status_code == 404
    assert artist.client.put("/storage/not-a-token", data=b"x").status_code == 403


def test_inspect_artwork():
    assert inspect_artwork(_png(1400, 1400)).ok
    assert inspect_artwork(_png(3000, 3000, "JPEG")).as_dict()["format"] == "JPEG"

    report = inspect_artwork(_png(1000, 800))
    assert not report.ok
    assert "Artwork must be square" in report.errors
    assert any("at least 1400" in e for e in report.errors)

    assert "Artwork must be a JPEG or PNG image" in inspect_artwork(_png(1500, 1500, "GIF")).errors
    assert inspect_artwork(io.BytesIO(b"not an image")).errors == ["File is not a readable image"]


def test_artwork_check_endpoint(artist):
    r = artist.post(
        "/api/upload/artwork/check",
        data={"file": (_png(1600, 1600), "cover.png")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 200
    assert r.get_json() == {"ok": True, "width": 1600, "height": 1600, "format": "PNG", "errors": []}

    r = artist.post("/api/upload/artwork/check", data={}, content_type="multipart/form-data")
    assert r.status_code == 400


class _UnreachableS3:
    def __getattr__(self, name):
        def call(*args, **kwargs):
            raise EndpointConnectionError(endpoint_url="https://s3.invalid")

        return call


def _use_unreachable_s3(app, monkeypatch):
    monkeypatch.setattr(S3Storage, "_client", lambda self: _UnreachableS3())
    app.config.update(
        STORAGE_BACKEND="s3",
        S3_ENDPOINT="s3.invalid",
        S3_BUCKET="distro",
        S3_ACCESS_KEY_ID="key",
        S3_SECRET_ACCESS_KEY="secret",
    )


def test_s3_connection_errors_become_storage_errors(monkeypatch):
    monkeypatch.setattr(S3Storage, "_client", lambda self: _UnreachableS3())
    storage = S3Storage(endpoint="s3.invalid", region="", bucket="b", access_key_id="k", secret_access_key="s")
    with pytest.raises(StorageError):
        storage.exists("releases/1/artwork/a.png")
    with pytest.raises(StorageError):
        storage.presigned_download_url("releases/1/artwork/a.png")
    with pytest.raises(StorageError):
        storage.put_bytes("k", b"x")


def test_release_views_survive_unreachable_storage(app, artist, admin, monkeypatch):
    rel, track = _release_with_track(artist)
    artwork = artist.post(
        "/api/upload/presigned-url", json={"fileType": "ARTWORK", "fileName": "cover.png", "releaseId": rel["id"]}
    ).get_json()
    audio = artist.post(
        "/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "song.mp3", "releaseId": rel["id"]}
    ).get_json()
    artist.post("/api/upload/track-audio", json={"trackId": track["id"], "audioUrl": audio["fileUrl"]})

    _use_unreachable_s3(app, monkeypatch)

    r = artist.get("/api/releases")
    assert r.status_code == 200
    assert r.get_json()["releases"][0]["artworkKey"] == artwork["fileUrl"]
    assert r.get_json()["releases"][0]["artworkUrl"] is None
    assert artist.get(f"/api/releases/{rel['id']}").get_json()["release"]["artworkUrl"] is None

    r = admin.get(f"/api/admin/releases/{rel['id']}/downloads")
    assert r.status_code == 503
    assert r.get_json()["error"] == "Storage is unavailable"

    r = artist.post("/api/upload/presigned-url", json={"fileType": "AUDIO", "fileName": "b.mp3", "releaseId": rel["id"]})
    assert r.status_code == 503
