import csv
import io
import urllib.request

import pytest

from app.distro.notifications import EmailJSClient, NotificationError, release_status_params


def _submitted_release(artist, *, title="Monsoon Sessions", tracks=("Rain",)):
    rel = artist.post("/api/releases", json={"title": title}).get_json()["release"]
    for t in tracks:
        r = artist.post(
            f"/api/releases/{rel['id']}/tracks",
            json={"title": t, "duration": 185, "genre": "Pop", "language": "Hindi", "isrc": "INABC2500001", "singer": "Asha"},
        )
        assert r.status_code == 201
    r = artist.post(f"/api/releases/{rel['id']}/submit")
    assert r.status_code == 200
    return rel


def test_artist_cannot_use_admin_routes(artist):
    r = artist.get("/api/admin/releases")
    assert r.status_code == 403
    assert r.get_json()["missingPermission"] == "releases.review"
    assert artist.get("/api/admin/users").status_code == 403


def test_review_queue_filters_by_status(artist, admin):
    rel = _submitted_release(artist)
    artist.post("/api/releases", json={"title": "Still a draft"})

    queue = admin.get("/api/admin/releases?status=UNDER_REVIEW").get_json()["releases"]
    assert [x["id"] for x in queue] == [rel["id"]]
    assert queue[0]["user"]["email"] == "artist@example.com"

    assert len(admin.get("/api/admin/releases").get_json()["releases"]) == 2
    assert admin.get("/api/admin/releases?status=NOPE").status_code == 400


def test_approve_then_distribute_locks_release(artist, admin):
    rel = _submitted_release(artist)

    r = admin.post(f"/api/admin/releases/{rel['id']}/approve")
    assert r.status_code == 200
    body = r.get_json()
    assert body["release"]["status"] == "APPROVED"
    assert body["emailSent"] is False

    r = artist.put(f"/api/releases/{rel['id']}", json={"title": "Changed"})
    assert r.status_code == 400
    assert r.get_json()["action"] == "edit"

    r = admin.post(f"/api/admin/releases/{rel['id']}/distribute")
    assert r.status_code == 200
    assert r.get_json()["release"]["status"] == "DISTRIBUTED"

    r = admin.post(f"/api/admin/releases/{rel['id']}/approve")
    assert r.status_code == 400


def test_reject_with_resubmission_then_resubmit(artist, admin):
    rel = _submitted_release(artist)

    r = admin.post(f"/api/admin/releases/{rel['id']}/reject", json={"allowResubmission": True})
    assert r.status_code == 400

    r = admin.post(
        f"/api/admin/releases/{rel['id']}/reject",
        json={"rejectionReason": "Artwork is blurry", "allowResubmission": True},
    )
    assert r.status_code == 200
    rejected = r.get_json()["release"]
    assert rejected["status"] == "REJECTED"
    assert rejected["rejectionReason"] == "Artwork is blurry"
    assert rejected["allowResubmission"] is True

    mine = artist.get(f"/api/releases/{rel['id']}").get_json()["release"]
    assert mine["rejectionReason"] == "Artwork is blurry"
    assert "submit" in mine["allowedActions"]

    assert artist.put(f"/api/releases/{rel['id']}", json={"title": "Fixed"}).status_code == 200
    r = artist.post(f"/api/releases/{rel['id']}/submit")
    assert r.status_code == 200
    again = r.get_json()["release"]
    assert again["status"] == "UNDER_REVIEW"
    assert again["rejectionReason"] is None

    events = admin.get("/api/admin/audit?action=release.resubmit").get_json()["events"]
    assert [e["entityId"] for e in events] == [str(rel["id"])]


def test_reject_without_resubmission_is_final(artist, admin):
    rel = _submitted_release(artist)
    r = admin.post(
        f"/api/admin/releases/{rel['id']}/reject",
        json={"rejectionReason": "Rights dispute", "allowResubmission": False},
    )
    assert r.status_code == 200

    assert artist.put(f"/api/releases/{rel['id']}", json={"title": "x"}).status_code == 400
    r = artist.post(f"/api/releases/{rel['id']}/submit")
    assert r.status_code == 400
    assert r.get_json()["status"] == "REJECTED"


def test_status_email_is_sent_when_configured(app, artist, admin, monkeypatch):
    sent = []
    monkeypatch.setattr(EmailJSClient, "send", lambda self, params: sent.append(params))
    app.config.update(EMAILJS_SERVICE_ID="svc", EMAILJS_TEMPLATE_ID="tpl", EMAILJS_PUBLIC_KEY="pub")

    rel = _submitted_release(artist, title="Dawn")
    r = admin.post(f"/api/admin/releases/{rel['id']}/approve")
    assert r.get_json()["emailSent"] is True
    assert sent[0]["to_email"] == "artist@example.com"
    assert sent[0]["song_name"] == "Dawn"
    assert sent[0]["singer_name"] == "Asha"
    assert sent[0]["song_status"] == "APPROVED"


class _StalledResponse:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def read(self):
        raise TimeoutError("The read operation timed out")


def test_email_timeout_does_not_undo_decision(app, artist, admin, monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", lambda req, timeout=None: _StalledResponse())
    with pytest.raises(NotificationError, match="timed out"):
        EmailJSClient(service_id="svc", template_id="tpl", public_key="pub").send({})

    app.config.update(EMAILJS_SERVICE_ID="svc", EMAILJS_TEMPLATE_ID="tpl", EMAILJS_PUBLIC_KEY="pub")
    rel = _submitted_release(artist, title="Dusk")
    r = admin.post(f"/api/admin/releases/{rel['id']}/approve")
    assert r.status_code == 200
    assert r.get_json()["emailSent"] is False
    assert r.get_json()["release"]["status"] == "APPROVED"


def test_release_status_params_fall_back_to_owner_name():
    from app.distro.models import User
    from app.distro.modules.releases.models import Release, Track

    rel = Release(title="Solo", status="REJECTED")
    rel.user = User(email="x@example.com", name="Xavier")
    rel.tracks.append(Track(title="One"))
    params = release_status_params(rel)
    assert params["singer_name"] == "Xavier"
    assert params["user_name"] == "Xavier"


def test_metadata_exports(artist, admin):
    rel = _submitted_release(artist, tracks=("Rain", "Thunder, Part 2"))

    r = admin.get(f"/api/admin/releases/{rel['id']}/metadata/json")
    assert r.status_code == 200
    data = r.get_json()
    assert data["release"]["title"] == "Monsoon Sessions"
    assert data["artist"]["email"] == "artist@example.com"
    assert [t["title"] for t in data["tracks"]] == ["Rain", "Thunder, Part 2"]

    r = admin.get(f"/api/admin/releases/{rel['id']}/metadata/csv")
    assert r.status_code == 200
    assert r.mimetype == "text/csv"
    assert f"release-{rel['id']}-metadata.csv" in r.headers["Content-Disposition"]
    rows = list(csv.reader(io.StringIO(r.get_data(as_text=True))))
    assert rows[0] == ["Track Title", "Artist", "Duration", "Genre", "Language", "ISRC"]
    assert rows[1] == ["Rain", "Asha Artist", "3:05", "Pop", "Hindi", "INABC2500001"]
    assert rows[2][0] == "Thunder, Part 2"


def test_downloads_list_only_uploaded_files(artist, admin):
    rel = _submitted_release(artist)
    r = admin.get(f"/api/admin/releases/{rel['id']}/downloads")
    assert r.status_code == 200
    assert r.get_json() == {"release": {"id": rel["id"], "title": "Monsoon Sessions"}, "downloads": []}


def test_admin_deletes_track_and_release_in_any_state(artist, admin):
    rel = _submitted_release(artist, tracks=("A", "B"))
    admin.post(f"/api/admin/releases/{rel['id']}/approve")
    tracks = artist.get(f"/api/releases/{rel['id']}").get_json()["release"]["tracks"]

    assert artist.delete(f"/api/releases/tracks/{tracks[0]['id']}").status_code == 400
    assert admin.delete(f"/api/admin/tracks/{tracks[0]['id']}").status_code == 200

    assert admin.delete(f"/api/admin/releases/{rel['id']}").status_code == 200
    assert artist.get(f"/api/releases/{rel['id']}").status_code == 404


def test_user_role_change_and_delete(user_id, artist, admin):
    artist_id = user_id("artist@example.com")
    admin_id = user_id("admin@example.com")

    users = admin.get("/api/admin/users").get_json()["users"]
    assert {u["email"] for u in users} >= {"artist@example.com", "admin@example.com"}

    assert admin.patch(f"/api/admin/users/{artist_id}/role", json={"role": "owner"}).status_code == 400
    assert admin.patch(f"/api/admin/users/{admin_id}/role", json={"role": "artist"}).status_code == 400

    r = admin.patch(f"/api/admin/users/{artist_id}/role", json={"role": "label"})
    assert r.status_code == 200
    assert r.get_json()["user"]["role"] == "LABEL"

    assert admin.delete(f"/api/admin/users/{admin_id}").status_code == 400
    artist.post("/api/releases", json={"title": "Gone soon"})
    assert admin.delete(f"/api/admin/users/{artist_id}").status_code == 200
    assert admin.get("/api/admin/releases").get_json()["releases"] == []
    assert artist.get("/api/auth/me").status_code == 401
