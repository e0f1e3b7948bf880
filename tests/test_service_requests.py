def _release(api, title="Single"):
    return api.post("/api/releases", json={"title": title}).get_json()["release"]


def test_requests_need_login(client):
    assert client.get("/api/youtube-claims").status_code == 401


def test_youtube_claim(artist, login):
    r = artist.post("/api/youtube-claims", json={"videoUrls": "  "})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Video URLs are required"

    rel = _release(artist)
    r = artist.post("/api/youtube-claims", json={"videoUrls": "https://youtu.be/abc", "releaseId": rel["id"]})
    assert r.status_code == 201
    claim = r.get_json()
    assert claim["status"] == "PENDING"
    assert claim["releaseId"] == rel["id"]
    assert claim["processedAt"] is None

    other = login("other@example.com")
    r = other.post("/api/youtube-claims", json={"videoUrls": "https://youtu.be/x", "releaseId": rel["id"]})
    assert r.status_code == 403
    assert other.get(f"/api/youtube-claims/{claim['id']}").status_code == 403
    assert other.get("/api/youtube-claims").get_json() == []

    mine = artist.get("/api/youtube-claims").get_json()
    assert [c["id"] for c in mine] == [claim["id"]]
    assert artist.get(f"/api/youtube-claims/{claim['id']}").get_json()["videoUrls"] == "https://youtu.be/abc"


def test_oac_needs_three_releases_and_one_pending_request(artist):
    payload = {"channelLink": "https://youtube.com/@asha", "legalName": "Asha A", "channelName": "Asha"}

    assert artist.post("/api/youtube-oac", json={"channelLink": "x"}).status_code == 400

    _release(artist, "One")
    _release(artist, "Two")
    r = artist.post("/api/youtube-oac", json=payload)
    assert r.status_code == 400
    assert "at least 3" in r.get_json()["error"]

    _release(artist, "Three")
    r = artist.post("/api/youtube-oac", json=payload)
    assert r.status_code == 201

    r = artist.post("/api/youtube-oac", json=payload)
    assert r.status_code == 400
    assert r.get_json()["error"] == "You already have a pending OAC request"


def test_social_media_linking_platform_rules(artist):
    base = {"email": "asha@example.com", "label": "Asha Music", "isrc": "INABC2500001"}

    assert artist.post("/api/social-media-linking", json={**base, "platforms": "tiktok"}).status_code == 400
    r = artist.post("/api/social-media-linking", json={**base, "platforms": "facebook"})
    assert r.get_json()["error"] == "Facebook Page URL is required"
    r = artist.post("/api/social-media-linking", json={**base, "platforms": "instagram"})
    assert r.get_json()["error"] == "Instagram Handle is required"
    r = artist.post(
        "/api/social-media-linking", json={**base, "platforms": "both", "facebookPageUrl": "https://fb.com/asha"}
    )
    assert r.status_code == 400

    r = artist.post(
        "/api/social-media-linking",
        json={**base, "platforms": "both", "facebookPageUrl": "https://fb.com/asha", "instagramHandle": "@asha"},
    )
    assert r.status_code == 201
    assert r.get_json()["platforms"] == "both"


def test_artist_profile_linking_needs_a_url(artist):
    base = {"artistName": "Asha", "email": "asha@example.com"}
    r = artist.post("/api/artist-profile-linking", json=base)
    assert r.status_code == 400
    assert r.get_json()["error"] == "At least one platform URL is required"

    r = artist.post("/api/artist-profile-linking", json={**base, "spotifyUrl": "https://open.spotify.com/artist/1"})
    assert r.status_code == 201
    assert r.get_json()["spotifyUrl"] == "https://open.spotify.com/artist/1"


def test_admin_processes_requests(artist, admin):
    claim = artist.post("/api/youtube-claims", json={"videoUrls": "https://youtu.be/abc"}).get_json()

    assert artist.get("/api/admin/youtube-claims").status_code == 403

    listed = admin.get("/api/admin/youtube-claims?status=PENDING").get_json()
    assert [c["id"] for c in listed] == [claim["id"]]
    assert listed[0]["user"]["email"] == "artist@example.com"
    assert admin.get("/api/admin/youtube-claims?status=DONE").status_code == 400

    r = admin.patch(f"/api/admin/youtube-claims/{claim['id']}", json={"status": "finished"})
    assert r.status_code == 400

    r = admin.patch(f"/api/admin/youtube-claims/{claim['id']}", json={"status": "processing"})
    assert r.status_code == 200
    assert r.get_json()["status"] == "PROCESSING"
    assert r.get_json()["processedAt"] is None

    r = admin.patch(f"/api/admin/youtube-claims/{claim['id']}", json={"status": "COMPLETED", "adminNotes": "Claimed"})
    body = r.get_json()
    assert body["status"] == "COMPLETED"
    assert body["adminNotes"] == "Claimed"
    assert body["processedAt"] is not None

    assert admin.get("/api/admin/youtube-claims?status=PENDING").get_json() == []
    assert admin.patch("/api/admin/youtube-oac-requests/999", json={"status": "REJECTED"}).status_code == 404
