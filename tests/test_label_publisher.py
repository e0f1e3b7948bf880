def test_lookup_management(artist, admin):
    assert artist.post("/api/admin/publishers", json={"name": "Saregama"}).status_code == 403

    r = admin.post("/api/admin/publishers", json={"name": "Saregama"})
    assert r.status_code == 201
    pub = r.get_json()
    assert admin.post("/api/admin/publishers", json={"name": "saregama "}).status_code == 409
    assert admin.post("/api/admin/content-types", json={"name": " "}).status_code == 400
    assert admin.post("/api/admin/album-categories", json={"name": "Single"}).status_code == 201

    assert [p["name"] for p in artist.get("/api/metadata/publishers").get_json()] == ["Saregama"]
    assert [c["name"] for c in artist.get("/api/metadata/album-categories").get_json()] == ["Single"]

    rel = artist.post("/api/releases", json={"title": "With publisher", "publisherId": pub["id"]}).get_json()["release"]
    assert rel["publisherId"] == pub["id"]

    assert admin.delete(f"/api/admin/publishers/{pub['id']}").status_code == 200
    assert admin.delete(f"/api/admin/publishers/{pub['id']}").status_code == 404
    assert artist.get(f"/api/releases/{rel['id']}").get_json()["release"]["publisherId"] is None


def test_artists_create_and_search(artist):
    r = artist.post("/api/metadata/artists", json={"name": "Arijit Singh"})
    assert r.status_code == 201
    created = r.get_json()

    r = artist.post("/api/metadata/artists", json={"name": "arijit singh"})
    assert r.status_code == 200
    assert r.get_json()["id"] == created["id"]

    artist.post("/api/metadata/artists", json={"name": "Shreya Ghoshal"})
    found = artist.get("/api/metadata/artists/search?q=ari").get_json()
    assert [a["name"] for a in found] == ["Arijit Singh"]
    assert artist.get("/api/metadata/artists/search?q=").get_json() == []
    assert len(artist.get("/api/metadata/artists").get_json()) == 2


def test_custom_label_request_flow(artist, admin, login):
    assert artist.post("/api/custom-labels", json={"name": ""}).status_code == 400

    r = artist.post("/api/custom-labels", json={"name": "Asha Records"})
    assert r.status_code == 201
    req = r.get_json()
    assert req["status"] == "PENDING"

    assert artist.patch(f"/api/custom-labels/{req['id']}/approve").status_code == 403

    r = admin.patch(f"/api/custom-labels/{req['id']}/approve")
    assert r.status_code == 200
    body = r.get_json()
    assert body["request"]["status"] == "APPROVED"
    assert body["label"]["userId"] == req["userId"]

    assert admin.patch(f"/api/custom-labels/{req['id']}/approve").status_code == 400
    assert artist.post("/api/custom-labels", json={"name": "asha records"}).status_code == 409

    mine = [x["name"] for x in artist.get("/api/metadata/sub-labels").get_json()]
    assert "Asha Records" in mine
    other = login("other@example.com")
    assert "Asha Records" not in [x["name"] for x in other.get("/api/metadata/sub-labels").get_json()]

    # a private sub-label cannot be attached to someone else's release
    label_id = body["label"]["id"]
    r = other.post("/api/releases", json={"title": "Borrowed", "subLabelId": label_id})
    assert r.status_code == 400
    r = artist.post("/api/releases", json={"title": "Mine", "subLabelId": label_id})
    assert r.status_code == 201


def test_custom_label_reject(artist, admin):
    req = artist.post("/api/custom-labels", json={"name": "Night Owl"}).get_json()
    r = admin.patch(f"/api/custom-labels/{req['id']}/reject", json={"adminNotes": "Trademark clash"})
    assert r.status_code == 200
    assert r.get_json()["status"] == "REJECTED"
    assert r.get_json()["adminNotes"] == "Trademark clash"

    assert [x["status"] for x in artist.get("/api/custom-labels").get_json()] == ["REJECTED"]
    assert len(admin.get("/api/custom-labels").get_json()) == 1


def test_global_defaults_and_effective_label(artist, admin):
    assert artist.get("/api/label-publisher/global-defaults").get_json() == {
        "defaultLabel": "Internet Records",
        "defaultPublisher": "Internet Records",
    }
    assert artist.put("/api/admin/settings/global-defaults", json={"defaultLabel": "X"}).status_code == 403
    assert admin.put("/api/admin/settings/global-defaults", json={}).status_code == 400
    assert admin.put("/api/admin/settings/global-defaults", json={"defaultLabel": " "}).status_code == 400

    r = admin.put("/api/admin/settings/global-defaults", json={"defaultLabel": "IR Music"})
    assert r.status_code == 200
    assert r.get_json()["defaultLabel"] == "IR Music"

    assert artist.get("/api/profile/label").get_json() == {"label": "IR Music", "isCustom": False}

    r = artist.put("/api/label-publisher/user-preferences", json={"customLabel": "Asha Music"})
    assert r.get_json()["customLabel"] == "Asha Music"
    assert artist.get("/api/profile/label").get_json() == {"label": "Asha Music", "isCustom": True}
    assert artist.get("/api/profile/publisher").get_json() == {"publisher": "Internet Records", "isCustom": False}


def test_user_labels_and_publishers(artist, login):
    r = artist.post("/api/label-publisher/user-labels", json={"labelName": "Asha Music"})
    assert r.status_code == 201
    row = r.get_json()
    assert artist.post("/api/label-publisher/user-labels", json={"labelName": "Asha Music"}).status_code == 400

    assert artist.post("/api/label-publisher/user-publishers", json={"publisherName": "Asha Pub"}).status_code == 201
    assert [p["publisherName"] for p in artist.get("/api/label-publisher/user-publishers").get_json()] == ["Asha Pub"]

    other = login("other@example.com")
    assert other.delete(f"/api/label-publisher/user-labels/{row['id']}").status_code == 404
    assert artist.delete(f"/api/label-publisher/user-labels/{row['id']}").status_code == 200
    assert artist.get("/api/label-publisher/user-labels").get_json() == []


def test_profile_completeness(artist):
    r = artist.get("/api/profile/completeness").get_json()
    assert r["isComplete"] is False
    assert set(r["missingFields"]) == {"legalName", "mobile", "address", "entityName"}

    assert artist.put("/api/profile", json={"name": ""}).status_code == 400

    r = artist.put(
        "/api/profile",
        json={
            "name": "Asha Artist",
            "legalName": "Asha A. Rao",
            "mobile": "+91 90000 00000",
            "address": "12 MG Road, Bengaluru",
            "entityName": "Asha Music LLP",
        },
    )
    assert r.status_code == 200
    assert r.get_json()["entityName"] == "Asha Music LLP"

    r = artist.get("/api/profile/completeness").get_json()
    assert r == {"isComplete": True, "missingFields": [], "message": "Profile is complete"}
