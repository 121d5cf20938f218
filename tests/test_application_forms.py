"""Tests for the application form builder and its public endpoints."""

from memberhub.models.application_form import ApplicationForm
from memberhub.services.application_forms import form_for_plan, merge_fields

CUSTOM_FIELDS = [
    {"name": "studentId", "label": "Student ID", "type": "text", "required": True, "order": 5},
    {"name": "contactEmail", "label": "Contact", "type": "email", "required": False, "order": 6},
]


def _save(client, headers, **extra):
    payload = {"title": "Join the club", "terms": "Be nice", "fields": CUSTOM_FIELDS}
    payload.update(extra)
    return client.post("/api/application-form", json=payload, headers=headers)


def _names(fields):
    return [f["name"] for f in fields]


def test_merge_fields_keeps_contact_defaults():
    fields = merge_fields([{"name": "phone", "label": "Mobile", "type": "tel", "required": True}])
    assert _names(fields) == ["firstName", "lastName", "email", "phone"]
    assert fields[-1]["label"] == "Mobile"
    assert "contactEmail" not in _names(merge_fields(CUSTOM_FIELDS))


def test_owner_gets_default_form_before_saving(client, owner, auth_headers):
    r = client.get("/api/application-form", headers=auth_headers(owner))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["id"] is None
    assert data["title"] == "Membership Application"
    assert data["isPublished"] is False
    assert _names(data["fields"]) == ["firstName", "lastName", "phone"]


def test_save_publish_and_read_publicly(client, owner, auth_headers):
    headers = auth_headers(owner)
    r = _save(client, headers)
    assert r.status_code == 200
    form = r.json()["data"]
    assert form["createdBy"] == owner.id
    assert form["isPublished"] is False
    assert _names(form["fields"]) == ["firstName", "lastName", "phone", "studentId"]

    # unpublished forms stay private
    assert client.get("/api/public/application-form").status_code == 404
    assert client.get(f"/api/public/application-form/plan/{form['id']}").status_code == 404

    r = client.post("/api/application-form/publish", headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["isPublished"] is True

    for url in (
        "/api/public/application-form",
        f"/api/public/application-form/{owner.id}",
        f"/api/public/application-form/plan/{form['id']}",
    ):
        r = client.get(url)
        assert r.status_code == 200
        assert r.json()["data"]["title"] == "Join the club"

    r = client.post("/api/application-form/unpublish", json={"id": form["id"]}, headers=headers)
    assert r.json()["data"]["isPublished"] is False
    assert client.get(f"/api/public/application-form/{owner.id}").status_code == 404


def test_editing_a_form_unpublishes_it(client, owner, auth_headers):
    headers = auth_headers(owner)
    form_id = _save(client, headers).json()["data"]["id"]
    client.post("/api/application-form/publish", json={"id": form_id}, headers=headers)

    r = _save(client, headers, id=form_id, title="Updated")
    assert r.json()["data"]["id"] == form_id
    assert r.json()["data"]["isPublished"] is False
    assert len(client.get("/api/application-form/all", headers=headers).json()["data"]) == 1


def test_forms_of_other_owners_are_hidden(client, owner, make_user, auth_headers):
    form_id = _save(client, auth_headers(owner)).json()["data"]["id"]
    stranger = auth_headers(make_user())

    assert _save(client, stranger, id=form_id).status_code == 404
    assert client.post("/api/application-form/publish", json={"id": form_id}, headers=stranger).status_code == 404
    assert client.post("/api/application-form/publish", headers=stranger).status_code == 404
    assert client.delete(f"/api/application-form/{form_id}", headers=stranger).status_code == 404


def test_form_endpoints_need_auth(client):
    assert client.get("/api/application-form").status_code == 401
    assert client.post("/api/application-form", json={"title": "x"}).status_code == 401


def test_plan_specific_form(client, db, owner, make_plan, auth_headers):
    headers = auth_headers(owner)
    general_id = _save(client, headers, title="General").json()["data"]["id"]
    special_id = _save(client, headers, title="Gym waiver").json()["data"]["id"]
    client.post("/api/application-form/publish", json={"id": general_id}, headers=headers)
    client.post("/api/application-form/publish", json={"id": special_id}, headers=headers)

    plan = make_plan()
    r = client.put(
        f"/api/plans/{plan.id}",
        json={"applicationFormId": special_id, "useDefaultForm": False},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["applicationFormId"] == special_id

    r = client.get(f"/api/public/plans/{plan.id}/application-form")
    assert r.json()["data"]["title"] == "Gym waiver"

    # back to the organization form
    client.put(f"/api/plans/{plan.id}", json={"useDefaultForm": True}, headers=headers)
    db.refresh(plan)
    assert form_for_plan(db, plan).id == special_id  # the latest published form of the owner

    client.post("/api/application-form/unpublish", json={"id": special_id}, headers=headers)
    client.put(f"/api/plans/{plan.id}", json={"useDefaultForm": False}, headers=headers)
    db.refresh(plan)
    assert form_for_plan(db, plan).id == general_id


def test_plan_cannot_link_foreign_form(client, owner, make_user, make_plan, auth_headers):
    other = make_user()
    foreign_id = _save(client, auth_headers(other)).json()["data"]["id"]
    plan = make_plan()
    r = client.put(f"/api/plans/{plan.id}", json={"applicationFormId": foreign_id}, headers=auth_headers(owner))
    assert r.status_code == 400
    assert r.json()["message"] == "Application form not found"


def test_deleting_a_form_unlinks_plans(client, db, owner, make_plan, auth_headers):
    headers = auth_headers(owner)
    form_id = _save(client, headers).json()["data"]["id"]
    plan = make_plan(application_form_id=form_id, use_default_form=False)

    r = client.delete(f"/api/application-form/{form_id}", headers=headers)
    assert r.status_code == 200
    db.refresh(plan)
    assert plan.application_form_id is None
    assert db.get(ApplicationForm, form_id) is None
