import pytest

from conftest import add_stock, add_configuration, audit_entries, auth, order_payload
from pcshop.application.authorization import Actor
from pcshop.application.configurations import ConfigurationService
from pcshop.domain.errors import IllegalTransition, Forbidden, NotFound
from pcshop.domain.models import Configuration, ConfigurationStatus, Role
from pcshop.infrastructure.db import SessionLocal

OWNER = Actor("owner", Role.USER)
SPECIALIST = Actor("spec", Role.SPECIALIST)

LEGAL = {
    (ConfigurationStatus.DRAFT, "submit"),
    (ConfigurationStatus.SUBMITTED, "approve"),
    (ConfigurationStatus.SUBMITTED, "reject"),
    (ConfigurationStatus.APPROVED, "publish"),
}

def _state(config_id):
    with SessionLocal() as session:
        config = session.get(Configuration, config_id)
        return config.status, config.is_public, config.rejection_reason

def _run(service, action, config_id):
    if action == "submit":
        return service.submit(config_id, OWNER)
    if action == "approve":
        return service.approve(config_id, SPECIALIST)
    if action == "reject":
        return service.reject(config_id, SPECIALIST, "not good enough")
    return service.publish(config_id, SPECIALIST)

@pytest.fixture
def catalog():
    add_stock("cpu-1", 10, price="300.00")
    add_stock("ram-1", 10, price="50.00")

class TestStateMachine:
    @pytest.mark.parametrize("status", list(ConfigurationStatus))
    @pytest.mark.parametrize("action", ["submit", "approve", "reject", "publish"])
    def test_illegal_pairs_are_rejected_without_mutation(self, db, status, action):
        if (status, action) in LEGAL:
            pytest.skip("legal transition")
        config_id = add_configuration("owner", {"cpu-1": 1}, status=status)
        before = _state(config_id)

        with pytest.raises(IllegalTransition) as exc:
            _run(ConfigurationService(db), action, config_id)

        assert exc.value.current == status.value
        assert exc.value.requested == action
        assert _state(config_id) == before
        assert audit_entries(config_id) == []

    @pytest.mark.parametrize("action", ["submit", "approve", "reject", "publish"])
    def test_published_configuration_accepts_no_action(self, db, action):
        config_id = add_configuration("owner", {"cpu-1": 1}, status=ConfigurationStatus.APPROVED, is_public=True)

        with pytest.raises(IllegalTransition):
            _run(ConfigurationService(db), action, config_id)

        assert _state(config_id) == (ConfigurationStatus.APPROVED.value, True, None)

    def test_legal_path_reaches_publication(self, db):
        config_id = add_configuration("owner", {"cpu-1": 1})
        service = ConfigurationService(db)

        service.submit(config_id, OWNER)
        service.approve(config_id, SPECIALIST)
        published = service.publish(config_id, SPECIALIST)

        assert published.status == ConfigurationStatus.APPROVED.value
        assert published.is_public and published.is_template
        db.rollback()
        assert [entry[0] for entry in audit_entries(config_id)] == ["SUBMIT", "APPROVE", "PUBLISH"]

    def test_only_owner_submits(self, db):
        config_id = add_configuration("owner", {"cpu-1": 1})
        with pytest.raises(Forbidden):
            ConfigurationService(db).submit(config_id, Actor("someone-else", Role.USER))
        assert _state(config_id)[0] == ConfigurationStatus.DRAFT.value

    def test_users_cannot_review(self, db):
        config_id = add_configuration("owner", {"cpu-1": 1}, status=ConfigurationStatus.SUBMITTED)
        with pytest.raises(Forbidden):
            ConfigurationService(db).approve(config_id, OWNER)
        assert _state(config_id)[0] == ConfigurationStatus.SUBMITTED.value

    def test_missing_configuration(self, db):
        with pytest.raises(Forbidden):
            ConfigurationService(db).submit("missing", OWNER)
        with pytest.raises(NotFound):
            ConfigurationService(db).approve("missing", SPECIALIST)

def test_admin_rejects_with_reason(client):
    config_id = add_configuration("owner", {"cpu-1": 1}, status=ConfigurationStatus.SUBMITTED)

    resp = client.post(f"/configurations/{config_id}/reject", json={"reason": "price too high"},
                       headers=auth("admin", "ADMIN"))

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "REJECTED"
    assert body["isPublic"] is False
    assert body["rejectionReason"] == "price too high"
    rejects = audit_entries(config_id, "REJECT")
    assert len(rejects) == 1
    assert rejects[0][2]["reason"] == "price too high"

def test_reject_requires_a_reason(client):
    config_id = add_configuration("owner", {"cpu-1": 1}, status=ConfigurationStatus.SUBMITTED)
    headers = auth("spec", "SPECIALIST")

    assert client.post(f"/configurations/{config_id}/reject", json={"reason": ""}, headers=headers).status_code == 400
    blank = client.post(f"/configurations/{config_id}/reject", json={"reason": "   "}, headers=headers)

    assert blank.status_code == 400
    assert _state(config_id)[0] == ConfigurationStatus.SUBMITTED.value

def test_publish_only_from_approved(client):
    draft_id = add_configuration("owner", {"cpu-1": 1})

    resp = client.post(f"/configurations/{draft_id}/publish", headers=auth("spec", "SPECIALIST"))

    assert resp.status_code == 400
    assert resp.json()["code"] == "illegal_transition"
    assert resp.json()["currentState"] == "DRAFT"
    assert _state(draft_id) == ("DRAFT", False, None)

def test_review_workflow_over_http(client, catalog):
    owner, staff = auth("owner"), auth("spec", "SPECIALIST")
    created = client.post("/configurations", json={
        "name": "Streamer build",
        "components": [{"componentId": "cpu-1", "quantity": 1}, {"componentId": "ram-1", "quantity": 2}],
    }, headers=owner)
    assert created.status_code == 201
    config_id = created.json()["id"]
    assert created.json()["status"] == "DRAFT"
    assert created.json()["totalPrice"] == 400.0

    assert client.get("/configurations/public").json() == []
    assert client.post(f"/configurations/{config_id}/submit", headers=owner).json()["status"] == "SUBMITTED"
    assert client.post(f"/configurations/{config_id}/approve", headers=owner).status_code == 403
    pending = client.get("/configurations/pending", headers=staff).json()
    assert [c["id"] for c in pending] == [config_id]
    assert client.post(f"/configurations/{config_id}/approve", headers=staff).json()["status"] == "APPROVED"

    published = client.post(f"/configurations/{config_id}/publish", json={"name": "Streamer Pro"}, headers=staff)
    assert published.status_code == 200
    assert published.json()["isPublic"] is True
    assert published.json()["isTemplate"] is True
    assert published.json()["name"] == "Streamer Pro"

    public = client.get("/configurations/public").json()
    assert [c["id"] for c in public] == [config_id]
    assert client.get(f"/configurations/{config_id}").status_code == 200
    assert client.post(f"/configurations/{config_id}/publish", headers=staff).status_code == 400
    edit = client.patch(f"/configurations/{config_id}", json={"name": "Renamed"}, headers=staff)
    assert edit.status_code == 400

def test_pending_queue_is_staff_only(client):
    assert client.get("/configurations/pending", headers=auth("u1")).status_code == 403
    assert client.get("/configurations/pending").status_code == 401

class TestEditing:
    def test_price_is_recomputed_on_component_edit(self, client, catalog):
        owner = auth("owner")
        config_id = client.post("/configurations", json={
            "name": "Office", "components": [{"componentId": "cpu-1"}],
        }, headers=owner).json()["id"]

        resp = client.patch(f"/configurations/{config_id}", json={
            "components": [{"componentId": "cpu-1", "quantity": 1}, {"componentId": "ram-1", "quantity": 4}],
        }, headers=owner)

        assert resp.status_code == 200
        assert resp.json()["totalPrice"] == 500.0
        assert sorted((c["componentId"], c["quantity"]) for c in resp.json()["components"]) == [
            ("cpu-1", 1), ("ram-1", 4),
        ]

    def test_unknown_components_are_rejected(self, client, catalog):
        resp = client.post("/configurations", json={
            "name": "Mystery", "components": [{"componentId": "cpu-1"}, {"componentId": "flux-capacitor"}],
        }, headers=auth("owner"))

        assert resp.status_code == 400
        assert resp.json()["componentIds"] == ["flux-capacitor"]

    def test_owner_edits_only_drafts_staff_edit_unpublished(self, client, catalog):
        config_id = add_configuration("owner", {"cpu-1": 1}, status=ConfigurationStatus.SUBMITTED)

        assert client.patch(f"/configurations/{config_id}", json={"name": "Mine"},
                            headers=auth("owner")).status_code == 400
        resp = client.patch(f"/configurations/{config_id}", json={"description": "Reviewed"},
                            headers=auth("spec", "SPECIALIST"))
        assert resp.status_code == 200
        assert resp.json()["description"] == "Reviewed"
        assert client.patch(f"/configurations/{config_id}", json={"name": "Theirs"},
                            headers=auth("u2")).status_code == 403

    def test_private_configuration_hidden_from_others(self, client):
        config_id = add_configuration("owner", {"cpu-1": 1})

        assert client.get(f"/configurations/{config_id}", headers=auth("owner")).status_code == 200
        assert client.get(f"/configurations/{config_id}", headers=auth("u2")).status_code == 404
        assert client.get(f"/configurations/{config_id}").status_code == 404
        assert [c["id"] for c in client.get("/configurations", headers=auth("owner")).json()] == [config_id]

class TestDeletion:
    def test_owner_deletes_draft(self, client):
        config_id = add_configuration("owner", {"cpu-1": 1})
        assert client.delete(f"/configurations/{config_id}", headers=auth("owner")).status_code == 204
        assert client.get(f"/configurations/{config_id}", headers=auth("owner")).status_code == 404

    def test_owner_cannot_delete_submitted(self, client):
        config_id = add_configuration("owner", {"cpu-1": 1}, status=ConfigurationStatus.SUBMITTED)
        assert client.delete(f"/configurations/{config_id}", headers=auth("owner")).status_code == 400
        assert client.delete(f"/configurations/{config_id}", headers=auth("spec", "SPECIALIST")).status_code == 403
        assert client.delete(f"/configurations/{config_id}", headers=auth("admin", "ADMIN")).status_code == 204

    def test_configuration_in_orders_is_kept(self, client):
        config_id = add_configuration("owner", {"cpu-1": 1}, status=ConfigurationStatus.APPROVED,
                                      is_public=True, total_price="900.00")
        assert client.post("/orders", json=order_payload([(config_id, "CONFIGURATION", 1)])).status_code == 201

        resp = client.delete(f"/configurations/{config_id}", headers=auth("admin", "ADMIN"))

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cannot delete configuration because it is used in orders"
        assert [c["id"] for c in client.get("/configurations/public").json()] == [config_id]
