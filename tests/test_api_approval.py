"""
Approval & form submission API tests.

Tests cover:
  - Authentication (401 without / with a bad token)
  - POST /forms/<id>/submit  → 201, routed or auto-approved; 400/403/404
  - POST /approval/<id>/action → advance, complete, reject; 400/403/404
  - GET  /approval/pending, /forms/<rid>/progress, /responses/mine
  - Flow configuration (admin only): GET / POST / PUT /approval/flow
  - Error mapping for routing failures (500 ERR_ROUTING / ERR_CONFIGURATION)
"""
import pytest


TWO_STEPS = [
    {"step": 1, "role_required": "hod"},
    {"step": 2, "role_required": "college dean"},
]


def _answers(form):
    return [{"question_id": q.id, "answer_text": "Please"} for q in form.questions.all()]


@pytest.fixture()
def form(org, make_form, make_flow):
    f = make_form("Change of Supervisor")
    make_flow(f, TWO_STEPS)
    return f


@pytest.fixture()
def submitted(client, org, form, auth_headers):
    res = client.post(
        f"/api/v1/forms/{form.id}/submit",
        json={"answers": _answers(form)},
        headers=auth_headers(org.student_cs),
    )
    assert res.status_code == 201
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════
# AUTHENTICATION
# ═════════════════════════════════════════════════════════════════════════

class TestAuthentication:
    def test_health_is_public(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_missing_token(self, client, form):
        res = client.post(f"/api/v1/forms/{form.id}/submit", json={"answers": _answers(form)})
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_garbage_token(self, client, form):
        res = client.get("/api/v1/approval/pending", headers={"Authorization": "Bearer nope"})
        assert res.status_code == 401

    def test_token_for_deleted_user(self, client, org, auth_headers):
        from app.models import db
        headers = auth_headers(org.sps_subdean)
        db.session.delete(org.sps_subdean)
        db.session.commit()
        assert client.get("/api/v1/approval/pending", headers=headers).status_code == 401

    def test_request_id_header(self, client, org, auth_headers):
        res = client.get(
            "/api/v1/approval/pending",
            headers={**auth_headers(org.hod_cs), "X-Request-ID": "abc123"},
        )
        assert res.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in res.headers


# ═════════════════════════════════════════════════════════════════════════
# SUBMIT
# ═════════════════════════════════════════════════════════════════════════

class TestSubmit:
    def test_routed(self, submitted, org):
        assert submitted["outcome"] == "routed"
        assert submitted["response"]["status"] == "pending"
        assert submitted["approval"]["step_number"] == 1
        assert submitted["approval"]["approver_id"] == org.hod_cs.id

    def test_auto_approved_without_flow(self, client, org, make_form, auth_headers):
        f = make_form("No Flow")
        res = client.post(
            f"/api/v1/forms/{f.id}/submit",
            json={"answers": _answers(f)},
            headers=auth_headers(org.student_cs),
        )
        assert res.status_code == 201
        data = res.get_json()
        assert data["outcome"] == "auto_approved"
        assert data["response"]["status"] == "approved"
        assert data["approval"] is None

    def test_unknown_form(self, client, org, auth_headers):
        res = client.post(
            "/api/v1/forms/9999/submit",
            json={"answers": [{"question_id": 1, "answer_text": "x"}]},
            headers=auth_headers(org.student_cs),
        )
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_empty_answers(self, client, org, form, auth_headers):
        res = client.post(
            f"/api/v1/forms/{form.id}/submit", json={"answers": []},
            headers=auth_headers(org.student_cs),
        )
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_wrong_initiator(self, client, org, make_form, auth_headers):
        f = make_form("Students Only", initiator="student")
        res = client.post(
            f"/api/v1/forms/{f.id}/submit", json={"answers": _answers(f)},
            headers=auth_headers(org.hod_cs),
        )
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_unknown_role_in_flow(self, client, org, make_form, make_flow, auth_headers):
        f = make_form("Broken")
        make_flow(f, [{"step": 1, "role_required": "chancellor"}])
        res = client.post(
            f"/api/v1/forms/{f.id}/submit", json={"answers": _answers(f)},
            headers=auth_headers(org.student_cs),
        )
        assert res.status_code == 500
        assert res.get_json()["code"] == "ERR_CONFIGURATION"


# ═════════════════════════════════════════════════════════════════════════
# DECISIONS
# ═════════════════════════════════════════════════════════════════════════

class TestAction:
    def _act(self, client, headers, approval_id, **body):
        return client.post(f"/api/v1/approval/{approval_id}/action", json=body, headers=headers)

    def test_full_round_trip(self, client, org, submitted, auth_headers):
        res = self._act(client, auth_headers(org.hod_cs), submitted["approval"]["id"], action="approved")
        assert res.status_code == 200
        data = res.get_json()
        assert data["outcome"] == "advanced"
        assert data["approval"]["step_number"] == 2
        assert data["approval"]["approver_id"] == org.dean_sci.id

        res = self._act(client, auth_headers(org.dean_sci), data["approval"]["id"], action="approved")
        assert res.status_code == 200
        assert res.get_json()["outcome"] == "completed"
        assert res.get_json()["response"]["status"] == "approved"

    def test_reject(self, client, org, submitted, auth_headers):
        res = self._act(
            client, auth_headers(org.hod_cs), submitted["approval"]["id"],
            action="rejected", comment="Missing signature",
        )
        assert res.status_code == 200
        data = res.get_json()
        assert data["outcome"] == "rejected"
        assert data["decided"]["comment"] == "Missing signature"
        assert data["response"]["status"] == "rejected"

    def test_missing_action(self, client, org, submitted, auth_headers):
        res = self._act(client, auth_headers(org.hod_cs), submitted["approval"]["id"])
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_invalid_action(self, client, org, submitted, auth_headers):
        res = self._act(client, auth_headers(org.hod_cs), submitted["approval"]["id"], action="defer")
        assert res.status_code == 400

    def test_not_assigned(self, client, org, submitted, auth_headers):
        res = self._act(client, auth_headers(org.dean_sci), submitted["approval"]["id"], action="approved")
        assert res.status_code == 403

    def test_decided_twice(self, client, org, submitted, auth_headers):
        headers = auth_headers(org.hod_cs)
        approval_id = submitted["approval"]["id"]
        assert self._act(client, headers, approval_id, action="approved").status_code == 200
        res = self._act(client, headers, approval_id, action="approved")
        assert res.status_code == 403
        assert "already" in res.get_json()["error"]

    def test_unknown_approval(self, client, org, auth_headers):
        assert self._act(client, auth_headers(org.hod_cs), 9999, action="approved").status_code == 404

    def test_unstaffed_next_step(self, client, org, make_form, make_flow, auth_headers):
        f = make_form("Unstaffed")
        make_flow(f, [
            {"step": 1, "role_required": "hod"},
            {"step": 2, "role_required": "college pg coordinator"},
        ])
        res = client.post(
            f"/api/v1/forms/{f.id}/submit", json={"answers": _answers(f)},
            headers=auth_headers(org.student_cs),
        )
        approval_id = res.get_json()["approval"]["id"]

        res = self._act(client, auth_headers(org.hod_cs), approval_id, action="approved")
        assert res.status_code == 500
        body = res.get_json()
        assert body["code"] == "ERR_ROUTING"
        assert body["details"] == {"role_required": "college pg coordinator", "step": 2}

        # Still open: the approver sees it in their queue.
        pending = client.get("/api/v1/approval/pending", headers=auth_headers(org.hod_cs)).get_json()
        assert [i["id"] for i in pending["items"]] == [approval_id]


# ═════════════════════════════════════════════════════════════════════════
# QUERIES
# ═════════════════════════════════════════════════════════════════════════

class TestQueries:
    def test_pending(self, client, org, submitted, auth_headers):
        res = client.get("/api/v1/approval/pending", headers=auth_headers(org.hod_cs))
        assert res.status_code == 200
        data = res.get_json()
        assert data["total"] == 1
        assert data["items"][0]["response"]["form_title"] == "Change of Supervisor"

        res = client.get("/api/v1/approval/pending", headers=auth_headers(org.dean_sci))
        assert res.get_json()["total"] == 0

    def test_progress(self, client, org, submitted, auth_headers):
        rid = submitted["response"]["id"]
        res = client.get(f"/api/v1/forms/{rid}/progress", headers=auth_headers(org.student_cs))
        assert res.status_code == 200
        data = res.get_json()
        assert data["current_step"] == 1
        assert data["approvals"][0]["approver_name"] == "Hod CS Test"
        assert data["answers"][0]["answer_text"] == "Please"

    def test_progress_forbidden(self, client, org, submitted, auth_headers):
        rid = submitted["response"]["id"]
        res = client.get(f"/api/v1/forms/{rid}/progress", headers=auth_headers(org.student_civil))
        assert res.status_code == 403

    def test_progress_unknown(self, client, org, auth_headers):
        res = client.get("/api/v1/forms/9999/progress", headers=auth_headers(org.admin))
        assert res.status_code == 404

    def test_my_submissions(self, client, org, submitted, auth_headers):
        res = client.get("/api/v1/responses/mine", headers=auth_headers(org.student_cs))
        assert res.status_code == 200
        assert [i["id"] for i in res.get_json()["items"]] == [submitted["response"]["id"]]


# ═════════════════════════════════════════════════════════════════════════
# FLOW CONFIGURATION
# ═════════════════════════════════════════════════════════════════════════

class TestFlowConfiguration:
    def test_create_and_get(self, client, org, make_form, auth_headers):
        f = make_form("New Form")
        res = client.post(
            "/api/v1/approval/flow",
            json={"form_id": f.id, "flow_definition": [TWO_STEPS[1], TWO_STEPS[0]]},
            headers=auth_headers(org.admin),
        )
        assert res.status_code == 201
        assert res.get_json()["flow_definition"] == TWO_STEPS

        res = client.get(f"/api/v1/approval/flow/{f.id}", headers=auth_headers(org.admin))
        assert res.status_code == 200
        assert res.get_json()["form_id"] == f.id

    def test_get_missing_flow(self, client, org, make_form, auth_headers):
        f = make_form()
        assert client.get(f"/api/v1/approval/flow/{f.id}", headers=auth_headers(org.admin)).status_code == 404

    def test_non_admin_forbidden(self, client, org, make_form, auth_headers):
        f = make_form()
        res = client.post(
            "/api/v1/approval/flow",
            json={"form_id": f.id, "flow_definition": TWO_STEPS},
            headers=auth_headers(org.hod_cs),
        )
        assert res.status_code == 403

    def test_non_admin_cannot_read_flow(self, client, org, form, auth_headers):
        for user in (org.student_cs, org.hod_cs):
            res = client.get(f"/api/v1/approval/flow/{form.id}", headers=auth_headers(user))
            assert res.status_code == 403
        assert client.get(f"/api/v1/approval/flow/{form.id}").status_code == 401

    def test_duplicate_flow(self, client, org, form, auth_headers):
        res = client.post(
            "/api/v1/approval/flow",
            json={"form_id": form.id, "flow_definition": TWO_STEPS},
            headers=auth_headers(org.admin),
        )
        assert res.status_code == 409

    def test_unknown_role_rejected(self, client, org, make_form, auth_headers):
        f = make_form()
        res = client.post(
            "/api/v1/approval/flow",
            json={"form_id": f.id, "flow_definition": [{"step": 1, "role_required": "chancellor"}]},
            headers=auth_headers(org.admin),
        )
        assert res.status_code == 400
        assert "steps[0]" in res.get_json()["details"]

    @pytest.mark.parametrize("body", [
        {"flow_definition": TWO_STEPS},
        {"form_id": "1", "flow_definition": TWO_STEPS},
        {"form_id": 1},
    ])
    def test_missing_fields(self, client, org, body, auth_headers):
        res = client.post("/api/v1/approval/flow", json=body, headers=auth_headers(org.admin))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_update(self, client, org, form, auth_headers):
        res = client.put(
            "/api/v1/approval/flow",
            json={"form_id": form.id, "flow_definition": [{"step": 1, "role_required": "dean sps"}]},
            headers=auth_headers(org.admin),
        )
        assert res.status_code == 200
        assert res.get_json()["flow_definition"] == [{"step": 1, "role_required": "dean sps"}]

    def test_update_without_flow(self, client, org, make_form, auth_headers):
        f = make_form()
        res = client.put(
            "/api/v1/approval/flow",
            json={"form_id": f.id, "flow_definition": TWO_STEPS},
            headers=auth_headers(org.admin),
        )
        assert res.status_code == 404
