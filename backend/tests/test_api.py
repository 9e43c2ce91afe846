"""
API tests for eventfin.

Verifies:
- Unauthenticated requests return 401
- Viewers can read but not write (403)
- Cross-organization access is refused (403)
- Budget -> expense -> approval -> ROI flow through the HTTP surface
- Notifications, activity logs, auth and health endpoints
"""

import pytest

from eventfin.models import ApprovalWorkflow, Expense


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/v1/events/1/budgets"),
            ("POST", "/api/v1/events/1/budgets"),
            ("GET", "/api/v1/budgets/1"),
            ("PUT", "/api/v1/budgets/1/finalize"),
            ("POST", "/api/v1/budgets/1/clone"),
            ("GET", "/api/v1/expenses"),
            ("POST", "/api/v1/events/1/expenses"),
            ("POST", "/api/v1/expenses/1/approval"),
            ("GET", "/api/v1/events/1/roi"),
            ("POST", "/api/v1/events/1/insights/generate"),
            ("GET", "/api/v1/activity-logs"),
            ("GET", "/api/v1/notifications"),
            ("GET", "/api/v1/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_bad_token_rejected(self, client, db_session):
        resp = client.get("/api/v1/expenses", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


# =============================================================================
# AUTH
# =============================================================================


class TestAuth:

    def test_login_and_me(self, client, finance_a):
        resp = client.post("/api/v1/auth/login", json={"email": finance_a.email, "password": "Password123!"})
        assert resp.status_code == 200
        token = resp.json["token"]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json["role"] == "finance"
        assert me.json["org_id"] == finance_a.org_id

    def test_wrong_password(self, client, finance_a):
        resp = client.post("/api/v1/auth/login", json={"email": finance_a.email, "password": "nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/v1/auth/login", json={"email": "x@acme.test"})
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, finance_headers):
        assert client.post("/api/v1/auth/logout", headers=finance_headers).status_code == 200
        assert client.get("/api/v1/auth/me", headers=finance_headers).status_code == 401


# =============================================================================
# ROLES: viewer reads, cannot write
# =============================================================================


class TestViewerAccess:

    def test_viewer_can_read(self, client, event_a, viewer_headers):
        assert client.get(f"/api/v1/events/{event_a.id}/budgets", headers=viewer_headers).status_code == 200
        assert client.get("/api/v1/expenses", headers=viewer_headers).status_code == 200
        assert client.get(f"/api/v1/events/{event_a.id}/insights", headers=viewer_headers).status_code == 200
        assert client.get(f"/api/v1/events/{event_a.id}/activity-logs", headers=viewer_headers).status_code == 200

    @pytest.mark.parametrize(
        "method,path_template,body",
        [
            ("POST", "/api/v1/events/{event_id}/budgets", {"versionNumber": 1}),
            ("POST", "/api/v1/events/{event_id}/expenses", {"title": "Taxi", "amount": 20}),
            ("POST", "/api/v1/events/{event_id}/roi/calculate", None),
            ("POST", "/api/v1/events/{event_id}/insights", None),
        ],
    )
    def test_viewer_cannot_write(self, client, event_a, viewer_headers, method, path_template, body):
        path = path_template.format(event_id=event_a.id)
        resp = getattr(client, method.lower())(path, json=body, headers=viewer_headers)
        assert resp.status_code == 403
        assert resp.json["error"] == "Permission denied"

    def test_viewer_cannot_read_org_activity(self, client, viewer_headers):
        assert client.get("/api/v1/activity-logs", headers=viewer_headers).status_code == 403

    def test_admin_reads_org_activity(self, client, event_a, admin_headers):
        client.post(f"/api/v1/events/{event_a.id}/budgets", json={"versionNumber": 1}, headers=admin_headers)

        resp = client.get("/api/v1/activity-logs", headers=admin_headers)

        assert resp.status_code == 200
        assert [log["action"] for log in resp.json["logs"]] == ["budget.created"]


# =============================================================================
# TENANT ISOLATION
# =============================================================================


class TestCrossOrganization:

    def test_other_org_event_forbidden(self, client, event_a, finance_b_headers):
        resp = client.get(f"/api/v1/events/{event_a.id}/budgets", headers=finance_b_headers)
        assert resp.status_code == 403

        resp = client.post(
            f"/api/v1/events/{event_a.id}/expenses",
            json={"title": "Sneaky", "amount": 5},
            headers=finance_b_headers,
        )
        assert resp.status_code == 403

    def test_other_org_expense_hidden_from_listing(self, client, event_a, finance_headers, finance_b_headers):
        client.post(f"/api/v1/events/{event_a.id}/expenses", json={"title": "Taxi", "amount": 20}, headers=finance_headers)

        resp = client.get("/api/v1/expenses", headers=finance_b_headers)

        assert resp.status_code == 200
        assert resp.json["expenses"] == []

    def test_missing_event_not_found(self, client, finance_headers):
        assert client.get("/api/v1/events/99999/roi", headers=finance_headers).status_code == 404


# =============================================================================
# BUDGETS
# =============================================================================


class TestBudgetRoutes:

    def test_create_clone_finalize(self, client, event_a, finance_headers):
        resp = client.post(
            f"/api/v1/events/{event_a.id}/budgets",
            json={
                "versionNumber": 1,
                "items": [{"category": "venue", "itemName": "Hall", "quantity": 2, "unitCost": 100}],
            },
            headers=finance_headers,
        )
        assert resp.status_code == 201
        budget_id = resp.json["id"]
        assert resp.json["total_estimated_cost"] == 200

        clone = client.post(f"/api/v1/budgets/{budget_id}/clone", headers=finance_headers)
        assert clone.status_code == 201
        assert clone.json["version_number"] == 2
        assert clone.json["is_final"] is False

        final = client.put(f"/api/v1/budgets/{clone.json['id']}/finalize", headers=finance_headers)
        assert final.status_code == 200
        assert final.json["is_final"] is True

        listing = client.get(f"/api/v1/events/{event_a.id}/budgets", headers=finance_headers)
        assert [(b["version_number"], b["is_final"]) for b in listing.json["budgets"]] == [(2, True), (1, False)]

    def test_null_estimated_cost_is_computed(self, client, event_a, finance_headers):
        resp = client.post(
            f"/api/v1/events/{event_a.id}/budgets",
            json={
                "versionNumber": 1,
                "items": [{"category": "venue", "itemName": "Hall", "quantity": 2, "unitCost": 100, "estimatedCost": None}],
            },
            headers=finance_headers,
        )
        assert resp.status_code == 201
        assert resp.json["total_estimated_cost"] == 200

    def test_duplicate_version_conflict(self, client, event_a, finance_headers):
        body = {"versionNumber": 1}
        assert client.post(f"/api/v1/events/{event_a.id}/budgets", json=body, headers=finance_headers).status_code == 201
        resp = client.post(f"/api/v1/events/{event_a.id}/budgets", json=body, headers=finance_headers)
        assert resp.status_code == 409

    def test_invalid_line_item(self, client, event_a, finance_headers):
        resp = client.post(
            f"/api/v1/events/{event_a.id}/budgets",
            json={"versionNumber": 1, "items": [{"category": "venue", "itemName": "Hall", "unitCost": -1}]},
            headers=finance_headers,
        )
        assert resp.status_code == 400

    def test_line_item_crud(self, client, event_a, finance_headers):
        budget = client.post(
            f"/api/v1/events/{event_a.id}/budgets", json={"versionNumber": 1}, headers=finance_headers
        ).json

        item = client.post(
            f"/api/v1/budgets/{budget['id']}/line-items",
            json={"category": "catering", "itemName": "Lunch", "quantity": 50, "unitCost": 12},
            headers=finance_headers,
        )
        assert item.status_code == 201
        assert item.json["estimated_cost"] == 600

        updated = client.put(
            f"/api/v1/budgets/line-items/{item.json['id']}",
            json={"quantity": 60},
            headers=finance_headers,
        )
        assert updated.status_code == 200
        assert updated.json["estimated_cost"] == 720

        deleted = client.delete(f"/api/v1/budgets/line-items/{item.json['id']}", headers=finance_headers)
        assert deleted.status_code == 200
        assert client.get(f"/api/v1/budgets/{budget['id']}", headers=finance_headers).json["items_count"] == 0


# =============================================================================
# EXPENSES AND APPROVALS
# =============================================================================


class TestExpenseRoutes:

    def test_small_expense_submit_then_approve(self, client, db_session, users_a, event_a, finance_headers, manager_headers, manager_a):
        created = client.post(
            f"/api/v1/events/{event_a.id}/expenses",
            json={"title": "Badges", "amount": 250},
            headers=finance_headers,
        )
        assert created.status_code == 201
        assert created.json["status"] == "pending"
        expense_id = created.json["id"]

        submitted = client.post(f"/api/v1/expenses/{expense_id}/submit-approval", headers=finance_headers)
        assert submitted.status_code == 200
        assert submitted.json["status"] == "under_review"

        decided = client.post(
            f"/api/v1/expenses/{expense_id}/approval",
            json={"approverId": manager_a.id, "action": "approved", "comments": "fine"},
            headers=manager_headers,
        )
        assert decided.status_code == 200
        assert decided.json["status"] == "approved"
        assert [w["action"] for w in decided.json["workflows"]] == ["approved"]

        approvals = client.get(f"/api/v1/expenses/{expense_id}/approvals", headers=finance_headers)
        assert approvals.json["approvals"][0]["approver_id"] == manager_a.id

    def test_second_decision_is_bad_request(self, client, db_session, users_a, event_a, finance_headers, manager_headers, admin_headers, manager_a, admin_a):
        expense_id = client.post(
            f"/api/v1/events/{event_a.id}/expenses",
            json={"title": "Stage", "amount": 4000},
            headers=finance_headers,
        ).json["id"]

        first = client.post(
            f"/api/v1/expenses/{expense_id}/approval",
            json={"approver_id": manager_a.id, "action": "rejected"},
            headers=manager_headers,
        )
        second = client.post(
            f"/api/v1/expenses/{expense_id}/approval",
            json={"approver_id": admin_a.id, "action": "approved"},
            headers=admin_headers,
        )

        assert first.status_code == 200
        assert second.status_code == 400
        db_session.expire_all()
        assert db_session.query(ApprovalWorkflow).filter_by(expense_id=expense_id).count() == 1
        assert db_session.get(Expense, expense_id).status == "rejected"

    def test_approver_mismatch(self, client, users_a, event_a, finance_headers, manager_headers, finance_a):
        expense_id = client.post(
            f"/api/v1/events/{event_a.id}/expenses",
            json={"title": "Stage", "amount": 4000},
            headers=finance_headers,
        ).json["id"]

        resp = client.post(
            f"/api/v1/expenses/{expense_id}/approval",
            json={"approver_id": finance_a.id, "action": "approved"},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_decided_expense_is_read_only(self, client, users_a, event_a, finance_headers, manager_headers, manager_a):
        expense_id = client.post(
            f"/api/v1/events/{event_a.id}/expenses",
            json={"title": "Stage", "amount": 4000},
            headers=finance_headers,
        ).json["id"]
        client.post(
            f"/api/v1/expenses/{expense_id}/approval",
            json={"approver_id": manager_a.id, "action": "approved"},
            headers=manager_headers,
        )

        assert client.put(f"/api/v1/expenses/{expense_id}", json={"amount": 1}, headers=finance_headers).status_code == 400
        assert client.delete(f"/api/v1/expenses/{expense_id}", headers=finance_headers).status_code == 400
        assert client.get(f"/api/v1/expenses/{expense_id}", headers=finance_headers).json["amount"] == 4000

    def test_list_filters(self, client, users_a, event_a, finance_headers):
        client.post(f"/api/v1/events/{event_a.id}/expenses", json={"title": "A", "amount": 10}, headers=finance_headers)
        client.post(f"/api/v1/events/{event_a.id}/expenses", json={"title": "B", "amount": 2000}, headers=finance_headers)

        resp = client.get("/api/v1/expenses?status=under_review", headers=finance_headers)
        assert [e["title"] for e in resp.json["expenses"]] == ["B"]

        assert client.get("/api/v1/expenses?status=bogus", headers=finance_headers).status_code == 400


# =============================================================================
# NOTIFICATIONS
# =============================================================================


class TestNotificationRoutes:

    def test_approver_inbox(self, client, users_a, event_a, finance_headers, manager_headers):
        client.post(f"/api/v1/events/{event_a.id}/expenses", json={"title": "Stage", "amount": 1000}, headers=finance_headers)

        unread = client.get("/api/v1/notifications/unread", headers=manager_headers)
        assert unread.status_code == 200
        assert unread.json["count"] == 1
        notification_id = unread.json["notifications"][0]["id"]

        marked = client.put(f"/api/v1/notifications/{notification_id}/read", headers=manager_headers)
        assert marked.status_code == 200
        assert client.get("/api/v1/notifications/unread", headers=manager_headers).json["count"] == 0

    def test_cannot_mark_someone_elses(self, client, users_a, event_a, finance_headers, manager_headers, viewer_headers):
        client.post(f"/api/v1/events/{event_a.id}/expenses", json={"title": "Stage", "amount": 1000}, headers=finance_headers)
        notification_id = client.get("/api/v1/notifications", headers=manager_headers).json["notifications"][0]["id"]

        resp = client.put(f"/api/v1/notifications/{notification_id}/read", headers=viewer_headers)
        assert resp.status_code == 403

    def test_mark_all_read(self, client, users_a, event_a, finance_headers, manager_headers):
        for title in ("One", "Two"):
            client.post(f"/api/v1/events/{event_a.id}/expenses", json={"title": title, "amount": 1500}, headers=finance_headers)

        resp = client.put("/api/v1/notifications/read-all", headers=manager_headers)

        assert resp.json["updated"] == 2
        assert client.get("/api/v1/notifications?is_read=false", headers=manager_headers).json["total"] == 0


# =============================================================================
# END TO END
# =============================================================================


def test_budget_expense_roi_flow(client, users_a, event_a, finance_headers, manager_headers, manager_a):
    budget = client.post(
        f"/api/v1/events/{event_a.id}/budgets",
        json={"versionNumber": 1, "items": [{"category": "venue", "itemName": "Hall", "quantity": 2, "unitCost": 100}]},
        headers=finance_headers,
    ).json
    client.put(f"/api/v1/budgets/{budget['id']}/finalize", headers=finance_headers)

    expense = client.post(
        f"/api/v1/events/{event_a.id}/expenses",
        json={"title": "Stage", "amount": 1500},
        headers=finance_headers,
    ).json
    assert expense["status"] == "under_review"

    client.post(
        f"/api/v1/expenses/{expense['id']}/approval",
        json={"approverId": manager_a.id, "action": "approved"},
        headers=manager_headers,
    )

    roi = client.post(f"/api/v1/events/{event_a.id}/roi/calculate", headers=finance_headers)
    assert roi.status_code == 200
    assert roi.json["actual_spend"] == 1500
    assert roi.json["total_budget"] == 200
    assert roi.json["roi_percent"] == -100

    insights = client.post(f"/api/v1/events/{event_a.id}/insights/generate", headers=finance_headers)
    assert insights.status_code == 201
    assert insights.json["insights"][0]["severity"] == "warning"


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["checks"]["database"]["status"] == "healthy"
