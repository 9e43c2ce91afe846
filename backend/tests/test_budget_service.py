# Overview: Pytest coverage for the budget version store.

"""
Budget Version Tests

Covers:
- estimated_cost derivation on create and update
- (event_id, version_number) uniqueness
- single final version per event across finalize/update/clone
- clone copies every line item field into a new, non-final version
- tenant checks on versions and line items
"""

import pytest

from eventfin.errors import ConflictError, ForbiddenError, NotFoundError, BadRequestError
from eventfin.models import ActivityLog, BudgetLineItem, BudgetVersion
from eventfin.services import budget_service
from eventfin.services.budget_service import compute_estimated_cost


def _final_count(db_session, event_id):
    return db_session.query(BudgetVersion).filter_by(event_id=event_id, is_final=True).count()


class TestComputeEstimatedCost:

    def test_quantity_times_unit_cost(self):
        assert compute_estimated_cost(2, 100) == 200

    def test_explicit_value_wins(self):
        assert compute_estimated_cost(3, 10, 99) == 99

    def test_explicit_zero_is_kept(self):
        assert compute_estimated_cost(3, 10, 0) == 0

    def test_missing_factor_gives_zero(self):
        assert compute_estimated_cost(None, 10) == 0
        assert compute_estimated_cost(2, None) == 0


class TestCreateVersion:

    def test_create_with_items_computes_estimates(self, db_session, event_a, finance_principal):
        version = budget_service.create_version(
            finance_principal,
            event_a.id,
            version_number=1,
            notes="First draft",
            items=[
                {"category": "venue", "itemName": "Main hall", "quantity": 2, "unitCost": 100},
                {"category": "catering", "item_name": "Lunch", "estimated_cost": 450},
                {"category": "misc", "item_name": "Signage"},
            ],
        )

        assert version.version_number == 1
        assert version.is_final is False
        assert [i.estimated_cost for i in version.items] == [200, 450, 0]
        assert version.total_estimated_cost == 650
        assert version.created_by_user_id == finance_principal.user_id

    def test_null_estimate_is_computed(self, db_session, event_a, finance_principal):
        version = budget_service.create_version(
            finance_principal, event_a.id, version_number=1,
            items=[{"category": "venue", "itemName": "Hall", "quantity": 2, "unitCost": 100, "estimatedCost": None}],
        )

        assert version.items[0].estimated_cost == 200

    def test_duplicate_version_number_conflicts_and_writes_nothing(self, db_session, event_a, finance_principal):
        budget_service.create_version(finance_principal, event_a.id, version_number=1)

        with pytest.raises(ConflictError):
            budget_service.create_version(
                finance_principal,
                event_a.id,
                version_number=1,
                items=[{"category": "venue", "item_name": "Hall", "estimated_cost": 10}],
            )

        assert db_session.query(BudgetVersion).filter_by(event_id=event_a.id).count() == 1
        assert db_session.query(BudgetLineItem).count() == 0

    def test_invalid_line_item_creates_nothing(self, db_session, event_a, finance_principal):
        with pytest.raises(BadRequestError):
            budget_service.create_version(
                finance_principal,
                event_a.id,
                version_number=1,
                items=[
                    {"category": "venue", "item_name": "Hall", "quantity": 1, "unit_cost": 50},
                    {"category": "venue", "item_name": "Stage", "unit_cost": -5},
                ],
            )

        assert db_session.query(BudgetVersion).count() == 0
        assert db_session.query(BudgetLineItem).count() == 0

    def test_unknown_line_item_field_rejected(self, db_session, event_a, finance_principal):
        with pytest.raises(BadRequestError, match="Field not allowed"):
            budget_service.create_version(
                finance_principal,
                event_a.id,
                version_number=1,
                items=[{"category": "venue", "item_name": "Hall", "budget_version_id": 42}],
            )

    def test_version_number_must_be_positive(self, db_session, event_a, finance_principal):
        with pytest.raises(BadRequestError):
            budget_service.create_version(finance_principal, event_a.id, version_number=0)

    def test_missing_event_not_found(self, db_session, org_a, finance_principal):
        with pytest.raises(NotFoundError):
            budget_service.create_version(finance_principal, 99999, version_number=1)

    def test_other_org_event_forbidden(self, db_session, event_b, finance_principal):
        with pytest.raises(ForbiddenError):
            budget_service.create_version(finance_principal, event_b.id, version_number=1)

        assert db_session.query(BudgetVersion).count() == 0

    def test_vendor_of_other_org_not_found(self, db_session, event_a, vendor_b, finance_principal):
        with pytest.raises(NotFoundError):
            budget_service.create_version(
                finance_principal,
                event_a.id,
                version_number=1,
                items=[{"category": "av", "item_name": "Speakers", "vendor_id": vendor_b.id}],
            )

    def test_create_logs_activity(self, db_session, event_a, finance_principal):
        version = budget_service.create_version(
            finance_principal,
            event_a.id,
            version_number=1,
            items=[{"category": "venue", "item_name": "Hall"}],
        )

        log = db_session.query(ActivityLog).filter_by(action="budget.created").one()
        assert log.event_id == event_a.id
        assert log.user_id == finance_principal.user_id
        assert log.details["budget_version_id"] == version.id
        assert log.details["items_count"] == 1


class TestFinalize:

    def test_only_one_final_version(self, db_session, event_a, finance_principal):
        v1 = budget_service.create_version(finance_principal, event_a.id, version_number=1)
        v2 = budget_service.create_version(finance_principal, event_a.id, version_number=2)
        v3 = budget_service.create_version(finance_principal, event_a.id, version_number=3)

        budget_service.finalize_version(finance_principal, v1.id)
        assert _final_count(db_session, event_a.id) == 1

        budget_service.update_version(finance_principal, v3.id, {"isFinal": True})
        assert _final_count(db_session, event_a.id) == 1

        budget_service.finalize_version(finance_principal, v2.id)
        db_session.expire_all()
        assert _final_count(db_session, event_a.id) == 1
        assert db_session.get(BudgetVersion, v2.id).is_final is True
        assert db_session.get(BudgetVersion, v1.id).is_final is False
        assert db_session.get(BudgetVersion, v3.id).is_final is False

    def test_finalize_does_not_touch_other_events(self, db_session, org_a, event_a, finance_principal):
        from eventfin.models import Event
        other = Event(org_id=org_a.id, name="Autumn Gala")
        db_session.add(other)
        db_session.commit()

        a1 = budget_service.create_version(finance_principal, event_a.id, version_number=1)
        o1 = budget_service.create_version(finance_principal, other.id, version_number=1)
        budget_service.finalize_version(finance_principal, a1.id)
        budget_service.finalize_version(finance_principal, o1.id)

        db_session.expire_all()
        assert db_session.get(BudgetVersion, a1.id).is_final is True
        assert db_session.get(BudgetVersion, o1.id).is_final is True

    def test_unfinalize_via_update(self, db_session, event_a, finance_principal):
        v1 = budget_service.create_version(finance_principal, event_a.id, version_number=1)
        budget_service.finalize_version(finance_principal, v1.id)

        budget_service.update_version(finance_principal, v1.id, {"is_final": False, "notes": "Reopened"})

        assert _final_count(db_session, event_a.id) == 0
        assert db_session.get(BudgetVersion, v1.id).notes == "Reopened"

    def test_update_rejects_non_boolean_is_final(self, db_session, event_a, finance_principal):
        v1 = budget_service.create_version(finance_principal, event_a.id, version_number=1)
        with pytest.raises(BadRequestError, match="must be a boolean"):
            budget_service.update_version(finance_principal, v1.id, {"is_final": "yes"})

        assert _final_count(db_session, event_a.id) == 0

    def test_update_rejects_version_number_change(self, db_session, event_a, finance_principal):
        v1 = budget_service.create_version(finance_principal, event_a.id, version_number=1)
        with pytest.raises(BadRequestError):
            budget_service.update_version(finance_principal, v1.id, {"version_number": 5})

    def test_finalize_other_org_forbidden(self, db_session, event_a, finance_principal, principal_b):
        v1 = budget_service.create_version(finance_principal, event_a.id, version_number=1)

        with pytest.raises(ForbiddenError):
            budget_service.finalize_version(principal_b, v1.id)

        assert _final_count(db_session, event_a.id) == 0

    def test_final_budget_total(self, db_session, event_a, finance_principal):
        assert budget_service.final_budget_total(event_a.id) == 0

        v1 = budget_service.create_version(
            finance_principal, event_a.id, version_number=1,
            items=[{"category": "venue", "item_name": "Hall", "estimated_cost": 300}],
        )
        budget_service.create_version(
            finance_principal, event_a.id, version_number=2,
            items=[{"category": "venue", "item_name": "Hall", "estimated_cost": 999}],
        )
        assert budget_service.final_budget_total(event_a.id) == 0

        budget_service.finalize_version(finance_principal, v1.id)
        assert budget_service.final_budget_total(event_a.id) == 300


class TestClone:

    def test_clone_copies_items_into_next_version(self, db_session, event_a, vendor_a, finance_principal):
        source = budget_service.create_version(
            finance_principal, event_a.id, version_number=1,
            items=[
                {"category": "venue", "item_name": "Hall", "quantity": 2, "unit_cost": 100, "vendor_id": vendor_a.id},
                {"category": "catering", "item_name": "Dinner", "estimated_cost": 500},
            ],
        )
        budget_service.create_version(finance_principal, event_a.id, version_number=4)
        item = source.items[0]
        budget_service.update_line_item(finance_principal, item.id, {"actual_cost": 180})
        budget_service.finalize_version(finance_principal, source.id)

        clone = budget_service.clone_version(finance_principal, source.id)

        assert clone.version_number == 5
        assert clone.is_final is False
        assert clone.notes == "Cloned from version 1"
        assert _final_count(db_session, event_a.id) == 1

        def fields(i):
            return (i.category, i.item_name, i.vendor_id, i.quantity, i.unit_cost, i.estimated_cost, i.actual_cost)

        assert [fields(i) for i in clone.items] == [fields(i) for i in source.items]
        assert {i.id for i in clone.items}.isdisjoint({i.id for i in source.items})
        assert clone.items[0].actual_cost == 180

    def test_clone_logs_activity(self, db_session, event_a, finance_principal):
        source = budget_service.create_version(finance_principal, event_a.id, version_number=1)
        clone = budget_service.clone_version(finance_principal, source.id)

        log = db_session.query(ActivityLog).filter_by(action="budget.cloned").one()
        assert log.details["source_budget_version_id"] == source.id
        assert log.details["new_version_number"] == clone.version_number

    def test_clone_missing_version_not_found(self, db_session, org_a, finance_principal):
        with pytest.raises(NotFoundError):
            budget_service.clone_version(finance_principal, 12345)


class TestLineItems:

    @pytest.fixture
    def version(self, db_session, event_a, finance_principal):
        return budget_service.create_version(
            finance_principal, event_a.id, version_number=1,
            items=[{"category": "venue", "item_name": "Hall", "quantity": 1, "unit_cost": 50}],
        )

    def test_add_line_item(self, db_session, version, finance_principal):
        item = budget_service.add_line_item(
            finance_principal, version.id, {"category": "av", "itemName": "Mics", "quantity": 4, "unitCost": 25}
        )
        assert item.estimated_cost == 100
        assert item.budget_version_id == version.id
        assert db_session.query(ActivityLog).filter_by(action="budget.line_item.added").count() == 1

    def test_update_recomputes_estimate(self, db_session, version, finance_principal):
        item = version.items[0]
        updated = budget_service.update_line_item(finance_principal, item.id, {"quantity": 3, "unitCost": 10})
        assert updated.estimated_cost == 30

    def test_update_recomputes_from_merged_values(self, db_session, version, finance_principal):
        item = version.items[0]
        updated = budget_service.update_line_item(finance_principal, item.id, {"quantity": 4})
        assert updated.estimated_cost == 200

    def test_update_explicit_estimate_wins(self, db_session, version, finance_principal):
        item = version.items[0]
        updated = budget_service.update_line_item(
            finance_principal, item.id, {"quantity": 3, "unit_cost": 10, "estimated_cost": 99}
        )
        assert updated.estimated_cost == 99

    def test_update_null_estimate_recomputes(self, db_session, version, finance_principal):
        item = version.items[0]
        updated = budget_service.update_line_item(
            finance_principal, item.id, {"quantity": 3, "unitCost": 10, "estimatedCost": None}
        )
        assert updated.estimated_cost == 30

    def test_update_null_estimate_alone_recomputes(self, db_session, version, finance_principal):
        item = version.items[0]
        budget_service.update_line_item(finance_principal, item.id, {"estimated_cost": 99})

        updated = budget_service.update_line_item(finance_principal, item.id, {"estimated_cost": None})
        assert updated.estimated_cost == 50

    def test_numeric_strings_are_coerced(self, db_session, version, finance_principal):
        item = budget_service.add_line_item(
            finance_principal, version.id, {"category": "av", "itemName": "Mics", "quantity": "4", "unitCost": "25.5"}
        )
        assert item.quantity == 4
        assert item.estimated_cost == 102

    def test_add_line_item_null_estimate(self, db_session, version, finance_principal):
        item = budget_service.add_line_item(
            finance_principal, version.id,
            {"category": "av", "itemName": "Mics", "quantity": 4, "unitCost": 25, "estimatedCost": None},
        )
        assert item.estimated_cost == 100

    def test_update_without_cost_fields_keeps_estimate(self, db_session, version, finance_principal):
        item = version.items[0]
        updated = budget_service.update_line_item(finance_principal, item.id, {"notes": "Booked"})
        assert updated.estimated_cost == 50
        assert updated.notes == "Booked"

    def test_delete_line_item(self, db_session, version, finance_principal):
        item_id = version.items[0].id
        budget_service.delete_line_item(finance_principal, item_id)

        assert db_session.get(BudgetLineItem, item_id) is None
        log = db_session.query(ActivityLog).filter_by(action="budget.line_item.deleted").one()
        assert log.details["item_id"] == item_id

    def test_line_item_other_org_forbidden(self, db_session, version, principal_b):
        item_id = version.items[0].id

        with pytest.raises(ForbiddenError):
            budget_service.update_line_item(principal_b, item_id, {"quantity": 9})
        with pytest.raises(ForbiddenError):
            budget_service.delete_line_item(principal_b, item_id)
        with pytest.raises(ForbiddenError):
            budget_service.add_line_item(principal_b, version.id, {"category": "x", "item_name": "y"})

        assert db_session.get(BudgetLineItem, item_id).quantity == 1

    def test_missing_line_item_not_found(self, db_session, org_a, finance_principal):
        with pytest.raises(NotFoundError):
            budget_service.update_line_item(finance_principal, 4242, {"quantity": 1})
        with pytest.raises(NotFoundError):
            budget_service.delete_line_item(finance_principal, 4242)


class TestListVersions:

    def test_newest_version_first(self, db_session, event_a, finance_principal):
        for n in (2, 1, 3):
            budget_service.create_version(finance_principal, event_a.id, version_number=n)

        versions = budget_service.list_versions(finance_principal, event_a.id)
        assert [v.version_number for v in versions] == [3, 2, 1]

    def test_other_org_forbidden(self, db_session, event_a, principal_b):
        with pytest.raises(ForbiddenError):
            budget_service.list_versions(principal_b, event_a.id)
