"""Unit tests for condition utilities."""

from __future__ import annotations

from garage_operator.constants import (
    COND_READY,
    COND_SYNCED,
    REASON_AVAILABLE,
    REASON_CREATING,
    REASON_DELETING,
    REASON_RECONCILE_ERROR,
    REASON_RECONCILE_SUCCESS,
    REASON_REFERENCES_NOT_READY,
)
from garage_operator.utils.conditions import (
    get_condition,
    set_auth_valid_condition,
    set_available_condition,
    set_creating_condition,
    set_deleting_condition,
    set_endpoint_reachable_condition,
    set_ready_condition,
    set_reconcile_error_condition,
    set_reconcile_success_condition,
    set_references_not_ready_condition,
    update_condition,
)


class TestUpdateCondition:
    """Test condition utilities."""

    def test_update_condition_new(self) -> None:
        """Test adding a new condition."""
        conditions = []
        result = update_condition(
            conditions, "TestCondition", "True", "TestReason", "Test message", observed_generation=1
        )

        assert len(result) == 1
        assert result[0]["type"] == "TestCondition"
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "TestReason"
        assert result[0]["message"] == "Test message"
        assert result[0]["observedGeneration"] == 1

    def test_update_condition_existing(self) -> None:
        """Test updating an existing condition."""
        conditions = [
            {
                "type": "TestCondition",
                "status": "False",
                "reason": "OldReason",
                "message": "Old message",
                "lastTransitionTime": "2023-01-01T00:00:00Z",
            }
        ]

        result = update_condition(
            conditions, "TestCondition", "True", "NewReason", "New message", observed_generation=2
        )

        assert len(result) == 1
        assert result[0]["reason"] == "NewReason"
        assert result[0]["lastTransitionTime"] != "2023-01-01T00:00:00Z"

    def test_transition_time_kept_when_status_unchanged(self) -> None:
        conditions = [
            {"type": "TestCondition", "status": "True", "reason": "A", "lastTransitionTime": "2023-01-01T00:00:00Z"}
        ]

        result = update_condition(conditions, "TestCondition", "True", "B", "")

        assert result[0]["lastTransitionTime"] == "2023-01-01T00:00:00Z"
        assert result[0]["reason"] == "B"


class TestManagedResourceConditions:
    """Test Ready and Synced transitions used by the reconciler."""

    def test_ready_reasons(self) -> None:
        conditions: list = []

        set_creating_condition(conditions)
        assert get_condition(conditions, COND_READY)["reason"] == REASON_CREATING
        assert get_condition(conditions, COND_READY)["status"] == "False"

        set_available_condition(conditions)
        assert get_condition(conditions, COND_READY)["reason"] == REASON_AVAILABLE
        assert get_condition(conditions, COND_READY)["status"] == "True"

        set_deleting_condition(conditions)
        assert get_condition(conditions, COND_READY)["reason"] == REASON_DELETING
        assert len(conditions) == 1

    def test_synced_reasons(self) -> None:
        conditions: list = []

        set_reconcile_error_condition(conditions, "boom")
        assert get_condition(conditions, COND_SYNCED)["reason"] == REASON_RECONCILE_ERROR
        assert get_condition(conditions, COND_SYNCED)["message"] == "boom"

        set_references_not_ready_condition(conditions, "waiting")
        assert get_condition(conditions, COND_SYNCED)["reason"] == REASON_REFERENCES_NOT_READY

        set_reconcile_success_condition(conditions)
        assert get_condition(conditions, COND_SYNCED)["status"] == "True"
        assert len(conditions) == 1


class TestProviderConfigConditions:
    """Test conditions published by the ProviderConfig handler."""

    def test_set_ready_condition(self) -> None:
        result = set_ready_condition([], True, "Ready", observed_generation=1)

        assert result[0]["type"] == "Ready"
        assert result[0]["status"] == "True"

    def test_set_auth_valid_condition(self) -> None:
        result = set_auth_valid_condition([], False, "bad token")

        assert result[0]["type"] == "AuthValid"
        assert result[0]["status"] == "False"
        assert result[0]["reason"] == "AuthInvalid"

    def test_set_endpoint_reachable_condition(self) -> None:
        result = set_endpoint_reachable_condition([], True, "Reachable", observed_generation=1)

        assert result[0]["type"] == "EndpointReachable"
        assert result[0]["status"] == "True"
