"""
Stage/unit registry and transition resolver tests.

Tests cover:
  - Ordered stages and unit ↔ stage mapping
  - Exhaustive permission table, validated at import
  - next_stage / previous_stage / effective_stage, including the external skip
"""
import pytest

from ideaflow.core.exceptions import ConfigurationError, NotFoundError
from ideaflow.pipeline.registry import (
    ORDERED_STAGES,
    STATUS_CONFIG,
    UNIT_PERMISSIONS,
    UNITS,
    PermissionSet,
    Stage,
    Unit,
    get_unit,
    permissions_for_unit,
    unit_for_stage,
    unit_id_for_stage,
    validate_registry,
)
from ideaflow.pipeline.transitions import effective_stage, next_stage, previous_stage, requires_external


# ═════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═════════════════════════════════════════════════════════════════════════


class TestRegistry:
    def test_ordered_stages(self):
        assert [s.value for s in ORDERED_STAGES] == [
            "submitted",
            "academic-review",
            "programs-package",
            "operations",
            "external-approvals",
            "systems",
            "published",
            "passport-verification",
            "completed",
        ]
        assert Stage.RETURNED not in ORDERED_STAGES
        assert Stage.REJECTED not in ORDERED_STAGES

    def test_unit_for_stage(self):
        assert unit_for_stage(Stage.ACADEMIC_REVIEW).id == "academic"
        assert unit_for_stage("programs-package").id == "programs"
        assert unit_id_for_stage(Stage.EXTERNAL_APPROVALS) == "external"
        assert unit_id_for_stage(Stage.PASSPORT_VERIFICATION) == "passport"

    @pytest.mark.parametrize("stage", ["submitted", "published", "completed", "returned", "rejected", "bogus", None])
    def test_stages_without_unit(self, stage):
        assert unit_for_stage(stage) is None

    def test_every_unit_has_explicit_permissions(self):
        assert set(UNITS) == set(UNIT_PERMISSIONS)
        for unit_id in UNITS:
            assert isinstance(permissions_for_unit(unit_id), PermissionSet)

    def test_permission_table(self):
        academic = permissions_for_unit("academic")
        assert academic.can_approve and academic.can_reject and not academic.can_return
        assert academic.requires_ancillary_link

        programs = permissions_for_unit("programs")
        assert programs.can_approve and programs.can_return and not programs.can_reject
        assert programs.views_ancillary_link and not programs.requires_ancillary_link

        for unit_id in ("operations", "external"):
            perms = permissions_for_unit(unit_id)
            assert perms.can_approve and perms.can_reject and perms.can_return

        systems = permissions_for_unit("systems")
        assert systems.can_publish and not systems.can_approve

    def test_link_writers(self):
        writers = {u for u in UNITS if permissions_for_unit(u).writes_ancillary_link}
        assert writers == {"academic", "programs"}

    def test_unknown_unit_is_not_found(self):
        with pytest.raises(NotFoundError):
            permissions_for_unit("marketing")
        with pytest.raises(NotFoundError):
            get_unit("marketing")

    def test_status_config_covers_every_status(self):
        assert set(STATUS_CONFIG) == set(Stage)

    def test_unit_to_dict_includes_permissions(self):
        data = get_unit("programs").to_dict()
        assert data["associated_stage"] == "programs-package"
        assert data["permissions"]["can_return"] is True


class TestRegistryValidation:
    def test_missing_permission_set(self):
        permissions = {k: v for k, v in UNIT_PERMISSIONS.items() if k != "external"}
        with pytest.raises(ConfigurationError, match="external"):
            validate_registry(permissions=permissions)

    def test_permission_for_unknown_unit(self):
        permissions = {**UNIT_PERMISSIONS, "marketing": PermissionSet(can_approve=True)}
        with pytest.raises(ConfigurationError, match="marketing"):
            validate_registry(permissions=permissions)

    def test_unit_on_non_pipeline_stage(self):
        units = {**UNITS, "audit": Unit("audit", "Audit", "#000", Stage.REJECTED, "")}
        permissions = {**UNIT_PERMISSIONS, "audit": PermissionSet()}
        with pytest.raises(ConfigurationError, match="non-pipeline"):
            validate_registry(units=units, permissions=permissions)

    def test_shipped_registry_is_valid(self):
        validate_registry()


# ═════════════════════════════════════════════════════════════════════════
# TRANSITIONS
# ═════════════════════════════════════════════════════════════════════════


class TestNextStage:
    def test_walks_one_step_with_external(self):
        for current, expected in zip(ORDERED_STAGES, ORDERED_STAGES[1:]):
            assert next_stage(current, True) == expected

    def test_skips_external_when_not_required(self):
        assert next_stage(Stage.OPERATIONS, False) == Stage.SYSTEMS
        assert next_stage(Stage.PROGRAMS_PACKAGE, False) == Stage.OPERATIONS
        assert Stage.EXTERNAL_APPROVALS not in {next_stage(s, False) for s in ORDERED_STAGES}

    def test_completed_is_terminal(self):
        assert next_stage(Stage.COMPLETED, True) is None
        assert next_stage(Stage.COMPLETED, False) is None

    @pytest.mark.parametrize("status", [Stage.RETURNED, Stage.REJECTED, "bogus", None])
    def test_override_statuses_have_no_next(self, status):
        assert next_stage(status) is None

    def test_accepts_wire_values(self):
        assert next_stage("systems") == Stage.PUBLISHED


class TestPreviousStage:
    def test_nothing_upstream_of_academic(self):
        assert previous_stage(Stage.SUBMITTED) is None
        assert previous_stage(Stage.ACADEMIC_REVIEW) is None

    def test_one_step_back(self):
        assert previous_stage(Stage.PROGRAMS_PACKAGE) == Stage.ACADEMIC_REVIEW
        assert previous_stage(Stage.OPERATIONS) == Stage.PROGRAMS_PACKAGE
        assert previous_stage(Stage.EXTERNAL_APPROVALS) == Stage.OPERATIONS

    def test_unknown_has_no_previous(self):
        assert previous_stage(Stage.RETURNED) is None
        assert previous_stage("bogus") is None

    def test_academic_cannot_return_anyway(self):
        assert permissions_for_unit("academic").can_return is False


class TestEffectiveStage:
    def test_returned_uses_holding_unit_stage(self):
        assert effective_stage(Stage.RETURNED, "academic") == Stage.ACADEMIC_REVIEW
        assert effective_stage("returned", "operations") == Stage.OPERATIONS

    def test_returned_without_unit(self):
        assert effective_stage(Stage.RETURNED, None) is None

    def test_regular_status_is_its_own_position(self):
        assert effective_stage(Stage.SUBMITTED, "academic") == Stage.SUBMITTED
        assert effective_stage(Stage.SYSTEMS, "systems") == Stage.SYSTEMS

    @pytest.mark.parametrize("value,expected", [(True, True), ("unsure", True), (None, True), (False, False)])
    def test_requires_external(self, value, expected):
        assert requires_external(value) is expected
