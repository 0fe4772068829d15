"""Unit tests for SpecializedSystemsCloner."""

import pytest

from envclone.access import InMemoryConnectionFactory, InMemoryRealtimeProbe
from envclone.environments import EnvironmentType
from envclone.exceptions import CloneOptionsError
from envclone.observability import ATTR_OPERATION_ID
from envclone.safety import PRODUCTION_TARGET_MESSAGE
from envclone.specialized import (
    AuditCloneOptions,
    ReservationsCloneOptions,
    SpecializedSystemsCloner,
    SpecializedSystemsOptions,
)
from tests.fixtures import PROFILE_ID, fixed_clock, make_environment
from tests.fixtures.systems import system_stores


def make_cloner(source, target, **kwargs):
    factory = InMemoryConnectionFactory({"prod": source, "test": target})
    cloner = SpecializedSystemsCloner(
        factory,
        realtime_probe=InMemoryRealtimeProbe({"messages"}),
        clock=fixed_clock,
        enable_tracing=False,
        **kwargs,
    )
    return cloner, factory


class TestPresets:
    def test_default_options(self):
        options = SpecializedSystemsCloner.default_options()
        assert options.requested_systems == ["audit", "conversations", "reservations"]
        assert options.audit_options.include_audit_logs is False
        assert options.conversations_options.include_messages is False
        assert options.reservations_options.include_reservations is True

    def test_training_options(self):
        options = SpecializedSystemsCloner.training_options()
        assert options.audit_options.max_log_age == 90
        assert options.conversations_options.max_message_age == 60
        assert options.reservations_options.max_reservation_age == 180
        assert options.reservations_options.anonymize_pricing_data is False

    def test_test_options(self):
        options = SpecializedSystemsCloner.test_options()
        assert options.audit_options.max_log_age == 30
        assert options.conversations_options.max_message_age == 30
        assert options.reservations_options.max_reservation_age == 60
        assert options.reservations_options.anonymize_pricing_data is True


class TestValidateOptions:
    def test_mapping_is_converted(self):
        options = SpecializedSystemsCloner.validate_options(
            {"include_audit_system": True, "audit_options": {"max_log_age": 7}}
        )
        assert isinstance(options, SpecializedSystemsOptions)
        assert options.audit_options.max_log_age == 7

    def test_missing_system_options(self):
        with pytest.raises(CloneOptionsError, match="audit_options are required when include_audit_system is true"):
            SpecializedSystemsCloner.validate_options({"include_audit_system": True})

    def test_model_built_without_validation(self):
        options = SpecializedSystemsOptions.model_construct(
            include_audit_system=False,
            audit_options=None,
            include_conversations_system=False,
            conversations_options=None,
            include_reservations_system=True,
            reservations_options=None,
            strict=False,
        )
        with pytest.raises(CloneOptionsError, match="reservations_options are required"):
            SpecializedSystemsCloner.validate_options(options)

    def test_invalid_field(self):
        with pytest.raises(CloneOptionsError):
            SpecializedSystemsCloner.validate_options(
                {"include_audit_system": True, "audit_options": {"max_log_age": 0}}
            )


class TestCloneSpecializedSystems:
    @pytest.mark.asyncio
    async def test_all_systems(self, prod_env, test_env):
        source, target = system_stores()
        cloner, factory = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(
            prod_env, test_env, SpecializedSystemsCloner.training_options()
        )

        assert result.success
        assert result.systems_cloned == ["audit", "conversations", "reservations"]
        assert result.audit_result.logs_cloned == 2
        assert result.conversations_result.messages_cloned == 1
        assert result.reservations_result.reservations_cloned == 1
        assert result.functions_cloned == 1
        assert result.triggers_cloned == 1
        assert "Dropped 1 payments whose reservations are not being cloned" in result.warnings
        assert result.records_cloned == sum(r.records_cloned for r in result.results)
        assert factory.connected == ["prod", "test"]
        assert source.closed and target.closed

    @pytest.mark.asyncio
    async def test_default_preset_clones_structure(self, prod_env, test_env):
        source, target = system_stores()
        cloner, _ = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(
            prod_env, test_env, SpecializedSystemsCloner.default_options()
        )

        assert result.success
        assert result.audit_result.logs_cloned == 0
        assert result.conversations_result.messages_cloned == 0
        assert target.rows("audit.audit_logs") == []
        assert "audit.log_change" in target.functions

    @pytest.mark.asyncio
    async def test_only_requested_systems_run(self, prod_env, test_env):
        source, target = system_stores()
        cloner, _ = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(
            prod_env,
            test_env,
            SpecializedSystemsOptions(
                include_reservations_system=True, reservations_options=ReservationsCloneOptions()
            ),
        )

        assert result.systems_cloned == ["reservations"]
        assert result.audit_result is None
        assert result.conversations_result is None
        assert target.rows("messages") == []

    @pytest.mark.asyncio
    async def test_mapping_options(self, prod_env, test_env):
        source, target = system_stores("audit")
        cloner, _ = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(
            prod_env, test_env, {"include_audit_system": True, "audit_options": {}}
        )

        assert result.success
        assert result.systems_cloned == ["audit"]

    @pytest.mark.asyncio
    async def test_failing_system_does_not_stop_the_rest(self, prod_env, test_env):
        source, target = system_stores()
        participants = source.rows("conversation_participants")
        participants.append({"id": "part-3", "conversation_id": "conv-9", "user_id": PROFILE_ID})
        source.create_table("conversation_participants", participants)
        cloner, _ = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(
            prod_env, test_env, SpecializedSystemsCloner.training_options()
        )

        assert not result.success
        assert not result.aborted
        assert result.systems_cloned == ["audit", "reservations"]
        assert not result.conversations_result.success
        assert result.errors == result.conversations_result.errors

    @pytest.mark.asyncio
    async def test_operation_id_is_shared(self, prod_env, test_env, mock_tracer):
        source, target = system_stores("audit")
        cloner, _ = make_cloner(source, target, tracer=mock_tracer)

        result = await cloner.clone_specialized_systems(
            prod_env,
            test_env,
            SpecializedSystemsOptions(include_audit_system=True, audit_options=AuditCloneOptions()),
            operation_id="specialized_op",
        )

        assert result.operation_id == "specialized_op"
        assert mock_tracer.span_names == ["envclone.specialized.clone_systems", "envclone.specialized.audit.clone"]
        assert all(attrs[ATTR_OPERATION_ID] == "specialized_op" for _, attrs in mock_tracer.spans)


class TestMissingSystems:
    @pytest.mark.asyncio
    async def test_missing_system_is_skipped(self, prod_env, test_env):
        source, target = system_stores("audit", "conversations")
        cloner, _ = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(
            prod_env, test_env, SpecializedSystemsCloner.training_options()
        )

        assert result.success
        assert result.systems_cloned == ["audit", "conversations"]
        assert result.reservations_result.skipped
        assert "Reservations system appears to be missing or incomplete" in result.warnings
        assert result.reservations_result.warnings == [
            "Missing tables: reservations, loft_availability, pricing_rules, reservation_payments"
        ]

    @pytest.mark.asyncio
    async def test_missing_system_fails_in_strict_mode(self, prod_env, test_env):
        source, target = system_stores("audit", "conversations")
        cloner, _ = make_cloner(source, target)
        options = SpecializedSystemsCloner.training_options().model_copy(update={"strict": True})

        result = await cloner.clone_specialized_systems(prod_env, test_env, options)

        assert not result.success
        assert result.errors == ["Reservations system appears to be missing or incomplete"]
        assert result.systems_cloned == ["audit", "conversations"]

    @pytest.mark.asyncio
    async def test_probe_failure(self, prod_env, test_env):
        source, target = system_stores()
        source.fail("audit.audit_logs", "exists", "statement timeout")
        cloner, _ = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(
            prod_env, test_env, SpecializedSystemsCloner.training_options()
        )

        assert not result.success
        assert result.audit_result is None
        assert result.errors == [
            "Audit system probe failed: exists failed for table audit.audit_logs: statement timeout"
        ]
        assert result.systems_cloned == ["conversations", "reservations"]


class TestAborts:
    @pytest.mark.asyncio
    async def test_invalid_options(self, prod_env, test_env):
        source, target = system_stores()
        cloner, factory = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(prod_env, test_env, {"include_conversations_system": True})

        assert result.aborted
        assert result.errors == ["conversations_options are required when include_conversations_system is true"]
        assert factory.connected == []

    @pytest.mark.asyncio
    async def test_production_target(self, test_env):
        source, target = system_stores()
        cloner, factory = make_cloner(source, target)

        result = await cloner.clone_specialized_systems(
            test_env,
            make_environment("prod", EnvironmentType.PRODUCTION),
            SpecializedSystemsCloner.default_options(),
        )

        assert result.aborted
        assert result.errors == [PRODUCTION_TARGET_MESSAGE]
        assert factory.connected == []

    @pytest.mark.asyncio
    async def test_connection_failure(self, prod_env, test_env):
        source, _ = system_stores()
        cloner = SpecializedSystemsCloner(
            InMemoryConnectionFactory({"prod": source}), enable_tracing=False
        )

        result = await cloner.clone_specialized_systems(
            prod_env, test_env, SpecializedSystemsCloner.default_options()
        )

        assert result.aborted
        assert result.errors == ["Could not connect: No data store registered for environment test"]
        assert source.closed
