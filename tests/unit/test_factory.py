"""Tests for DeploymentFactory."""

from __future__ import annotations

import pytest

from blueprint_factory.chain.address import (
    combine_salt,
    create2_address,
    keccak,
    minimal_proxy_code,
)
from blueprint_factory.chain.events import (
    DEPLOYMENT_RECORDED,
    IMPLEMENTATION_BOUND,
    INSTANCE_CREATED,
)
from blueprint_factory.core.errors import (
    AlreadyExists,
    BlueprintInactive,
    DuplicateContent,
    EmptyField,
    InstantiationFailed,
    InvalidPayload,
    MalformedInput,
    NotFound,
    Reentrancy,
    Unauthorized,
)
from blueprint_factory.core.types import NO_BLUEPRINT, DeploymentMethod
from blueprint_factory.factory.builder import FactoryBuilder
from conftest import (
    ADMIN,
    ALICE,
    BOB,
    CAROL,
    IMPL_A,
    IMPL_B,
    SALT_1,
    SALT_2,
    TOKEN_CODE,
    blueprint_args,
)


def _init_program(ctx, data):
    ctx.storage["initialized"] = data
    ctx.storage["by"] = ctx.sender


def _failing_program(ctx, data):
    raise RuntimeError("initializer reverted")


@pytest.fixture()
def live_impl(system, bound_blueprint):
    """Put real code behind IMPL_A so proxy init calls reach a program."""
    system.host.install(IMPL_A, TOKEN_CODE)
    system.host.register_program(TOKEN_CODE, _init_program)
    return bound_blueprint


class TestBindImplementation:
    def test_bind_and_rebind(self, system, bound_blueprint):
        factory = system.factory
        assert factory.implementation_of(bound_blueprint) == IMPL_A
        factory.bind_implementation(ADMIN, bound_blueprint, IMPL_B)
        assert factory.implementation_of(bound_blueprint) == IMPL_B
        event = system.events.events(IMPLEMENTATION_BOUND)[-1]
        assert event.args["previous"] == IMPL_A
        assert event.args["implementation"] == IMPL_B

    def test_requires_admin(self, system, bound_blueprint):
        with pytest.raises(Unauthorized):
            system.factory.bind_implementation(ALICE, bound_blueprint, IMPL_B)
        assert system.factory.implementation_of(bound_blueprint) == IMPL_A

    def test_zero_implementation(self, system, bound_blueprint):
        with pytest.raises(EmptyField):
            system.factory.bind_implementation(ADMIN, bound_blueprint, "0x" + "00" * 20)

    def test_missing_blueprint(self, factory):
        with pytest.raises(NotFound):
            factory.bind_implementation(ADMIN, 3, IMPL_A)

    def test_inactive_blueprint(self, system, bound_blueprint):
        system.registry.set_active(ALICE, bound_blueprint, False)
        with pytest.raises(BlueprintInactive):
            system.factory.bind_implementation(ADMIN, bound_blueprint, IMPL_B)

    def test_unbound_lookup(self, system):
        system.registry.register_blueprint(ALICE, **blueprint_args(1))
        with pytest.raises(NotFound, match="No implementation"):
            system.factory.implementation_of(1)


class TestProxyCreation:
    def test_address_matches_prediction(self, system, bound_blueprint, clock):
        factory = system.factory
        predicted = factory.predict_proxy_address(bound_blueprint, SALT_1, BOB)
        address = factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        assert address == predicted

        record = factory.get_instance(address)
        assert record.creator == BOB
        assert record.blueprint_id == bound_blueprint
        assert record.method is DeploymentMethod.PROXY
        assert record.salt == SALT_1
        assert record.created_at == clock.now
        assert record.active is True
        assert system.host.get_account(address).code == minimal_proxy_code(IMPL_A)

    def test_prediction_formula(self, system, bound_blueprint):
        factory = system.factory
        code_hash = keccak(minimal_proxy_code(IMPL_A))
        expected = create2_address(factory.address, combine_salt(SALT_1, BOB), code_hash)
        assert factory.predict_address(combine_salt(SALT_1, BOB), code_hash) == expected
        assert factory.predict_proxy_address(bound_blueprint, SALT_1, BOB) == expected

    def test_prediction_tracks_binding(self, system, bound_blueprint):
        factory = system.factory
        before = factory.predict_proxy_address(bound_blueprint, SALT_1, BOB)
        factory.bind_implementation(ADMIN, bound_blueprint, IMPL_B)
        assert factory.predict_proxy_address(bound_blueprint, SALT_1, BOB) != before

    def test_indexes_and_count(self, system, bound_blueprint):
        factory = system.factory
        first = factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        second = factory.create_proxy_instance(CAROL, bound_blueprint, SALT_1)
        third = factory.create_proxy_instance(BOB, bound_blueprint, SALT_2)

        assert len({first, second, third}) == 3
        assert factory.instances_by_creator(BOB) == [first, third]
        assert factory.instances_by_creator(CAROL) == [second]
        assert factory.instances_by_blueprint(bound_blueprint) == [first, second, third]
        assert factory.total_instances() == 3
        assert system.registry.get(bound_blueprint).deployment_count == 3

    def test_created_at_follows_clock(self, factory, host, bound_blueprint, clock):
        first = factory.create_proxy_instance(BOB, bound_blueprint, 1)
        clock.advance(60)
        second = factory.create_proxy_instance(BOB, bound_blueprint, 2)
        assert factory.get_instance(second).created_at == factory.get_instance(first).created_at + 60
        assert host.get_account(second).created_at == clock.now

    def test_events(self, system, bound_blueprint):
        address = system.factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        created = system.events.events(INSTANCE_CREATED)
        recorded = system.events.events(DEPLOYMENT_RECORDED)
        assert len(created) == 1
        assert len(recorded) == 1
        assert created[0].args["address"] == address
        assert created[0].args["method"] == "proxy"
        assert created[0].source == system.factory.address
        assert recorded[0].args["deployment_count"] == 1

    def test_same_salt_same_creator(self, system, bound_blueprint):
        factory = system.factory
        address = factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        with pytest.raises(AlreadyExists) as info:
            factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        assert info.value.details["address"] == address
        assert factory.total_instances() == 1
        assert system.registry.get(bound_blueprint).deployment_count == 1

    def test_unbound_blueprint(self, system):
        system.registry.register_blueprint(ALICE, **blueprint_args(1))
        with pytest.raises(NotFound):
            system.factory.create_proxy_instance(BOB, 1, SALT_1)
        assert system.factory.total_instances() == 0

    def test_inactive_blueprint(self, system, bound_blueprint):
        system.registry.set_active(ALICE, bound_blueprint, False)
        with pytest.raises(BlueprintInactive):
            system.factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        with pytest.raises(BlueprintInactive):
            system.factory.create_from_template(BOB, bound_blueprint, SALT_1)

    def test_missing_blueprint(self, factory):
        with pytest.raises(NotFound):
            factory.create_proxy_instance(BOB, 42, SALT_1)

    def test_salt_too_long(self, factory, bound_blueprint):
        with pytest.raises(MalformedInput):
            factory.create_proxy_instance(BOB, bound_blueprint, b"\x01" * 33)


class TestTemplateCreation:
    def test_recorded_as_template(self, system, bound_blueprint):
        address = system.factory.create_from_template(BOB, bound_blueprint, SALT_1)
        record = system.factory.get_instance(address)
        assert record.method is DeploymentMethod.TEMPLATE
        assert system.registry.get(bound_blueprint).deployment_count == 1

    def test_shares_proxy_placement(self, system, bound_blueprint):
        factory = system.factory
        predicted = factory.predict_proxy_address(bound_blueprint, SALT_1, BOB)
        assert factory.create_from_template(BOB, bound_blueprint, SALT_1) == predicted
        with pytest.raises(AlreadyExists):
            factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)


class TestDirectCreation:
    def test_direct_instance(self, system):
        factory = system.factory
        predicted = factory.predict_direct_address(TOKEN_CODE, SALT_1, BOB)
        address = factory.create_direct_instance(BOB, TOKEN_CODE, SALT_1)
        assert address == predicted

        record = factory.get_instance(address)
        assert record.blueprint_id == NO_BLUEPRINT
        assert record.method is DeploymentMethod.DIRECT
        assert record.code_hash == "0x" + keccak(TOKEN_CODE).hex()
        assert factory.instances_by_blueprint(NO_BLUEPRINT) == []
        assert system.events.events(DEPLOYMENT_RECORDED) == []

    def test_hex_payload(self, factory):
        address = factory.create_direct_instance(BOB, "0x" + TOKEN_CODE.hex(), SALT_1)
        assert address == factory.predict_direct_address(TOKEN_CODE, SALT_1, BOB)

    def test_empty_payload(self, factory):
        with pytest.raises(InvalidPayload, match="must not be empty"):
            factory.create_direct_instance(BOB, b"", SALT_1)

    def test_size_limit(self, clock):
        system = FactoryBuilder().build(
            {"admin": ADMIN, "max_code_size": 8}, clock=clock, connect=False,
        )
        system.factory.create_direct_instance(BOB, b"\x60" * 8, SALT_1)
        with pytest.raises(InvalidPayload, match="limit is 8") as info:
            system.factory.create_direct_instance(BOB, b"\x60" * 9, SALT_1)
        assert info.value.details["size"] == 9
        assert system.factory.total_instances() == 1

    def test_different_code_different_address(self, factory):
        first = factory.create_direct_instance(BOB, TOKEN_CODE, SALT_1)
        second = factory.create_direct_instance(BOB, TOKEN_CODE + b"\x00", SALT_1)
        assert first != second


class TestInitialization:
    def test_init_runs_in_proxy_storage(self, system, live_impl):
        address = system.factory.create_proxy_instance(BOB, live_impl, SALT_1, b"\xca\xfe")
        storage = system.host.get_account(address).storage
        assert storage == {"initialized": b"\xca\xfe", "by": system.factory.address}
        assert system.host.get_account(IMPL_A).storage == {}

    def test_direct_init(self, system):
        system.host.register_program(TOKEN_CODE, _init_program)
        address = system.factory.create_direct_instance(BOB, TOKEN_CODE, SALT_1, b"\x01")
        assert system.host.get_account(address).storage["initialized"] == b"\x01"

    def test_failure_rolls_back_everything(self, system, bound_blueprint):
        system.host.install(IMPL_A, TOKEN_CODE)
        system.host.register_program(TOKEN_CODE, _failing_program)
        predicted = system.factory.predict_proxy_address(bound_blueprint, SALT_1, BOB)
        events_before = len(system.events)

        with pytest.raises(InstantiationFailed, match="initializer reverted") as info:
            system.factory.create_proxy_instance(BOB, bound_blueprint, SALT_1, b"\x01")

        assert isinstance(info.value.__cause__, RuntimeError)
        assert not system.host.has_code(predicted)
        assert not system.factory.exists(predicted)
        assert system.factory.total_instances() == 0
        assert system.registry.get(bound_blueprint).deployment_count == 0
        assert len(system.events) == events_before

    def test_init_against_missing_implementation(self, system, bound_blueprint):
        with pytest.raises(InstantiationFailed):
            system.factory.create_proxy_instance(BOB, bound_blueprint, SALT_1, b"\x01")
        assert system.factory.total_instances() == 0

    def test_salt_reusable_after_failure(self, system, bound_blueprint):
        with pytest.raises(InstantiationFailed):
            system.factory.create_proxy_instance(BOB, bound_blueprint, SALT_1, b"\x01")
        address = system.factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        assert system.factory.exists(address)

    def test_reentrant_create_rejected(self, system, bound_blueprint):
        factory = system.factory

        def reenter(ctx, data):
            factory.create_proxy_instance(ctx.sender, bound_blueprint, SALT_2)

        system.host.install(IMPL_A, TOKEN_CODE)
        system.host.register_program(TOKEN_CODE, reenter)

        with pytest.raises(InstantiationFailed) as info:
            factory.create_proxy_instance(BOB, bound_blueprint, SALT_1, b"\x01")
        assert isinstance(info.value.__cause__, Reentrancy)
        assert factory.total_instances() == 0

    def test_caught_nested_failure_keeps_later_writes(self, system, bound_blueprint):
        registry = system.registry
        outcome: list[str] = []

        def init(ctx, data):
            ctx.storage["before"] = 1
            try:
                registry.register_blueprint(ALICE, **blueprint_args(1))
            except DuplicateContent:
                outcome.append("duplicate")
            ctx.storage["after"] = 2

        system.host.install(IMPL_A, TOKEN_CODE)
        system.host.register_program(TOKEN_CODE, init)

        address = system.factory.create_proxy_instance(BOB, bound_blueprint, SALT_1, b"\x01")
        assert outcome == ["duplicate"]
        assert dict(system.host.get_account(address).storage) == {"before": 1, "after": 2}
        assert registry.count() == 1

    def test_mixed_outcomes_count_only_successes(self, system, bound_blueprint):
        factory = system.factory
        factory.create_proxy_instance(BOB, bound_blueprint, 1)
        factory.create_proxy_instance(BOB, bound_blueprint, 2)
        with pytest.raises(AlreadyExists):
            factory.create_proxy_instance(BOB, bound_blueprint, 2)
        with pytest.raises(InstantiationFailed):
            factory.create_proxy_instance(BOB, bound_blueprint, 3, b"\x01")
        factory.create_from_template(CAROL, bound_blueprint, 3)

        assert system.registry.get(bound_blueprint).deployment_count == 3
        assert factory.total_instances() == 3
        assert len(factory.instances_by_blueprint(bound_blueprint)) == 3


    def test_journal_cost_does_not_grow_with_state(self, system, bound_blueprint):
        factory = system.factory
        journal = system.journal
        per_create = []
        with journal.atomic():
            for salt in range(1, 21):
                before = journal.pending
                factory.create_proxy_instance(BOB, bound_blueprint, salt)
                per_create.append(journal.pending - before)
        assert len(set(per_create[1:])) == 1
        assert journal.pending == 0
        assert factory.total_instances() == 20

class TestInstanceLifecycle:
    @pytest.fixture()
    def instance(self, factory, bound_blueprint):
        return factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)

    def test_creator_deactivates(self, factory, instance):
        factory.deactivate_instance(BOB, instance)
        assert factory.get_instance(instance).active is False
        assert factory.exists(instance)

    def test_admin_deactivates(self, factory, instance):
        factory.deactivate_instance(ADMIN, instance)
        assert factory.get_instance(instance).active is False

    def test_stranger_rejected(self, factory, instance):
        with pytest.raises(Unauthorized):
            factory.deactivate_instance(CAROL, instance)
        assert factory.get_instance(instance).active is True

    def test_unknown_instance(self, factory):
        with pytest.raises(NotFound):
            factory.deactivate_instance(ADMIN, ALICE)


class TestQueries:
    def test_exists_never_raises(self, factory):
        assert factory.exists(ALICE) is False
        assert factory.exists("not-an-address") is False

    def test_get_unknown(self, factory):
        with pytest.raises(NotFound, match="No instance"):
            factory.get_instance(ALICE)

    def test_lookup_case_insensitive(self, factory, bound_blueprint):
        address = factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        assert factory.get_instance(address.lower()).address == address
        assert factory.instances_by_creator(BOB.lower()) == [address]

    def test_pagination(self, factory, bound_blueprint):
        created = [factory.create_proxy_instance(BOB, bound_blueprint, n) for n in range(5)]
        records, total = factory.list_paginated(0, 10)
        assert total == 5
        assert [r.address for r in records] == created

        window, total = factory.list_paginated(2, 2)
        assert total == 5
        assert [r.address for r in window] == created[2:4]
        assert factory.list_paginated(5, 3) == ([], 5)

    def test_negative_window(self, factory):
        with pytest.raises(MalformedInput):
            factory.list_paginated(0, -1)

    def test_returned_lists_are_copies(self, factory, bound_blueprint):
        factory.create_proxy_instance(BOB, bound_blueprint, SALT_1)
        factory.instances_by_creator(BOB).clear()
        assert len(factory.instances_by_creator(BOB)) == 1
