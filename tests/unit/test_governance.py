"""Tests for Governance (administrator and pause flag)."""

from __future__ import annotations

import pytest

from blueprint_factory.chain.events import ADMIN_TRANSFERRED, PAUSED, UNPAUSED
from blueprint_factory.core.errors import EmptyField, Paused, Unauthorized
from conftest import ADMIN, ALICE, BOB, blueprint_args


class TestGovernance:
    def test_defaults(self, system):
        assert system.governance.admin == ADMIN
        assert system.governance.paused is False
        assert system.governance.is_admin(ADMIN.lower())
        assert not system.governance.is_admin(ALICE)

    def test_pause_and_unpause(self, system):
        gov = system.governance
        gov.pause(ADMIN)
        assert gov.paused is True
        gov.unpause(ADMIN)
        assert gov.paused is False
        kinds = [e.kind for e in system.events.events()]
        assert kinds[-2:] == [PAUSED, UNPAUSED]

    def test_pause_requires_admin(self, system):
        with pytest.raises(Unauthorized, match="pause requires the administrator"):
            system.governance.pause(ALICE)
        assert system.governance.paused is False

    def test_transfer_admin(self, system):
        gov = system.governance
        gov.transfer_admin(ADMIN, BOB)
        assert gov.admin == BOB
        with pytest.raises(Unauthorized):
            gov.pause(ADMIN)
        event = system.events.events(ADMIN_TRANSFERRED)[-1]
        assert event.args == {"previous": ADMIN, "admin": BOB}

    def test_transfer_to_zero_rejected(self, system):
        with pytest.raises(EmptyField):
            system.governance.transfer_admin(ADMIN, "0x" + "00" * 20)
        assert system.governance.admin == ADMIN


class TestPauseGate:
    def test_mutations_blocked_reads_allowed(self, system, bound_blueprint):
        system.governance.pause(ADMIN)

        with pytest.raises(Paused):
            system.registry.register_blueprint(ALICE, **blueprint_args(2))
        with pytest.raises(Paused):
            system.registry.set_active(ALICE, bound_blueprint, False)
        with pytest.raises(Paused):
            system.factory.create_proxy_instance(BOB, bound_blueprint, 1)
        with pytest.raises(Paused):
            system.factory.create_direct_instance(BOB, b"\x60\x00", 1)

        assert system.registry.get(bound_blueprint).name == "blueprint-1"
        assert system.registry.all_ids() == [1]
        assert system.factory.total_instances() == 0
        assert system.factory.predict_proxy_address(bound_blueprint, 1, BOB)

    def test_unpause_restores(self, system, bound_blueprint):
        system.governance.pause(ADMIN)
        system.governance.unpause(ADMIN)
        address = system.factory.create_proxy_instance(BOB, bound_blueprint, 1)
        assert system.factory.exists(address)
