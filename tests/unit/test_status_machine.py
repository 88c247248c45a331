"""
Unit tests for the cart status state machine.
"""

import pytest

from cartflow.core.errors import InvalidTransition, ValidationError
from cartflow.services.status_machine import (
    Actor,
    CartStatus,
    LIVE_STATUSES,
    TERMINAL_STATUSES,
    allowed_targets,
    can_edit_items,
    check_transition,
    ensure_editable,
    parse_status,
)


class TestParseStatus:
    """Canonical names and French labels."""

    @pytest.mark.parametrize(
        'value, expected',
        [
            ('en_cours', CartStatus.BUILDING),
            ('demande', CartStatus.SUBMITTED),
            ('traité', CartStatus.PROCESSED),
            ('annulé', CartStatus.CANCELLED),
            ('fini', CartStatus.FINISHED),
            ('submitted', CartStatus.SUBMITTED),
            ('Processed', CartStatus.PROCESSED),
            (CartStatus.FINISHED, CartStatus.FINISHED),
        ],
    )
    def test_known_values(self, value, expected):
        assert parse_status(value) == expected

    @pytest.mark.parametrize('value', ['', 'shipped', 'pending'])
    def test_unknown_value_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_status(value)

    def test_labels(self):
        assert CartStatus.BUILDING.label == 'en_cours'
        assert CartStatus.CANCELLED.label == 'annulé'


class TestTransitions:
    """Allowed edges and who may take them."""

    @pytest.mark.parametrize('actor', list(Actor))
    @pytest.mark.parametrize('target', [CartStatus.SUBMITTED, CartStatus.CANCELLED])
    def test_building_exits(self, target, actor):
        assert check_transition(CartStatus.BUILDING, target, actor) is True

    @pytest.mark.parametrize(
        'current, target',
        [
            (CartStatus.SUBMITTED, CartStatus.PROCESSED),
            (CartStatus.SUBMITTED, CartStatus.CANCELLED),
            (CartStatus.PROCESSED, CartStatus.FINISHED),
            (CartStatus.PROCESSED, CartStatus.CANCELLED),
        ],
    )
    def test_admin_only_edges(self, current, target):
        assert check_transition(current, target, Actor.ADMIN) is True
        with pytest.raises(InvalidTransition):
            check_transition(current, target, Actor.OWNER)

    @pytest.mark.parametrize(
        'current, target',
        [
            (CartStatus.BUILDING, CartStatus.PROCESSED),
            (CartStatus.BUILDING, CartStatus.FINISHED),
            (CartStatus.SUBMITTED, CartStatus.BUILDING),
            (CartStatus.PROCESSED, CartStatus.SUBMITTED),
            (CartStatus.SUBMITTED, CartStatus.FINISHED),
        ],
    )
    def test_missing_edges(self, current, target):
        with pytest.raises(InvalidTransition) as exc:
            check_transition(current, target, Actor.ADMIN)
        assert exc.value.detail['code'] == 'invalid_transition'

    @pytest.mark.parametrize('actor', list(Actor))
    @pytest.mark.parametrize('target', list(CartStatus))
    @pytest.mark.parametrize('current', sorted(TERMINAL_STATUSES))
    def test_terminal_states_never_move(self, current, target, actor):
        with pytest.raises(InvalidTransition):
            check_transition(current, target, actor)

    @pytest.mark.parametrize(
        'current',
        [CartStatus.BUILDING, CartStatus.SUBMITTED, CartStatus.PROCESSED],
    )
    def test_same_state_is_a_noop(self, current):
        assert check_transition(current, current, Actor.ADMIN) is False

    def test_allowed_targets(self):
        assert allowed_targets(CartStatus.SUBMITTED, Actor.OWNER) == []
        assert set(allowed_targets(CartStatus.SUBMITTED, Actor.ADMIN)) == {
            CartStatus.PROCESSED,
            CartStatus.CANCELLED,
        }


class TestItemEdits:
    """Who may change lines, and when."""

    def test_owner_edits_only_while_building(self):
        assert can_edit_items(CartStatus.BUILDING, Actor.OWNER)
        assert not can_edit_items(CartStatus.SUBMITTED, Actor.OWNER)

    def test_admin_edits_any_live_cart(self):
        assert can_edit_items(CartStatus.PROCESSED, Actor.ADMIN)
        assert not can_edit_items(CartStatus.FINISHED, Actor.ADMIN)

    @pytest.mark.parametrize('current', list(CartStatus))
    def test_admin_follows_live_statuses(self, current):
        assert can_edit_items(current, Actor.ADMIN) == (current in LIVE_STATUSES)
        assert can_edit_items(current, Actor.ADMIN) != current.is_terminal

    def test_ensure_editable_raises(self):
        with pytest.raises(InvalidTransition):
            ensure_editable(CartStatus.CANCELLED, Actor.ADMIN)
