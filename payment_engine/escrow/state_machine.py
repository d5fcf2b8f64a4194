"""
Escrow lifecycle rules.

The whole transition graph lives in ``TRANSITIONS``: one entry per legal
``(current status, action)`` pair, naming the next status, the roles allowed to
trigger it and the domain event emitted once it commits. Anything not in the
table is illegal.
"""
from typing import NamedTuple, FrozenSet

from django.conf import settings

from payments.exceptions import InvalidTransition, Unauthorized
from .models import EscrowTransaction as Escrow

CLIENT = 'client'
FREELANCER = 'freelancer'
OPERATOR = 'operator'

CONFIRM_PAYMENT = 'confirm_payment'
MARK_WORK_COMPLETED = 'mark_work_completed'
RELEASE_FUNDS = 'release_funds'
DISPUTE = 'dispute'
REFUND = 'refund'

ACTIONS = (CONFIRM_PAYMENT, MARK_WORK_COMPLETED, RELEASE_FUNDS, DISPUTE, REFUND)


class Transition(NamedTuple):
    next_status: str
    roles: FrozenSet[str]
    event: str


TRANSITIONS = {
    (Escrow.PENDING_PAYMENT, CONFIRM_PAYMENT): Transition(
        Escrow.PAYMENT_RECEIVED, frozenset({CLIENT}), 'escrow.payment_received'),
    (Escrow.PAYMENT_RECEIVED, MARK_WORK_COMPLETED): Transition(
        Escrow.WORK_COMPLETED, frozenset({FREELANCER}), 'escrow.work_completed'),
    (Escrow.WORK_COMPLETED, RELEASE_FUNDS): Transition(
        Escrow.FUNDS_RELEASED, frozenset({CLIENT}), 'escrow.funds_released'),
    (Escrow.DISPUTED, RELEASE_FUNDS): Transition(
        Escrow.FUNDS_RELEASED, frozenset({OPERATOR}), 'escrow.funds_released'),
    (Escrow.PAYMENT_RECEIVED, DISPUTE): Transition(
        Escrow.DISPUTED, frozenset({CLIENT, FREELANCER}), 'escrow.disputed'),
    (Escrow.WORK_COMPLETED, DISPUTE): Transition(
        Escrow.DISPUTED, frozenset({CLIENT, FREELANCER}), 'escrow.disputed'),
    (Escrow.DISPUTED, REFUND): Transition(
        Escrow.REFUNDED, frozenset({OPERATOR}), 'escrow.refunded'),
}


def allowed_roles(status, action):
    """Roles allowed for one edge, with the configurable work-completion policy applied."""
    transition = TRANSITIONS.get((status, action))
    if transition is None:
        return frozenset()
    roles = transition.roles
    if action == MARK_WORK_COMPLETED and settings.ESCROW_WORK_COMPLETION_BY == 'either':
        roles = roles | {CLIENT}
    return roles


def roles_for_action(action):
    roles = frozenset()
    for (status, name) in TRANSITIONS:
        if name == action:
            roles |= allowed_roles(status, action)
    return roles


def actor_roles(escrow, user):
    roles = set()
    if user.pk == escrow.client_id:
        roles.add(CLIENT)
    if user.pk == escrow.freelancer_id:
        roles.add(FREELANCER)
    if user.is_operator:
        roles.add(OPERATOR)
    return roles


def resolve(escrow, action, user):
    """
    Decide whether ``user`` may apply ``action`` to ``escrow`` in its current
    status. Returns the Transition or raises Unauthorized / InvalidTransition.
    """
    if action not in ACTIONS:
        raise InvalidTransition(f"Unknown escrow action '{action}'.", **escrow.diagnostics())

    roles = actor_roles(escrow, user)
    if not roles:
        raise Unauthorized("You are not a party to this contract.", **escrow.diagnostics())

    if escrow.is_terminal:
        raise InvalidTransition(
            f"Escrow is already '{escrow.status}'.",
            already_applied=escrow.transitions.filter(action=action).exists(),
            **escrow.diagnostics(),
        )

    if not roles & roles_for_action(action):
        raise Unauthorized(
            f"Your role cannot {action.replace('_', ' ')} on this escrow.", **escrow.diagnostics()
        )

    transition = TRANSITIONS.get((escrow.status, action))
    if transition is None:
        raise InvalidTransition(
            f"Cannot {action.replace('_', ' ')} while escrow is '{escrow.status}'.",
            already_applied=escrow.transitions.filter(action=action).exists(),
            **escrow.diagnostics(),
        )

    if not roles & allowed_roles(escrow.status, action):
        raise Unauthorized(
            f"Your role cannot {action.replace('_', ' ')} while escrow is '{escrow.status}'.",
            **escrow.diagnostics(),
        )
    return transition


def is_legal_path(statuses):
    """True when consecutive statuses are all edges of the transition graph."""
    edges = {(status, transition.next_status) for (status, _), transition in TRANSITIONS.items()}
    return all((a, b) in edges for a, b in zip(statuses, statuses[1:]))
