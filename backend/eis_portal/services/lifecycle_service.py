# Overview: Service-layer operations for the deal lifecycle; validates and applies status transitions.

"""
Deal Lifecycle Service

STATE MACHINE:
    AWAITING_ONBOARDING -> ONBOARDING_COMPLETE -> SUBMITTED -> AWAITING_EIS2
        -> EIS2_RECEIVED -> COMPLETE

    AWAITING_SUBMISSION is a manual ops label. No automated transition
    enters it, but confirm_submission accepts it as a starting state.

TRANSITIONS (action: from -> to, milestone):
    complete_onboarding: AWAITING_ONBOARDING -> ONBOARDING_COMPLETE, ONBOARDING_COMPLETE
    confirm_submission:  ONBOARDING_COMPLETE | AWAITING_SUBMISSION -> SUBMITTED, SUBMISSION_CONFIRMED
    confirm_eis2:        ONBOARDING_COMPLETE | SUBMITTED -> AWAITING_EIS2, EIS2_RECEIVED
    eis2_uploaded:       SUBMITTED | AWAITING_EIS2 -> EIS2_RECEIVED, EIS2_UPLOADED
    complete:            EIS2_RECEIVED -> COMPLETE (ops only, no milestone)

confirm_eis2 records an EIS2_RECEIVED milestone but parks the deal in
AWAITING_EIS2; only the EIS2 letter upload moves it to EIS2_RECEIVED.

RULES:
1. Any (status, action) pair outside TRANSITIONS raises LifecycleError
   and writes nothing
2. Milestones are append-only
3. The UI step is derived from status alone, never from milestone history
4. PATCH /deals/<id> goes through override_status, which may move a deal
   to any status, including backwards
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..models import Deal, Milestone
from ..models.deals import DEAL_STATUSES
from eis_portal.time_utils import parse_iso_date, utcnow

logger = logging.getLogger(__name__)


class LifecycleError(ValueError):
    """
    Raised when an action is not allowed from the deal's current status,
    or when the acting party does not hold responsibility for it.
    """
    pass


class UnknownActionError(ValueError):
    """Raised for an action name the portal does not recognise."""
    pass


class DealNotFoundError(ValueError):
    pass


@dataclass(frozen=True)
class Transition:
    from_statuses: frozenset[str]
    to_status: str
    milestone_type: str | None


TRANSITIONS: dict[str, Transition] = {
    "complete_onboarding": Transition(
        frozenset({"AWAITING_ONBOARDING"}), "ONBOARDING_COMPLETE", "ONBOARDING_COMPLETE"
    ),
    "confirm_submission": Transition(
        frozenset({"ONBOARDING_COMPLETE", "AWAITING_SUBMISSION"}), "SUBMITTED", "SUBMISSION_CONFIRMED"
    ),
    "confirm_eis2": Transition(
        frozenset({"ONBOARDING_COMPLETE", "SUBMITTED"}), "AWAITING_EIS2", "EIS2_RECEIVED"
    ),
    "eis2_uploaded": Transition(
        frozenset({"SUBMITTED", "AWAITING_EIS2"}), "EIS2_RECEIVED", "EIS2_UPLOADED"
    ),
    "complete": Transition(
        frozenset({"EIS2_RECEIVED"}), "COMPLETE", None
    ),
}

# Actions a founder or accountant may name in POST /portal/<token>
PORTAL_ACTIONS = ("complete_onboarding", "confirm_submission", "confirm_eis2")

STATUS_LABELS = {
    "AWAITING_ONBOARDING": "Awaiting Onboarding",
    "ONBOARDING_COMPLETE": "Onboarding Complete",
    "AWAITING_SUBMISSION": "Awaiting Submission",
    "SUBMITTED": "Submitted",
    "AWAITING_EIS2": "Awaiting EIS2",
    "EIS2_RECEIVED": "EIS2 Received",
    "COMPLETE": "Complete",
}

# Portal wizard steps per party. Accountants join after onboarding, so
# their first step is the investor data review. No status maps to
# "submission": the wizard shows it together with "data" and it completes
# with confirm_submission.
PORTAL_STEPS = {
    "founder": ("onboarding", "data", "submission", "eis2", "complete"),
    "accountant": ("data", "submission", "eis2", "complete"),
}

_STEP_BY_STATUS = {
    "AWAITING_ONBOARDING": "onboarding",
    "ONBOARDING_COMPLETE": "data",
    "AWAITING_SUBMISSION": "data",
    "SUBMITTED": "eis2",
    "AWAITING_EIS2": "eis2",
    "EIS2_RECEIVED": "complete",
    "COMPLETE": "complete",
}


def validate_status(status: str) -> None:
    if status not in DEAL_STATUSES:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: {', '.join(DEAL_STATUSES)}"
        )


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def current_step(status: str, role: str = "founder") -> str:
    """Portal wizard step for a deal status, as seen by the given party."""
    step = _STEP_BY_STATUS.get(status, PORTAL_STEPS["founder"][0])
    steps = PORTAL_STEPS.get(role, PORTAL_STEPS["founder"])
    if step not in steps:
        return steps[0]
    return step


def can_transition(current_status: str, action: str) -> bool:
    transition = TRANSITIONS.get(action)
    return transition is not None and current_status in transition.from_statuses


def check_transition(deal: Deal, action: str) -> Transition:
    """
    Return the transition for `action` from the deal's status.

    Raises:
        UnknownActionError: action is not in TRANSITIONS
        LifecycleError: action is not allowed from the current status
    """
    transition = TRANSITIONS.get(action)
    if transition is None:
        raise UnknownActionError(f"Invalid action: {action}")

    if deal.status not in transition.from_statuses:
        allowed = ", ".join(sorted(transition.from_statuses))
        raise LifecycleError(
            f"Cannot {action.replace('_', ' ')} from status {deal.status} (allowed from: {allowed})"
        )
    return transition


def apply_transition(
    deal: Deal,
    action: str,
    actor: str,
    *,
    notes: str | None = None,
    now: datetime | None = None,
) -> Milestone | None:
    """
    Append the action's milestone and move the deal to its next status.

    Does NOT commit; callers own the unit of work. Returns the new
    Milestone, or None for actions that record none.
    """
    transition = check_transition(deal, action)
    now = now or utcnow()

    milestone = None
    if transition.milestone_type:
        milestone = Milestone(
            deal_id=deal.id,
            milestone_type=transition.milestone_type,
            confirmed_by=actor,
            confirmed_at=now,
            notes=notes,
        )
        db.session.add(milestone)

    previous = deal.status
    deal.status = transition.to_status
    if transition.to_status == "COMPLETE":
        deal.completed_at = now

    logger.info(
        "Deal %s: %s by %s (%s -> %s)", deal.id, action, actor, previous, deal.status
    )
    return milestone


def _holds_submission_responsibility(party) -> bool:
    founder = party.deal.founder
    founder_handles = founder is None or founder.is_handling_submission
    if party.is_founder:
        return founder_handles
    return not founder_handles


def perform_portal_action(party, action: str, data: dict | None = None) -> Deal:
    """
    Run a named portal action for a resolved token holder and commit.

    data by action:
        complete_onboarding: {"is_handling_submission": bool} (founder only)
        confirm_submission:  {"submission_date": "YYYY-MM-DD"}
        confirm_eis2:        {}

    Raises:
        UnknownActionError: action is not a portal action
        LifecycleError: transition not allowed, or wrong party for submission
    """
    if action not in PORTAL_ACTIONS:
        raise UnknownActionError(f"Invalid action: {action}")

    data = data or {}
    deal = party.deal
    check_transition(deal, action)

    notes = None
    if action == "complete_onboarding":
        if party.is_founder and "is_handling_submission" in data:
            handling = data["is_handling_submission"]
            if not isinstance(handling, bool):
                raise LifecycleError("is_handling_submission must be true or false")
            party.record.is_handling_submission = handling

    elif action == "confirm_submission":
        if not _holds_submission_responsibility(party):
            raise LifecycleError("Submission is being handled by another party")
        submission_date = data.get("submission_date")
        if submission_date:
            try:
                parse_iso_date(str(submission_date))
            except ValueError:
                raise LifecycleError("submission_date must be an ISO-8601 date (YYYY-MM-DD)")
            notes = str(submission_date)

    apply_transition(deal, action, party.role, notes=notes)
    db.session.commit()
    return deal


def complete_deal(deal_id: int) -> Deal:
    """Ops terminal action: EIS2_RECEIVED -> COMPLETE, stamps completed_at."""
    deal = db.session.query(Deal).filter_by(id=deal_id).first()
    if not deal:
        raise DealNotFoundError("Deal not found")

    apply_transition(deal, "complete", "ops")
    db.session.commit()
    return deal


def override_status(deal: Deal, status: str, *, now: datetime | None = None) -> None:
    """
    Ops override: set any valid status, forwards or backwards.

    completed_at is set when entering COMPLETE and cleared when leaving it.
    Does NOT commit.
    """
    validate_status(status)
    if status == deal.status:
        return

    previous = deal.status
    deal.status = status
    if status == "COMPLETE":
        deal.completed_at = now or utcnow()
    else:
        deal.completed_at = None

    logger.info("Deal %s: status overridden (%s -> %s)", deal.id, previous, status)
