"""
Release status lifecycle.

    DRAFT --submit--> UNDER_REVIEW --approve--> APPROVED --distribute--> DISTRIBUTED
                           |
                           +--reject--> REJECTED --submit (allow_resubmission only)--> UNDER_REVIEW

Guards mutate only the status fields of the release they are given; callers own
the session, audit trail and notifications. A refused transition raises
TransitionError, which the API reports as a 400 validation error.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.distro.modules.releases.models import Release


DRAFT = "DRAFT"
UNDER_REVIEW = "UNDER_REVIEW"
APPROVED = "APPROVED"
REJECTED = "REJECTED"
DISTRIBUTED = "DISTRIBUTED"

STATUSES = (DRAFT, UNDER_REVIEW, APPROVED, REJECTED, DISTRIBUTED)

ACTION_EDIT = "edit"
ACTION_SUBMIT = "submit"
ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"
ACTION_DISTRIBUTE = "distribute"


class TransitionError(ValueError):
    """Requested status change is not allowed from the release's current state."""

    def __init__(self, message: str, *, action: str, status: str):
        super().__init__(message)
        self.action = action
        self.status = status


def is_resubmittable(release: "Release") -> bool:
    return release.status == REJECTED and bool(release.allow_resubmission)


def can_edit(release: "Release") -> bool:
    return release.status in (DRAFT, UNDER_REVIEW) or is_resubmittable(release)


def can_submit(release: "Release") -> bool:
    return (release.status == DRAFT or is_resubmittable(release)) and len(release.tracks) > 0


def allowed_actions(release: "Release", *, reviewer: bool = False) -> list[str]:
    """
    Actions currently permitted, in display order.

    Moderation actions (approve, reject, distribute) are listed only for a reviewer.
    """
    actions: list[str] = []
    if can_edit(release):
        actions.append(ACTION_EDIT)
    if can_submit(release):
        actions.append(ACTION_SUBMIT)
    if not reviewer:
        return actions
    if release.status == UNDER_REVIEW:
        if len(release.tracks) > 0:
            actions.append(ACTION_APPROVE)
        actions.append(ACTION_REJECT)
    if release.status == APPROVED:
        actions.append(ACTION_DISTRIBUTE)
    return actions


def ensure_editable(release: "Release") -> None:
    if can_edit(release):
        return
    if release.status == REJECTED:
        msg = "This release was rejected without resubmission. Contact support to make changes."
    else:
        msg = f"Release cannot be edited while {release.status}."
    raise TransitionError(msg, action=ACTION_EDIT, status=release.status)


def ensure_track_removable(release: "Release") -> None:
    """Only a draft may drop to zero tracks; a submitted release keeps at least one."""
    ensure_editable(release)
    if release.status != DRAFT and len(release.tracks) <= 1:
        raise TransitionError(
            "The last track can only be removed while the release is a draft.",
            action=ACTION_EDIT,
            status=release.status,
        )


def _touch(release: "Release") -> None:
    release.updated_at = datetime.utcnow()


def submit_for_review(release: "Release") -> None:
    if not (release.status == DRAFT or is_resubmittable(release)):
        if release.status == REJECTED:
            msg = "This release was rejected without resubmission and cannot be submitted again."
        else:
            msg = f"Only draft releases can be submitted for review (current status: {release.status})."
        raise TransitionError(msg, action=ACTION_SUBMIT, status=release.status)
    if len(release.tracks) == 0:
        raise TransitionError("Release must have at least one track", action=ACTION_SUBMIT, status=release.status)

    release.status = UNDER_REVIEW
    release.rejection_reason = None
    release.allow_resubmission = False
    _touch(release)


def approve(release: "Release") -> None:
    if release.status != UNDER_REVIEW:
        raise TransitionError(
            f"Only releases under review can be approved (current status: {release.status}).",
            action=ACTION_APPROVE,
            status=release.status,
        )
    if len(release.tracks) == 0:
        raise TransitionError("Release must have at least one track", action=ACTION_APPROVE, status=release.status)
    release.status = APPROVED
    _touch(release)


def reject(release: "Release", reason: str | None, allow_resubmission: bool) -> None:
    if release.status != UNDER_REVIEW:
        raise TransitionError(
            f"Only releases under review can be rejected (current status: {release.status}).",
            action=ACTION_REJECT,
            status=release.status,
        )
    reason = (reason or "").strip()
    if not reason:
        raise TransitionError("A rejection reason is required", action=ACTION_REJECT, status=release.status)

    release.status = REJECTED
    release.rejection_reason = reason
    release.allow_resubmission = bool(allow_resubmission)
    _touch(release)


def distribute(release: "Release") -> None:
    if release.status != APPROVED:
        raise TransitionError(
            f"Only approved releases can be distributed (current status: {release.status}).",
            action=ACTION_DISTRIBUTE,
            status=release.status,
        )
    release.status = DISTRIBUTED
    _touch(release)
