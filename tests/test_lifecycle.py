import pytest

from app.distro.modules.releases import lifecycle
from app.distro.modules.releases.lifecycle import TransitionError
from app.distro.modules.releases.models import Release, Track


def _release(status=lifecycle.DRAFT, *, tracks=1, allow_resubmission=False):
    r = Release(title="Monsoon", status=status, allow_resubmission=allow_resubmission)
    for i in range(tracks):
        r.tracks.append(Track(title=f"Track {i + 1}"))
    return r


def test_draft_can_be_edited_and_submitted():
    r = _release()
    assert lifecycle.can_edit(r)
    assert lifecycle.can_submit(r)
    assert lifecycle.allowed_actions(r) == ["edit", "submit"]


def test_submit_requires_a_track():
    r = _release(tracks=0)
    assert not lifecycle.can_submit(r)
    with pytest.raises(TransitionError, match="at least one track"):
        lifecycle.submit_for_review(r)
    assert r.status == lifecycle.DRAFT


def test_submit_moves_to_review_and_clears_rejection():
    r = _release(lifecycle.REJECTED, allow_resubmission=True)
    r.rejection_reason = "Artwork is blurry"
    lifecycle.submit_for_review(r)
    assert r.status == lifecycle.UNDER_REVIEW
    assert r.rejection_reason is None
    assert r.allow_resubmission is False


def test_under_review_is_still_editable():
    r = _release(lifecycle.UNDER_REVIEW)
    assert lifecycle.can_edit(r)
    assert not lifecycle.can_submit(r)
    assert lifecycle.allowed_actions(r) == ["edit"]
    assert lifecycle.allowed_actions(r, reviewer=True) == ["edit", "approve", "reject"]


@pytest.mark.parametrize("status", [lifecycle.APPROVED, lifecycle.DISTRIBUTED])
def test_approved_and_distributed_are_locked(status):
    r = _release(status)
    assert not lifecycle.can_edit(r)
    with pytest.raises(TransitionError) as exc:
        lifecycle.ensure_editable(r)
    assert exc.value.action == "edit"
    assert exc.value.status == status


def test_rejected_without_resubmission_is_terminal():
    r = _release(lifecycle.REJECTED, allow_resubmission=False)
    assert lifecycle.allowed_actions(r) == []
    with pytest.raises(TransitionError, match="Contact support"):
        lifecycle.ensure_editable(r)
    with pytest.raises(TransitionError, match="without resubmission"):
        lifecycle.submit_for_review(r)


def test_reject_requires_reason():
    r = _release(lifecycle.UNDER_REVIEW)
    with pytest.raises(TransitionError, match="reason"):
        lifecycle.reject(r, "   ", True)
    assert r.status == lifecycle.UNDER_REVIEW

    lifecycle.reject(r, " Missing ISRC ", True)
    assert r.status == lifecycle.REJECTED
    assert r.rejection_reason == "Missing ISRC"
    assert r.allow_resubmission is True
    assert lifecycle.allowed_actions(r) == ["edit", "submit"]


def test_admin_transitions_follow_order():
    r = _release(lifecycle.DRAFT)
    with pytest.raises(TransitionError):
        lifecycle.approve(r)
    with pytest.raises(TransitionError):
        lifecycle.distribute(r)

    lifecycle.submit_for_review(r)
    lifecycle.approve(r)
    assert r.status == lifecycle.APPROVED
    assert lifecycle.allowed_actions(r) == []
    assert lifecycle.allowed_actions(r, reviewer=True) == ["distribute"]

    with pytest.raises(TransitionError):
        lifecycle.reject(r, "too late", False)

    lifecycle.distribute(r)
    assert r.status == lifecycle.DISTRIBUTED
    assert lifecycle.allowed_actions(r, reviewer=True) == []


def test_last_track_stays_once_submitted():
    r = _release(lifecycle.UNDER_REVIEW, tracks=1)
    with pytest.raises(TransitionError, match="last track") as exc:
        lifecycle.ensure_track_removable(r)
    assert exc.value.status == lifecycle.UNDER_REVIEW

    lifecycle.ensure_track_removable(_release(lifecycle.UNDER_REVIEW, tracks=2))
    lifecycle.ensure_track_removable(_release(lifecycle.DRAFT, tracks=1))


def test_approve_refuses_release_without_tracks():
    r = _release(lifecycle.UNDER_REVIEW, tracks=0)
    assert lifecycle.allowed_actions(r, reviewer=True) == ["edit", "reject"]
    with pytest.raises(TransitionError, match="at least one track") as exc:
        lifecycle.approve(r)
    assert exc.value.action == "approve"
    assert r.status == lifecycle.UNDER_REVIEW
