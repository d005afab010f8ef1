"""Service-level tests for batch generation, refresh, responses and manual invites."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.components.rotation.errors import (
    AssignmentConflictError,
    InvalidCandidateStateError,
    InvalidInviteError,
    InvalidProjectStateError,
    InvalidSelectionError,
    NotCandidateOwnerError,
    ProjectNotFoundError,
)
from app.components.rotation.service import (
    accept_candidate,
    can_generate_new_batch,
    create_manual_invite,
    generate_batch,
    refresh_batch,
    reject_candidate,
)
from app.models.assignment import (
    AssignmentBatch,
    AssignmentCandidate,
    BatchStatus,
    BatchType,
    CandidateStatus,
    RotationCursor,
)
from app.models.contact_grant import ContactGrant
from app.models.developer import DeveloperSkill
from app.models.project import Project, ProjectStatus
from app.shared.utils import ensure_utc, utcnow
from tests.conftest import make_developer, make_project, make_skill, make_user

ONE_EACH = {"fresher_count": 1, "mid_count": 1, "expert_count": 1}
ONE_FRESHER = {"fresher_count": 1, "mid_count": 0, "expert_count": 0}


@pytest.fixture
def skill(db):
    return make_skill(db, slug="python")


@pytest.fixture
def client_user(db):
    return make_user(db)


def _reload(db, model, pk):
    db.expire_all()
    return db.get(model, pk)


# ===================================================================
# generate_batch
# ===================================================================

def test_generate_batch_picks_one_developer_per_level(db, skill, client_user):
    fresher = make_developer(db, level="FRESHER", skill_ids=[skill.id])
    mid = make_developer(db, level="MID", skill_ids=[skill.id])
    expert = make_developer(db, level="EXPERT", skill_ids=[skill.id])
    project = make_project(db, client_user, [skill.id])

    result = generate_batch(db, project.id, ONE_EACH)

    assert {c.developer_id for c in result.candidates} == {fresher.id, mid.id, expert.id}
    assert result.batch.batch_number == 1
    assert result.batch.status == BatchStatus.ACTIVE
    assert result.batch.batch_type == BatchType.AUTO_ROTATION
    assert result.batch.selection == {"fresherCount": 1, "midCount": 1, "expertCount": 1}

    project = _reload(db, Project, project.id)
    assert project.status == ProjectStatus.ASSIGNING
    assert project.current_batch_id == result.batch.id

    for candidate in db.query(AssignmentCandidate).all():
        assert candidate.response_status == CandidateStatus.PENDING
        assert candidate.status_text_for_client == "developer is checking"
        assert candidate.skill_ids == [skill.id]
        window = ensure_utc(candidate.acceptance_deadline) - ensure_utc(candidate.assigned_at)
        assert window == timedelta(minutes=15)

    cursors = db.query(RotationCursor).filter(RotationCursor.skill_id == skill.id).all()
    assert {c.level for c in cursors} == {"FRESHER", "MID", "EXPERT"}


def test_generate_batch_skips_ineligible_developers(db, skill, client_user):
    make_developer(db, level="FRESHER", skill_ids=[skill.id], approved=False)
    make_developer(db, level="FRESHER", skill_ids=[skill.id], available=False)
    other_skill = make_skill(db)
    make_developer(db, level="FRESHER", skill_ids=[other_skill.id])
    eligible = make_developer(db, level="FRESHER", skill_ids=[skill.id])
    project = make_project(db, client_user, [skill.id])

    result = generate_batch(db, project.id, {"fresher_count": 5, "mid_count": 0, "expert_count": 0})

    assert [c.developer_id for c in result.candidates] == [eligible.id]


def test_generate_batch_prefers_whatsapp_verified(db, skill, client_user):
    make_developer(db, level="FRESHER", skill_ids=[skill.id], whatsapp_verified=False)
    verified = make_developer(db, level="FRESHER", skill_ids=[skill.id], whatsapp_verified=True)
    project = make_project(db, client_user, [skill.id])

    result = generate_batch(db, project.id, ONE_FRESHER)

    assert [c.developer_id for c in result.candidates] == [verified.id]


def test_generate_batch_falls_back_to_unverified_pool(db, skill, client_user):
    unverified = make_developer(db, level="FRESHER", skill_ids=[skill.id], whatsapp_verified=False)
    project = make_project(db, client_user, [skill.id])

    result = generate_batch(db, project.id, ONE_FRESHER)

    assert [c.developer_id for c in result.candidates] == [unverified.id]


def test_empty_pool_creates_completed_batch(db, skill, client_user):
    project = make_project(db, client_user, [skill.id])

    result = generate_batch(db, project.id, ONE_EACH)

    assert result.candidates == []
    assert result.batch.status == BatchStatus.COMPLETED
    project = _reload(db, Project, project.id)
    assert project.status == ProjectStatus.SUBMITTED
    assert project.current_batch_id == result.batch.id


def test_rotation_cursor_spreads_offers_across_projects(db, skill, client_user):
    devs = [make_developer(db, level="FRESHER", skill_ids=[skill.id]) for _ in range(3)]
    first = make_project(db, client_user, [skill.id])
    second = make_project(db, client_user, [skill.id])

    a = generate_batch(db, first.id, ONE_FRESHER)
    b = generate_batch(db, second.id, ONE_FRESHER)

    assert a.candidates[0].developer_id == devs[0].id
    assert b.candidates[0].developer_id == devs[1].id


def test_rotation_cursor_with_larger_quota_offers_unpicked_developers_first(db, skill, client_user):
    devs = [make_developer(db, level="FRESHER", skill_ids=[skill.id]) for _ in range(4)]
    two = {"fresher_count": 2, "mid_count": 0, "expert_count": 0}

    a = generate_batch(db, make_project(db, client_user, [skill.id]).id, two)
    b = generate_batch(db, make_project(db, client_user, [skill.id]).id, two)

    assert sorted(c.developer_id for c in a.candidates) == [devs[0].id, devs[1].id]
    assert sorted(c.developer_id for c in b.candidates) == [devs[2].id, devs[3].id]


def test_generate_excludes_developers_already_offered_the_project(db, skill, client_user):
    devs = [make_developer(db, level="FRESHER", skill_ids=[skill.id]) for _ in range(2)]
    project = make_project(db, client_user, [skill.id])

    first = generate_batch(db, project.id, ONE_FRESHER)
    second = generate_batch(db, project.id, ONE_FRESHER)

    assert first.candidates[0].developer_id == devs[0].id
    assert second.candidates[0].developer_id == devs[1].id
    assert second.batch.batch_number == 2
    assert _reload(db, Project, project.id).current_batch_id == second.batch.id


def test_developer_over_pending_limit_is_skipped(db, skill, client_user, monkeypatch):
    from app.platform.config import settings

    monkeypatch.setattr(settings, "ROTATION_MAX_PENDING_INVITES_PER_DEV", 1)
    busy = make_developer(db, level="FRESHER", skill_ids=[skill.id])
    free = make_developer(db, level="FRESHER", skill_ids=[skill.id])
    first = make_project(db, client_user, [skill.id])
    second = make_project(db, client_user, [skill.id])

    generate_batch(db, first.id, ONE_FRESHER)
    result = generate_batch(db, second.id, {"fresher_count": 2, "mid_count": 0, "expert_count": 0})

    assert [c.developer_id for c in result.candidates] == [free.id]
    assert busy.id not in {c.developer_id for c in result.candidates}


def test_generate_batch_rejects_bad_selection(db, skill, client_user):
    project = make_project(db, client_user, [skill.id])
    with pytest.raises(InvalidSelectionError):
        generate_batch(db, project.id, {"fresher_count": 11})
    assert db.query(AssignmentBatch).count() == 0


def test_generate_batch_unknown_project(db):
    with pytest.raises(ProjectNotFoundError) as exc:
        generate_batch(db, 9999)
    assert exc.value.status_code == 404


@pytest.mark.parametrize("status", [ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED, ProjectStatus.CANCELED])
def test_generate_batch_blocked_for_closed_projects(db, skill, client_user, status):
    project = make_project(db, client_user, [skill.id], status=status)
    with pytest.raises(InvalidProjectStateError):
        generate_batch(db, project.id, ONE_FRESHER)


# ===================================================================
# refresh_batch / recycling
# ===================================================================

def test_refresh_invalidates_pending_and_replaces_batch(db, skill, client_user):
    devs = [make_developer(db, level="FRESHER", skill_ids=[skill.id]) for _ in range(2)]
    project = make_project(db, client_user, [skill.id])
    first = generate_batch(db, project.id, ONE_FRESHER)
    old_candidate_id = first.candidates[0].id

    refreshed = refresh_batch(db, project.id, ONE_FRESHER)

    assert refreshed.replaced_batch_id == first.batch.id
    assert [c.developer_id for c in refreshed.candidates] == [devs[1].id]
    old = _reload(db, AssignmentCandidate, old_candidate_id)
    assert old.response_status == CandidateStatus.INVALIDATED
    assert old.invalidated_at is not None
    assert old.status_text_for_client == "replaced"
    assert db.get(AssignmentBatch, first.batch.id).status == BatchStatus.REPLACED


def test_refresh_blocked_once_accepted(db, skill, client_user):
    project = make_project(db, client_user, [skill.id], status=ProjectStatus.ACCEPTED)
    with pytest.raises(InvalidProjectStateError):
        refresh_batch(db, project.id, ONE_FRESHER)


def test_invalidated_developer_is_recycled_when_pool_runs_dry(db, skill, client_user):
    dev = make_developer(db, level="FRESHER", skill_ids=[skill.id])
    project = make_project(db, client_user, [skill.id])
    generate_batch(db, project.id, ONE_FRESHER)
    emptied = refresh_batch(db, project.id, ONE_FRESHER)
    assert emptied.candidates == []

    # The developer drops the skill, so only recycling can bring them back
    db.query(DeveloperSkill).filter(DeveloperSkill.developer_id == dev.id).delete()
    db.commit()

    result = generate_batch(db, project.id, ONE_FRESHER)

    assert [c.developer_id for c in result.candidates] == [dev.id]
    assert result.candidates[0].skill_ids == [skill.id]


# ===================================================================
# accept / reject
# ===================================================================

def test_accept_claims_project_and_grants_contact(db, skill, client_user):
    devs = [make_developer(db, level="FRESHER", skill_ids=[skill.id]) for _ in range(2)]
    project = make_project(db, client_user, [skill.id])
    result = generate_batch(db, project.id, {"fresher_count": 2, "mid_count": 0, "expert_count": 0})
    winner, loser = result.candidates

    accepted = accept_candidate(db, winner.id, devs[0].user_id)

    assert accepted.response_status == CandidateStatus.ACCEPTED
    assert accepted.is_first_accepted is True
    assert accepted.responded_at is not None
    project = _reload(db, Project, project.id)
    assert project.status == ProjectStatus.ACCEPTED
    assert project.contact_reveal_enabled is True
    assert project.contact_revealed_developer_id == devs[0].id
    assert db.get(AssignmentBatch, result.batch.id).status == BatchStatus.COMPLETED
    grant = db.query(ContactGrant).filter(ContactGrant.project_id == project.id).one()
    assert grant.developer_id == devs[0].id
    assert grant.client_id == client_user.id

    with pytest.raises(InvalidCandidateStateError):
        accept_candidate(db, loser.id, devs[1].user_id)


def test_accept_loses_race_when_project_already_claimed(db, skill, client_user):
    dev = make_developer(db, level="FRESHER", skill_ids=[skill.id])
    project = make_project(db, client_user, [skill.id])
    result = generate_batch(db, project.id, ONE_FRESHER)

    # Another worker revealed contact between our checks and the claim
    db.query(Project).filter(Project.id == project.id).update({"contact_reveal_enabled": True})
    db.commit()

    with pytest.raises(AssignmentConflictError):
        accept_candidate(db, result.candidates[0].id, dev.user_id)
    candidate = _reload(db, AssignmentCandidate, result.candidates[0].id)
    assert candidate.response_status == CandidateStatus.PENDING
    assert db.query(ContactGrant).count() == 0


TWO_FRESHERS = {"fresher_count": 2, "mid_count": 0, "expert_count": 0}


def test_database_allows_one_first_accepted_candidate_per_project(db, skill, client_user):
    for _ in range(2):
        make_developer(db, level="FRESHER", skill_ids=[skill.id])
    project = make_project(db, client_user, [skill.id])
    first, second = generate_batch(db, project.id, TWO_FRESHERS).candidates

    first.is_first_accepted = True
    db.commit()
    second.is_first_accepted = True
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_accept_rolls_back_when_first_accept_index_trips(db, skill, client_user):
    devs = [make_developer(db, level="FRESHER", skill_ids=[skill.id]) for _ in range(2)]
    project = make_project(db, client_user, [skill.id])
    candidates = generate_batch(db, project.id, TWO_FRESHERS).candidates
    by_developer = {c.developer_id: c for c in candidates}
    winner, loser = by_developer[devs[0].id], by_developer[devs[1].id]

    # A winner row was committed while the project claim was still open
    winner.is_first_accepted = True
    db.commit()

    with pytest.raises(AssignmentConflictError):
        accept_candidate(db, loser.id, devs[1].user_id)

    refreshed = _reload(db, Project, project.id)
    assert refreshed.status == ProjectStatus.ASSIGNING
    assert refreshed.contact_reveal_enabled is False
    assert refreshed.contact_revealed_developer_id is None
    assert _reload(db, AssignmentCandidate, loser.id).response_status == CandidateStatus.PENDING
    assert db.query(ContactGrant).count() == 0


def test_accept_after_deadline_fails(db, skill, client_user):
    dev = make_developer(db, level="FRESHER", skill_ids=[skill.id])
    project = make_project(db, client_user, [skill.id])
    candidate = generate_batch(db, project.id, ONE_FRESHER).candidates[0]
    candidate.acceptance_deadline = utcnow() - timedelta(minutes=1)
    db.commit()

    with pytest.raises(InvalidCandidateStateError):
        accept_candidate(db, candidate.id, dev.user_id)


def test_accept_from_non_current_batch_fails(db, skill, client_user):
    devs = [make_developer(db, level="FRESHER", skill_ids=[skill.id]) for _ in range(2)]
    project = make_project(db, client_user, [skill.id])
    stale = generate_batch(db, project.id, ONE_FRESHER).candidates[0]
    generate_batch(db, project.id, ONE_FRESHER)

    with pytest.raises(InvalidCandidateStateError):
        accept_candidate(db, stale.id, devs[0].user_id)


def test_accept_someone_elses_candidate_forbidden(db, skill, client_user):
    make_developer(db, level="FRESHER", skill_ids=[skill.id])
    intruder = make_developer(db, level="MID", skill_ids=[])
    project = make_project(db, client_user, [skill.id])
    candidate = generate_batch(db, project.id, ONE_FRESHER).candidates[0]

    with pytest.raises(NotCandidateOwnerError) as exc:
        accept_candidate(db, candidate.id, intruder.user_id)
    assert exc.value.status_code == 403


def test_reject_marks_candidate_and_blocks_future_batches(db, skill, client_user):
    devs = [make_developer(db, level="FRESHER", skill_ids=[skill.id]) for _ in range(2)]
    project = make_project(db, client_user, [skill.id])
    candidate = generate_batch(db, project.id, ONE_FRESHER).candidates[0]

    rejected = reject_candidate(db, candidate.id, devs[0].user_id)
    assert rejected.response_status == CandidateStatus.REJECTED
    assert rejected.status_text_for_client == "developer declined"

    with pytest.raises(InvalidCandidateStateError):
        reject_candidate(db, candidate.id, devs[0].user_id)

    # Enough batches exist for the window to clear, the rejection still excludes
    for _ in range(4):
        refresh_batch(db, project.id, ONE_FRESHER)
    offered = {c.developer_id for c in db.query(AssignmentCandidate).filter(AssignmentCandidate.id != candidate.id)}
    assert devs[0].id not in offered


def test_reject_after_deadline_allowed_while_pending(db, skill, client_user):
    dev = make_developer(db, level="FRESHER", skill_ids=[skill.id])
    project = make_project(db, client_user, [skill.id])
    candidate = generate_batch(db, project.id, ONE_FRESHER).candidates[0]
    candidate.acceptance_deadline = utcnow() - timedelta(minutes=5)
    db.commit()

    assert reject_candidate(db, candidate.id, dev.user_id).response_status == CandidateStatus.REJECTED


# ===================================================================
# manual invites
# ===================================================================

def test_manual_invite_creates_non_expiring_offer(db, skill, client_user):
    dev = make_developer(db, level="EXPERT", skill_ids=[])
    project = make_project(db, client_user, [skill.id])

    candidate = create_manual_invite(db, project, dev.id, "  Would love your help  ", title="Dashboard", budget=500)

    assert candidate.source == BatchType.MANUAL_INVITE
    assert candidate.acceptance_deadline is None
    assert candidate.client_message == "Would love your help"
    assert candidate.invite_metadata == {"title": "Dashboard", "budget": "500"}
    batch = db.get(AssignmentBatch, candidate.batch_id)
    assert batch.batch_type == BatchType.MANUAL_INVITE
    assert batch.is_no_expire is True
    assert _reload(db, Project, project.id).current_batch_id is None


def test_manual_invite_validation(db, skill, client_user):
    dev = make_developer(db, level="EXPERT")
    pending = make_developer(db, level="EXPERT", approved=False)
    project = make_project(db, client_user, [skill.id])

    with pytest.raises(InvalidInviteError):
        create_manual_invite(db, project, dev.id, "   ")
    with pytest.raises(InvalidInviteError):
        create_manual_invite(db, project, dev.id, "x" * 301)
    with pytest.raises(InvalidInviteError):
        create_manual_invite(db, project, pending.id, "Hello")

    create_manual_invite(db, project, dev.id, "Hello")
    with pytest.raises(InvalidInviteError):
        create_manual_invite(db, project, dev.id, "Hello again")


def test_manual_invite_can_be_accepted_alongside_auto_batch(db, skill, client_user):
    make_developer(db, level="FRESHER", skill_ids=[skill.id])
    invited = make_developer(db, level="EXPERT")
    project = make_project(db, client_user, [skill.id])
    generate_batch(db, project.id, ONE_FRESHER)
    invite = create_manual_invite(db, _reload(db, Project, project.id), invited.id, "Hello")

    accepted = accept_candidate(db, invite.id, invited.user_id)

    assert accepted.is_first_accepted is True
    assert _reload(db, Project, project.id).contact_revealed_developer_id == invited.id


# ===================================================================
# can_generate_new_batch
# ===================================================================

def test_can_generate_new_batch_stops_after_repeated_empty_batches(db, skill, client_user):
    project = make_project(db, client_user, [skill.id])
    assert can_generate_new_batch(db, project.id) is True

    for _ in range(2):
        generate_batch(db, project.id, ONE_FRESHER)
    assert can_generate_new_batch(db, project.id) is True

    generate_batch(db, project.id, ONE_FRESHER)
    assert can_generate_new_batch(db, project.id) is False


def test_can_generate_new_batch_caps_total_batches(db, skill, client_user, monkeypatch):
    from app.platform.config import settings

    monkeypatch.setattr(settings, "ROTATION_MAX_BATCHES_PER_PROJECT", 2)
    for _ in range(3):
        make_developer(db, level="FRESHER", skill_ids=[skill.id])
    project = make_project(db, client_user, [skill.id])
    generate_batch(db, project.id, ONE_FRESHER)
    assert can_generate_new_batch(db, project.id) is True
    generate_batch(db, project.id, ONE_FRESHER)
    assert can_generate_new_batch(db, project.id) is False
