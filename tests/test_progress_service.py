import logging
import threading

import pytest
from sqlalchemy.exc import OperationalError

from cfc_tracker.core.errors import AuthError, InternalError, NotFoundError, ValidationError
from cfc_tracker.database.repositories import UserCompetenceNiveauRepository, UserModuleNoteRepository
from cfc_tracker.services.progress_service import ProgressService, validate_niveau, validate_note


@pytest.mark.parametrize("value", [0, 0.0, 4.5, 6, 6.0, 5.25])
def test_validate_note_accepts_bounds_and_decimals(value):
    assert validate_note(value) == float(value)


@pytest.mark.parametrize("value", [-0.1, 6.01, 7, float("nan"), "5", None, True])
def test_validate_note_rejects(value):
    with pytest.raises(ValidationError):
        validate_note(value)


@pytest.mark.parametrize("value", [1, 3, 5, 4.0])
def test_validate_niveau_accepts(value):
    assert validate_niveau(value) == int(value)


@pytest.mark.parametrize("value", [0, 6, 2.5, "3", None, False])
def test_validate_niveau_rejects(value):
    with pytest.raises(ValidationError):
        validate_niveau(value)


def test_set_grade_creates_then_updates_same_row(session, reference_data, user):
    service = ProgressService(session)

    first = service.set_grade(user.id, "mod-106", 4.5)
    first_id, first_updated_at = first.id, first.updated_at
    second = service.set_grade(user.id, "mod-106", 5.0)

    assert second.id == first_id
    assert second.note == 5.0
    assert second.updated_at >= first_updated_at
    assert UserModuleNoteRepository(session).count_for(user.id, "mod-106") == 1


def test_set_grade_is_idempotent(session, reference_data, user):
    service = ProgressService(session)

    first = service.set_grade(user.id, "mod-106", 4.5)
    again = service.set_grade(user.id, "mod-106", 4.5)

    assert again.id == first.id
    assert again.note == 4.5
    assert UserModuleNoteRepository(session).count_for(user.id, "mod-106") == 1


def test_set_grade_keeps_users_apart(session, reference_data, user, other_user):
    service = ProgressService(session)

    service.set_grade(user.id, "mod-106", 4.0)
    service.set_grade(other_user.id, "mod-106", 6.0)

    notes = UserModuleNoteRepository(session)
    assert notes.get(user.id, "mod-106").note == 4.0
    assert notes.get(other_user.id, "mod-106").note == 6.0


def test_set_grade_unknown_module_writes_nothing(session, reference_data, user):
    with pytest.raises(NotFoundError) as exc_info:
        ProgressService(session).set_grade(user.id, "mod-missing", 4.0)

    assert exc_info.value.entity == "module"
    assert UserModuleNoteRepository(session).get_by_user(user.id) == []


def test_set_grade_validates_before_lookup(session, reference_data, user):
    # Out-of-range value on an unknown module is a validation error, not a 404
    with pytest.raises(ValidationError):
        ProgressService(session).set_grade(user.id, "mod-missing", 7)


def test_set_grade_requires_user(session, reference_data):
    with pytest.raises(AuthError):
        ProgressService(session).set_grade("", "mod-106", 4.0)


def test_set_competency_level_upserts(session, reference_data, user):
    service = ProgressService(session)

    first = service.set_competency_level(user.id, "comp-algo", 2)
    second = service.set_competency_level(user.id, "comp-algo", 4)

    assert second.id == first.id
    assert second.niveau == 4
    assert UserCompetenceNiveauRepository(session).count_for(user.id, "comp-algo") == 1


def test_set_competency_level_unknown_competence(session, reference_data, user):
    with pytest.raises(NotFoundError):
        ProgressService(session).set_competency_level(user.id, "comp-missing", 3)


def test_storage_failure_becomes_internal_error(session, reference_data, user, monkeypatch):
    service = ProgressService(session)

    def broken_upsert(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(service.notes, "upsert", broken_upsert)

    with pytest.raises(InternalError):
        service.set_grade(user.id, "mod-106", 4.0)


def test_concurrent_upserts_leave_one_row(database, reference_data, user):
    values = [3.0, 3.5, 4.0, 4.5, 5.0, 5.5, 6.0, 2.5]
    barrier = threading.Barrier(len(values))
    errors = []

    def worker(value):
        with database.session() as s:
            barrier.wait()
            try:
                ProgressService(s).set_grade(user.id, "mod-431", value)
            except Exception as e:  # collected and asserted below
                errors.append(e)

    threads = [threading.Thread(target=worker, args=(v,)) for v in values]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    with database.session() as s:
        notes = UserModuleNoteRepository(s)
        assert notes.count_for(user.id, "mod-431") == 1
        assert notes.get(user.id, "mod-431").note in values


def test_upserts_log_whether_the_row_is_new(session, reference_data, user, caplog):
    caplog.set_level(logging.INFO, logger="cfc_tracker.services.progress_service")
    service = ProgressService(session)

    row = service.set_grade(user.id, "mod-106", 4.5)
    service.set_grade(user.id, "mod-106", 5.0)
    level = service.set_competency_level(user.id, "comp-algo", 3)

    assert row.note == 5.0
    assert level.niveau == 3
    records = [r for r in caplog.records if r.name == "cfc_tracker.services.progress_service"]
    assert [(r.getMessage(), r.is_new) for r in records] == [
        ("Note created", True),
        ("Note updated", False),
        ("Niveau created", True),
    ]
