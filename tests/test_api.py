import logging
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from cfc_tracker.api.deps import CurrentUser
from cfc_tracker.api.main import create_app
from cfc_tracker.core.config import Settings
from cfc_tracker.core.constants import utc_now
from cfc_tracker.database.models import UserModuleNoteDB
from cfc_tracker.database.repositories import UserSessionRepository
from cfc_tracker.services.progress_service import ProgressService


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "connected"}


@pytest.mark.parametrize(
    "method,path,body",
    [
        ("get", "/api/modules", None),
        ("get", "/api/modules/year/1", None),
        ("put", "/api/modules/mod-106/note", {"note": 4}),
        ("get", "/api/competences", None),
        ("put", "/api/competences/comp-algo/niveau", {"niveau": 3}),
        ("get", "/api/export/csv", None),
        ("get", "/api/export/json", None),
    ],
)
def test_endpoints_require_authentication(client, method, path, body):
    response = client.request(method.upper(), path, json=body)

    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTHENTICATION_FAILED"
    assert response.headers["www-authenticate"] == "Bearer"


def test_expired_session_is_rejected(client, session, user):
    UserSessionRepository(session).create(user.id, "old-token", utc_now() - timedelta(hours=1))

    response = client.get("/api/modules", headers={"Authorization": "Bearer old-token"})

    assert response.status_code == 401


def test_session_cookie_is_accepted(client, auth_headers):
    token = auth_headers["Authorization"].split(" ", 1)[1]
    client.cookies.set("session_token", token)

    assert client.get("/api/modules").status_code == 200


def test_list_modules_grouped_by_year(client, auth_headers, session, user):
    ProgressService(session).set_grade(user.id, "mod-106", 5.0)
    ProgressService(session).set_grade(user.id, "mod-187", 2.0)

    response = client.get("/api/modules", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert list(data["modules"]) == ["1", "2"]
    year_one = data["modules"]["1"]
    assert [m["code"] for m in year_one] == ["106", "117", "187"]
    assert year_one[1]["note"] == 0
    assert year_one[2]["isCie"] is True
    assert data["averages"]["normal"] == pytest.approx(5.0)
    assert data["averages"]["cie"] == pytest.approx(2.0)
    assert data["averages"]["weighted"] == pytest.approx(4.4)
    assert [y["annee"] for y in data["years"]] == [1, 2]


def test_list_modules_for_year(client, auth_headers):
    response = client.get("/api/modules/year/2", headers=auth_headers)

    assert response.status_code == 200
    assert [m["code"] for m in response.json()["modules"]] == ["431"]


def test_list_modules_for_unknown_year(client, auth_headers):
    response = client.get("/api/modules/year/7", headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_update_note_twice_keeps_one_row(client, auth_headers, session, user):
    first = client.put("/api/modules/mod-106/note", json={"note": 4.5}, headers=auth_headers)
    second = client.put("/api/modules/mod-106/note", json={"note": 5}, headers=auth_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["note"]["id"] == first.json()["note"]["id"]
    assert second.json()["note"]["note"] == 5.0
    assert second.json()["averages"]["graded_modules"] == 1

    session.expire_all()
    assert session.query(UserModuleNoteDB).filter_by(user_id=user.id).count() == 1


@pytest.mark.parametrize("note", [-1, 6.5, "5", True, None])
def test_update_note_rejects_invalid_values(client, auth_headers, note):
    response = client.put("/api/modules/mod-106/note", json={"note": note}, headers=auth_headers)

    assert response.status_code == 422


def test_update_note_unknown_module(client, auth_headers, session):
    response = client.put("/api/modules/nope/note", json={"note": 4}, headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "MODULE_NOT_FOUND"
    session.expire_all()
    assert session.query(UserModuleNoteDB).count() == 0


def test_competences_by_domain_with_stats(client, auth_headers, session, user):
    ProgressService(session).set_competency_level(user.id, "comp-web", 5)

    response = client.get("/api/competences", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert [c["nom"] for c in data["competences"]] == ["Algorithmique", "Applications web", "Réseaux"]
    assert list(data["by_domaine"]) == ["Développement", "Infrastructure"]
    assert data["competences"][0]["niveau"] == 0
    assert data["stats"] == {"beginner": 0, "intermediate": 0, "mastered": 1, "unset": 2, "total": 3}


def test_competences_with_modules(client, auth_headers):
    response = client.get("/api/competences/modules", headers=auth_headers)

    assert response.status_code == 200
    web = next(c for c in response.json()["competences"] if c["id"] == "comp-web")
    assert [m["code"] for m in web["modules"]] == ["106", "431"]
    assert web["domaine"]["nom"] == "Développement"


def test_update_niveau(client, auth_headers):
    response = client.put("/api/competences/comp-algo/niveau", json={"niveau": 3}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["niveau"]["niveau"] == 3


@pytest.mark.parametrize("niveau", [0, 6, 2.5])
def test_update_niveau_rejects_invalid_values(client, auth_headers, niveau):
    response = client.put("/api/competences/comp-algo/niveau", json={"niveau": niveau}, headers=auth_headers)

    assert response.status_code == 422


def test_update_niveau_unknown_competence(client, auth_headers):
    response = client.put("/api/competences/nope/niveau", json={"niveau": 3}, headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "COMPETENCE_NOT_FOUND"


def test_export_csv(client, auth_headers, session, user):
    ProgressService(session).set_grade(user.id, "mod-431", 4.5)

    response = client.get("/api/export/csv", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/csv; charset=utf-8; sep=;"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="notes-cfc-')
    assert disposition.endswith('.csv"')
    assert response.text == 'Module;Note\n"Exécuter des mandats";4,5\n'


def test_export_json(client, auth_headers, session, user, other_user):
    ProgressService(session).set_grade(user.id, "mod-106", 5.0)
    ProgressService(session).set_grade(other_user.id, "mod-117", 3.0)

    response = client.get("/api/export/json", headers=auth_headers)

    assert response.status_code == 200
    assert 'filename="seed-data-' in response.headers["content-disposition"]
    data = response.json()
    assert data["notesUtilisateur"] == [{"moduleId": "mod-106", "note": 5.0}]
    assert data["metadata"]["totalCompetences"] == 3
    assert len(data["liensCompetenceModule"]) == 4


def test_public_report_without_notes(client):
    response = client.get("/notes-public")

    assert response.status_code == 404


def test_public_report_falls_back_to_first_user_with_notes(client, session, user):
    ProgressService(session).set_grade(user.id, "mod-106", 5.0)

    response = client.get("/notes-public")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Notes de Jane Doe" in response.text
    assert "<strong>Moyenne générale :</strong> 5.00/6" in response.text


def test_public_report_configured_user(database, reference_data, session, user, other_user):
    progress = ProgressService(session)
    progress.set_grade(user.id, "mod-106", 5.0)
    progress.set_grade(other_user.id, "mod-106", 3.5)
    app = create_app(settings=Settings(public_report_user_name="John Roe"), database=database)

    with TestClient(app) as client:
        response = client.get("/notes-public")

    assert response.status_code == 200
    assert "Notes de John Roe" in response.text


def test_session_lookup_can_be_replaced(app, reference_data, user):
    app.state.session_lookup = lambda headers, db: CurrentUser(user_id=user.id, email=user.email, name=user.name)

    with TestClient(app) as client:
        response = client.put("/api/modules/mod-117/note", json={"note": 6}, headers={})

    assert response.status_code == 200
    assert response.json()["note"]["user_id"] == user.id


def test_update_note_with_info_logging(client, auth_headers, caplog):
    caplog.set_level(logging.INFO)

    response = client.put("/api/modules/mod-106/note", json={"note": 4.5}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["note"]["note"] == 4.5


def test_public_report_unknown_configured_user_falls_back(database, reference_data, session, user, caplog):
    caplog.set_level(logging.INFO)
    ProgressService(session).set_grade(user.id, "mod-106", 5.0)
    app = create_app(settings=Settings(public_report_user_name="Nobody"), database=database)

    with TestClient(app) as client:
        response = client.get("/notes-public")

    assert response.status_code == 200
    assert "Notes de Jane Doe" in response.text
    assert any(getattr(r, "report_user", None) == "Nobody" for r in caplog.records)
