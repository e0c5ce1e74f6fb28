from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from cfc_tracker.api.main import create_app
from cfc_tracker.core.config import Settings
from cfc_tracker.core.constants import utc_now
from cfc_tracker.database.config import Database, DatabaseConfig
from cfc_tracker.database.repositories import (
    CompetenceModuleRepository,
    CompetenceRepository,
    DomaineRepository,
    ModuleRepository,
    UserRepository,
    UserSessionRepository,
)

TOKEN = "test-session-token"


@pytest.fixture
def database(tmp_path):
    db = Database(DatabaseConfig(url=f"sqlite:///{tmp_path / 'test.db'}"))
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    with database.session() as s:
        yield s


@pytest.fixture
def reference_data(session):
    """Two domains, three competences, four modules (one CIE) over two years"""
    domaines = DomaineRepository(session)
    competences = CompetenceRepository(session)
    modules = ModuleRepository(session)
    links = CompetenceModuleRepository(session)

    dev = domaines.create("Développement", domaine_id="dom-dev")
    infra = domaines.create("Infrastructure", domaine_id="dom-infra")

    c_algo = competences.create("Algorithmique", "Concevoir des algorithmes", dev.id, competence_id="comp-algo")
    c_web = competences.create("Applications web", "Réaliser une application web", dev.id, competence_id="comp-web")
    c_net = competences.create("Réseaux", "Mettre en place un réseau", infra.id, competence_id="comp-net")

    m_117 = modules.create("Installer l'infrastructure", "117", 1, module_id="mod-117")
    m_106 = modules.create("Interroger des bases de données", "106", 1, module_id="mod-106")
    m_187 = modules.create("Mettre en service un poste de travail", "187", 1, is_cie=True, module_id="mod-187")
    m_431 = modules.create("Exécuter des mandats", "431", 2, module_id="mod-431")

    links.link(c_algo.id, m_106.id)
    links.link(c_web.id, m_431.id)
    links.link(c_web.id, m_106.id)
    links.link(c_net.id, m_117.id)

    return {
        "domaines": [dev, infra],
        "competences": [c_algo, c_web, c_net],
        "modules": [m_106, m_117, m_187, m_431],
    }


@pytest.fixture
def user(session):
    return UserRepository(session).create(name="Jane Doe", email="jane@example.ch", user_id="user-jane")


@pytest.fixture
def other_user(session):
    return UserRepository(session).create(name="John Roe", email="john@example.ch", user_id="user-john")


@pytest.fixture
def auth_headers(session, user):
    UserSessionRepository(session).create(user.id, TOKEN, utc_now() + timedelta(hours=1))
    return {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def app(database):
    return create_app(settings=Settings(), database=database)


@pytest.fixture
def client(app, reference_data):
    with TestClient(app) as c:
        yield c
