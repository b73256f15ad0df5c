"""Shared test fixtures for kinai tests."""

import itertools

import pytest

from kinai.ai import MockAIClient
from kinai.db import KinaiDB
from kinai.models import Attachment, Patient, Session
from kinai.store import ClinicStore


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary SQLite database with schema initialized."""
    db_path = str(tmp_path / "test.db")
    db = KinaiDB(db_path)
    db.init_schema()
    yield db
    db.close()


@pytest.fixture
def store(tmp_db):
    """A ClinicStore over an empty database with the offline AI client."""
    return ClinicStore(tmp_db, ai=MockAIClient())


@pytest.fixture
def id_factory():
    """Deterministic id generator: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def ana_form():
    return {
        "full_name": "Ana Gómez",
        "document_id": "12345678",
        "sex": "F",
        "profession": "Docente",
        "dominance": "diestro",
        "phone": "555-0101",
    }


@pytest.fixture
def sample_patient():
    return Patient(
        id="p1",
        full_name="Juan Pérez",
        document_id="30111222",
        birth_date="1980-05-20",
        sex="M",
        consultation_date="2024-01-05",
        profession="Carpintero",
        dominance="zurdo",
        phone="555-0199",
        referral="Dr. López",
        diagnosis="Lumbalgia mecánica",
        medical_history="Hernia L4-L5 en 2019",
        ice="Cree que no volverá a trabajar",
        social_determinants="Vive solo, buena red de apoyo",
        chronopathology="Peor por la mañana",
        red_flags="Ninguna",
        static_inspection="Hiperlordosis lumbar",
        dynamic_inspection="Marcha antálgica",
        palpation="Contractura paravertebral",
        auscultation="",
        percussion="Puño percusión negativa",
        attachments=[Attachment(id="a1", name="RMN", url="https://example.org/rmn.pdf")],
        created_at=1704450000000,
    )


@pytest.fixture
def sample_sessions():
    return [
        Session(
            id="s1",
            patient_id="p1",
            date="2024-01-10",
            time="09:00",
            objective="Disminuir dolor",
            treatment="TENS, movilización",
            evolution="Tolera bien",
            pain_level=7,
            created_at=1704880000000,
        ),
        Session(
            id="s2",
            patient_id="p1",
            date="2024-02-15",
            time="10:30",
            objective="Fortalecer core",
            treatment="Ejercicio terapéutico",
            evolution="Mejora funcional",
            pain_level=3,
            created_at=1707990000000,
        ),
    ]
