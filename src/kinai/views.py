"""Derived, read-only projections of the record collections.

Nothing here is stored; every view is recomputed from the current state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from kinai.core.utils import format_short_date, parse_iso_date
from kinai.models import Patient, Session
from kinai.state import AppState

NOT_AVAILABLE = "N/A"
NO_DIAGNOSIS = "Sin diagnóstico"
NOT_RECORDED = "No registrado"

MIN_CHART_POINTS = 2

_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


@dataclass(frozen=True)
class ChartPoint:
    """One point of the pain-evolution chart."""

    label: str  # dd/mm
    pain_level: int


@dataclass(frozen=True)
class PatientStats:
    session_count: int
    last_session_date: str | None  # ISO YYYY-MM-DD


def filtered_patients(patients: list[Patient], search_term: str) -> list[Patient]:
    """Patients whose name contains the term (any case) or whose document ID contains it.

    An empty term matches everyone. Collection order is preserved.
    """
    needle = search_term.lower()
    return [
        p for p in patients
        if needle in p.full_name.lower() or search_term in p.document_id
    ]


def sessions_for_patient(sessions: list[Session], patient_id: str) -> list[Session]:
    """A patient's sessions, most recent (date, time) first.

    The sort is stable, so sessions with identical timestamps keep their stored order.
    """
    own = [s for s in sessions if s.patient_id == patient_id]
    return sorted(own, key=lambda s: (s.date, s.time), reverse=True)


def chart_series(sessions: list[Session], patient_id: str) -> list[ChartPoint]:
    """Pain levels over time, oldest session first."""
    own = sessions_for_patient(sessions, patient_id)
    # Stable sort on the newest-first list keeps same-day sessions in that order.
    own.sort(key=lambda s: s.date)
    return [ChartPoint(format_short_date(s.date), s.pain_level or 0) for s in own]


def has_chart(points: list[ChartPoint]) -> bool:
    """A trend needs at least two points; fewer is the 'insufficient data' state."""
    return len(points) >= MIN_CHART_POINTS


def patient_stats(sessions: list[Session], patient_id: str) -> PatientStats:
    own = [s for s in sessions if s.patient_id == patient_id]
    last = max((s.date for s in own), default=None)
    return PatientStats(session_count=len(own), last_session_date=last)


def calculate_age(birth_date: str, today: date | None = None) -> int | None:
    """Whole years since birth_date, or None when the birth date is unknown.

    The age goes up on the birthday itself, not the day after.
    """
    birth = parse_iso_date(birth_date)
    if birth is None:
        return None
    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def age_label(birth_date: str, today: date | None = None) -> str:
    age = calculate_age(birth_date, today)
    return NOT_AVAILABLE if age is None else f"{age} años"


def diagnosis_label(patient: Patient) -> str:
    return patient.diagnosis or NO_DIAGNOSIS


def field_or_default(value: str, default: str = NOT_RECORDED) -> str:
    return value if value and value.strip() else default


def attachment_kind(url: str) -> str:
    """Classify an attachment link as 'image', 'pdf' or 'link' by its extension."""
    extension = url.rsplit(".", 1)[-1].lower() if "." in url else ""
    if extension in _IMAGE_EXTENSIONS:
        return "image"
    if extension == "pdf":
        return "pdf"
    return "link"


def find_patient(patients: list[Patient], patient_id: str | None) -> Patient | None:
    return next((p for p in patients if p.id == patient_id), None)


def active_patient(state: AppState) -> Patient | None:
    return find_patient(state.patients, state.active_patient_id)


def active_patient_sessions(state: AppState) -> list[Session]:
    if state.active_patient_id is None:
        return []
    return sessions_for_patient(state.sessions, state.active_patient_id)
