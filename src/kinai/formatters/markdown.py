"""Markdown rendering of the three views: patient list, patient detail, intake wizard."""

from __future__ import annotations

from datetime import date

from kinai.core.utils import format_display_date
from kinai.state import INTAKE_STEP_FIELDS, AppState, SuggestionReady
from kinai.views import (
    NOT_AVAILABLE,
    age_label,
    attachment_kind,
    chart_series,
    diagnosis_label,
    field_or_default,
    filtered_patients,
    find_patient,
    has_chart,
    patient_stats,
    sessions_for_patient,
)

INTAKE_STEP_TITLES = {
    1: "Biopsicosocial",
    2: "Exploración Física y Seguridad",
}

FIELD_LABELS = {
    "full_name": "Nombre completo",
    "document_id": "Documento",
    "birth_date": "Fecha de nacimiento",
    "sex": "Sexo",
    "consultation_date": "Fecha de consulta",
    "profession": "Profesión",
    "dominance": "Dominancia (diestro/zurdo/ambidiestro)",
    "phone": "Teléfono",
    "referral": "Derivación",
    "diagnosis": "Diagnóstico",
    "medical_history": "Antecedentes médicos",
    "ice": "ICE (Ideas, Creencias, Expectativas)",
    "social_determinants": "Determinantes sociales",
    "chronopathology": "Cronopatología",
    "red_flags": "Red flags / Banderas rojas",
    "static_inspection": "Inspección estática",
    "dynamic_inspection": "Inspección dinámica",
    "palpation": "Palpación",
    "auscultation": "Auscultación",
    "percussion": "Percusión",
}


class MarkdownWriter:
    """Builds markdown output incrementally."""

    def __init__(self):
        self._lines: list[str] = []

    def w(self, line: str = "") -> None:
        self._lines.append(line)

    def heading(self, text: str, level: int = 2) -> None:
        self.w(f"{'#' * level} {text}")
        self.w()

    def table(self, headers: list[str], rows: list[list[str]]) -> None:
        self.w("| " + " | ".join(headers) + " |")
        self.w("|" + "|".join("---" for _ in headers) + "|")
        for row in rows:
            self.w("| " + " | ".join(_cell(c) for c in row) + " |")
        self.w()

    def separator(self) -> None:
        self.w("---")
        self.w()

    def text(self) -> str:
        return "\n".join(self._lines)


def _cell(value) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def render_dashboard(state: AppState) -> str:
    """Patient list filtered by the current search term."""
    md = MarkdownWriter()
    md.heading("Panel de Pacientes", level=1)
    if state.search_term:
        md.w(f"*Búsqueda: {state.search_term}*")
        md.w()

    patients = filtered_patients(state.patients, state.search_term)
    if not patients:
        md.w("No hay pacientes registrados.")
        return md.text()

    rows = []
    for p in patients:
        stats = patient_stats(state.sessions, p.id)
        last = format_display_date(stats.last_session_date) if stats.last_session_date else NOT_AVAILABLE
        rows.append([
            f"**{p.full_name}** · {diagnosis_label(p)}",
            p.document_id,
            last,
            stats.session_count,
            p.id,
        ])
    md.table(["Paciente y Diagnóstico", "Documento", "Última Sesión", "Sesiones", "ID"], rows)
    return md.text()


def render_patient_detail(state: AppState, patient_id: str, today: date | None = None) -> str:
    """Full record of one patient: identity, pain chart, intake, attachments, sessions."""
    patient = find_patient(state.patients, patient_id)
    md = MarkdownWriter()
    if patient is None:
        md.w(f"Paciente {patient_id} no encontrado.")
        return md.text()

    md.heading(patient.full_name, level=1)
    md.w(f"*{diagnosis_label(patient)}*")
    md.w()
    md.w(f"- **Documento:** {patient.document_id}")
    md.w(f"- **Edad:** {age_label(patient.birth_date, today)}")
    md.w(f"- **Sexo:** {patient.sex}")
    md.w(f"- **Profesión:** {patient.profession}")
    md.w(f"- **Dominancia:** {patient.dominance}")
    md.w(f"- **Teléfono:** {patient.phone}")
    md.w(f"- **Derivación:** {field_or_default(patient.referral)}")
    md.w(f"- **Primera consulta:** {format_display_date(patient.consultation_date)}")
    md.w()

    stats = patient_stats(state.sessions, patient.id)
    md.w(f"**Sesiones:** {stats.session_count}")
    md.w()

    md.heading("Evolución del Dolor (EVA)", level=2)
    points = chart_series(state.sessions, patient.id)
    if has_chart(points):
        md.table(["Fecha", "Dolor"], [[p.label, p.pain_level] for p in points])
    else:
        md.w("Datos insuficientes para graficar (mínimo 2 sesiones).")
        md.w()

    md.separator()
    md.heading("Evaluación Biopsicosocial", level=2)
    for title, value in (
        ("Antecedentes Médicos", patient.medical_history),
        ("ICE (Ideas, Creencias, Expectativas)", patient.ice),
        ("Determinantes Sociales", patient.social_determinants),
        ("Cronopatología", patient.chronopathology),
        ("Red Flags", patient.red_flags),
    ):
        md.heading(title, level=3)
        md.w(field_or_default(value))
        md.w()

    md.heading("Hallazgos de Exploración", level=2)
    for title, value in (
        ("Inspección Estática", patient.static_inspection),
        ("Inspección Dinámica", patient.dynamic_inspection),
        ("Palpación", patient.palpation),
        ("Auscultación", patient.auscultation),
        ("Percusión", patient.percussion),
    ):
        md.heading(title, level=3)
        md.w(field_or_default(value, "Sin datos."))
        md.w()

    if patient.attachments:
        md.heading("Adjuntos", level=2)
        for a in patient.attachments:
            md.w(f"- [{a.name or a.url}]({a.url}) ({attachment_kind(a.url)})")
        md.w()

    if state.ai_report and state.active_patient_id == patient.id:
        md.separator()
        md.heading("Análisis de IA", level=2)
        md.w(state.ai_report)
        md.w()

    sessions = sessions_for_patient(state.sessions, patient.id)
    md.separator()
    md.heading("Historial de Sesiones", level=2)
    if not sessions:
        md.w("Sin sesiones registradas.")
        return md.text()
    for s in sessions:
        marker = " (editando)" if s.id == state.editing_session_id else ""
        md.heading(f"{format_display_date(s.date)} {s.time} · EVA {s.pain_level}/10{marker}", level=3)
        md.w(f"*ID: {s.id}*")
        md.w()
        md.w(f"**Objetivo:** {s.objective}")
        md.w(f"**Tratamiento:** {s.treatment}")
        md.w(f"**Evolución:** {s.evolution}")
        if s.observations:
            md.w(f"**Observaciones:** {s.observations}")
        if s.pain_map_url:
            md.w(f"**Mapa de dolor:** {s.pain_map_url}")
        if s.pain_map_image:
            md.w(f"**Imagen del mapa:** {s.pain_map_image}")
        md.w()
    return md.text()


def render_intake_step(state: AppState) -> str:
    """Current step of the new-patient wizard with the draft values entered so far."""
    step = state.wizard_step
    md = MarkdownWriter()
    md.heading("Nuevo Paciente", level=1)
    md.w(f"Paso {step} de 2: {INTAKE_STEP_TITLES[step]}")
    md.w()
    for name in INTAKE_STEP_FIELDS[step]:
        md.w(f"- **{FIELD_LABELS[name]}:** {state.patient_draft.get(name, '')}")
    if step == 2 and state.pending_attachments:
        md.w()
        md.heading("Adjuntos", level=3)
        for i, row in enumerate(state.pending_attachments, 1):
            md.w(f"{i}. {row.name} {row.url}")
    suggestions = state.patient_suggestions
    if isinstance(suggestions, SuggestionReady):
        md.w()
        md.w(f"Sugerencias clínicas ({FIELD_LABELS[suggestions.field]}): {', '.join(suggestions.terms)}")
    return md.text()
