"""Tests for the markdown views."""

from datetime import date

from kinai.formatters.markdown import (
    MarkdownWriter,
    render_dashboard,
    render_intake_step,
    render_patient_detail,
)
from kinai.models import Patient, Session
from kinai.state import (
    AppState,
    AttachmentDraft,
    SuggestionReady,
    begin_analysis,
    begin_edit,
    finish_analysis,
    open_patient,
    update_patient_draft,
    wizard_next,
)

TODAY = date(2026, 10, 17)


class TestMarkdownWriter:
    def test_table_escapes_cells(self):
        md = MarkdownWriter()
        md.table(["A", "B"], [["x|y", "línea\nnueva"]])
        lines = md.text().splitlines()
        assert lines[0] == "| A | B |"
        assert lines[2] == "| x\\|y | línea nueva |"


class TestDashboard:
    def test_empty(self):
        assert "No hay pacientes registrados." in render_dashboard(AppState())

    def test_row_per_patient(self, sample_patient, sample_sessions):
        text = render_dashboard(AppState(patients=[sample_patient], sessions=sample_sessions))
        row = next(line for line in text.splitlines() if "Juan Pérez" in line)
        assert "Lumbalgia mecánica" in row
        assert "15/02/2024" in row
        assert "| 2 |" in row
        assert "p1" in row

    def test_patient_without_sessions(self):
        text = render_dashboard(AppState(patients=[Patient(id="x", full_name="Ana Gómez")]))
        row = next(line for line in text.splitlines() if "Ana Gómez" in line)
        assert "Sin diagnóstico" in row
        assert "N/A" in row
        assert "| 0 |" in row

    def test_search_filters(self, sample_patient):
        other = Patient(id="p2", full_name="Bruno Díaz", document_id="1")
        state = AppState(patients=[sample_patient, other], search_term="bruno")
        text = render_dashboard(state)
        assert "Bruno Díaz" in text
        assert "Juan Pérez" not in text
        assert "*Búsqueda: bruno*" in text


class TestPatientDetail:
    def test_identity_and_chart(self, sample_patient, sample_sessions):
        state = AppState(patients=[sample_patient], sessions=sample_sessions)
        text = render_patient_detail(state, "p1", today=TODAY)
        assert text.startswith("# Juan Pérez")
        assert "**Edad:** 46 años" in text
        assert "**Sesiones:** 2" in text
        assert "| 10/01 | 7 |" in text
        assert text.index("| 10/01 | 7 |") < text.index("| 15/02 | 3 |")

    def test_chart_needs_two_sessions(self, sample_patient, sample_sessions):
        state = AppState(patients=[sample_patient], sessions=sample_sessions[:1])
        text = render_patient_detail(state, "p1", today=TODAY)
        assert "Datos insuficientes para graficar (mínimo 2 sesiones)." in text

    def test_placeholders_for_missing_values(self):
        patient = Patient(id="x", full_name="Ana Gómez")
        text = render_patient_detail(AppState(patients=[patient]), "x", today=TODAY)
        assert "**Edad:** N/A" in text
        assert "**Derivación:** No registrado" in text
        assert "Sin datos." in text
        assert "Sin sesiones registradas." in text

    def test_attachments_listed_with_kind(self, sample_patient):
        text = render_patient_detail(AppState(patients=[sample_patient]), "p1", today=TODAY)
        assert "- [RMN](https://example.org/rmn.pdf) (pdf)" in text

    def test_history_newest_first(self, sample_patient, sample_sessions):
        state = AppState(patients=[sample_patient], sessions=sample_sessions)
        text = render_patient_detail(state, "p1", today=TODAY)
        assert text.index("*ID: s2*") < text.index("*ID: s1*")

    def test_editing_marker(self, sample_patient, sample_sessions):
        state = open_patient(AppState(patients=[sample_patient], sessions=sample_sessions), "p1")
        state = begin_edit(state, "s1")
        text = render_patient_detail(state, "p1", today=TODAY)
        assert "EVA 7/10 (editando)" in text
        assert "EVA 3/10 (editando)" not in text

    def test_ai_report_shown_for_active_patient(self, sample_patient):
        state = open_patient(AppState(patients=[sample_patient]), "p1")
        state = finish_analysis(begin_analysis(state), "p1", "Buena evolución.")
        text = render_patient_detail(state, "p1", today=TODAY)
        assert "## Análisis de IA" in text
        assert "Buena evolución." in text

    def test_unknown_patient(self):
        assert "no encontrado" in render_patient_detail(AppState(), "nope")

    def test_optional_session_fields(self, sample_patient):
        session = Session(
            id="s", patient_id="p1", date="2024-01-01",
            observations="Usa bastón", pain_map_url="https://maps.example/1",
        )
        text = render_patient_detail(AppState(patients=[sample_patient], sessions=[session]), "p1")
        assert "**Observaciones:** Usa bastón" in text
        assert "**Mapa de dolor:** https://maps.example/1" in text
        assert "Imagen del mapa" not in text


class TestIntakeStep:
    def test_step_one_fields(self):
        state = update_patient_draft(AppState(), full_name="Ana Gómez")
        text = render_intake_step(state)
        assert "Paso 1 de 2: Biopsicosocial" in text
        assert "- **Nombre completo:** Ana Gómez" in text
        assert "Palpación" not in text

    def test_step_two_with_attachments_and_suggestions(self):
        state = AppState(
            pending_attachments=(AttachmentDraft("Rx", "http://x/rx.png"),),
            patient_suggestions=SuggestionReady("palpation", ("Contractura", "Punto gatillo")),
        )
        state = wizard_next(state)
        text = render_intake_step(state)
        assert "Paso 2 de 2: Exploración Física y Seguridad" in text
        assert "1. Rx http://x/rx.png" in text
        assert "Sugerencias clínicas (Palpación): Contractura, Punto gatillo" in text
