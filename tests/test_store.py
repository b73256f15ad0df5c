"""Tests for ClinicStore: persistence side effects, scenarios and async services."""

import asyncio

import pytest

from kinai.ai import SUMMARY_ERROR, AITextService
from kinai.db import KinaiDB
from kinai.formatters.markdown import render_dashboard
from kinai.state import (
    FORM_PATIENT,
    FORM_SESSION,
    SessionDraft,
    SuggestionLoading,
    SuggestionNone,
    SuggestionReady,
    begin_suggestion,
    show_dashboard,
    update_session_draft,
)
from kinai.store import ClinicStore
from kinai.views import calculate_age, chart_series, patient_stats, sessions_for_patient


class FailingAI(AITextService):
    """Raises like a network failure would."""

    async def summarize_progress(self, patient, sessions):
        raise ConnectionError("network down")

    async def suggest_terminology(self, text):
        raise ConnectionError("network down")


class SlowAI(AITextService):
    """Blocks until released, so tests can act while a request is in flight."""

    def __init__(self):
        self.release = asyncio.Event()
        self.calls = 0

    async def summarize_progress(self, patient, sessions):
        self.calls += 1
        await self.release.wait()
        return "Resumen tardío"

    async def suggest_terminology(self, text):
        self.calls += 1
        await self.release.wait()
        return ["Término"]


class TestPersistence:
    def test_loads_existing_records(self, tmp_db, sample_patient, sample_sessions):
        tmp_db.save_patients([sample_patient])
        tmp_db.save_sessions(sample_sessions)
        store = ClinicStore(tmp_db)
        assert store.patients == [sample_patient]
        assert store.sessions == sample_sessions

    def test_register_persists_patients(self, store, tmp_db, ana_form):
        patient = store.register_patient(ana_form)
        assert tmp_db.load_patients() == [patient]

    def test_save_session_persists_sessions(self, store, tmp_db, ana_form):
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)
        session = store.save_session(SessionDraft(date="2024-01-10", pain_level=7))
        assert tmp_db.load_sessions() == [session]

    def test_view_only_commands_do_not_write(self, store, tmp_db, ana_form):
        store.register_patient(ana_form)
        tmp_db.set_text("kinai_patients", "[]")
        store.dispatch(show_dashboard)
        store.cancel_edit()
        assert tmp_db.get_text("kinai_patients") == "[]"

    def test_reload_reads_storage(self, store, tmp_db, sample_patient):
        tmp_db.save_patients([sample_patient])
        store.reload()
        assert store.patients == [sample_patient]

    def test_uninitialized_database_starts_empty(self, tmp_path, ana_form):
        with KinaiDB(str(tmp_path / "fresh.db")) as db:
            store = ClinicStore(db)
            assert store.patients == []
            assert store.sessions == []
            patient = store.register_patient(ana_form)
            assert db.load_patients() == [patient]

    def test_save_session_without_active_patient(self, store):
        assert store.save_session(SessionDraft(date="2024-01-01")) is None
        assert store.sessions == []


class TestScenarios:
    def test_register_ana_without_birth_date(self, store):
        store.register_patient({"full_name": "Ana Gómez", "document_id": "12345678"})
        ana = store.patients[0]
        assert calculate_age(ana.birth_date) is None
        dashboard = render_dashboard(store.state)
        assert "Ana Gómez" in dashboard
        assert "Sin diagnóstico" in dashboard

    def test_two_sessions_stats_and_chart(self, store, ana_form):
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)
        store.save_session(SessionDraft(date="2024-01-10", pain_level=7))
        store.save_session(SessionDraft(date="2024-02-15", pain_level=3))

        stats = patient_stats(store.sessions, patient.id)
        assert stats.session_count == 2
        assert stats.last_session_date == "2024-02-15"
        points = chart_series(store.sessions, patient.id)
        assert [(p.label, p.pain_level) for p in points] == [("10/01", 7), ("15/02", 3)]

    def test_edit_session_pain_level(self, store, ana_form):
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)
        first = store.save_session(SessionDraft(date="2024-01-10", pain_level=7))
        store.save_session(SessionDraft(date="2024-02-15", pain_level=3))

        store.begin_edit(first.id)
        store.dispatch(update_session_draft, pain_level=9)
        edited = store.save_session()

        sessions = sessions_for_patient(store.sessions, patient.id)
        assert len(sessions) == 2
        assert edited.id == first.id
        assert edited.date == "2024-01-10"
        assert edited.pain_level == 9
        assert store.state.editing_session_id is None

    def test_new_session_ids_are_fresh(self, store, ana_form):
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)
        ids = {store.save_session(SessionDraft(date=f"2024-01-0{i}")).id for i in range(1, 6)}
        assert len(ids) == 5
        assert all(s.patient_id == patient.id for s in store.sessions)


class TestAnalyzeProgress:
    @pytest.mark.asyncio
    async def test_summary_stored_in_state(self, store, ana_form):
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)
        text = await store.analyze_progress()
        assert text
        assert store.state.ai_report == text
        assert store.state.ai_busy is False

    @pytest.mark.asyncio
    async def test_failure_shows_fallback(self, tmp_db, ana_form):
        store = ClinicStore(tmp_db, ai=FailingAI())
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)
        text = await store.analyze_progress()
        assert text == SUMMARY_ERROR
        assert store.state.ai_report == SUMMARY_ERROR
        assert store.state.ai_busy is False

    @pytest.mark.asyncio
    async def test_no_active_patient(self, store):
        assert await store.analyze_progress() is None

    @pytest.mark.asyncio
    async def test_second_request_ignored_while_busy(self, tmp_db, ana_form):
        ai = SlowAI()
        store = ClinicStore(tmp_db, ai=ai)
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)

        first = asyncio.create_task(store.analyze_progress())
        await asyncio.sleep(0)
        assert store.state.ai_busy is True
        assert await store.analyze_progress() is None
        ai.release.set()
        assert await first == "Resumen tardío"
        assert ai.calls == 1

    @pytest.mark.asyncio
    async def test_response_after_navigation_dropped(self, tmp_db, ana_form):
        ai = SlowAI()
        store = ClinicStore(tmp_db, ai=ai)
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)

        task = asyncio.create_task(store.analyze_progress())
        await asyncio.sleep(0)
        store.dispatch(show_dashboard)
        ai.release.set()
        await task
        assert store.state.ai_report is None
        assert store.state.ai_busy is False


class TestSuggestTerms:
    @pytest.mark.asyncio
    async def test_terms_land_in_requesting_form(self, store):
        terms = await store.suggest_terms(FORM_SESSION, "objective", "dolor de rodilla")
        assert terms
        assert store.state.session_suggestions == SuggestionReady("objective", tuple(terms))
        assert isinstance(store.state.patient_suggestions, SuggestionNone)

    @pytest.mark.asyncio
    async def test_blank_text_skipped(self, store):
        assert await store.suggest_terms(FORM_PATIENT, "diagnosis", "   ") == []
        assert isinstance(store.state.patient_suggestions, SuggestionNone)

    @pytest.mark.asyncio
    async def test_failure_yields_empty(self, tmp_db):
        store = ClinicStore(tmp_db, ai=FailingAI())
        assert await store.suggest_terms(FORM_SESSION, "treatment", "hormigueo") == []
        assert isinstance(store.state.session_suggestions, SuggestionNone)

    @pytest.mark.asyncio
    async def test_ignored_while_form_loading(self, store):
        store.dispatch(begin_suggestion, FORM_SESSION, "objective", "pending")
        assert await store.suggest_terms(FORM_SESSION, "objective", "rodilla") == []
        assert store.state.session_suggestions == SuggestionLoading("objective", "pending")


class TestExportPdf:
    @pytest.mark.asyncio
    async def test_writes_file_and_clears_busy(self, store, ana_form, tmp_path, monkeypatch):
        monkeypatch.setattr("kinai.export_pdf._write_pdf", lambda html: b"%PDF-fake")
        patient = store.register_patient(ana_form)
        store.open_patient(patient.id)
        path = await store.export_pdf(str(tmp_path))
        assert path.endswith("Ficha_Ana_Gómez.pdf")
        assert (tmp_path / "Ficha_Ana_Gómez.pdf").read_bytes() == b"%PDF-fake"
        assert store.state.pdf_busy is False

    @pytest.mark.asyncio
    async def test_no_active_patient(self, store, tmp_path):
        assert await store.export_pdf(str(tmp_path)) is None
