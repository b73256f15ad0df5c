"""ClinicStore: the single owner of application state.

The store loads both collections from KinaiDB, runs commands from
kinai.state against the current AppState, and writes back every collection
a command replaced before returning. The async helpers wrap the AI and PDF
services with busy flags so a second identical request is ignored while one
is outstanding, and drop responses that arrive after the user moved on.
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import replace
from typing import Callable

from kinai import state as commands
from kinai.ai import SUMMARY_ERROR, AITextService, MockAIClient
from kinai.core.utils import new_id
from kinai.db import KinaiDB
from kinai.export_pdf import export_pdf
from kinai.models import Patient, Session
from kinai.state import AppState, SessionDraft, SuggestionLoading
from kinai.views import active_patient, active_patient_sessions


class ClinicStore:
    """In-memory application state backed by a KinaiDB."""

    def __init__(self, db: KinaiDB, ai: AITextService | None = None):
        self.db = db
        self.ai = ai or MockAIClient()
        db.init_schema()
        patients, sessions = db.load()
        self.state = AppState(patients=patients, sessions=sessions)

    @property
    def patients(self) -> list[Patient]:
        return self.state.patients

    @property
    def sessions(self) -> list[Session]:
        return self.state.sessions

    def dispatch(self, command: Callable[..., AppState], *args, **kwargs) -> AppState:
        """Apply a command and persist whichever collections it replaced."""
        before = self.state
        after = command(before, *args, **kwargs)
        self.state = after
        if after.patients is not before.patients:
            self.db.save_patients(after.patients)
        if after.sessions is not before.sessions:
            self.db.save_sessions(after.sessions)
        return after

    # --- Commands ---

    def register_patient(self, form: dict | None = None, attachments=None, **kwargs) -> Patient:
        """Register a patient from a form (or the intake draft). Returns the new patient."""
        self.dispatch(commands.register_patient, form, attachments, **kwargs)
        return self.state.patients[-1]

    def open_patient(self, patient_id: str) -> AppState:
        return self.dispatch(commands.open_patient, patient_id)

    def save_session(self, draft: SessionDraft | None = None, **kwargs) -> Session | None:
        """Add or update a session for the active patient.

        Returns the saved session, or None when nothing matched (no active
        patient, or an edit target that no longer exists).
        """
        editing_id = self.state.editing_session_id
        before = self.state
        after = self.dispatch(commands.add_or_update_session, draft, **kwargs)
        if after is before:
            return None
        if editing_id:
            return next((s for s in after.sessions if s.id == editing_id), None)
        return after.sessions[-1]

    def begin_edit(self, session_id: str) -> AppState:
        return self.dispatch(commands.begin_edit, session_id)

    def cancel_edit(self) -> AppState:
        return self.dispatch(commands.cancel_edit)

    # --- Async services ---

    async def analyze_progress(self) -> str | None:
        """Request an AI progress summary for the active patient.

        Returns the summary text, or None if no patient is active or a
        request is already running.
        """
        patient = active_patient(self.state)
        if patient is None or self.state.ai_busy:
            return None
        sessions = active_patient_sessions(self.state)
        self.dispatch(commands.begin_analysis)
        text = SUMMARY_ERROR
        try:
            text = await self.ai.summarize_progress(patient, sessions)
        except Exception as e:
            print(f"AI summary failed: {e}", file=sys.stderr)
        finally:
            self.dispatch(commands.finish_analysis, patient.id, text)
        return text

    async def suggest_terms(self, form: str, field_name: str, text: str) -> list[str]:
        """Ask for clinical terms for one form field; results land in that form's state."""
        if not text.strip():
            return []
        if isinstance(commands.suggestions_for(self.state, form), SuggestionLoading):
            return []
        request_id = new_id()
        self.dispatch(commands.begin_suggestion, form, field_name, request_id)
        terms: list[str] = []
        try:
            terms = await self.ai.suggest_terminology(text)
        except Exception as e:
            print(f"AI suggestion failed: {e}", file=sys.stderr)
        finally:
            self.dispatch(commands.finish_suggestion, form, request_id, terms)
        return terms

    async def export_pdf(self, output_dir: str = ".", today: str | None = None) -> str | None:
        """Write the active patient's PDF off the event loop. Returns its path."""
        patient = active_patient(self.state)
        if patient is None or self.state.pdf_busy:
            return None
        sessions = active_patient_sessions(self.state)
        self.dispatch(commands.begin_pdf)
        try:
            return await asyncio.to_thread(export_pdf, patient, sessions, output_dir, today)
        finally:
            self.dispatch(commands.finish_pdf)

    def reload(self) -> AppState:
        """Re-read both collections from storage, keeping view state."""
        patients, sessions = self.db.load()
        self.state = replace(self.state, patients=patients, sessions=sessions)
        return self.state
