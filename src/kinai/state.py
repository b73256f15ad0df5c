"""Application state and the command handlers that transform it.

Every command is a pure function ``(state, input) -> state``: it never mutates
the state it receives and never touches storage. Collections are replaced, not
modified, so callers can tell which ones changed by identity. Persisting the
result is the job of ClinicStore (see kinai.store).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable

from kinai.core.utils import new_id, now_ms, today_iso
from kinai.errors import ValidationError
from kinai.models import (
    DEFAULT_PAIN_INPUT,
    SESSION_EDITABLE_FIELDS,
    Attachment,
    Patient,
    Session,
    clamp_pain_level,
    normalize_dominance,
)

VIEW_DASHBOARD = "dashboard"
VIEW_PATIENT_DETAIL = "patient-detail"
VIEW_NEW_PATIENT = "new-patient"
VIEWS = (VIEW_DASHBOARD, VIEW_PATIENT_DETAIL, VIEW_NEW_PATIENT)

FORM_PATIENT = "patient"
FORM_SESSION = "session"

# Intake wizard: step 1 is biopsychosocial, step 2 physical exam and safety.
INTAKE_STEP_FIELDS: dict[int, tuple[str, ...]] = {
    1: (
        "full_name",
        "document_id",
        "birth_date",
        "sex",
        "consultation_date",
        "profession",
        "dominance",
        "phone",
        "referral",
        "diagnosis",
        "medical_history",
        "ice",
        "social_determinants",
        "chronopathology",
    ),
    2: (
        "red_flags",
        "static_inspection",
        "dynamic_inspection",
        "palpation",
        "auscultation",
        "percussion",
    ),
}
INTAKE_FIELDS = INTAKE_STEP_FIELDS[1] + INTAKE_STEP_FIELDS[2]


@dataclass(frozen=True)
class AttachmentDraft:
    """A pending attachment row on the intake form."""

    name: str = ""
    url: str = ""


@dataclass(frozen=True)
class SessionDraft:
    """Editable session fields bound to the session form."""

    date: str = ""
    time: str = ""
    objective: str = ""
    treatment: str = ""
    evolution: str = ""
    observations: str = ""
    pain_level: int = DEFAULT_PAIN_INPUT
    pain_map_url: str = ""
    pain_map_image: str = ""

    @classmethod
    def from_session(cls, session: Session) -> SessionDraft:
        return cls(**{name: getattr(session, name) for name in SESSION_EDITABLE_FIELDS})


@dataclass(frozen=True)
class SuggestionNone:
    """No terminology suggestions shown."""


@dataclass(frozen=True)
class SuggestionLoading:
    field: str
    request_id: str


@dataclass(frozen=True)
class SuggestionReady:
    field: str
    terms: tuple[str, ...]


SuggestionState = SuggestionNone | SuggestionLoading | SuggestionReady

_SUGGESTION_ATTRS = {
    FORM_PATIENT: "patient_suggestions",
    FORM_SESSION: "session_suggestions",
}


@dataclass(frozen=True)
class AppState:
    """Everything the UI shows: persisted collections plus transient view state."""

    patients: list[Patient] = field(default_factory=list)
    sessions: list[Session] = field(default_factory=list)
    current_view: str = VIEW_DASHBOARD
    active_patient_id: str | None = None
    search_term: str = ""
    wizard_step: int = 1
    patient_draft: dict[str, str] = field(default_factory=dict)
    pending_attachments: tuple[AttachmentDraft, ...] = ()
    session_draft: SessionDraft = field(default_factory=SessionDraft)
    editing_session_id: str | None = None
    ai_busy: bool = False
    ai_report: str | None = None
    pdf_busy: bool = False
    patient_suggestions: SuggestionState = field(default_factory=SuggestionNone)
    session_suggestions: SuggestionState = field(default_factory=SuggestionNone)


# --- Persisted-record commands ---


def register_patient(
    state: AppState,
    form: dict | None = None,
    pending_attachments: tuple[AttachmentDraft, ...] | list[AttachmentDraft] | None = None,
    today: str | None = None,
    id_factory: Callable[[], str] = new_id,
    clock: Callable[[], int] = now_ms,
) -> AppState:
    """Create a patient from the intake form and append it to the collection.

    ``form`` and ``pending_attachments`` default to the drafts held in state.
    Raises ValidationError when the full name is blank.
    """
    values = dict(state.patient_draft if form is None else form)
    rows = state.pending_attachments if pending_attachments is None else pending_attachments

    full_name = str(values.get("full_name") or "").strip()
    if not full_name:
        raise ValidationError("Full name is required.")

    existing_ids = {p.id for p in state.patients}
    patient_id = id_factory()
    while patient_id in existing_ids:
        patient_id = id_factory()

    text = {name: str(values.get(name) or "").strip() for name in INTAKE_FIELDS}
    text["full_name"] = full_name
    text["dominance"] = normalize_dominance(text["dominance"])
    if not text["consultation_date"]:
        text["consultation_date"] = today or today_iso()

    attachments = [
        Attachment(id=id_factory(), name=row.name.strip(), url=row.url.strip())
        for row in rows
        if row.url and row.url.strip()
    ]
    patient = Patient(id=patient_id, attachments=attachments, created_at=clock(), **text)

    return replace(
        state,
        patients=[*state.patients, patient],
        patient_draft={},
        pending_attachments=(),
        patient_suggestions=SuggestionNone(),
        wizard_step=1,
        current_view=VIEW_DASHBOARD,
    )


def add_or_update_session(
    state: AppState,
    draft: SessionDraft | None = None,
    id_factory: Callable[[], str] = new_id,
    clock: Callable[[], int] = now_ms,
) -> AppState:
    """Save the session form for the active patient.

    With an edit target, the matching session's editable fields are replaced in
    place; an edit target that matches nothing leaves the collection as it was.
    Without one, a new session is appended. Either way the form is reset.
    """
    if state.active_patient_id is None:
        return state
    draft = draft or state.session_draft
    values = {name: getattr(draft, name) for name in SESSION_EDITABLE_FIELDS}
    values["pain_level"] = clamp_pain_level(values["pain_level"])

    if state.editing_session_id:
        sessions = [
            replace(s, **values) if s.id == state.editing_session_id else s
            for s in state.sessions
        ]
    else:
        existing_ids = {s.id for s in state.sessions}
        session_id = id_factory()
        while session_id in existing_ids:
            session_id = id_factory()
        session = Session(
            id=session_id,
            patient_id=state.active_patient_id,
            created_at=clock(),
            **values,
        )
        sessions = [*state.sessions, session]

    return replace(
        state,
        sessions=sessions,
        editing_session_id=None,
        session_draft=SessionDraft(),
        session_suggestions=SuggestionNone(),
        ai_report=None,
    )


# --- Session form ---


def begin_edit(state: AppState, session_id: str) -> AppState:
    """Load an existing session into the form draft and mark it as the edit target."""
    session = next((s for s in state.sessions if s.id == session_id), None)
    if session is None:
        return state
    return replace(
        state,
        editing_session_id=session.id,
        session_draft=SessionDraft.from_session(session),
        session_suggestions=SuggestionNone(),
    )


def cancel_edit(state: AppState) -> AppState:
    """Drop the edit target and any unsaved form input."""
    if state.editing_session_id is None and state.session_draft == SessionDraft():
        return state
    return replace(state, editing_session_id=None, session_draft=SessionDraft())


def update_session_draft(state: AppState, **values) -> AppState:
    unknown = set(values) - set(SESSION_EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown session fields: {', '.join(sorted(unknown))}")
    if "pain_level" in values:
        values["pain_level"] = clamp_pain_level(values["pain_level"])
    return replace(state, session_draft=replace(state.session_draft, **values))


# --- Intake wizard ---


def update_patient_draft(state: AppState, **values) -> AppState:
    unknown = set(values) - set(INTAKE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown intake fields: {', '.join(sorted(unknown))}")
    return replace(state, patient_draft={**state.patient_draft, **values})


def wizard_next(state: AppState) -> AppState:
    return replace(state, wizard_step=2)


def wizard_back(state: AppState) -> AppState:
    return replace(state, wizard_step=1)


def add_attachment_row(state: AppState) -> AppState:
    return replace(state, pending_attachments=(*state.pending_attachments, AttachmentDraft()))


def update_attachment_row(state: AppState, index: int, field_name: str, value: str) -> AppState:
    if field_name not in ("name", "url"):
        raise ValueError(f"Unknown attachment field: {field_name}")
    if not 0 <= index < len(state.pending_attachments):
        return state
    rows = list(state.pending_attachments)
    rows[index] = replace(rows[index], **{field_name: value})
    return replace(state, pending_attachments=tuple(rows))


def remove_attachment_row(state: AppState, index: int) -> AppState:
    if not 0 <= index < len(state.pending_attachments):
        return state
    rows = state.pending_attachments[:index] + state.pending_attachments[index + 1:]
    return replace(state, pending_attachments=rows)


# --- Navigation ---


def show_dashboard(state: AppState) -> AppState:
    return replace(state, current_view=VIEW_DASHBOARD)


def start_new_patient(state: AppState) -> AppState:
    """Open a blank intake wizard; anything left from an abandoned intake is dropped."""
    return replace(
        state,
        current_view=VIEW_NEW_PATIENT,
        wizard_step=1,
        patient_draft={},
        pending_attachments=(),
        patient_suggestions=SuggestionNone(),
    )


def open_patient(state: AppState, patient_id: str) -> AppState:
    """Switch to a patient's detail view with a clean session form."""
    if not any(p.id == patient_id for p in state.patients):
        return state
    return replace(
        state,
        current_view=VIEW_PATIENT_DETAIL,
        active_patient_id=patient_id,
        ai_report=None,
        editing_session_id=None,
        session_draft=SessionDraft(),
        session_suggestions=SuggestionNone(),
    )


def set_search_term(state: AppState, term: str) -> AppState:
    return replace(state, search_term=term)


# --- AI progress summary ---


def begin_analysis(state: AppState) -> AppState:
    return replace(state, ai_busy=True, ai_report=None)


def finish_analysis(state: AppState, patient_id: str, text: str) -> AppState:
    """Store a summary, unless the user has since left that patient's detail view."""
    still_there = (
        state.current_view == VIEW_PATIENT_DETAIL and state.active_patient_id == patient_id
    )
    return replace(state, ai_busy=False, ai_report=text if still_there else state.ai_report)


# --- Terminology suggestions (scoped per form) ---


def _suggestion_attr(form: str) -> str:
    try:
        return _SUGGESTION_ATTRS[form]
    except KeyError:
        raise ValueError(f"Unknown form: {form}") from None


def suggestions_for(state: AppState, form: str) -> SuggestionState:
    return getattr(state, _suggestion_attr(form))


def begin_suggestion(state: AppState, form: str, field_name: str, request_id: str) -> AppState:
    return replace(state, **{_suggestion_attr(form): SuggestionLoading(field_name, request_id)})


def finish_suggestion(state: AppState, form: str, request_id: str, terms: list[str]) -> AppState:
    """Show returned terms if this response belongs to the outstanding request."""
    current = suggestions_for(state, form)
    if not isinstance(current, SuggestionLoading) or current.request_id != request_id:
        return state
    result: SuggestionState = (
        SuggestionReady(current.field, tuple(terms)) if terms else SuggestionNone()
    )
    return replace(state, **{_suggestion_attr(form): result})


def dismiss_suggestions(state: AppState, form: str) -> AppState:
    return replace(state, **{_suggestion_attr(form): SuggestionNone()})


def apply_term(state: AppState, form: str, term: str) -> AppState:
    """Append a suggested term to the field it was requested for, then close the box."""
    current = suggestions_for(state, form)
    if not isinstance(current, SuggestionReady):
        return state
    state = dismiss_suggestions(state, form)
    if form == FORM_SESSION:
        existing = getattr(state.session_draft, current.field)
        new_text = f"{existing} ({term})" if existing else term
        return update_session_draft(state, **{current.field: new_text})
    existing = state.patient_draft.get(current.field, "")
    new_text = f"{existing} ({term})" if existing else term
    return update_patient_draft(state, **{current.field: new_text})


# --- PDF export ---


def begin_pdf(state: AppState) -> AppState:
    return replace(state, pdf_busy=True)


def finish_pdf(state: AppState) -> AppState:
    return replace(state, pdf_busy=False)
