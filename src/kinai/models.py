"""Data model for the clinic record: patients, their attachments and visit sessions.

Records serialize to JSON objects with the camelCase keys used by the stored
collections, so a saved collection reads back into equal dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields

DOMINANCE_CHOICES = ("diestro", "zurdo", "ambidiestro")  # right, left, ambidextrous

PAIN_MIN = 0
PAIN_MAX = 10
DEFAULT_PAIN_INPUT = 5  # initial position of the pain slider on a blank form

# Python attribute -> stored JSON key (only where they differ)
_JSON_KEYS: dict[str, str] = {
    "full_name": "fullName",
    "document_id": "documentId",
    "birth_date": "birthDate",
    "consultation_date": "consultationDate",
    "medical_history": "medicalHistory",
    "social_determinants": "socialDeterminants",
    "red_flags": "redFlags",
    "static_inspection": "staticInspection",
    "dynamic_inspection": "dynamicInspection",
    "created_at": "createdAt",
    "patient_id": "patientId",
    "pain_level": "painLevel",
    "pain_map_url": "painMapUrl",
    "pain_map_image": "painMapImage",
}


def clamp_pain_level(value) -> int:
    """Normalize a pain (VAS/EVA) input to an integer in [0, 10].

    Integer-like strings are parsed the way a form field would be ("7", " 8 ",
    "7.8" -> 7). Missing, boolean or non-numeric input is 0. Out-of-range values
    are clamped: -5 -> 0, 15 -> 10.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        n = value
    elif isinstance(value, float):
        try:
            n = int(value)
        except (ValueError, OverflowError):  # NaN, inf
            return 0
    else:
        text = str(value).strip()
        digits = ""
        for i, ch in enumerate(text):
            if ch.isdigit() or (i == 0 and ch in "+-"):
                digits += ch
            else:
                break
        try:
            n = int(digits)
        except ValueError:
            return 0
    return max(PAIN_MIN, min(PAIN_MAX, n))


def normalize_dominance(value) -> str:
    """Return one of DOMINANCE_CHOICES, or "" for anything else."""
    text = str(value or "").strip().lower()
    return text if text in DOMINANCE_CHOICES else ""


def _to_json(record) -> dict:
    out = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if isinstance(value, list):
            value = [v.to_dict() for v in value]
        out[_JSON_KEYS.get(f.name, f.name)] = value
    return out


def _str(raw: dict, name: str) -> str:
    value = raw.get(_JSON_KEYS.get(name, name))
    return "" if value is None else str(value)


def _int(raw: dict, name: str) -> int:
    value = raw.get(_JSON_KEYS.get(name, name))
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


@dataclass
class Attachment:
    """A named link to an external document or image."""

    id: str
    name: str = ""
    url: str = ""

    def to_dict(self) -> dict:
        return _to_json(self)

    @classmethod
    def from_dict(cls, raw: dict) -> Attachment:
        return cls(id=_str(raw, "id"), name=_str(raw, "name"), url=_str(raw, "url"))


@dataclass
class Patient:
    """One registered patient with their intake (biopsychosocial + physical exam) form."""

    id: str
    full_name: str
    document_id: str = ""
    birth_date: str = ""  # ISO YYYY-MM-DD, "" when unknown
    sex: str = ""
    consultation_date: str = ""  # ISO YYYY-MM-DD
    profession: str = ""
    dominance: str = ""  # diestro, zurdo, ambidiestro
    phone: str = ""
    referral: str = ""
    diagnosis: str = ""
    medical_history: str = ""
    ice: str = ""  # ideas, beliefs and expectations
    social_determinants: str = ""
    chronopathology: str = ""  # temporal pattern of pain/symptoms
    red_flags: str = ""
    static_inspection: str = ""
    dynamic_inspection: str = ""
    palpation: str = ""
    auscultation: str = ""
    percussion: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    created_at: int = 0  # epoch milliseconds

    def to_dict(self) -> dict:
        return _to_json(self)

    @classmethod
    def from_dict(cls, raw: dict) -> Patient:
        stored = raw.get("attachments")
        if not isinstance(stored, list):
            stored = []
        attachments = [Attachment.from_dict(a) for a in stored if isinstance(a, dict)]
        return cls(
            id=_str(raw, "id"),
            full_name=_str(raw, "full_name"),
            document_id=_str(raw, "document_id"),
            birth_date=_str(raw, "birth_date"),
            sex=_str(raw, "sex"),
            consultation_date=_str(raw, "consultation_date"),
            profession=_str(raw, "profession"),
            dominance=_str(raw, "dominance"),
            phone=_str(raw, "phone"),
            referral=_str(raw, "referral"),
            diagnosis=_str(raw, "diagnosis"),
            medical_history=_str(raw, "medical_history"),
            ice=_str(raw, "ice"),
            social_determinants=_str(raw, "social_determinants"),
            chronopathology=_str(raw, "chronopathology"),
            red_flags=_str(raw, "red_flags"),
            static_inspection=_str(raw, "static_inspection"),
            dynamic_inspection=_str(raw, "dynamic_inspection"),
            palpation=_str(raw, "palpation"),
            auscultation=_str(raw, "auscultation"),
            percussion=_str(raw, "percussion"),
            attachments=attachments,
            created_at=_int(raw, "created_at"),
        )


# Session attributes replaced by an edit; id, patient_id and created_at are not.
SESSION_EDITABLE_FIELDS = (
    "date",
    "time",
    "objective",
    "treatment",
    "evolution",
    "observations",
    "pain_level",
    "pain_map_url",
    "pain_map_image",
)


@dataclass
class Session:
    """One clinical visit for exactly one patient."""

    id: str
    patient_id: str
    date: str = ""  # ISO YYYY-MM-DD
    time: str = ""  # HH:MM
    objective: str = ""
    treatment: str = ""
    evolution: str = ""
    observations: str = ""
    pain_level: int = 0  # VAS 0-10
    pain_map_url: str = ""
    pain_map_image: str = ""
    created_at: int = 0  # epoch milliseconds

    def to_dict(self) -> dict:
        return _to_json(self)

    @classmethod
    def from_dict(cls, raw: dict) -> Session:
        return cls(
            id=_str(raw, "id"),
            patient_id=_str(raw, "patient_id"),
            date=_str(raw, "date"),
            time=_str(raw, "time"),
            objective=_str(raw, "objective"),
            treatment=_str(raw, "treatment"),
            evolution=_str(raw, "evolution"),
            observations=_str(raw, "observations"),
            pain_level=clamp_pain_level(raw.get("painLevel")),
            pain_map_url=_str(raw, "pain_map_url"),
            pain_map_image=_str(raw, "pain_map_image"),
            created_at=_int(raw, "created_at"),
        )
