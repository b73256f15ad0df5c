"""Export all patients and sessions as a spreadsheet-friendly CSV file."""

from __future__ import annotations

import csv
import io
from pathlib import Path

from kinai.core.utils import today_iso
from kinai.models import Patient, Session

PATIENT_HEADERS = [
    "Nombre", "Documento", "Nacimiento", "Sexo", "Fecha Consulta", "Profesion",
    "Dominancia", "Telefono", "Derivacion", "Diagnostico", "Inspeccion Estatica",
    "Inspeccion Dinamica", "Palpacion", "Auscultacion", "Percusion", "Adjuntos",
]
SESSION_HEADERS = [
    "Paciente", "Fecha", "Hora", "Dolor EVA", "Objetivo", "Tratamiento", "Evolucion",
]
UNKNOWN_PATIENT = "Desconocido"


def _patient_row(p: Patient) -> list[str]:
    attachments = "; ".join(f"{a.name}: {a.url}" for a in p.attachments)
    return [
        p.full_name, p.document_id, p.birth_date, p.sex, p.consultation_date,
        p.profession, p.dominance, p.phone, p.referral, p.diagnosis,
        p.static_inspection, p.dynamic_inspection, p.palpation, p.auscultation,
        p.percussion, attachments,
    ]


def render_all_records(patients: list[Patient], sessions: list[Session]) -> str:
    """Render both collections as two titled CSV sections.

    Every field is quoted; embedded quotes are doubled.
    """
    names = {p.id: p.full_name for p in patients}
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")

    output.write("PACIENTES\n")
    writer.writerow(PATIENT_HEADERS)
    writer.writerows(_patient_row(p) for p in patients)

    output.write("\nSESIONES\n")
    writer.writerow(SESSION_HEADERS)
    for s in sessions:
        writer.writerow([
            names.get(s.patient_id, UNKNOWN_PATIENT), s.date, s.time, s.pain_level,
            s.objective, s.treatment, s.evolution,
        ])

    return output.getvalue()


def csv_filename(today: str | None = None) -> str:
    return f"ClinicaFisiatrica_Export_{today or today_iso()}.csv"


def export_csv(
    patients: list[Patient],
    sessions: list[Session],
    output_dir: str = ".",
    today: str | None = None,
) -> str:
    """Write the CSV export into output_dir. Returns the output file path.

    Written with a UTF-8 BOM so spreadsheet programs detect the encoding.
    """
    path = Path(output_dir) / csv_filename(today)
    path.write_text(render_all_records(patients, sessions), encoding="utf-8-sig")
    return str(path)
