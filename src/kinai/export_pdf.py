"""Export one patient's clinical record (intake + session history) as PDF.

The record is first laid out as pages of positioned text lines on an A4 sheet
(millimetre units, y grows downward), then rendered through weasyprint.
Keeping the layout separate makes page breaks and wrapping inspectable
without a PDF engine.
"""

from __future__ import annotations

import html
import re
import textwrap
from dataclasses import dataclass, field
from pathlib import Path

from kinai.core.utils import format_display_date, today_iso
from kinai.models import Patient, Session

PAGE_WIDTH_MM = 210
PAGE_HEIGHT_MM = 297
MARGIN_MM = 20
TOP_MM = 20
RULE_END_MM = 190

SECTION_BREAK_Y = 270  # start a new page before a section drawn below this
SESSION_BREAK_Y = 250  # same for a session entry
SECTION_WRAP_COLUMNS = 90
SESSION_WRAP_COLUMNS = 105

TITLE = "FICHA CLÍNICA KINÉSICA"
EXAM_HEADING = "HALLAZGOS DE EXPLORACIÓN"
SESSIONS_HEADING = "HISTORIAL DE EVOLUCIONES"
NOT_RECORDED = "No registrado"

# RGB colours
INDIGO_900 = (30, 58, 138)
INDIGO_600 = (79, 70, 229)
GREY = (100, 100, 100)
DARK_GREY = (60, 60, 60)
BLACK = (0, 0, 0)


@dataclass
class TextLine:
    x: float
    y: float  # baseline, mm from top
    text: str
    size: float = 10  # pt
    style: str = "normal"  # normal, bold, italic
    color: tuple[int, int, int] = BLACK


@dataclass
class Page:
    lines: list[TextLine] = field(default_factory=list)
    rules: list[float] = field(default_factory=list)  # y of horizontal separators

    def texts(self) -> list[str]:
        return [line.text for line in self.lines]


def wrap_text(text: str, width: int) -> list[str]:
    """Word-wrap text to a fixed column width, keeping explicit line breaks."""
    wrapped = []
    for paragraph in text.splitlines() or [""]:
        wrapped.extend(textwrap.wrap(paragraph, width=width) or [""])
    return wrapped


def pdf_filename(patient: Patient) -> str:
    """'Ana María Gómez' -> 'Ficha_Ana_María_Gómez.pdf'."""
    name = re.sub(r"\s+", "_", patient.full_name)
    return f"Ficha_{name}.pdf"


class _Layout:
    """Cursor that places lines on pages and breaks pages past a threshold."""

    def __init__(self):
        self.pages: list[Page] = [Page()]
        self.y = TOP_MM

    @property
    def page(self) -> Page:
        return self.pages[-1]

    def new_page(self) -> None:
        self.pages.append(Page())
        self.y = TOP_MM

    def break_if_past(self, threshold: float) -> None:
        if self.y > threshold:
            self.new_page()

    def text(self, x: float, text: str, **style) -> None:
        self.page.lines.append(TextLine(x, self.y, text, **style))

    def block(self, x: float, lines: list[str], line_height: float, **style) -> None:
        for i, line in enumerate(lines):
            self.page.lines.append(TextLine(x, self.y + i * line_height, line, **style))

    def rule(self, y: float) -> None:
        self.page.rules.append(y)


def _draw_section(layout: _Layout, title: str, content: str) -> None:
    layout.break_if_past(SECTION_BREAK_Y)
    layout.text(MARGIN_MM, title.upper(), style="bold", color=INDIGO_600)
    layout.y += 5
    lines = wrap_text(content or NOT_RECORDED, SECTION_WRAP_COLUMNS)
    layout.block(MARGIN_MM + 5, lines, 5, style="italic", color=DARK_GREY)
    layout.y += len(lines) * 5 + 7


def _draw_session(layout: _Layout, session: Session) -> None:
    layout.break_if_past(SESSION_BREAK_Y)
    layout.text(
        MARGIN_MM,
        f"{format_display_date(session.date)} - Dolor EVA: {session.pain_level}/10",
        size=11,
        style="bold",
    )
    layout.y += 5
    for label, value in (
        ("Objetivo", session.objective),
        ("Tratamiento", session.treatment),
        ("Evolución", session.evolution),
    ):
        lines = wrap_text(f"{label}: {value}", SESSION_WRAP_COLUMNS)
        layout.block(MARGIN_MM + 5, lines, 4, size=9)
        layout.y += len(lines) * 4 + 1
    layout.y += 9
    layout.rule(layout.y - 5)


def layout_patient_record(
    patient: Patient, sessions: list[Session], today: str | None = None
) -> list[Page]:
    """Lay out the full record. Sessions are listed newest first on their own pages."""
    layout = _Layout()

    layout.text(MARGIN_MM, TITLE, size=22, style="bold", color=INDIGO_900)
    layout.y += 10
    export_date = format_display_date(today or today_iso())
    layout.text(MARGIN_MM, f"Fecha de exportación: {export_date}", color=GREY)
    layout.y += 15
    layout.rule(layout.y)
    layout.y += 10

    layout.text(MARGIN_MM, patient.full_name.upper(), size=14, style="bold")
    layout.y += 7
    layout.text(
        MARGIN_MM,
        f"DNI: {patient.document_id} | Nacimiento: {patient.birth_date} | Sexo: {patient.sex}",
    )
    layout.y += 5
    layout.text(
        MARGIN_MM, f"Profesión: {patient.profession} | Dominancia: {patient.dominance}"
    )
    layout.y += 15

    _draw_section(layout, "Diagnóstico Principal", patient.diagnosis)
    _draw_section(layout, "Antecedentes Médicos", patient.medical_history)
    _draw_section(layout, "ICE (Ideas, Creencias, Expectativas)", patient.ice)
    _draw_section(layout, "Determinantes Sociales", patient.social_determinants)
    _draw_section(layout, "Cronopatología", patient.chronopathology)
    _draw_section(layout, "Red Flags / Banderas Rojas", patient.red_flags)

    layout.y += 5
    layout.break_if_past(SECTION_BREAK_Y)
    layout.text(MARGIN_MM, EXAM_HEADING, style="bold", color=INDIGO_900)
    layout.y += 7

    _draw_section(layout, "Inspección Estática", patient.static_inspection)
    _draw_section(layout, "Inspección Dinámica", patient.dynamic_inspection)
    _draw_section(layout, "Palpación", patient.palpation)
    _draw_section(layout, "Auscultación", patient.auscultation)
    _draw_section(layout, "Percusión", patient.percussion)

    if sessions:
        layout.new_page()
        layout.text(MARGIN_MM, SESSIONS_HEADING, size=16, color=INDIGO_900)
        layout.y += 15
        for session in sorted(sessions, key=lambda s: (s.date, s.time), reverse=True):
            _draw_session(layout, session)

    return layout.pages


def _line_html(line: TextLine) -> str:
    top = line.y - line.size * 0.3528  # baseline -> top of the text box (1pt = 0.3528mm)
    weight = "bold" if line.style == "bold" else "normal"
    font_style = "italic" if line.style == "italic" else "normal"
    r, g, b = line.color
    return (
        f'<div style="position:absolute;left:{line.x}mm;top:{top:.2f}mm;'
        f"font-size:{line.size}pt;font-weight:{weight};font-style:{font_style};"
        f'color:rgb({r},{g},{b});white-space:pre">{html.escape(line.text)}</div>'
    )


def pages_to_html(pages: list[Page]) -> str:
    """Render laid-out pages as absolutely positioned HTML, one A4 sheet per page."""
    body = []
    for page in pages:
        parts = [_line_html(line) for line in page.lines]
        parts.extend(
            f'<div style="position:absolute;left:{MARGIN_MM}mm;top:{y}mm;'
            f'width:{RULE_END_MM - MARGIN_MM}mm;border-top:0.2mm solid #ccc"></div>'
            for y in page.rules
        )
        body.append(f'<section class="page">{"".join(parts)}</section>')
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><style>"
        "@page { size: A4; margin: 0 }"
        "body { margin: 0; font-family: Helvetica, Arial, sans-serif }"
        f".page {{ position: relative; width: {PAGE_WIDTH_MM}mm; height: {PAGE_HEIGHT_MM}mm;"
        " overflow: hidden; page-break-after: always }"
        ".page:last-child { page-break-after: auto }"
        "</style></head><body>"
        + "".join(body)
        + "</body></html>"
    )


def _write_pdf(document_html: str) -> bytes:
    from weasyprint import HTML

    return HTML(string=document_html).write_pdf()


def render_patient_record(
    patient: Patient, sessions: list[Session], today: str | None = None
) -> bytes:
    """Render the patient's record to PDF bytes."""
    pages = layout_patient_record(patient, sessions, today=today)
    return _write_pdf(pages_to_html(pages))


def export_pdf(
    patient: Patient,
    sessions: list[Session],
    output_dir: str = ".",
    today: str | None = None,
) -> str:
    """Write the patient's record to output_dir. Returns the output file path."""
    path = Path(output_dir) / pdf_filename(patient)
    path.write_bytes(render_patient_record(patient, sessions, today=today))
    return str(path)
