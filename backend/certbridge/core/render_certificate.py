"""Certificate Renderer - fixed-layout attendance certificate as a one-page PDF.

Invariants:
    - Required fields (full_name, event_id, event_date) checked before drawing
    - Same record and settings render to the same bytes (reportlab invariant mode)
    - No network IO, no persisted state touched

Design Decisions:
    - reportlab canvas over platypus: the layout is a fixed stack of centred lines,
      no flowing text
    - Page compression off: artifacts are small, and plain content streams keep
      the drawn text greppable in tests and audits
"""

import io

from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from certbridge.core.errors import RenderError
from certbridge.core.repository_protocols import HolderRecordLike

DEFAULT_FOOTER = (
    "This certificate is electronically generated and available in DigiLocker."
)
REQUIRED_FIELDS = ("full_name", "event_id", "event_date")

# (font, size, gap below in mm) per line, top to bottom
_TITLE = ("Helvetica-Bold", 30, 16)
_LEAD = ("Helvetica", 18, 9)
_NAME = ("Helvetica-Bold", 24, 10)
_BODY = ("Helvetica", 16, 9)
_DATE = ("Helvetica-Bold", 18, 22)
_FOOTER = ("Helvetica-Oblique", 12, 0)


def _check_required(record: HolderRecordLike) -> None:
    for name in REQUIRED_FIELDS:
        value = getattr(record, name, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise RenderError(name)


def certificate_lines(
    record: HolderRecordLike, program_noun: str, footer: str,
) -> list[tuple[tuple[str, int, int], str]]:
    """Text content of the certificate, in drawing order."""
    return [
        (_TITLE, "Certificate of Attendance"),
        (_LEAD, "This is to certify that"),
        (_NAME, record.full_name.strip()),
        (_LEAD, f"with {program_noun} ID: {record.event_id.strip()}"),
        (_BODY, "has successfully attended the program on"),
        (_DATE, record.event_date.isoformat()),
        (_FOOTER, footer),
    ]


def render_certificate(
    record: HolderRecordLike,
    *,
    issuer_name: str,
    program_noun: str = "Conference",
    footer: str = DEFAULT_FOOTER,
) -> bytes:
    """Render the certificate PDF for one record."""
    _check_required(record)

    buffer = io.BytesIO()
    width, height = landscape(A4)
    pdf = canvas.Canvas(
        buffer, pagesize=(width, height), invariant=1, pageCompression=0,
    )
    pdf.setTitle(f"Certificate for {record.full_name.strip()}")
    pdf.setAuthor(issuer_name)

    y = height - 40 * mm
    for (font, size, gap), text in certificate_lines(record, program_noun, footer):
        pdf.setFont(font, size)
        pdf.drawCentredString(width / 2, y, text)
        y -= size + gap * mm

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
