"""PDF Reporter Module - Printable audit report built with ReportLab."""

from io import BytesIO
from typing import List, Optional
from xml.sax.saxutils import escape

from ..core.check import Outcome, Section
from .base_reporter import BaseReporter, ReportData

# Attempt to import ReportLab
REPORTLAB_AVAILABLE = False
colors = None
letter = A4 = None
getSampleStyleSheet = ParagraphStyle = None
inch = None
SimpleDocTemplate = Paragraph = Spacer = Table = TableStyle = None
PageBreak = HRFlowable = None
TA_CENTER = None

try:
    from reportlab.lib import colors as _colors
    from reportlab.lib.pagesizes import letter as _letter, A4 as _A4
    from reportlab.lib.styles import getSampleStyleSheet as _getSampleStyleSheet, ParagraphStyle as _ParagraphStyle
    from reportlab.lib.units import inch as _inch
    from reportlab.platypus import (
        SimpleDocTemplate as _SimpleDocTemplate,
        Paragraph as _Paragraph,
        Spacer as _Spacer,
        Table as _Table,
        TableStyle as _TableStyle,
        PageBreak as _PageBreak,
        HRFlowable as _HRFlowable
    )
    from reportlab.lib.enums import TA_CENTER as _TA_CENTER

    # Assign to module-level variables
    colors = _colors
    letter = _letter
    A4 = _A4
    getSampleStyleSheet = _getSampleStyleSheet
    ParagraphStyle = _ParagraphStyle
    inch = _inch
    SimpleDocTemplate = _SimpleDocTemplate
    Paragraph = _Paragraph
    Spacer = _Spacer
    Table = _Table
    TableStyle = _TableStyle
    PageBreak = _PageBreak
    HRFlowable = _HRFlowable
    TA_CENTER = _TA_CENTER

    REPORTLAB_AVAILABLE = True
except ImportError:
    pass


class PDFReporter(BaseReporter):
    """Generate reports in PDF format using ReportLab."""

    def __init__(
        self,
        output_dir: Optional[str] = None,
        page_size: str = "a4",
    ):
        """Initialize the PDF reporter.

        Args:
            output_dir: Directory to save reports
            page_size: Page size ('letter' or 'a4')
        """
        if not REPORTLAB_AVAILABLE:
            raise ImportError(
                "ReportLab is required for PDF generation. "
                "Install it with: pip install reportlab"
            )
        super().__init__(output_dir)
        self.page_size = letter if page_size.lower() == "letter" else A4

        # Initialize colors after confirming ReportLab is available
        self._init_colors()

    def _init_colors(self):
        """Initialize color definitions."""
        self.COLORS = {
            "primary": colors.HexColor("#2563eb"),
            "success": colors.HexColor("#16a34a"),
            "warning": colors.HexColor("#f59e0b"),
            "danger": colors.HexColor("#dc2626"),
            "muted": colors.HexColor("#6b7280"),
            "light_gray": colors.HexColor("#f1f5f9"),
            "dark_gray": colors.HexColor("#1e293b"),
        }
        self.OUTCOME_COLORS = {
            Outcome.PASS: self.COLORS["success"],
            Outcome.FAIL: self.COLORS["danger"],
            Outcome.ERROR: self.COLORS["warning"],
            Outcome.NONE: self.COLORS["muted"],
        }

    @property
    def format(self) -> str:
        return "pdf"

    @property
    def extension(self) -> str:
        return "pdf"

    def generate(self, report_data: ReportData) -> bytes:
        """Generate PDF report.

        Args:
            report_data: Data to include in the report

        Returns:
            PDF content as bytes
        """
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.page_size,
            rightMargin=0.6 * inch,
            leftMargin=0.6 * inch,
            topMargin=0.75 * inch,
            bottomMargin=0.75 * inch,
            title=report_data.benchmark,
        )

        styles = self._get_styles()
        story = []
        story.extend(self._build_title_page(report_data, styles))
        story.extend(self._build_summary_section(report_data, styles))
        story.extend(self._build_results_section(report_data, styles))

        doc.build(story)
        return buffer.getvalue()

    def _get_styles(self) -> dict:
        """Get custom paragraph styles."""
        base_styles = getSampleStyleSheet()

        return {
            "base": base_styles,
            "title": ParagraphStyle(
                "CustomTitle",
                parent=base_styles["Heading1"],
                fontSize=22,
                textColor=self.COLORS["primary"],
                spaceAfter=12,
                alignment=TA_CENTER,
            ),
            "subtitle": ParagraphStyle(
                "Subtitle",
                parent=base_styles["Normal"],
                fontSize=14,
                textColor=self.COLORS["dark_gray"],
                alignment=TA_CENTER,
                spaceAfter=6,
            ),
            "heading": ParagraphStyle(
                "CustomHeading",
                parent=base_styles["Heading2"],
                fontSize=16,
                textColor=self.COLORS["primary"],
                spaceBefore=20,
                spaceAfter=10,
            ),
            "cell": ParagraphStyle(
                "Cell",
                parent=base_styles["Normal"],
                fontSize=8,
                leading=10,
            ),
            "small": ParagraphStyle(
                "Small",
                parent=base_styles["Normal"],
                fontSize=8,
                textColor=self.COLORS["muted"],
                alignment=TA_CENTER,
            ),
        }

    def _score_color(self, report_data: ReportData):
        summary = report_data.summary
        if summary.is_compliant and summary.compliance_score >= 80:
            return self.COLORS["success"]
        if summary.compliance_score >= 60:
            return self.COLORS["warning"]
        return self.COLORS["danger"]

    def _build_title_page(self, report_data: ReportData, styles: dict) -> List:
        """Build the title page elements."""
        summary = report_data.summary
        elements = [Spacer(1, 1 * inch)]

        elements.append(Paragraph(escape(report_data.benchmark), styles["title"]))
        elements.append(Spacer(1, 0.25 * inch))
        elements.append(Paragraph(f"<b>{escape(report_data.hostname)}</b>", styles["subtitle"]))
        elements.append(Spacer(1, 0.5 * inch))

        score_style = ParagraphStyle(
            "ScoreValue",
            fontSize=72,
            leading=80,
            textColor=self._score_color(report_data),
            alignment=TA_CENTER,
        )
        elements.append(Paragraph(f"{summary.compliance_score:.0f}", score_style))
        elements.append(Paragraph("Compliance Score", styles["subtitle"]))
        elements.append(Spacer(1, 0.25 * inch))
        elements.append(Paragraph(f"Grade: <b>{summary.grade}</b>", styles["subtitle"]))

        status_color = "green" if summary.is_compliant else "red"
        elements.append(Paragraph(
            f'<font color="{status_color}">{escape(summary.status)}</font>',
            styles["subtitle"]
        ))
        elements.append(Spacer(1, 0.5 * inch))
        elements.append(Paragraph(
            f"Generated: {report_data.generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
            styles["small"]
        ))
        elements.append(PageBreak())
        return elements

    def _table_style(self, header_rows: int = 1) -> list:
        return [
            ("BACKGROUND", (0, 0), (-1, header_rows - 1), self.COLORS["primary"]),
            ("TEXTCOLOR", (0, 0), (-1, header_rows - 1), colors.white),
            ("FONTNAME", (0, 0), (-1, header_rows - 1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("GRID", (0, 0), (-1, -1), 0.5, self.COLORS["light_gray"]),
        ]

    def _build_summary_section(self, report_data: ReportData, styles: dict) -> List:
        """Build the summary section: totals and per-section scores."""
        summary = report_data.summary
        elements = [
            Paragraph("Summary", styles["heading"]),
            HRFlowable(width="100%", thickness=1, color=self.COLORS["light_gray"], spaceAfter=10),
        ]

        totals = [
            ["Metric", "Value"],
            ["Compliance Score", f"{summary.compliance_score:.1f}/100"],
            ["Grade", summary.grade],
            ["Threshold", f"{summary.threshold:.1f}"],
            ["Total Tests", str(summary.total)],
            ["Passed", str(summary.passed)],
            ["Failed", str(summary.failed)],
            ["Errors", str(summary.errored)],
            ["Skipped", str(summary.skipped)],
            ["Duration", f"{summary.duration_seconds:.1f}s"],
        ]
        table = Table(totals, colWidths=[3 * inch, 2 * inch])
        table.setStyle(TableStyle(self._table_style() + [
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.COLORS["light_gray"]]),
        ]))
        elements.append(table)
        elements.append(Spacer(1, 0.3 * inch))

        titles = {s.id: s.title for s in report_data.sections}
        section_rows = [["Section", "Score", "Grade", "Pass", "Fail", "Error", "Skipped"]]
        for section_id, score in summary.section_scores.items():
            label = f"{section_id} {titles.get(section_id, '')}".strip()
            section_rows.append([
                Paragraph(escape(label), styles["cell"]),
                f"{score.score:.1f}",
                score.grade,
                str(score.passed),
                str(score.failed),
                str(score.errored),
                str(score.skipped),
            ])
        if len(section_rows) > 1:
            table = Table(section_rows, colWidths=[2.6 * inch] + [0.7 * inch] * 6, repeatRows=1)
            table.setStyle(TableStyle(self._table_style()))
            elements.append(table)

        elements.append(PageBreak())
        return elements

    def _build_results_section(self, report_data: ReportData, styles: dict) -> List:
        """Build the full results table with section banner rows."""
        elements = [Paragraph("Results", styles["heading"])]

        rows = [["ID", "Description", "Scoring", "Level", "Result", "Duration"]]
        style = self._table_style()
        for row in report_data.rows():
            index = len(rows)
            if isinstance(row, Section):
                rows.append([row.id, Paragraph(f"<b>{escape(row.title)}</b>", styles["cell"]), "", "", "", ""])
                style.append(("BACKGROUND", (0, index), (-1, index), self.COLORS["light_gray"]))
                continue
            rows.append([
                row.id,
                Paragraph(escape(row.description), styles["cell"]),
                row.scoring_class.value,
                str(row.level),
                row.label,
                row.duration_text,
            ])
            style.append(("TEXTCOLOR", (4, index), (4, index), self.OUTCOME_COLORS[row.outcome]))

        table = Table(
            rows,
            colWidths=[0.7 * inch, 3.7 * inch, 0.8 * inch, 0.45 * inch, 0.6 * inch, 0.7 * inch],
            repeatRows=1,
        )
        table.setStyle(TableStyle(style))
        elements.append(table)
        return elements
