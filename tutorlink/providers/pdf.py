"""
MCQ practice sheet generator
Renders one PDF per subsection with every question, its options and answer key
"""

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer

from tutorlink.schemas.resources import MCQ

logger = logging.getLogger(__name__)

OPTION_LABELS = ["A", "B", "C", "D"]


class MCQSheetRenderer:
    """Generate MCQ practice sheets"""

    @staticmethod
    def render(topic_name: str, sub_section_name: str, mcqs: list[MCQ]) -> bytes:
        """
        Render a practice sheet for one subsection

        Args:
            topic_name: Topic shown in the header
            sub_section_name: Subsection shown in the header
            mcqs: Questions in display order

        Returns:
            bytes: PDF content as bytes
        """
        buffer = io.BytesIO()

        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=0.75 * inch,
            leftMargin=0.75 * inch,
            topMargin=0.75 * inch,
            bottomMargin=0.75 * inch,
            title=f"{topic_name} - {sub_section_name}",
        )

        styles = getSampleStyleSheet()

        title_style = ParagraphStyle(
            "SheetTitle",
            parent=styles["Heading1"],
            fontSize=20,
            spaceAfter=8,
            alignment=TA_CENTER,
            textColor=colors.HexColor("#2c5aa0"),
        )
        header_style = ParagraphStyle(
            "SheetHeader",
            parent=styles["Normal"],
            fontSize=14,
            spaceAfter=4,
            alignment=TA_CENTER,
            textColor=colors.HexColor("#333333"),
        )
        question_style = ParagraphStyle(
            "Question",
            parent=styles["Normal"],
            fontName="Helvetica-Bold",
            fontSize=12,
            spaceBefore=10,
            spaceAfter=4,
        )
        option_style = ParagraphStyle(
            "Option",
            parent=styles["Normal"],
            fontSize=11,
            leftIndent=18,
            textColor=colors.HexColor("#333333"),
        )
        explanation_style = ParagraphStyle(
            "Explanation",
            parent=styles["Normal"],
            fontName="Helvetica-Oblique",
            fontSize=10,
            spaceBefore=4,
            textColor=colors.HexColor("#666666"),
        )
        meta_style = ParagraphStyle(
            "Meta",
            parent=styles["Normal"],
            fontSize=10,
            textColor=colors.HexColor("#888888"),
        )

        story = [
            Paragraph("MCQ Practice Sheet", title_style),
            Paragraph(f"Topic: {escape(topic_name)}", header_style),
            Paragraph(f"Sub-topic: {escape(sub_section_name)}", header_style),
            Spacer(1, 8),
            HRFlowable(width="100%", thickness=1, color=colors.HexColor("#cccccc")),
            Spacer(1, 8),
        ]

        for index, mcq in enumerate(mcqs, start=1):
            story.append(Paragraph(f"{index}. {escape(mcq.question)}", question_style))
            for label, option in zip(OPTION_LABELS, mcq.options):
                story.append(Paragraph(f"{label}. {escape(option)}", option_style))
            if mcq.explanation:
                story.append(
                    Paragraph(f"Explanation: {escape(mcq.explanation)}", explanation_style)
                )
            answer = OPTION_LABELS[mcq.correct_option]
            story.append(
                Paragraph(
                    f"Difficulty: {mcq.difficulty} | Marks: {mcq.marks} | "
                    f"Correct Answer: {answer}",
                    meta_style,
                )
            )

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(
            "Rendered MCQ sheet for %s / %s (%d questions, %d bytes)",
            topic_name,
            sub_section_name,
            len(mcqs),
            len(pdf_bytes),
        )
        return pdf_bytes
