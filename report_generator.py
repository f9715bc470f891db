import os
import io
import logging
from datetime import datetime
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, Image

from config import RATING_MAX

logger = logging.getLogger(__name__)


def create_score_graph(question_averages):
    """
    Create a bar graph image of the average rating per question.
    """
    references = [f"Q{q['display_order']}" for q in question_averages]
    averages = [q['average'] or 0 for q in question_averages]

    fig, ax = plt.subplots(figsize=(10, 4), dpi=150)
    bars = ax.bar(references, averages, color='#007bff')

    ax.set_xlabel('')
    ax.set_ylabel('')
    ax.set_title('')
    ax.set_ylim(0, RATING_MAX)

    ax.tick_params(labelsize=9)

    # Add value labels on top of each bar
    for bar, average in zip(bars, averages):
        height = bar.get_height()
        ax.text(bar.get_x() + bar.get_width() / 2.0, height,
                f'{average:.2f}',
                ha='center', va='bottom',
                fontsize=9)

    ax.grid(True, axis='y', linestyle='--', alpha=0.7)
    fig.tight_layout()

    buf = io.BytesIO()
    fig.savefig(buf, format='png', bbox_inches='tight')
    plt.close(fig)
    buf.seek(0)
    return buf


def draw_footer(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 7)
    canvas.setFillColor(colors.gray)
    canvas.drawString(25, 20, f"Generated {datetime.now():%d/%m/%Y %H:%M}")
    canvas.drawRightString(doc.pagesize[0] - 25, 20, f"Page {doc.page}")
    canvas.restoreState()


def _fmt(value):
    return '-' if value is None else f"{value:.2f}"


def generate_faculty_report(report, output_dir='reports'):
    """Render a faculty report (see report_service.get_faculty_report) to a PDF file."""
    faculty = report['faculty']
    os.makedirs(output_dir, exist_ok=True)
    filename = f"faculty_report_{faculty['school_id']}_{datetime.now():%Y%m%d%H%M%S}.pdf"
    filepath = os.path.abspath(os.path.join(output_dir, filename))
    logger.info(f"Generating report: {filename}")

    doc = SimpleDocTemplate(
        filepath,
        pagesize=A4,
        rightMargin=20,
        leftMargin=20,
        topMargin=20,
        bottomMargin=40
    )

    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=12,
        alignment=1,
        spaceAfter=2
    )

    info_style = ParagraphStyle(
        'InfoStyle',
        parent=styles['Normal'],
        fontSize=9,
        alignment=1,
        spaceAfter=4
    )

    question_style = ParagraphStyle(
        'QuestionStyle',
        parent=styles['Normal'],
        fontSize=8,
        leading=9
    )

    elements = [
        Paragraph("STUDENT'S EVALUATION OF FACULTY", title_style),
        Paragraph(
            f"Faculty: {faculty['name']}    Department: {faculty['department'] or '-'}    "
            f"Evaluations: {report['total_evaluations']}    Average: {_fmt(report['average_score'])}",
            info_style),
        Spacer(1, 3),
    ]

    table_data = [['Question', 'Responses', 'Average']]
    for question in report['question_averages']:
        table_data.append([
            Paragraph(f"Q{question['display_order']}: {question['question_text']}", question_style),
            str(question['responses']),
            _fmt(question['average']),
        ])

    table = Table(table_data, colWidths=[doc.width * 0.7, doc.width * 0.15, doc.width * 0.15])
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
        ('ALIGN', (1, 0), (-1, -1), 'CENTER'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('TOPPADDING', (0, 0), (-1, -1), 1),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 1),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 5))

    if report['question_averages']:
        img = Image(create_score_graph(report['question_averages']))
        img.drawWidth = A4[0] - 50
        img.drawHeight = 2.5 * inch
        elements.append(img)

    if report['classes']:
        elements.append(Spacer(1, 5))
        class_names = ', '.join(f"{c['curriculum']} {c['level']} {c['section']}" for c in report['classes'])
        elements.append(Paragraph(f"Classes: {class_names}", question_style))

    try:
        doc.build(elements, onFirstPage=draw_footer, onLaterPages=draw_footer)
        logger.info(f"Report saved: {filepath}")
        return filepath
    except Exception as e:
        logger.error(f"PDF generation failed: {str(e)}")
        raise
