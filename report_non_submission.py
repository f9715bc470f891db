import os
import logging
from datetime import datetime
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, Frame, PageTemplate
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle

logger = logging.getLogger(__name__)


def generate_pending_report(form, pending, output_dir='reports'):
    """
    Generate a PDF report of students who have not completed an evaluation form.

    Args:
        form (dict): The form row, as returned by Form.get
        pending (list): Pending students, as returned by report_service.get_pending_students
    """
    logger.info(f"Generating pending report for form {form['id']}: {len(pending)} student(s)")

    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"pending_report_form_{form['id']}_{timestamp}.pdf"
    pdf_path = os.path.abspath(os.path.join(output_dir, filename))

    styles = getSampleStyleSheet()

    def add_footer(canvas, doc):
        canvas.saveState()
        footer_style = ParagraphStyle(
            'FooterStyle',
            parent=styles['Italic'],
            textColor=colors.grey,
            fontSize=8,
            alignment=1
        )
        footer = Paragraph(f"Faculty evaluation: {form['title']}", footer_style)
        footer.wrap(doc.width, doc.bottomMargin)
        footer.drawOn(canvas, doc.leftMargin, doc.bottomMargin / 3)
        canvas.restoreState()

    doc = SimpleDocTemplate(
        pdf_path,
        pagesize=letter,
        rightMargin=36,
        leftMargin=36,
        topMargin=36,
        bottomMargin=36
    )

    frame = Frame(
        doc.leftMargin,
        doc.bottomMargin,
        doc.width,
        doc.height,
        id='normal'
    )
    doc.addPageTemplates([PageTemplate(id='footer', frames=frame, onPage=add_footer)])
    content = []

    title_style = ParagraphStyle('Title', parent=styles['Heading1'], alignment=1)
    content.append(Paragraph(form['title'], title_style))
    content.append(Spacer(1, 12))

    subtitle_style = ParagraphStyle('Subtitle', parent=styles['Heading2'], alignment=1)
    content.append(Paragraph("Students Who Have Not Completed the Evaluation", subtitle_style))
    content.append(Spacer(1, 12))

    centered = ParagraphStyle('Centered', parent=styles['Normal'], alignment=1)
    period = form.get('year_name') or 'No academic year'
    if form.get('semester'):
        period += f" | Semester: {form['semester']}"
    content.append(Paragraph(period, centered))
    content.append(Paragraph(f"Generated on: {datetime.now().strftime('%d-%m-%Y %H:%M:%S')}", centered))
    content.append(Spacer(1, 24))

    expired = sum(1 for p in pending if p['display_status'] == 'expired')
    content.append(Paragraph(f"Pending: {len(pending)} | Expired: {expired}", centered))
    content.append(Spacer(1, 24))

    if pending:
        table_data = [['#', 'School ID', 'Name', 'Faculty', 'Due Date', 'Status']]
        for i, student in enumerate(pending, 1):
            table_data.append([
                i,
                student['school_id'],
                student['name'],
                student['faculty'],
                student['due_date'] or '-',
                student['display_status']
            ])

        table = Table(table_data, repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightblue),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 11),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ]))
        content.append(table)
    else:
        content.append(Paragraph("All students have completed the evaluation!",
                                 ParagraphStyle('Done', parent=styles['Heading3'], alignment=1)))

    doc.build(content)
    logger.info(f"Report generated: {filename}")
    return pdf_path
