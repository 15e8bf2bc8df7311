import base64
import binascii
import io
import logging
import os
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

log = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 40


def format_money(value, symbol="R$"):
    return f"{symbol} {value:.2f}"


def format_date(value):
    return value.strftime("%d/%m/%Y") if value else ""


def decode_logo(data_url):
    """Turn a base64 data URL (or bare base64) into a readable buffer, or None."""
    if not data_url:
        return None
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        return io.BytesIO(base64.b64decode(payload, validate=True))
    except (binascii.Error, ValueError) as e:
        log.warning("Could not decode company logo: %s", e)
        return None


class QuotePDF:
    def __init__(self, quote, company, client, entitled, currency="R$",
                 brand="Quote Builder", font_path=None):
        self.quote = quote
        self.company = company
        self.client = client
        self.entitled = entitled
        self.currency = currency
        self.brand = brand

        self.font_name = 'Helvetica'
        self.bold_font_name = 'Helvetica-Bold'
        self.italic_font_name = 'Helvetica-Oblique'

        # Optional TTF for full unicode coverage
        font_path = font_path or os.environ.get('PDF_FONT_PATH')
        if font_path and os.path.exists(font_path):
            try:
                pdfmetrics.registerFont(TTFont('QuoteFont', font_path))
                self.font_name = self.bold_font_name = self.italic_font_name = 'QuoteFont'
            except Exception as e:
                log.warning("Could not load font %s: %s", font_path, e)

    @property
    def watermark(self):
        return f"Created with {self.brand}"

    def money(self, value):
        return format_money(value, self.currency)

    def _styles(self):
        styles = getSampleStyleSheet()
        normal = ParagraphStyle('Normal_Custom', parent=styles['Normal'], fontName=self.font_name, fontSize=9, leading=12)
        return {
            'normal': normal,
            'small': ParagraphStyle('Small_Custom', parent=normal, fontSize=8, leading=10),
            'company': ParagraphStyle('Company_Custom', parent=normal, fontName=self.bold_font_name, fontSize=16, leading=20),
            'bold': ParagraphStyle('Bold_Custom', parent=normal, fontName=self.bold_font_name, fontSize=10, leading=14),
            'title': ParagraphStyle('Title_Custom', parent=styles['Heading1'], fontName=self.bold_font_name,
                                    fontSize=18, alignment=TA_CENTER, spaceBefore=6, spaceAfter=12),
            'header_cell': ParagraphStyle('HeaderCell', parent=normal, fontName=self.bold_font_name, textColor=colors.white),
            'right': ParagraphStyle('Right_Custom', parent=normal, alignment=TA_RIGHT),
            'total': ParagraphStyle('Total_Custom', parent=normal, fontName=self.bold_font_name,
                                    fontSize=14, leading=18, alignment=TA_RIGHT),
            'signature': ParagraphStyle('Signature_Custom', parent=normal, fontName=self.italic_font_name, fontSize=11),
        }

    def _header(self, s):
        c = self.company
        info = [
            Paragraph(escape(c.name), s['company']),
            Paragraph(f"Tax ID: {escape(c.tax_id)}", s['normal']),
            Paragraph(escape(c.address), s['normal']),
            Paragraph(f"Phone: {escape(c.phone)} | WhatsApp: {escape(c.whatsapp)}", s['normal']),
            Paragraph(f"E-mail: {escape(c.email)}", s['normal']),
        ]

        logo = decode_logo(c.logo)
        if logo is not None:
            try:
                cells = [[Image(logo, width=0.9*inch, height=0.9*inch), info]]
                widths = [1.1*inch, PAGE_WIDTH - 2*MARGIN - 1.1*inch]
            except Exception as e:
                log.warning("Could not add company logo: %s", e)
                logo = None
        if logo is None:
            cells = [[info]]
            widths = [PAGE_WIDTH - 2*MARGIN]

        table = Table(cells, colWidths=widths)
        table.setStyle(TableStyle([
            ('VALIGN', (0,0), (-1,-1), 'TOP'),
            ('LEFTPADDING', (0,0), (-1,-1), 0),
            ('LINEBELOW', (0,-1), (-1,-1), 0.75, colors.Color(0.8, 0.8, 0.8)),
            ('BOTTOMPADDING', (0,-1), (-1,-1), 8),
        ]))
        return table

    def _client_block(self, s):
        cl = self.client
        client_info = [
            Paragraph("CLIENT:", s['bold']),
            Paragraph(escape(cl.name), s['normal']),
            Paragraph(f"Tax ID: {escape(cl.tax_id)}", s['normal']),
            Paragraph(f"Phone: {escape(cl.phone)}", s['normal']),
            Paragraph(f"Address: {escape(cl.address)}", s['normal']),
        ]
        date_info = [
            Paragraph("DATE:", s['bold']),
            Paragraph(format_date(self.quote.created_at), s['normal']),
        ]
        table = Table([[client_info, date_info]], colWidths=[4.6*inch, 2.0*inch])
        table.setStyle(TableStyle([
            ('VALIGN', (0,0), (-1,-1), 'TOP'),
            ('LEFTPADDING', (0,0), (-1,-1), 0),
        ]))
        return table

    def _items_table(self, s):
        header = [Paragraph(h, s['header_cell']) for h in ("Item", "Description", "Qty", "Unit Price", "Subtotal")]
        rows = [header]
        for line in self.quote.items:
            rows.append([
                Paragraph(escape(line.name), s['normal']),
                Paragraph(escape(line.description), s['normal']),
                str(line.quantity),
                self.money(line.price),
                self.money(line.subtotal),
            ])

        # repeatRows keeps the header on every page the table spills onto
        table = Table(rows, colWidths=[1.6*inch, 2.4*inch, 0.6*inch, 1.0*inch, 1.0*inch], repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0,0), (-1,0), colors.Color(41/255, 128/255, 185/255)),
            ('ROWBACKGROUNDS', (0,1), (-1,-1), [colors.white, colors.whitesmoke]),
            ('FONTNAME', (0,1), (-1,-1), self.font_name),
            ('FONTSIZE', (0,1), (-1,-1), 9),
            ('ALIGN', (2,1), (2,-1), 'CENTER'),
            ('ALIGN', (3,1), (-1,-1), 'RIGHT'),
            ('VALIGN', (0,0), (-1,-1), 'MIDDLE'),
            ('PADDING', (0,0), (-1,-1), 6),
        ]))
        return table

    def _signature_block(self, s):
        table = Table([[Paragraph(escape(self.quote.signature), s['signature'])],
                       [Paragraph("Signature of the person responsible", s['small'])]],
                      colWidths=[2.8*inch])
        table.setStyle(TableStyle([
            ('LINEBELOW', (0,0), (0,0), 0.75, colors.black),
            ('LEFTPADDING', (0,0), (-1,-1), 0),
        ]))
        return table

    def build_story(self):
        s = self._styles()
        story = [
            self._header(s),
            Spacer(1, 0.15*inch),
            Paragraph("QUOTE", s['title']),
            self._client_block(s),
            Spacer(1, 0.3*inch),
            self._items_table(s),
            Spacer(1, 0.25*inch),
            Paragraph(f"TOTAL: {self.money(self.quote.total)}", s['total']),
        ]

        if self.quote.notes:
            story.append(Spacer(1, 0.3*inch))
            story.append(Paragraph("NOTES:", s['bold']))
            notes = escape(self.quote.notes).replace("\n", "<br/>")
            story.append(Paragraph(notes, s['normal']))

        if self.entitled and self.quote.signature:
            story.append(Spacer(1, 0.6*inch))
            story.append(self._signature_block(s))

        return story

    def decorate_page(self, canvas, doc):
        """Draw the free-plan footer; paid documents are left clean."""
        if self.entitled:
            return
        canvas.saveState()
        canvas.setFont(self.font_name, 8)
        canvas.setFillColor(colors.Color(150/255, 150/255, 150/255))
        canvas.drawCentredString(PAGE_WIDTH / 2, 20, self.watermark)
        canvas.restoreState()

    def generate(self, target):
        """Write the PDF to a filename or a binary file object."""
        doc = SimpleDocTemplate(target, pagesize=A4, rightMargin=MARGIN, leftMargin=MARGIN,
                                topMargin=MARGIN, bottomMargin=MARGIN,
                                title=f"Quote {self.client.name}", author=self.company.name)
        doc.build(self.build_story(), onFirstPage=self.decorate_page, onLaterPages=self.decorate_page)

    def to_bytes(self):
        buffer = io.BytesIO()
        self.generate(buffer)
        return buffer.getvalue()
