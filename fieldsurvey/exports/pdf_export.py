import io
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from ..domain import SurveyResponse
from ..utils.time import fmt_generated_at, utcnow

HEADER_BLUE = colors.Color(59 / 255, 130 / 255, 246 / 255)
TITLE_DARK = colors.Color(44 / 255, 62 / 255, 80 / 255)
MUTED = colors.Color(128 / 255, 128 / 255, 128 / 255)
GRID = colors.HexColor("#D6DFEA")

PAGE_W, PAGE_H = A4
MARGIN_X = 0.55 * inch
MARGIN_BOTTOM = 0.70 * inch

RESPONDENT_COLUMNS = ["Nome", "Idade", "Telefone"]


def _safe_text(s) -> str:
    return str(s or "").replace("\n", " ").strip()


def respondent_rows(responses: List[SurveyResponse]) -> List[List[str]]:
    return [
        [
            r.user_name or "N/A",
            str(r.user_age) if r.user_age else "N/A",
            r.user_phone or "N/A",
        ]
        for r in responses
    ]


def _draw_footer(c: canvas.Canvas, page_no: int):
    c.setFont("Helvetica", 8.5)
    c.setFillColor(MUTED)
    c.drawRightString(PAGE_W - MARGIN_X, 0.40 * inch, f"Página {page_no}")


def _draw_table_header(c: canvas.Canvas, y: float, columns: List[str], col_widths: List[float]) -> float:
    header_h = 0.28 * inch
    table_w = sum(col_widths)
    c.setFillColor(HEADER_BLUE)
    c.rect(MARGIN_X, y - header_h, table_w, header_h, stroke=0, fill=1)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 9.5)
    x = MARGIN_X
    for i, col in enumerate(columns):
        c.drawString(x + 0.08 * inch, y - 0.19 * inch, col)
        x += col_widths[i]
    return y - header_h


def _draw_grid_table(c: canvas.Canvas, y: float, columns: List[str], rows: List[List[str]],
                     col_widths: List[float], page_no: int, top_y: float) -> int:
    """Grid table that continues on new pages, repeating the header. Returns the last page number."""
    row_h = 0.24 * inch
    table_w = sum(col_widths)
    y = _draw_table_header(c, y, columns, col_widths)

    for row in rows:
        if y - row_h < MARGIN_BOTTOM:
            _draw_footer(c, page_no)
            c.showPage()
            page_no += 1
            y = _draw_table_header(c, top_y, columns, col_widths)
        y -= row_h
        c.setStrokeColor(GRID)
        x = MARGIN_X
        for i, cell in enumerate(row):
            c.rect(x, y, col_widths[i], row_h, stroke=1, fill=0)
            x += col_widths[i]
        c.setFillColor(colors.black)
        c.setFont("Helvetica", 9)
        x = MARGIN_X
        for i, cell in enumerate(row):
            c.drawString(x + 0.08 * inch, y + 0.08 * inch, _safe_text(cell)[:60])
            x += col_widths[i]

    if not rows:
        c.setStrokeColor(GRID)
        c.rect(MARGIN_X, y - row_h, table_w, row_h, stroke=1, fill=0)
    return page_no


def build_respondents_pdf(responses: List[SurveyResponse], company_name: Optional[str] = None,
                          tz_name: Optional[str] = None) -> bytes:
    """Respondent table {Nome, Idade, Telefone} with a pt-BR generation stamp."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle("dados_respondentes")

    y = PAGE_H - 0.75 * inch
    c.setFillColor(TITLE_DARK)
    c.setFont("Helvetica-Bold", 20)
    c.drawString(MARGIN_X, y, f"Relatório - {_safe_text(company_name) or 'Empresa'}")

    y -= 0.30 * inch
    c.setFillColor(MUTED)
    c.setFont("Helvetica", 10)
    c.drawString(MARGIN_X, y, f"Gerado em: {fmt_generated_at(utcnow(), tz_name)}")

    y -= 0.35 * inch
    table_w = PAGE_W - 2 * MARGIN_X
    page_no = _draw_grid_table(
        c, y,
        columns=RESPONDENT_COLUMNS,
        rows=respondent_rows(responses),
        col_widths=[table_w * 0.50, table_w * 0.15, table_w * 0.35],
        page_no=1,
        top_y=PAGE_H - 0.75 * inch,
    )
    _draw_footer(c, page_no)
    c.save()
    return buf.getvalue()


# ---------- admin summary ----------
def _chart_png_bar(labels: List[str], values: List[int], title: str) -> bytes:
    fig = plt.figure(figsize=(7.2, 2.6))
    ax = fig.add_subplot(111)

    labels = [str(x) for x in labels]
    values = [int(v) if v is not None else 0 for v in values]

    ax.bar(range(len(labels)), values, color="#3B82F6")
    ax.set_title(title, fontsize=11, fontweight="bold")
    ax.grid(axis="y", alpha=0.18)
    ax.set_axisbelow(True)

    max_len = max((len(x) for x in labels), default=0)
    rot = 0 if max_len <= 10 else 25
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels, rotation=rot, ha="right" if rot else "center", fontsize=9)

    fig.tight_layout()
    out = io.BytesIO()
    fig.savefig(out, format="png", dpi=170)
    plt.close(fig)
    return out.getvalue()


def _draw_png(c: canvas.Canvas, png_bytes: bytes, x: float, y: float, w: float, h: float):
    c.drawImage(ImageReader(io.BytesIO(png_bytes)), x, y, width=w, height=h, mask="auto")


def _card(c: canvas.Canvas, x: float, y: float, w: float, h: float, title: str, value: str):
    c.setFillColor(colors.white)
    c.setStrokeColor(GRID)
    c.roundRect(x, y, w, h, 8, stroke=1, fill=1)
    c.setFillColor(HEADER_BLUE)
    c.roundRect(x, y + h - 0.10 * inch, w, 0.10 * inch, 8, stroke=0, fill=1)

    c.setFillColor(TITLE_DARK)
    c.setFont("Helvetica-Bold", 9)
    c.drawString(x + 0.14 * inch, y + h - 0.30 * inch, _safe_text(title)[:28])
    c.setFont("Helvetica-Bold", 17)
    c.drawString(x + 0.14 * inch, y + 0.22 * inch, _safe_text(value)[:14])


def build_admin_report_pdf(dashboard: dict, app_title: str = "", tz_name: Optional[str] = None) -> bytes:
    """Admin summary: KPI cards, responses per day and campaign progress charts."""
    totals = dashboard.get("totals") or {}
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)

    y = PAGE_H - 0.75 * inch
    c.setFillColor(TITLE_DARK)
    c.setFont("Helvetica-Bold", 18)
    c.drawString(MARGIN_X, y, f"{_safe_text(app_title) or 'Pesquisas'} - Painel do Administrador")
    y -= 0.28 * inch
    c.setFillColor(MUTED)
    c.setFont("Helvetica", 10)
    c.drawString(MARGIN_X, y, f"Gerado em: {fmt_generated_at(utcnow(), tz_name)}")
    y -= 0.30 * inch

    kpi_h = 0.85 * inch
    gap = 0.15 * inch
    card_w = (PAGE_W - 2 * MARGIN_X - 3 * gap) / 4
    cards = [
        ("Empresas ativas", totals.get("activeCompanies", 0)),
        ("Campanhas", totals.get("campaigns", 0)),
        ("Vouchers", totals.get("vouchers", 0)),
        ("Respostas", totals.get("responses", 0)),
    ]
    for i, (title, value) in enumerate(cards):
        _card(c, MARGIN_X + i * (card_w + gap), y - kpi_h, card_w, kpi_h, title, str(value))
    y -= kpi_h + 0.30 * inch

    chart_w = PAGE_W - 2 * MARGIN_X
    per_day = dashboard.get("responsesPerDay") or []
    if per_day:
        png = _chart_png_bar([d["label"] for d in per_day], [d["count"] for d in per_day], "Respostas por dia")
        _draw_png(c, png, MARGIN_X, y - 2.4 * inch, chart_w, 2.4 * inch)
        y -= 2.6 * inch

    performance = (dashboard.get("campaignPerformance") or [])[:10]
    if performance:
        png = _chart_png_bar([p["name"] for p in performance], [p["responses"] for p in performance],
                             "Respostas por campanha")
        _draw_png(c, png, MARGIN_X, y - 2.4 * inch, chart_w, 2.4 * inch)
        y -= 2.6 * inch

    if not per_day and not performance:
        c.setFont("Helvetica", 10)
        c.setFillColor(MUTED)
        c.drawString(MARGIN_X, y, "Nenhuma resposta registrada ainda.")

    _draw_footer(c, 1)
    c.save()
    return buf.getvalue()
