"""Sales report aggregation and PDF rendering."""
from __future__ import annotations

import html
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from reportlab.graphics.charts.linecharts import HorizontalLineChart
from reportlab.graphics.shapes import Drawing, String
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import (
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from .errors import ReportGenerationError, ValidationError
from .masks import format_brl, format_quantity
from .models import Sale

logger = logging.getLogger(__name__)

DEFAULT_REPORT_DAYS = 30
RANKING_LIMIT = 10
MIN_CHART_POINTS = 2
INSUFFICIENT_DATA_TEXT = "Insufficient data to draw a line chart."
FOOTER_BRAND = "Controlarva - aquaculture sales intelligence"

PRIMARY = colors.HexColor("#0ea5e9")
SLATE = colors.HexColor("#334155")
EMERALD = colors.HexColor("#10b981")
MUTED = colors.HexColor("#94a3b8")

SALES_COLUMNS = [
    "sale_id",
    "sale_date",
    "customer_id",
    "customer",
    "quantity",
    "total_value",
    "payment_method",
]
MONTHLY_COLUMNS = ["month", "label", "revenue", "quantity", "sales"]
RANKING_COLUMNS = ["customer_id", "customer", "quantity", "value", "orders"]


@dataclass(frozen=True)
class ReportSummary:
    """Totals for a report window; money in cents."""

    total_revenue: int
    total_quantity: int
    sale_count: int
    average_sale: float
    average_price_per_thousand: float


def default_report_range(today: date) -> Tuple[date, date]:
    return today - timedelta(days=DEFAULT_REPORT_DAYS), today


def validate_range(start: Optional[date], end: Optional[date]) -> Tuple[date, date]:
    if start is None or end is None:
        raise ValidationError("Select both a start and an end date.")
    if start > end:
        raise ValidationError("The start date must be on or before the end date.")
    return start, end


def filter_sales(sales: Iterable[Sale], start: date, end: date) -> List[Sale]:
    """Sales dated within ``[start, end]``, both days included."""

    return [sale for sale in sales if start <= sale.sale_date <= end]


def summarize(sales: Sequence[Sale]) -> ReportSummary:
    revenue = sum(sale.total_value for sale in sales)
    quantity = sum(sale.larvae_quantity for sale in sales)
    count = len(sales)
    return ReportSummary(
        total_revenue=revenue,
        total_quantity=quantity,
        sale_count=count,
        average_sale=revenue / count if count else 0.0,
        average_price_per_thousand=revenue / quantity if quantity else 0.0,
    )


def sales_frame(sales: Iterable[Sale]) -> pd.DataFrame:
    rows = [
        {
            "sale_id": sale.sale_id,
            "sale_date": sale.sale_date,
            "customer_id": sale.customer_id,
            "customer": sale.customer_name,
            "quantity": sale.larvae_quantity,
            "total_value": sale.total_value,
            "payment_method": sale.payment_method,
        }
        for sale in sales
    ]
    return pd.DataFrame(rows, columns=SALES_COLUMNS)


def monthly_series(sales: Sequence[Sale], start: date, end: date) -> pd.DataFrame:
    """One row per calendar month in ``[start, end]``, zero-filled.

    An empty frame is returned when there are no sales at all, so the charts
    fall back to their "insufficient data" rendering.
    """

    if not sales:
        return pd.DataFrame(columns=MONTHLY_COLUMNS)
    months = pd.period_range(start=start, end=end, freq="M")
    df = sales_frame(sales)
    df["month"] = pd.to_datetime(df["sale_date"]).dt.to_period("M")
    grouped = df.groupby("month").agg(
        revenue=("total_value", "sum"),
        quantity=("quantity", "sum"),
        sales=("sale_id", "count"),
    )
    grouped = grouped.reindex(months, fill_value=0)
    grouped.index.name = "month"
    series = grouped.reset_index()
    series["label"] = series["month"].dt.strftime("%b/%y")
    for column in ("revenue", "quantity", "sales"):
        series[column] = series[column].astype(int)
    return series[MONTHLY_COLUMNS]


def customer_ranking(sales: Sequence[Sale]) -> pd.DataFrame:
    """Customers ordered by total larvae bought, largest first."""

    if not sales:
        return pd.DataFrame(columns=RANKING_COLUMNS)
    df = sales_frame(sales)
    ranking = (
        df.groupby("customer_id", sort=False)
        .agg(
            customer=("customer", "first"),
            quantity=("quantity", "sum"),
            value=("total_value", "sum"),
            orders=("sale_id", "count"),
        )
        .reset_index()
    )
    ranking = ranking.sort_values("quantity", ascending=False, kind="mergesort")
    return ranking.reset_index(drop=True)[RANKING_COLUMNS]


def report_filename(start: date, end: date) -> str:
    return f"controlarva_report_{start.isoformat()}_{end.isoformat()}.pdf"


# ---------------------------------------------------------------------------
# PDF rendering
# ---------------------------------------------------------------------------


class NumberedCanvas(canvas.Canvas):
    """Canvas that stamps "Page i of N" once the page count is known."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._saved_page_states: List[dict] = []

    def showPage(self) -> None:
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int) -> None:
        page_width, _ = self._pagesize
        self.saveState()
        self.setFont("Helvetica", 8)
        self.setFillColor(MUTED)
        self.drawCentredString(
            page_width / 2.0,
            12 * mm,
            f"Page {self._pageNumber} of {total} | {FOOTER_BRAND}",
        )
        self.restoreState()


def _table(rows: List[List[Any]], header_color, col_widths=None, align_right: Sequence[int] = ()) -> Table:
    table = Table(rows, colWidths=col_widths, repeatRows=1)
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), header_color),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#e2e8f0")),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f8fafc")]),
    ]
    for column in align_right:
        style.append(("ALIGN", (column, 1), (column, -1), "RIGHT"))
    table.setStyle(TableStyle(style))
    return table


def line_chart(labels: Sequence[str], values: Sequence[float], color, width: float, height: float = 55 * mm) -> Drawing:
    drawing = Drawing(width, height)
    if len(values) < MIN_CHART_POINTS:
        drawing.add(
            String(
                width / 2.0,
                height / 2.0,
                INSUFFICIENT_DATA_TEXT,
                textAnchor="middle",
                fontSize=8,
                fillColor=MUTED,
            )
        )
        return drawing
    chart = HorizontalLineChart()
    chart.x = 40
    chart.y = 20
    chart.width = width - 55
    chart.height = height - 30
    chart.data = [tuple(float(value) for value in values)]
    chart.joinedLines = 1
    chart.lines[0].strokeColor = color
    chart.lines[0].strokeWidth = 1.5
    chart.valueAxis.valueMin = 0
    chart.valueAxis.valueMax = (max(values) * 1.2) or 1
    chart.valueAxis.labels.fontSize = 6
    chart.categoryAxis.categoryNames = list(labels)
    chart.categoryAxis.labels.fontSize = 6
    chart.categoryAxis.labels.angle = 30 if len(labels) > 6 else 0
    drawing.add(chart)
    return drawing


def build_report_pdf(
    sales: Iterable[Sale],
    start: date,
    end: date,
    *,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Render the consolidated sales report for ``[start, end]``.

    Any failure is raised as :class:`ReportGenerationError`; no partial
    document is returned.
    """

    try:
        return _render_report(list(sales), start, end, generated_at or datetime.now())
    except ValidationError:
        raise
    except Exception as exc:
        logger.exception("PDF report generation failed")
        raise ReportGenerationError(f"Could not generate the PDF report: {exc}") from exc


def _render_report(all_sales: List[Sale], start: date, end: date, generated_at: datetime) -> bytes:
    start, end = validate_range(start, end)
    period_sales = sorted(filter_sales(all_sales, start, end), key=lambda sale: sale.sale_date)
    summary = summarize(period_sales)
    series = monthly_series(period_sales, start, end)
    ranking = customer_ranking(period_sales)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=18 * mm,
        bottomMargin=22 * mm,
        title="Controlarva sales report",
    )
    styles = getSampleStyleSheet()
    title_style = styles["Title"].clone("ReportTitle")
    title_style.textColor = PRIMARY
    section_style = styles["Heading2"].clone("ReportSection")
    section_style.textColor = SLATE
    meta_style = styles["Normal"].clone("ReportMeta")
    meta_style.textColor = SLATE
    note_style = styles["Italic"].clone("ReportNote")
    note_style.textColor = MUTED
    content_width = doc.width

    elements: List[Any] = [
        Paragraph("CONTROLARVA", title_style),
        Paragraph("Consolidated management and sales report", meta_style),
        Paragraph(
            f"Period: {start:%d/%m/%Y} to {end:%d/%m/%Y} &nbsp;&nbsp; "
            f"Generated: {generated_at:%d/%m/%Y %H:%M}",
            meta_style,
        ),
        Spacer(1, 8 * mm),
    ]

    elements.append(Paragraph("1. Executive summary", section_style))
    elements.append(
        _table(
            [
                ["Volume (milheiros)", "Average price / milheiro", "Total revenue", "Sales"],
                [
                    format_quantity(summary.total_quantity),
                    format_brl(round(summary.average_price_per_thousand)),
                    format_brl(summary.total_revenue),
                    str(summary.sale_count),
                ],
            ],
            PRIMARY,
            col_widths=[content_width / 4.0] * 4,
        )
    )
    elements.append(Spacer(1, 6 * mm))

    elements.append(Paragraph(f"2. Ranking: top {RANKING_LIMIT} customers (volume)", section_style))
    ranking_rows: List[List[Any]] = [["Pos.", "Customer", "Volume (milheiros)", "Amount bought", "Orders"]]
    for position, row in enumerate(ranking.head(RANKING_LIMIT).itertuples(index=False), start=1):
        ranking_rows.append(
            [
                f"{position}.",
                Paragraph(html.escape(str(row.customer)), styles["BodyText"]),
                format_quantity(row.quantity),
                format_brl(row.value),
                str(row.orders),
            ]
        )
    elements.append(
        _table(
            ranking_rows,
            SLATE,
            col_widths=[15 * mm, content_width - 110 * mm, 35 * mm, 40 * mm, 20 * mm],
            align_right=(2, 3),
        )
    )
    if ranking.empty:
        elements.append(Paragraph("No sales in this period.", note_style))

    elements.append(PageBreak())
    elements.append(Paragraph("3. Performance charts", section_style))
    labels = list(series["label"]) if not series.empty else []
    elements.append(Paragraph("Revenue over time (R$)", meta_style))
    elements.append(
        line_chart(labels, [value / 100 for value in series["revenue"]], PRIMARY, content_width)
    )
    elements.append(Spacer(1, 6 * mm))
    elements.append(Paragraph("Volume over time (milheiros)", meta_style))
    elements.append(line_chart(labels, list(series["quantity"]), EMERALD, content_width))
    elements.append(Spacer(1, 6 * mm))

    elements.append(Paragraph("4. Monthly breakdown", section_style))
    monthly_rows: List[List[Any]] = [["Month", "Volume (milheiros)", "Revenue", "Sales"]]
    for row in series.itertuples(index=False):
        monthly_rows.append(
            [row.label, format_quantity(row.quantity), format_brl(row.revenue), str(row.sales)]
        )
    elements.append(
        _table(monthly_rows, EMERALD, col_widths=[content_width / 4.0] * 4, align_right=(1, 2))
    )

    elements.append(PageBreak())
    elements.append(Paragraph("5. Transaction log", section_style))
    transaction_rows: List[List[Any]] = [["Date", "Customer", "Milheiros", "Total", "Payment"]]
    for sale in period_sales:
        transaction_rows.append(
            [
                sale.sale_date.strftime("%d/%m/%y"),
                Paragraph(html.escape(sale.customer_name), styles["BodyText"]),
                format_quantity(sale.larvae_quantity),
                format_brl(sale.total_value),
                sale.payment_method,
            ]
        )
    elements.append(
        _table(
            transaction_rows,
            colors.HexColor("#64748b"),
            col_widths=[22 * mm, content_width - 117 * mm, 30 * mm, 40 * mm, 25 * mm],
            align_right=(2, 3),
        )
    )
    if not period_sales:
        elements.append(Paragraph("No transactions recorded in this period.", note_style))

    doc.build(elements, canvasmaker=NumberedCanvas)
    logger.info(
        "Generated report for %s..%s with %d sales", start, end, summary.sale_count
    )
    return buffer.getvalue()
