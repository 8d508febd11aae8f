"""Excel export of the P&L waterfall."""
from __future__ import annotations

from io import BytesIO

import openpyxl
from django.http import HttpResponse
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from core.numbers import to_decimal

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

LINE_TITLES = {"neon": "Neon", "book": "Book"}

# (path into a line section, label, is_subtotal)
LINE_ROWS = (
    (("revenue",), "Chiffre d'affaires (expedie)", True),
    (("cogs", "total"), "Cout des ventes", False),
    (("cogs", "free_delivery"), "  dont livraison offerte", False),
    (("cogs", "repairs"), "  dont reparations", False),
    (("gross_profit",), "Marge brute", True),
    (("gross_margin",), "Marge brute %", False),
    (("vat",), "TVA", False),
    (("commercial", "ad_spend"), "Publicite", False),
    (("commercial", "design_salaries"), "Salaires design", False),
    (("commercial", "director_salary"), "Salaire directeur commercial", False),
    (("commercial", "commission"), "Commissions commerciales", False),
    (("commercial", "marketing"), "Marketing", False),
    (("commercial", "total"), "Couts commerciaux", False),
    (("marginal_income",), "Marge sur couts variables", True),
    (("marginal_margin",), "Marge sur couts variables %", False),
)

COMBINED_ROWS = (
    (("revenue",), "Chiffre d'affaires total", True),
    (("gross_profit",), "Marge brute", True),
    (("marginal_income",), "Marge sur couts variables", True),
    (("opex", "accounting"), "Comptabilite", False),
    (("opex", "hr"), "Ressources humaines", False),
    (("opex", "bank_fees"), "Frais bancaires", False),
    (("opex", "engineering"), "Ingenierie", False),
    (("opex", "total"), "Charges d'exploitation", False),
    (("ebitda",), "EBITDA", True),
    (("ebitda_margin",), "EBITDA %", False),
    (("interest_expense",), "Interets d'emprunt", False),
    (("deposit_interest",), "Interets de depot", False),
    (("vk_cashback",), "Cashback VK", False),
    (("profit_before_tax",), "Resultat avant impot", True),
    (("taxes_profit",), "Impot sur le resultat", False),
    (("taxes_payroll",), "Charges sociales", False),
    (("tax_load",), "Pression fiscale %", False),
    (("net_profit",), "Resultat net", True),
    (("dividends",), "Dividendes (pour memoire)", False),
)


def _lookup(section: dict, path) -> float:
    value = section
    for key in path:
        value = value.get(key, 0) if isinstance(value, dict) else 0
    return float(to_decimal(value))


def build_pnl_workbook(payload: dict) -> openpyxl.Workbook:
    """One column per period, one block per business line plus the combined block."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Compte de resultat"

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    bold = Font(bold=True)

    periods = payload.get("periods", [])
    headers = ["Indicateur"] + list(periods)
    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")

    statements = payload.get("statements", [])
    row_num = 2

    def write_block(title, rows, sections):
        nonlocal row_num
        ws.cell(row=row_num, column=1, value=title).font = bold
        row_num += 1
        for path, label, is_subtotal in rows:
            ws.cell(row=row_num, column=1, value=label)
            for col_num, section in enumerate(sections, 2):
                cell = ws.cell(row=row_num, column=col_num, value=_lookup(section, path))
                cell.number_format = "#,##0.00"
                if is_subtotal:
                    cell.font = bold
            if is_subtotal:
                ws.cell(row=row_num, column=1).font = bold
            row_num += 1
        row_num += 1

    for line, title in LINE_TITLES.items():
        write_block(title, LINE_ROWS, [s["lines"][line] for s in statements])
    write_block("Total", COMBINED_ROWS, [s["combined"] for s in statements])

    ws.column_dimensions["A"].width = 36
    for col_num in range(2, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col_num)].width = 16
    return wb


def export_pnl_to_excel(payload: dict) -> HttpResponse:
    """Render a waterfall payload as an ``.xlsx`` download."""
    wb = build_pnl_workbook(payload)
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)

    response = HttpResponse(buffer.getvalue(), content_type=XLSX_CONTENT_TYPE)
    filename = f"compte_de_resultat_{payload.get('anchor_period', '')}.xlsx"
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
