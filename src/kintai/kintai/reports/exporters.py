"""CSV / Excel rendering of report tables."""

from __future__ import annotations

import csv
import io

import pandas as pd

from .service import ReportTable

EXCEL_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def to_csv_bytes(table: ReportTable) -> bytes:
    # utf-8-sig so Excel opens Japanese headers correctly
    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=table.columns)
    writer.writeheader()
    for row in table.rows:
        writer.writerow(row)
    return out.getvalue().encode("utf-8-sig")


def to_excel_bytes(table: ReportTable, *, sheet_name: str = "データ") -> bytes:
    df = pd.DataFrame(table.rows, columns=table.columns)
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
        sheet = writer.sheets[sheet_name]
        for index, column in enumerate(table.columns):
            values = [str(column)] + [str(v) for v in df[column].tolist()]
            width = max(len(v) for v in values) * 2 + 2
            sheet.column_dimensions[sheet.cell(row=1, column=index + 1).column_letter].width = min(width, 50)
    return output.getvalue()
