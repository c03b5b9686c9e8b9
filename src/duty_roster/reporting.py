"""
Reporting and Export Module for the Duty Roster system

Exports an employee-by-day grid of the schedule to PDF, Excel and CSV.
Exports only read the assignment store.
"""

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from xml.sax.saxutils import escape
import logging

from .data_manager import DataManager
from .date_utils import days_in_month, to_iso_date
from .schedule_store import Assignment

logger = logging.getLogger(__name__)

EMPLOYEE_COLUMN = "Employee"


class ReportGenerator:
    """Builds schedule exports from the data manager's current state"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom report styles"""
        self.styles.add(ParagraphStyle(
            name='RosterTitle',
            parent=self.styles['Heading1'],
            fontSize=16,
            spaceAfter=6
        ))

        self.styles.add(ParagraphStyle(
            name='RosterCell',
            parent=self.styles['Normal'],
            fontSize=6,
            leading=7,
            alignment=1  # Center alignment
        ))

    def _format_cell(self, entries: Sequence[Assignment], separator: str,
                     with_notes: bool) -> str:
        parts = []
        for entry in entries:
            value = self.data_manager.get_shift_code(entry.shift_type_id)
            if with_notes and entry.note:
                value += f" ({entry.note})"
            parts.append(value)
        return separator.join(parts)

    def _create_schedule_dataframe(self, days: Sequence[date], with_notes: bool = True) -> pd.DataFrame:
        """One row per employee, one column per day"""
        store = self.data_manager.schedule
        columns = [EMPLOYEE_COLUMN] + [day.strftime("%d/%m") for day in days]

        rows = []
        for emp in self.data_manager.get_employees():
            row = [emp.name]
            for day in days:
                entries = store.get_entries(to_iso_date(day), emp.id)
                row.append(self._format_cell(entries, ", ", with_notes))
            rows.append(row)

        return pd.DataFrame(rows, columns=columns)

    def export_schedule_excel(self, days: Sequence[date], output_path: str) -> bool:
        """Export schedule grid to Excel with a shift type legend"""
        try:
            with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
                schedule_df = self._create_schedule_dataframe(days)
                schedule_df.to_excel(writer, sheet_name='Schedule', index=False)

                legend_df = self._create_legend_dataframe()
                legend_df.to_excel(writer, sheet_name='Shift Types', index=False)

                self._format_excel_worksheets(writer)

            return True

        except Exception as e:
            logger.error(f"Error exporting to Excel: {e}", exc_info=True)
            return False

    def _create_legend_dataframe(self) -> pd.DataFrame:
        data = []
        for shift in self.data_manager.get_shift_types(sort_by_code=True):
            data.append({
                'Code': shift.code,
                'Label': shift.label,
                'Off_Day': shift.is_off_day
            })
        return pd.DataFrame(data, columns=['Code', 'Label', 'Off_Day'])

    def _format_excel_worksheets(self, writer):
        """Header styling and column widths"""
        from openpyxl.styles import PatternFill, Font

        header_fill = PatternFill(start_color="3F51B5", end_color="3F51B5", fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True)

        for worksheet in writer.sheets.values():
            for cell in worksheet[1]:
                cell.fill = header_fill
                cell.font = header_font

            # Auto-adjust column widths
            for column in worksheet.columns:
                max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
                worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

    def export_schedule_csv(self, days: Sequence[date], output_path: str) -> bool:
        """Export schedule grid to CSV format"""
        try:
            schedule_df = self._create_schedule_dataframe(days)
            schedule_df.to_csv(output_path, index=False)
            return True

        except Exception as e:
            logger.error(f"Error exporting to CSV: {e}", exc_info=True)
            return False

    def export_schedule_pdf(self, days: Sequence[date], output_path: str,
                            title: Optional[str] = None) -> bool:
        """Export schedule grid to a landscape A4 PDF"""
        try:
            doc = SimpleDocTemplate(
                output_path,
                pagesize=landscape(A4),
                rightMargin=0.4*inch,
                leftMargin=0.4*inch,
                topMargin=0.4*inch,
                bottomMargin=0.4*inch
            )

            if title is None and days:
                title = f"Schedule - {days[0].strftime('%d/%m/%Y')} to {days[-1].strftime('%d/%m/%Y')}"

            story = [
                Paragraph(escape(title or "Schedule"), self.styles['RosterTitle']),
                Paragraph(f"Generated at: {datetime.now().strftime('%d/%m/%Y %H:%M')}", self.styles['Normal']),
                Spacer(1, 10),
                self._create_schedule_table(days, doc.width),
            ]

            doc.build(story)
            return True

        except Exception as e:
            logger.error(f"Error creating PDF: {e}", exc_info=True)
            return False

    def _create_schedule_table(self, days: Sequence[date], available_width: float) -> Table:
        store = self.data_manager.schedule
        cell_style = self.styles['RosterCell']

        data = [[EMPLOYEE_COLUMN] + [day.strftime("%d") for day in days]]
        cell_colors: Dict[tuple, str] = {}

        for row_index, emp in enumerate(self.data_manager.get_employees(), 1):
            row = [emp.name]
            for col_index, day in enumerate(days, 1):
                entries = store.get_entries(to_iso_date(day), emp.id)
                text = escape(self._format_cell(entries, "\n", with_notes=False))
                row.append(Paragraph(text.replace("\n", "<br/>"), cell_style))

                shift = self.data_manager.get_shift_by_id(entries[0].shift_type_id) if entries else None
                if shift is not None:
                    cell_colors[(col_index, row_index)] = shift.color
            data.append(row)

        name_width = 1.1*inch
        day_width = (available_width - name_width) / max(len(days), 1)
        table = Table(data, colWidths=[name_width] + [day_width]*len(days), repeatRows=1)

        style = [
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor("#3F51B5")),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTNAME', (0, 1), (0, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 7),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
        ]
        for cell, background in cell_colors.items():
            style.append(('BACKGROUND', cell, cell, colors.HexColor(background)))
        table.setStyle(TableStyle(style))

        return table


class ExportManager:
    """Manager class for handling all export operations"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager
        self.report_generator = ReportGenerator(data_manager)

    def export_schedule(self, days: Sequence[date], format_type: str, output_path: str,
                        title: Optional[str] = None) -> bool:
        """Export the given days in the specified format"""
        if format_type.lower() == 'pdf':
            return self.report_generator.export_schedule_pdf(days, output_path, title)
        elif format_type.lower() == 'excel':
            return self.report_generator.export_schedule_excel(days, output_path)
        elif format_type.lower() == 'csv':
            return self.report_generator.export_schedule_csv(days, output_path)
        else:
            raise ValueError(f"Unsupported format: {format_type}")

    def export_month(self, year: int, month: int, format_type: str, output_path: str) -> bool:
        days = days_in_month(year, month)
        title = f"Schedule - {days[0].strftime('%B %Y')}"
        return self.export_schedule(days, format_type, output_path, title)

    def get_default_filename(self, label: str, format_type: str) -> str:
        """Generate default filename for export"""
        extension = 'xlsx' if format_type.lower() == 'excel' else format_type.lower()
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"schedule_{label}_{timestamp}.{extension}"

    def batch_export(self, days: Sequence[date], label: str, output_dir: str,
                     formats: List[str] = None) -> Dict[str, bool]:
        """Export the same days in multiple formats"""
        if formats is None:
            formats = ['pdf', 'excel', 'csv']

        results = {}
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        for format_type in formats:
            file_path = output_path / self.get_default_filename(label, format_type)
            try:
                results[format_type] = self.export_schedule(days, format_type, str(file_path))
            except ValueError as e:
                logger.error(f"Error exporting {format_type}: {e}", exc_info=True)
                results[format_type] = False

        return results
