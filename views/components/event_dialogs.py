import asyncio
from datetime import date

import flet as ft

from config import Config
from services.calendar_errors import CalendarError, ValidationFailure
from services.calendar_models import CalendarEvent, CreationMenu, CustomEventRow, OpenedAction, SourceType
from utils.logger import log_error
from views.styles import AppButtons, AppColors, AppLayout, AppTextStyles

MONTH_NAMES = ["januar", "februar", "mars", "april", "mai", "juni",
               "juli", "august", "september", "oktober", "november", "desember"]

# Field labels for the read-only detail dialog, per entity type
DETAIL_FIELDS = {
    SourceType.MISSION: [("tittel", "Tittel"), ("tidspunkt", "Tidspunkt"), ("slutt_tidspunkt", "Slutt"),
                         ("lokasjon", "Lokasjon"), ("status", "Status"), ("risk_nivå", "Risikonivå"),
                         ("beskrivelse", "Beskrivelse"), ("merknader", "Merknader")],
    SourceType.DOCUMENT: [("tittel", "Tittel"), ("kategori", "Kategori"), ("versjon", "Versjon"),
                          ("gyldig_til", "Gyldig til"), ("beskrivelse", "Beskrivelse"),
                          ("nettside_url", "Nettside")],
    SourceType.INCIDENT: [("tittel", "Tittel"), ("hendelsestidspunkt", "Tidspunkt"),
                          ("alvorlighetsgrad", "Alvorlighetsgrad"), ("status", "Status"),
                          ("kategori", "Kategori"), ("lokasjon", "Lokasjon"), ("beskrivelse", "Beskrivelse")],
}


def format_day(day: date) -> str:
    return f"{day.day:02d}. {MONTH_NAMES[day.month - 1]} {day.year}"


def show_toast(page: ft.Page, message: str, description: str = None, error: bool = False):
    text = message if not description else f"{message}\n{description}"
    page.open(ft.SnackBar(
        ft.Text(text, color=ft.Colors.WHITE),
        bgcolor=AppColors.ERROR if error else ft.Colors.BLUE_GREY_700,
    ))
    page.update()


def category_badge(category: str) -> ft.Container:
    return ft.Container(
        content=ft.Text(category, size=11, color=AppColors.category(category)),
        padding=ft.padding.symmetric(horizontal=6, vertical=2),
        border=ft.border.all(1, AppColors.category(category)),
        border_radius=AppLayout.BORDER_RADIUS_SM,
    )


def event_tile(event: CalendarEvent, on_click, trailing: ft.Control = None) -> ft.Container:
    body = [ft.Text(event.title, weight=ft.FontWeight.W_600, size=14)]
    if event.description:
        body.append(ft.Text(event.description, style=AppTextStyles.CAPTION))
    body.append(category_badge(event.category))

    row = [
        ft.Column(body, spacing=4, expand=True),
        ft.Text(event.occurs_at.strftime("%H:%M"), size=12, color=AppColors.category(event.category)),
    ]
    if trailing:
        row.append(trailing)

    return ft.Container(
        content=ft.Row(row, vertical_alignment=ft.CrossAxisAlignment.START),
        padding=AppLayout.SM + 4,
        border=ft.border.all(1, AppColors.BORDER_LIGHT),
        border_radius=AppLayout.BORDER_RADIUS_SM,
        on_click=on_click,
        ink=True,
    )


def open_detail_dialog(page: ft.Page, action: OpenedAction):
    record = action.record
    rows = []
    for key, label in DETAIL_FIELDS.get(action.entity_type, []):
        value = record.get(key)
        if value in (None, ""):
            continue
        rows.append(ft.Column([
            ft.Text(label, style=AppTextStyles.CAPTION),
            ft.Text(str(value), selectable=True),
        ], spacing=2))

    dialog = ft.AlertDialog(
        title=ft.Text(record.get("tittel") or "Detaljer"),
        content=ft.Container(ft.Column(rows, tight=True, spacing=AppLayout.SM, scroll=ft.ScrollMode.AUTO), width=420),
        actions=[ft.TextButton("Lukk", on_click=lambda e: page.close(dialog))],
    )
    page.open(dialog)


def open_creation_menu(page: ft.Page, menu: CreationMenu, on_select):
    """Bottom sheet offering the creation actions for a clicked day."""
    def pick(option):
        async def handler(e):
            page.close(sheet)
            await on_select(menu.select(option.target))
        return handler

    sheet = ft.BottomSheet(
        ft.Container(
            ft.Column([
                ft.Text(f"Legg til oppføring {format_day(menu.day)}", style=AppTextStyles.SECTION_TITLE),
                *[ft.ListTile(title=ft.Text(option.label), leading=ft.Icon(ft.Icons.ADD), on_click=pick(option))
                  for option in menu.options],
            ], tight=True),
            padding=AppLayout.MD,
        )
    )
    page.open(sheet)


def open_custom_event_form(page: ft.Page, default_date: date, on_submit, existing: CustomEventRow = None):
    """
    Form for a custom calendar entry. on_submit(values) is awaited; a
    ValidationFailure keeps the form open and shows the errors inline.
    """
    title_field = ft.TextField(label="Tittel", value=existing.title if existing else "", autofocus=True)
    type_field = ft.Dropdown(
        label="Type",
        value=existing.type if existing else Config.Categories.MEETING,
        options=[ft.dropdown.Option(t) for t in Config.Categories.CUSTOM_TYPES],
    )
    date_field = ft.TextField(
        label="Dato (ÅÅÅÅ-MM-DD)",
        value=(existing.event_date if existing else default_date).isoformat(),
    )
    time_field = ft.TextField(label="Klokkeslett (TT:MM)", value=(existing.event_time or "") if existing else "")
    description_field = ft.TextField(
        label="Beskrivelse", multiline=True, min_lines=2,
        value=(existing.description or "") if existing else "",
    )
    error_text = ft.Text("", color=AppColors.ERROR, size=12, visible=False)

    async def submit(e):
        values = {
            "title": title_field.value or "",
            "type": type_field.value or Config.Categories.OTHER,
            "event_date": (date_field.value or "").strip(),
            "event_time": (time_field.value or "").strip() or None,
            "description": (description_field.value or "").strip() or None,
        }
        try:
            await on_submit(values)
        except ValidationFailure as err:
            error_text.value = "\n".join(err.errors)
            error_text.visible = True
            page.update()
            return
        except CalendarError as err:
            log_error(f"Calendar entry save failed: {err}")
            error_text.value = err.user_message
            error_text.visible = True
            page.update()
            return
        except Exception as err:
            log_error(f"Calendar entry save failed: {err}")
            error_text.value = "Kunne ikke lagre oppføringen"
            error_text.visible = True
            page.update()
            return
        page.close(dialog)

    dialog = ft.AlertDialog(
        title=ft.Text("Rediger oppføring" if existing else "Ny kalenderoppføring"),
        content=ft.Container(
            ft.Column([title_field, type_field, date_field, time_field, description_field, error_text],
                      tight=True, spacing=AppLayout.SM),
            width=400,
        ),
        actions=[
            ft.TextButton("Avbryt", on_click=lambda e: page.close(dialog)),
            ft.ElevatedButton("Lagre", style=AppButtons.PRIMARY(), on_click=lambda e: asyncio.create_task(submit(e))),
        ],
    )
    page.open(dialog)
