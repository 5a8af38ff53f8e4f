import asyncio
import calendar
from datetime import date, datetime
from typing import Awaitable, Callable, Dict, Optional

import flet as ft

from config import Config
from repositories.calendar_repository import CalendarRepository
from services.auth_service import auth_service
from services.calendar_errors import SourceReadFailure
from services.calendar_models import CalendarEvent, CreationRequest, CreationTarget, SourceType, TenantContext
from services.calendar_sync import CalendarSyncEngine
from services.change_feed import RealtimeChangeFeed
from services.change_listener import ChangeNotificationListener
from services.custom_event_service import CustomEventStore
from services.entity_readers import build_readers
from services.interaction_resolver import InteractionResolver
from utils.logger import log_error, log_info
from views.components.app_header import AppHeader
from views.components.event_dialogs import (
    MONTH_NAMES,
    event_tile,
    format_day,
    open_creation_menu,
    open_custom_event_form,
    open_detail_dialog,
    show_toast,
)
from views.styles import AppColors, AppLayout, AppTextStyles

WEEKDAYS = ["Man", "Tir", "Ons", "Tor", "Fre", "Lør", "Søn"]

# Create dialogs for missions, incidents and documents live in their own
# modules; the host app registers them here keyed by target.
CreateHandler = Callable[[CreationRequest, Callable[[], Awaitable[None]]], Awaitable[None]]


def build_live_calendar(ctx: TenantContext, on_change=None, on_error=None):
    """Engine, listener and resolver for one mounted view, sharing a repository."""
    repository = CalendarRepository()
    engine = CalendarSyncEngine(
        ctx, build_readers(repository), CustomEventStore(repository),
        on_change=on_change, on_error=on_error,
    )
    feed = RealtimeChangeFeed(access_token=auth_service.get_access_token())
    listener = ChangeNotificationListener(feed, engine)
    resolver = InteractionResolver(ctx, repository)
    return engine, listener, resolver


async def mount_live_calendar(page: ft.Page, engine: CalendarSyncEngine, listener: ChangeNotificationListener):
    """Initial load, then live updates until the router tears the view down."""
    async def cleanup():
        log_info("CALENDAR: Performing cleanup...")
        await listener.stop()
        await listener.feed.close()

    page.app_session["view_cleanup"] = cleanup

    await engine.refresh()
    if listener.closed:
        log_info("CALENDAR: View left during first load, skipping live updates")
        return
    try:
        await listener.start()
    except Exception as e:
        log_error(f"CALENDAR_SYNC: live updates unavailable: {e}")


def failure_message(failures):
    labels = {
        SourceType.MISSION: "oppdrag", SourceType.DOCUMENT: "dokumenter", SourceType.DRONE: "droner",
        SourceType.EQUIPMENT: "utstyr", SourceType.INCIDENT: "hendelser", SourceType.CUSTOM: "kalenderoppføringer",
    }
    names = ", ".join(labels.get(f.source_type, str(f.source_type)) for f in failures)
    return f"{SourceReadFailure.user_message} ({names})"


async def get_calendar_controls(page: ft.Page, navigate_to, create_handlers: Optional[Dict[CreationTarget, CreateHandler]] = None):
    ctx: TenantContext = page.app_session.get("tenant")
    if not ctx:
        log_error("CALENDAR: No tenant context - returning error UI")
        return [ft.Container(content=ft.Text("Ingen selskapsinformasjon.", color="red"), padding=20)]

    create_handlers = create_handlers or {}
    now = datetime.now()
    view_state = {"year": now.year, "month": now.month, "compact": (page.width or 1000) < 600}

    month_label = ft.Text("", size=18, weight="bold")
    grid = ft.Column(expand=True, spacing=0)

    def on_change(cal):
        render_grid()
        page.update()

    def on_error(failures):
        show_toast(page, failure_message(failures), error=True)

    engine, listener, resolver = build_live_calendar(ctx, on_change=on_change, on_error=on_error)
    custom_store = engine.custom_store

    # --- Day cells --------------------------------------------------------------

    def day_cell(day: date):
        cal = engine.calendar
        events = cal.events_on_date(day)
        in_month = day.month == view_state["month"]
        is_today = day == date.today()

        items = [ft.Text(str(day.day), size=13, weight=ft.FontWeight.W_500,
                         color=AppColors.TEXT_MAIN if in_month else AppColors.OUTSIDE_MONTH)]
        if view_state["compact"]:
            dots = [ft.Container(width=8, height=8, border_radius=4, bgcolor=AppColors.category(e.category))
                    for e in events[:Config.DAY_DOT_LIMIT]]
            if len(events) > Config.DAY_DOT_LIMIT:
                dots.append(ft.Text("+", size=8, color=AppColors.TEXT_MUTE))
            if dots:
                items.append(ft.Row(dots, spacing=2, wrap=True))
        else:
            for e in events[:Config.DAY_PREVIEW_LIMIT]:
                items.append(ft.Container(
                    ft.Text(e.title, size=11, max_lines=1, overflow=ft.TextOverflow.ELLIPSIS, tooltip=e.title),
                    bgcolor=AppColors.category_soft(e.category),
                    border_radius=4,
                    padding=ft.padding.symmetric(horizontal=4, vertical=2),
                ))
            remaining = len(events) - Config.DAY_PREVIEW_LIMIT
            if remaining > 0:
                items.append(ft.Text(f"+{remaining} mer", size=10, color=AppColors.TEXT_MUTE))

        return ft.Container(
            content=ft.Column(items, spacing=2, tight=True),
            expand=True,
            height=AppLayout.DAY_CELL_HEIGHT,
            padding=4,
            bgcolor=AppColors.TODAY_BG if is_today else None,
            border=ft.border.all(0.5, AppColors.BORDER_LIGHT),
            on_click=lambda e, d=day: open_day_dialog(d),
        )

    def render_grid():
        year, month = view_state["year"], view_state["month"]
        month_label.value = f"{MONTH_NAMES[month - 1].capitalize()} {year}"
        weeks = calendar.Calendar(firstweekday=0).monthdatescalendar(year, month)
        header = ft.Row([ft.Container(ft.Text(d, style=AppTextStyles.CAPTION), expand=True,
                                      alignment=ft.Alignment(0, 0)) for d in WEEKDAYS], spacing=0)
        grid.controls = [header] + [ft.Row([day_cell(d) for d in week], spacing=0) for week in weeks]

    # --- Interaction ------------------------------------------------------------

    def open_day_dialog(day: date):
        events = engine.calendar.events_on_date(day)
        tiles = []
        for event in events:
            trailing = None
            if event.source_type == SourceType.CUSTOM and event.source_id:
                trailing = ft.Row([
                    ft.IconButton(ft.Icons.EDIT_OUTLINED, icon_size=18, tooltip="Rediger",
                                  on_click=lambda e, ev=event: edit_custom(ev)),
                    ft.IconButton(ft.Icons.DELETE_OUTLINE, icon_size=18, tooltip="Slett",
                                  on_click=lambda e, ev=event: asyncio.create_task(delete_custom(ev))),
                ], spacing=0, tight=True)
            tiles.append(event_tile(event, on_click=lambda e, ev=event: asyncio.create_task(handle_event_click(ev)),
                                    trailing=trailing))
        if not tiles:
            tiles.append(ft.Text("Ingen hendelser denne dagen", style=AppTextStyles.CAPTION))

        dialog = ft.AlertDialog(
            title=ft.Text(format_day(day)),
            content=ft.Container(ft.Column(tiles, tight=True, spacing=AppLayout.SM, scroll=ft.ScrollMode.AUTO),
                                 width=420),
            actions=[
                ft.TextButton("Legg til", icon=ft.Icons.ADD,
                              on_click=lambda e: (page.close(dialog), show_creation_menu(day))),
                ft.TextButton("Lukk", on_click=lambda e: page.close(dialog)),
            ],
        )
        view_state["day_dialog"] = dialog
        page.open(dialog)

    def close_day_dialog():
        dialog = view_state.pop("day_dialog", None)
        if dialog:
            page.close(dialog)

    async def handle_event_click(event: CalendarEvent):
        close_day_dialog()
        action = await resolver.on_event_click(event)
        if action.kind == "opened":
            open_detail_dialog(page, action)
        elif action.kind == "info":
            show_toast(page, action.message, action.description)
        else:
            show_toast(page, action.message or "Kunne ikke laste detaljer", error=True)

    def show_creation_menu(day: date):
        open_creation_menu(page, resolver.on_date_click(day), on_select=start_creation)

    async def start_creation(request: CreationRequest):
        if request.target == CreationTarget.CUSTOM:
            async def create(values):
                row = await custom_store.create(ctx, values)
                engine.apply_custom_upsert(row)
                show_toast(page, "Oppføring lagret!")
            open_custom_event_form(page, request.default_date, on_submit=create)
            return

        handler = create_handlers.get(request.target)
        if handler is None:
            show_toast(page, f"Oppretting av {request.target.value} er ikke tilgjengelig her", error=True)
            return
        await handler(request, engine.refresh)

    def edit_custom(event: CalendarEvent):
        close_day_dialog()
        row = next((r for r in engine.custom_rows if r.id == event.source_id), None)
        if row is None:
            show_toast(page, "Oppføringen finnes ikke lenger", error=True)
            return

        async def save(values):
            updated = await custom_store.update(ctx, row.id, values)
            engine.apply_custom_upsert(updated)
            show_toast(page, "Oppføring oppdatert!")
        open_custom_event_form(page, row.event_date, on_submit=save, existing=row)

    async def delete_custom(event: CalendarEvent):
        close_day_dialog()
        try:
            await custom_store.delete(ctx, event.source_id)
        except Exception as e:
            log_error(f"CALENDAR: delete {event.source_id} failed: {e}")
            show_toast(page, "Kunne ikke slette oppføringen", error=True)
            return
        engine.apply_custom_delete(event.source_id)
        show_toast(page, "Oppføring slettet!")

    # --- Navigation -------------------------------------------------------------

    async def change_month(delta):
        month = view_state["month"] + delta
        year = view_state["year"]
        if month < 1:
            month, year = 12, year - 1
        elif month > 12:
            month, year = 1, year + 1
        view_state.update(year=year, month=month)
        render_grid()
        page.update()

    async def reload(e=None):
        await engine.refresh()

    header = AppHeader(
        title=ft.Row([
            ft.IconButton(ft.Icons.CHEVRON_LEFT, on_click=lambda e: asyncio.create_task(change_month(-1))),
            month_label,
            ft.IconButton(ft.Icons.CHEVRON_RIGHT, on_click=lambda e: asyncio.create_task(change_month(1))),
        ], alignment=ft.MainAxisAlignment.CENTER),
        on_back_click=lambda e: asyncio.create_task(navigate_to(Config.Routes.DASHBOARD)),
        action_button=ft.Row([
            ft.IconButton(ft.Icons.ADD, tooltip="Legg til oppføring",
                          on_click=lambda e: show_creation_menu(date.today())),
            ft.IconButton(ft.Icons.REFRESH, tooltip="Oppdater", on_click=lambda e: asyncio.create_task(reload(e))),
        ], spacing=0),
    )

    legend = ft.Row([
        ft.Row([ft.Container(width=10, height=10, border_radius=5, bgcolor=color), ft.Text(name, size=12)], spacing=4)
        for name, color in Config.CATEGORY_COLORS.items() if name != Config.Categories.MEETING
    ], wrap=True, spacing=AppLayout.MD)

    render_grid()
    asyncio.create_task(mount_live_calendar(page, engine, listener))

    return [
        ft.Column([
            header,
            ft.Container(grid, expand=True, padding=ft.padding.symmetric(horizontal=5)),
            ft.Container(legend, padding=AppLayout.MD),
        ], expand=True, spacing=0)
    ]
