import asyncio

import flet as ft

from config import Config
from services.auth_service import auth_service
from services.calendar_models import SourceType, TenantContext
from utils.logger import log_error
from views.calendar_view import build_live_calendar, failure_message, mount_live_calendar
from views.components.app_header import AppHeader
from views.components.event_dialogs import MONTH_NAMES, open_detail_dialog, show_toast
from views.styles import AppColors, AppLayout, AppShadows, AppTextStyles

SOURCE_ICONS = {
    SourceType.MISSION: ft.Icons.CALENDAR_MONTH,
    SourceType.DOCUMENT: ft.Icons.DESCRIPTION_OUTLINED,
    SourceType.DRONE: ft.Icons.BUILD_OUTLINED,
    SourceType.EQUIPMENT: ft.Icons.BUILD_OUTLINED,
    SourceType.INCIDENT: ft.Icons.WARNING_AMBER_ROUNDED,
    SourceType.CUSTOM: ft.Icons.EVENT_NOTE,
}

SESSION_KEYS = ("tenant", "user_id")


async def logout(page: ft.Page, navigate_to):
    await asyncio.to_thread(auth_service.sign_out)
    # view_cleanup stays: navigate_to runs it
    for key in SESSION_KEYS:
        page.app_session.pop(key, None)
    await navigate_to(Config.Routes.LOGIN)


async def get_dashboard_controls(page: ft.Page, navigate_to):
    """Dashboard calendar card: the next few events, urgent ones flagged."""
    ctx: TenantContext = page.app_session.get("tenant")
    if not ctx:
        log_error("DASHBOARD: No tenant context")
        return [ft.Container(content=ft.Text("Ingen selskapsinformasjon.", color="red"), padding=20)]

    upcoming_list = ft.Column(spacing=AppLayout.SM)

    def render(cal):
        items = cal.upcoming()
        if not items:
            upcoming_list.controls = [ft.Text("Ingen kommende hendelser", style=AppTextStyles.CAPTION)]
            return
        upcoming_list.controls = [upcoming_row(item.event, item.urgent) for item in items]

    def upcoming_row(event, urgent):
        when = f"{event.occurs_at.day:02d}. {MONTH_NAMES[event.occurs_at.month - 1][:3]}"
        row = [
            ft.Icon(SOURCE_ICONS.get(event.source_type, ft.Icons.EVENT), size=16,
                    color=AppColors.category(event.category)),
            ft.Column([
                ft.Text(event.title, weight=ft.FontWeight.W_500, size=14, max_lines=1,
                        overflow=ft.TextOverflow.ELLIPSIS),
                ft.Row([
                    ft.Text(event.category, size=11, color=AppColors.category(event.category)),
                    ft.Text(when, style=AppTextStyles.CAPTION),
                ], spacing=AppLayout.SM),
            ], spacing=2, expand=True),
        ]
        if urgent:
            row.append(ft.Icon(ft.Icons.WARNING_AMBER_ROUNDED, size=16, color=AppColors.ERROR, tooltip="Under en uke"))
        return ft.Container(
            ft.Row(row, vertical_alignment=ft.CrossAxisAlignment.CENTER),
            padding=AppLayout.SM + 4,
            border_radius=AppLayout.BORDER_RADIUS_SM,
            bgcolor=AppColors.SURFACE_VARIANT,
            on_click=lambda e, ev=event: asyncio.create_task(open_event(ev)),
            ink=True,
        )

    def on_change(cal):
        render(cal)
        page.update()

    def on_error(failures):
        show_toast(page, failure_message(failures), error=True)

    engine, listener, resolver = build_live_calendar(ctx, on_change=on_change, on_error=on_error)

    async def open_event(event):
        action = await resolver.on_event_click(event)
        if action.kind == "opened":
            open_detail_dialog(page, action)
        elif action.kind == "info":
            show_toast(page, action.message, action.description)
        else:
            show_toast(page, action.message or "Kunne ikke laste detaljer", error=True)

    render(engine.calendar)
    asyncio.create_task(mount_live_calendar(page, engine, listener))

    card = ft.Container(
        ft.Column([
            ft.Row([
                ft.Icon(ft.Icons.CALENDAR_MONTH, color=AppColors.PRIMARY),
                ft.Text("Kalender", style=AppTextStyles.SECTION_TITLE, expand=True),
                ft.TextButton("Åpne", on_click=lambda e: asyncio.create_task(navigate_to(Config.Routes.CALENDAR))),
            ]),
            upcoming_list,
        ], spacing=AppLayout.SM),
        padding=AppLayout.MD,
        border_radius=AppLayout.BORDER_RADIUS_MD,
        shadow=AppShadows.SMALL,
        bgcolor=AppColors.SURFACE,
    )

    header = AppHeader(
        "Oversikt",
        action_button=ft.IconButton(ft.Icons.LOGOUT, tooltip="Logg ut", on_click=lambda e: asyncio.create_task(logout(page, navigate_to))),
    )
    return [ft.Column([header, ft.Container(card, padding=AppLayout.CONTENT_PADDING)], expand=True, spacing=0)]
