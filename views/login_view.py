import asyncio

import flet as ft

from config import Config
from services.auth_service import auth_service
from services.calendar_errors import Unauthenticated
from utils.logger import log_debug, log_error, log_info
from views.styles import AppButtons, AppColors, AppLayout, AppShadows, AppTextStyles


# Safe shared_preferences wrapper for web mode compatibility (Flet 0.80+)
async def safe_storage_get(page: ft.Page, key: str, default=None):
    """Safely get value from shared_preferences, returns default if unavailable."""
    try:
        if hasattr(page, "shared_preferences") and page.shared_preferences:
            return await page.shared_preferences.get(key)
    except Exception as e:
        log_debug(f"safe_storage_get failed for '{key}': {e}")
    return default


async def safe_storage_set(page: ft.Page, key: str, value):
    try:
        if hasattr(page, "shared_preferences") and page.shared_preferences:
            await page.shared_preferences.set(key, value)
            return True
    except Exception as e:
        log_debug(f"safe_storage_set failed for '{key}': {e}")
    return False


async def safe_storage_remove(page: ft.Page, key: str):
    try:
        if hasattr(page, "shared_preferences") and page.shared_preferences:
            await page.shared_preferences.remove(key)
            return True
    except Exception as e:
        log_debug(f"safe_storage_remove failed for '{key}': {e}")
    return False


async def get_login_controls(page: ft.Page, navigate_to):
    email_tf = ft.TextField(
        label="E-post",
        width=320,
        value=await safe_storage_get(page, "saved_email", "") or "",
        border_radius=AppLayout.BORDER_RADIUS_SM,
    )
    pw_tf = ft.TextField(
        label="Passord",
        password=True,
        can_reveal_password=True,
        width=320,
        border_radius=AppLayout.BORDER_RADIUS_SM,
    )
    save_email_check = ft.Checkbox(label="Husk e-post", value=bool(email_tf.value))
    error_text = ft.Text("", color=AppColors.ERROR, size=12)

    async def perform_login(e=None):
        if not email_tf.value or not pw_tf.value:
            error_text.value = "Skriv inn e-post og passord."
            page.update()
            return

        page.splash = ft.ProgressBar(color=AppColors.PRIMARY)
        page.update()

        try:
            res = await asyncio.to_thread(auth_service.sign_in, email_tf.value, pw_tf.value)
            if not res:
                page.splash = None
                error_text.value = "Feil e-post eller passord."
                page.update()
                return
            ctx = await asyncio.to_thread(auth_service.get_tenant_context)

            if save_email_check.value:
                await safe_storage_set(page, "saved_email", email_tf.value)
            else:
                await safe_storage_remove(page, "saved_email")

            page.app_session["user_id"] = ctx.user_id
            page.app_session["tenant"] = ctx
            log_info(f"User logged in: {res.user.email} (company {ctx.company_id})")
            page.splash = None
            await navigate_to(Config.Routes.DASHBOARD)
        except Unauthenticated as ex:
            log_error(f"Login rejected: {ex}")
            page.splash = None
            error_text.value = "Brukeren er ikke knyttet til et selskap."
            page.update()
        except Exception as ex:
            log_error(f"Login failed: {ex}")
            page.splash = None
            error_text.value = f"Innlogging feilet: {ex}"
            page.update()

    pw_tf.on_submit = lambda e: asyncio.create_task(perform_login(e))

    card = ft.Container(
        ft.Column([
            ft.Icon(ft.Icons.FLIGHT_TAKEOFF, size=48, color=AppColors.PRIMARY),
            ft.Text("Drone-operasjoner", style=AppTextStyles.HEADER_TITLE),
            ft.Text("Logg inn for å se kalenderen", style=AppTextStyles.CAPTION),
            ft.Container(height=AppLayout.SM),
            email_tf,
            pw_tf,
            save_email_check,
            error_text,
            ft.ElevatedButton(
                "Logg inn", width=320, style=AppButtons.PRIMARY(),
                on_click=lambda e: asyncio.create_task(perform_login(e)),
            ),
        ], horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=AppLayout.SM, tight=True),
        padding=AppLayout.LG,
        border_radius=AppLayout.BORDER_RADIUS_MD,
        bgcolor=AppColors.SURFACE,
        shadow=AppShadows.SMALL,
    )

    return [ft.Container(card, alignment=ft.Alignment(0, 0), expand=True)]
