import os

import flet as ft

from config import Config
from services.router import Router
from utils.logger import log_info, log_warning


async def main(page: ft.Page):
    page.title = "Drone-operasjoner"

    # [Flet 0.80+] Custom session storage
    page.app_session = {}

    # [THEME PERSISTENCE]
    try:
        theme_mode_str = await page.shared_preferences.get("theme_mode")
    except Exception:
        theme_mode_str = None
    page.theme_mode = ft.ThemeMode.DARK if theme_mode_str == "dark" else ft.ThemeMode.LIGHT

    page.padding = 0
    page.spacing = 0

    # [POLYFILL] Add Page.open/close support
    if not hasattr(ft.Page, "open"):
        def page_open_polyfill(self, control):
            if hasattr(control, "open"):
                control.open = True
            if control not in self.overlay:
                self.overlay.append(control)
            self.update()
        ft.Page.open = page_open_polyfill

    if not hasattr(ft.Page, "close"):
        def page_close_polyfill(self, control):
            if not control:
                return
            if hasattr(control, "open"):
                control.open = False
            if control in self.overlay:
                self.overlay.remove(control)
            self.update()
        ft.Page.close = page_close_polyfill

    router = Router(page)

    async def on_disconnect(e):
        await router.cleanup_view()

    page.on_disconnect = on_disconnect
    await router.start()


if __name__ == "__main__":
    if not Config.validate():
        log_warning("Starting without a complete Supabase configuration")

    port = int(os.getenv("PORT", 8888))
    host = "0.0.0.0"

    # Secure key setup
    if not os.getenv("FLET_SECRET_KEY"):
        import secrets
        os.environ["FLET_SECRET_KEY"] = secrets.token_hex(32)

    log_info(f"Starting on {host}:{port}")
    ft.app(
        target=main,
        port=port,
        host=host,
        view=ft.AppView.WEB_BROWSER,
    )
