import flet as ft

from config import Config
from utils.logger import log_error, log_info

# Views are imported lazily inside navigate_to; they take navigate_to as a
# callback instead of importing the router.

PUBLIC_ROUTES = [Config.Routes.LOGIN, "/"]


class Router:
    def __init__(self, page: ft.Page):
        self.page = page
        self.history_stack = []

        self.page.on_view_pop = self._handle_view_pop
        self.page.go_back = self.go_back

    async def _handle_view_pop(self, view):
        """Handle browser back button or view pop."""
        await self.go_back()

    async def cleanup_overlays(self):
        """Closes all open dialogs, bottom sheets and snack bars."""
        try:
            page = self.page
            for ctrl in page.overlay:
                if hasattr(ctrl, "open"):
                    ctrl.open = False
            if getattr(page, "splash", None):
                page.splash = None
            page.update()
        except Exception as e:
            log_error(f"Cleanup Error: {e}")

    async def cleanup_view(self):
        """Run the outgoing view's teardown (live subscriptions etc.)."""
        cleanup = self.page.app_session.pop("view_cleanup", None)
        if not cleanup:
            return
        try:
            await cleanup()
        except Exception as e:
            log_error(f"View cleanup failed: {e}")

    async def start(self):
        await self.navigate_to(Config.Routes.LOGIN)

    async def go_back(self, e=None):
        """Navigates to the previous route in history."""
        if self.history_stack:
            prev_route = self.history_stack.pop()
            await self.navigate_to(prev_route, is_back=True)
        elif self.page.route != Config.Routes.DASHBOARD:
            await self.navigate_to(Config.Routes.DASHBOARD, is_back=True)

    async def navigate_to(self, route, is_back=False, add_to_history=True):
        """
        Main navigation logic.
        Args:
            route (str): Target route name (e.g., "dashboard", "calendar").
            is_back (bool): True if this is a 'back' navigation (prevents circular history).
            add_to_history (bool): Whether to add current route to history stack.
        """
        page = self.page
        try:
            if page.route == route and page.controls:
                return

            log_info(f"Navigating to: {route} (Back: {is_back})")

            # 1. Tear down the outgoing view before it loses its controls
            await self.cleanup_view()
            await self.cleanup_overlays()

            # 2. History Management
            clean_route = route.lstrip("/") or Config.Routes.LOGIN
            if add_to_history and not is_back and page.route and page.route != clean_route:
                if page.route not in PUBLIC_ROUTES:
                    self.history_stack.append(page.route)

            page.route = clean_route
            page.clean()

            # 3. Auth Check
            if clean_route not in PUBLIC_ROUTES and not page.app_session.get("tenant"):
                log_info(f"No tenant in session, redirecting {clean_route} to login")
                clean_route = Config.Routes.LOGIN
                page.route = clean_route
                self.history_stack.clear()

            # 4. Route Map
            if clean_route == Config.Routes.LOGIN:
                from views.login_view import get_login_controls
                controls = await get_login_controls(page, self.navigate_to)
            elif clean_route == Config.Routes.DASHBOARD:
                from views.dashboard_view import get_dashboard_controls
                controls = await get_dashboard_controls(page, self.navigate_to)
            elif clean_route == Config.Routes.CALENDAR:
                from views.calendar_view import get_calendar_controls
                controls = await get_calendar_controls(page, self.navigate_to)
            else:
                controls = [ft.Text(f"Siden {route} finnes ikke", size=20)]

            page.controls.clear()
            page.controls.extend(controls)
            page.update()

        except Exception as e:
            import traceback
            log_error(f"Navigation Error ({route}): {traceback.format_exc()}")
            page.controls.clear()
            page.add(ft.Text(f"Systemfeil: {e}", color="red"))
            page.add(ft.ElevatedButton("Prøv igjen (logg inn)",
                                       on_click=lambda _: page.run_task(self.navigate_to, Config.Routes.LOGIN)))
            page.update()
