import flet as ft

from config import Config


class AppColors:
    PRIMARY = ft.Colors.BLUE_700
    PRIMARY_LIGHT = ft.Colors.BLUE_400

    # Semantic Colors
    ERROR = ft.Colors.RED_ACCENT_700
    SUCCESS = ft.Colors.GREEN_700
    WARNING = ft.Colors.AMBER_700

    SURFACE = "surface"
    SURFACE_VARIANT = "surfaceVariant"
    BORDER_LIGHT = ft.Colors.with_opacity(0.1, ft.Colors.GREY)

    # Text - Use Flet's adaptive colors
    TEXT_MAIN = ft.Colors.ON_SURFACE
    TEXT_MUTE = ft.Colors.ON_SURFACE_VARIANT
    TEXT_PRIMARY = TEXT_MAIN

    TODAY_BG = ft.Colors.with_opacity(0.12, ft.Colors.BLUE_700)
    OUTSIDE_MONTH = ft.Colors.with_opacity(0.4, ft.Colors.ON_SURFACE)

    @staticmethod
    def category(category: str) -> str:
        return Config.category_color(category)

    @staticmethod
    def category_soft(category: str) -> str:
        return ft.Colors.with_opacity(0.15, Config.category_color(category))


class AppShadows:
    SMALL = ft.BoxShadow(
        spread_radius=1,
        blur_radius=10,
        color=ft.Colors.with_opacity(0.05, ft.Colors.BLACK),
        offset=ft.Offset(0, 2),
    )


class AppTextStyles:
    CAPTION = ft.TextStyle(size=12, color=ft.Colors.GREY_500)
    BODY_SMALL = ft.TextStyle(size=12)
    HEADER_TITLE = ft.TextStyle(size=20, weight=ft.FontWeight.BOLD)
    SECTION_TITLE = ft.TextStyle(size=16, weight=ft.FontWeight.W_600)


class AppLayout:
    # Spacing Tokens (Step of 4 or 8)
    XS = 4
    SM = 8
    MD = 16
    LG = 24
    XL = 32

    HEADER_PADDING = 16
    CONTENT_PADDING = 16

    BORDER_RADIUS_SM = 8
    BORDER_RADIUS_MD = 12

    DAY_CELL_HEIGHT = 96


class AppButtons:
    @staticmethod
    def _base_style(bgcolor, color, radius=8):
        return ft.ButtonStyle(
            bgcolor=bgcolor,
            color=color,
            shape=ft.RoundedRectangleBorder(radius=radius),
            padding=ft.padding.symmetric(horizontal=16, vertical=12),
            elevation=0,
        )

    @classmethod
    def PRIMARY(cls):
        return cls._base_style(AppColors.PRIMARY, ft.Colors.WHITE, 12)

    @classmethod
    def DANGER(cls):
        return cls._base_style(AppColors.ERROR, ft.Colors.WHITE, 12)
