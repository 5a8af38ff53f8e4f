import flet as ft
from views.styles import AppColors, AppTextStyles, AppLayout

def AppHeader(title, on_back_click=None, action_button: ft.Control = None):
    """
    Standard Application Header.
    `title` may be a plain string or a control (e.g. month navigation row).
    """
    left_content = ft.Container(width=40)
    if on_back_click:
        left_content = ft.IconButton(
            ft.Icons.ARROW_BACK_IOS_NEW,
            icon_color=AppColors.TEXT_PRIMARY,
            on_click=on_back_click,
            tooltip="Tilbake"
        )

    # Right Content: Action Button or Spacer
    right_content = action_button if action_button else ft.Container(width=40)

    title_control = title if isinstance(title, ft.Control) else ft.Text(
        title, style=AppTextStyles.HEADER_TITLE, color=AppColors.TEXT_PRIMARY
    )

    header_row = ft.Row([
        left_content,
        title_control,
        right_content
    ], alignment=ft.MainAxisAlignment.SPACE_BETWEEN, vertical_alignment=ft.CrossAxisAlignment.CENTER)

    return ft.Container(
        content=header_row,
        padding=AppLayout.HEADER_PADDING,
        bgcolor=AppColors.SURFACE,
        border=ft.border.only(bottom=ft.border.BorderSide(1, AppColors.BORDER_LIGHT)),
        height=72,
    )
