"""Reusable UI components for photomap application."""

import streamlit as st
import structlog

from photomap.error_handling import PhotoMapError

logger = structlog.get_logger()


def render_error_message(error_type: str, message: str, details: str | None = None) -> None:
    """
    Render a standardized error message.

    Args:
        error_type: Type of error (e.g., "上傳失敗")
        message: Main error message
        details: Additional error details (optional)
    """
    st.error(f"**{error_type}:** {message}")

    if details:
        with st.expander("🔍 錯誤詳情"):
            st.code(details)


def render_photomap_error(error_type: str, error: PhotoMapError) -> None:
    """Show the user message of a service error, with its code as detail."""
    render_error_message(error_type, error.user_message, details=error.code)


def set_flash_message(message: str) -> None:
    """Queue a message shown once after the next rerun."""
    st.session_state.flash_message = message


def render_flash_message() -> None:
    message = st.session_state.pop("flash_message", None)
    if message:
        st.toast(message, icon="✅")


def render_account(user_email: str | None, sign_out_url: str | None) -> None:
    """Render the signed-in account with an optional sign-out link."""
    if not user_email:
        st.caption("訪客")
        return

    st.caption(f"📧 {user_email}")
    if sign_out_url:
        st.link_button("登出", sign_out_url, use_container_width=True)


def render_header(user_email: str | None, sign_out_url: str | None, can_upload: bool) -> bool:
    """
    Render the application header.

    Returns:
        bool: True when the upload button was clicked
    """
    title_col, upload_col, account_col = st.columns([6, 1, 2])

    with title_col:
        st.markdown("# 🗺️ photomap")

    upload_clicked = False
    with upload_col:
        if can_upload:
            upload_clicked = st.button("📤 上傳", use_container_width=True, type="primary")

    with account_col:
        render_account(user_email, sign_out_url)

    return upload_clicked
