"""
Main Streamlit application for photomap.

This is the entry point of the photo map web application:
``streamlit run src/photomap/main.py``.
"""

import streamlit as st

from photomap.error_handling import PhotoMapError
from photomap.logging_config import configure_structured_logging, get_logger
from photomap.services.image_processor import ImageProcessor, get_image_processor
from photomap.services.photos import PhotoService, get_photo_service
from photomap.ui.auth_handlers import authenticate_user, is_uploader, sign_out_url
from photomap.ui.components.common import render_flash_message, render_header, render_photomap_error
from photomap.ui.components.uploader import show_upload_dialog
from photomap.ui.pages.map import render_map_page

# Configure structured logging
configure_structured_logging()
logger = get_logger(__name__)


@st.cache_resource
def get_cached_photo_service() -> PhotoService:
    return get_photo_service()


@st.cache_resource
def get_cached_image_processor() -> ImageProcessor:
    return get_image_processor()


def initialize_session_state() -> None:
    """Initialize session state variables."""
    if "authenticated" not in st.session_state:
        st.session_state.authenticated = False

    if "user_id" not in st.session_state:
        st.session_state.user_id = None

    if "user_email" not in st.session_state:
        st.session_state.user_email = None

    if "is_uploader" not in st.session_state:
        st.session_state.is_uploader = False


def main() -> None:
    """Main application entry point."""
    st.set_page_config(
        page_title="photomap",
        page_icon="🗺️",
        layout="wide",
        initial_sidebar_state="collapsed",
        menu_items={
            "Get Help": None,
            "Report a bug": None,
            "About": "photomap - Personal travel photo album on a map",
        },
    )

    initialize_session_state()
    user = authenticate_user()

    logger.debug("session_initialized", authenticated=user is not None, is_uploader=is_uploader())

    upload_clicked = render_header(user.email if user else None, sign_out_url(), is_uploader())
    render_flash_message()

    try:
        photo_service = get_cached_photo_service()
    except PhotoMapError as e:
        render_photomap_error("服務無法使用", e)
        return

    if upload_clicked:
        show_upload_dialog(photo_service, get_cached_image_processor())

    render_map_page(photo_service)


if __name__ == "__main__":
    main()
