"""Map page for photomap application."""

from typing import Any

import streamlit as st
import structlog

from photomap.config import get_map_settings
from photomap.error_handling import PhotoMapError
from photomap.models.photo import Photo
from photomap.services.clustering import (
    PhotoCluster,
    clamp_zoom,
    cluster_photos,
    find_cluster,
    locatable_photos,
    zoom_in_target,
)
from photomap.services.photos import PhotoService
from photomap.ui.auth_handlers import is_uploader, require_uploader
from photomap.ui.components.common import render_photomap_error, set_flash_message
from photomap.ui.components.map import render_map

logger = structlog.get_logger()


def initialize_map_state() -> None:
    """Initialize the map view on the first run of a session."""
    if "map_center" not in st.session_state or "map_zoom" not in st.session_state:
        settings = get_map_settings()
        st.session_state.map_center = (settings["center_lat"], settings["center_lng"])
        st.session_state.map_zoom = clamp_zoom(settings["zoom"])

    if "last_clicked" not in st.session_state:
        st.session_state.last_clicked = None

    # Bumped to remount the map, which drops the click st_folium keeps returning
    if "map_key_version" not in st.session_state:
        st.session_state.map_key_version = 0


@st.dialog("照片", width="large")
def show_photo_detail(photo: Photo, photo_service: PhotoService, can_delete: bool) -> None:
    """Full photo with its position, and the delete action for uploaders."""
    st.image(photo.src, caption=photo.filename)
    if photo.has_location:
        st.caption(f"📍 {photo.latitude:.6f}, {photo.longitude:.6f}")

    if not can_delete:
        return

    confirm_key = f"confirm_delete_{photo.filename}"
    if not st.session_state.get(confirm_key):
        if st.button("🗑️ 刪除", use_container_width=True):
            st.session_state[confirm_key] = True
            st.rerun(scope="fragment")
        return

    st.warning("確定要刪除這張照片嗎？")
    confirm_col, cancel_col = st.columns(2)
    with confirm_col:
        confirmed = st.button("確定刪除", type="primary", use_container_width=True)
    with cancel_col:
        if st.button("取消", use_container_width=True):
            st.session_state.pop(confirm_key, None)
            st.rerun(scope="fragment")

    if not confirmed:
        return

    try:
        user = require_uploader("delete_photo")
        photo_service.delete_photo(photo.filename, user_id=user.email)
    except PhotoMapError as e:
        render_photomap_error("刪除失敗", e)
        return
    finally:
        st.session_state.pop(confirm_key, None)

    set_flash_message("刪除成功")
    st.rerun()


def handle_marker_click(
    clusters: list[PhotoCluster], clicked: dict[str, Any], zoom: int, photo_service: PhotoService
) -> None:
    """Zoom into a multi-photo cluster, or open the detail view of a single photo."""
    cluster = find_cluster(clusters, clicked["lat"], clicked["lng"], zoom)
    if cluster is None:
        return

    if cluster.is_single:
        photo = cluster.photos[0]
        logger.info("photo_opened", photo_id=photo.filename)
        st.session_state.last_clicked = None
        st.session_state.map_key_version += 1
        show_photo_detail(photo, photo_service, is_uploader())
        return

    center, new_zoom = zoom_in_target(cluster, zoom)
    logger.info("cluster_zoom_in", cluster_size=cluster.size, zoom=new_zoom)
    st.session_state.map_center = center
    st.session_state.map_zoom = new_zoom
    st.rerun()


def render_map_page(photo_service: PhotoService) -> None:
    """Render the photo map; clusters are rebuilt from the current document on every run."""
    initialize_map_state()

    try:
        photos = locatable_photos(photo_service.list_photos())
    except PhotoMapError as e:
        render_photomap_error("載入照片失敗", e)
        return

    zoom = st.session_state.map_zoom
    clusters = cluster_photos(photos, zoom)
    if not photos:
        st.info("目前還沒有照片。")

    result = render_map(
        clusters, st.session_state.map_center, zoom, key=f"photo_map_{st.session_state.map_key_version}"
    )

    reported_zoom = result.get("zoom")
    if reported_zoom is not None and clamp_zoom(reported_zoom) != zoom:
        st.session_state.map_zoom = clamp_zoom(reported_zoom)
        st.rerun()

    clicked = result.get("last_object_clicked")
    if clicked and clicked != st.session_state.last_clicked:
        st.session_state.last_clicked = clicked
        handle_marker_click(clusters, clicked, zoom, photo_service)
