"""Upload dialog for photomap application."""

from datetime import datetime, time

import streamlit as st
import structlog

from photomap.error_handling import PhotoMapError
from photomap.services.image_processor import ImageProcessor
from photomap.services.photos import PhotoService
from photomap.ui.auth_handlers import require_uploader
from photomap.ui.components.common import render_photomap_error, set_flash_message

logger = structlog.get_logger()

UPLOAD_TYPES = ["jpg", "jpeg", "png", "webp", "heic", "heif"]


def build_client_metadata(
    latitude: float | None,
    longitude: float | None,
    taken_date: datetime | None,
    width: int = 0,
    height: int = 0,
) -> dict:
    """Metadata part of an upload, in the same layout the HTTP API accepts."""
    return {
        "latitude": latitude,
        "longitude": longitude,
        "creationDate": taken_date.isoformat() if taken_date else None,
        "width": width,
        "height": height,
    }


@st.dialog("上傳照片", width="large")
def show_upload_dialog(photo_service: PhotoService, image_processor: ImageProcessor) -> None:
    """Upload form, prefilled from the file's EXIF position and capture time."""
    uploaded_file = st.file_uploader("選擇照片", type=UPLOAD_TYPES)
    if uploaded_file is None:
        st.info("請選擇要上傳的照片。")
        return

    image_data = uploaded_file.getvalue()
    coordinates = image_processor.extract_gps_coordinates(image_data)
    taken_at = image_processor.extract_exif_date(image_data)

    if coordinates is None:
        st.warning("這張照片沒有位置資訊，請手動輸入座標。")
    default_lat, default_lng = coordinates if coordinates else (None, None)

    lat_col, lng_col = st.columns(2)
    with lat_col:
        latitude = st.number_input("緯度", min_value=-90.0, max_value=90.0, value=default_lat, format="%.6f")
    with lng_col:
        longitude = st.number_input("經度", min_value=-180.0, max_value=180.0, value=default_lng, format="%.6f")

    date_col, time_col = st.columns(2)
    with date_col:
        taken_date = st.date_input("拍攝日期", value=taken_at.date() if taken_at else "today")
    with time_col:
        taken_time = st.time_input("拍攝時間", value=taken_at.time() if taken_at else time(0, 0), step=60)

    if not st.button("上傳", type="primary", use_container_width=True):
        return

    try:
        user = require_uploader("upload_photo")
        metadata = build_client_metadata(latitude, longitude, datetime.combine(taken_date, taken_time))
        with st.spinner("上傳中..."):
            photo = photo_service.ingest(image_data, metadata, filename=uploaded_file.name, user_id=user.email)
    except PhotoMapError as e:
        render_photomap_error("上傳失敗", e)
        return

    logger.info("upload_completed", photo_id=photo.filename)
    set_flash_message("上傳成功")
    st.rerun()
