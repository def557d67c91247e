"""Map rendering for photomap application."""

import html
import random
from typing import Any

import folium
from streamlit_folium import st_folium

from photomap.services.clustering import PhotoCluster

THUMBNAIL_SIZE = 56
MAP_HEIGHT = 640

# Only zoom changes and marker clicks rerun the script; panning does not
MAP_RETURNED_OBJECTS = ["zoom", "last_object_clicked"]


def build_marker_html(cluster: PhotoCluster, rng: random.Random | None = None) -> str:
    """
    Thumbnail of the cluster's representative photo with a count badge.

    The placeholder is drawn as background until the thumbnail has loaded.
    """
    photo = cluster.representative(rng)
    src = html.escape(photo.src, quote=True)
    background = ""
    if photo.blur_data_url:
        background = f"background:url('{html.escape(photo.blur_data_url, quote=True)}') center/cover;"

    badge = ""
    if not cluster.is_single:
        badge = (
            "<span style='position:absolute;top:-8px;right:-8px;min-width:20px;height:20px;"
            "padding:0 4px;border-radius:10px;background:#e53935;color:#fff;font:600 12px/20px sans-serif;"
            f"text-align:center;box-shadow:0 1px 3px rgba(0,0,0,.4);'>{cluster.size}</span>"
        )

    return (
        f"<div style='position:relative;width:{THUMBNAIL_SIZE}px;height:{THUMBNAIL_SIZE}px;'>"
        f"<img src='{src}' loading='lazy' style='width:100%;height:100%;object-fit:cover;"
        f"border:2px solid #fff;border-radius:6px;box-shadow:0 1px 4px rgba(0,0,0,.4);{background}'/>"
        f"{badge}</div>"
    )


def build_map(
    clusters: list[PhotoCluster],
    center: tuple[float, float],
    zoom: int,
    rng: random.Random | None = None,
) -> folium.Map:
    """Create a folium map with one thumbnail marker per cluster."""
    map_obj = folium.Map(location=list(center), zoom_start=zoom, min_zoom=0, max_zoom=20, tiles="OpenStreetMap")

    for cluster in clusters:
        latitude, longitude = cluster.center
        icon = folium.DivIcon(
            html=build_marker_html(cluster, rng),
            icon_size=(THUMBNAIL_SIZE, THUMBNAIL_SIZE),
            icon_anchor=(THUMBNAIL_SIZE // 2, THUMBNAIL_SIZE // 2),
        )
        tooltip = "查看照片" if cluster.is_single else f"{cluster.size} 張照片"
        folium.Marker(location=[latitude, longitude], icon=icon, tooltip=tooltip).add_to(map_obj)

    return map_obj


def render_map(
    clusters: list[PhotoCluster],
    center: tuple[float, float],
    zoom: int,
    key: str = "photo_map",
) -> dict[str, Any]:
    """
    Render the cluster map.

    Returns:
        dict: ``zoom`` and ``last_object_clicked`` as reported by the browser
    """
    map_obj = build_map(clusters, center, zoom)
    result: dict[str, Any] | None = st_folium(
        map_obj,
        key=key,
        center=list(center),
        zoom=zoom,
        height=MAP_HEIGHT,
        use_container_width=True,
        returned_objects=MAP_RETURNED_OBJECTS,
    )
    return result or {}
