"""GPX / CSV / JSON export for an ordered route."""

from __future__ import annotations

import csv
import io
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from xml.sax.saxutils import escape

from ...models.domain import RouteDefinition
from ..routing.models import RouteGeometry

ExportFormat = Literal["gpx", "csv", "json"]

MIME_TYPES: Dict[str, str] = {
    "gpx": "application/gpx+xml",
    "csv": "text/csv",
    "json": "application/json",
}

CSV_HEADERS = ["route_name", "stop_name", "address", "latitude", "longitude", "sequence"]


@dataclass(slots=True)
class ExportResult:
    format: str
    filename: str
    content: str
    mime_type: str


def generate_filename(route_name: str, fmt: str, now: Optional[datetime] = None) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", route_name.lower()).strip("-") or "route"
    date = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    return f"{slug}-{date}.{fmt}"


def export_to_gpx(route: RouteDefinition, geometry: Optional[RouteGeometry] = None) -> str:
    lines: List[str] = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<gpx version="1.1" creator="SpokeRoute" xmlns="http://www.topografix.com/GPX/1/1">',
        "  <metadata>",
        f"    <name>{escape(route.name)}</name>",
        f"    <desc>{escape(route.description or '')}</desc>",
        f"    <time>{datetime.now(timezone.utc).isoformat()}</time>",
        "  </metadata>",
    ]
    for sequence, stop in enumerate(route.stops, start=1):
        if not stop.has_coordinates:
            continue
        lines.extend(
            [
                f'  <wpt lat="{stop.latitude}" lon="{stop.longitude}">',
                f"    <name>{escape(stop.name)}</name>",
                f"    <desc>{escape(stop.address or '')}</desc>",
                "    <extensions>",
                f"      <sequence>{sequence}</sequence>",
                "    </extensions>",
                "  </wpt>",
            ]
        )
    if geometry is not None and geometry.coordinates:
        lines.extend(["  <trk>", f"    <name>{escape(route.name)}</name>", "    <trkseg>"])
        for lat, lon in geometry.to_lat_lng():
            lines.append(f'      <trkpt lat="{lat}" lon="{lon}"></trkpt>')
        lines.extend(["    </trkseg>", "  </trk>"])
    lines.append("</gpx>")
    return "\n".join(lines)


def export_to_csv(route: RouteDefinition) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for sequence, stop in enumerate(route.stops, start=1):
        writer.writerow(
            [
                route.name,
                stop.name,
                stop.address or "",
                "" if stop.latitude is None else stop.latitude,
                "" if stop.longitude is None else stop.longitude,
                sequence,
            ]
        )
    return buffer.getvalue()


def export_to_json(route: RouteDefinition, geometry: Optional[RouteGeometry] = None) -> str:
    payload: Dict[str, Any] = {
        "route": {
            "id": route.route_id,
            "name": route.name,
            "description": route.description,
            "is_round_trip": route.round_trip,
            "start": {"latitude": route.start.latitude, "longitude": route.start.longitude},
            "end": (
                {"latitude": route.end.latitude, "longitude": route.end.longitude} if route.end is not None else None
            ),
        },
        "stops": [
            {
                "sequence": sequence,
                "id": stop.id,
                "name": stop.name,
                "address": stop.address,
                "latitude": stop.latitude,
                "longitude": stop.longitude,
            }
            for sequence, stop in enumerate(route.stops, start=1)
        ],
        "geometry": (
            {"type": geometry.type, "coordinates": geometry.coordinates} if geometry is not None else None
        ),
        "exported_at": datetime.now(timezone.utc).isoformat(),
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def export_route(route: RouteDefinition, fmt: ExportFormat, geometry: Optional[RouteGeometry] = None) -> ExportResult:
    if fmt == "gpx":
        content = export_to_gpx(route, geometry)
    elif fmt == "csv":
        content = export_to_csv(route)
    elif fmt == "json":
        content = export_to_json(route, geometry)
    else:
        raise ValueError(f"Unsupported export format '{fmt}'.")
    return ExportResult(
        format=fmt,
        filename=generate_filename(route.name, fmt),
        content=content,
        mime_type=MIME_TYPES[fmt],
    )
