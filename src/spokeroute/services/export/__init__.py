"""Export services."""

from .route_export import (
    ExportResult,
    export_route,
    export_to_csv,
    export_to_gpx,
    export_to_json,
    generate_filename,
)

__all__ = [
    "ExportResult",
    "export_route",
    "export_to_gpx",
    "export_to_csv",
    "export_to_json",
    "generate_filename",
]
