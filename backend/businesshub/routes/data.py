# Overview: Flask API routes for bulk data export and import; parses input and returns file or JSON responses.

"""
Data exchange routes.

GET  /api/data/export?type=businesses&format=csv
POST /api/data/import   multipart: file (.csv, .json, .xlsx), type
"""

from flask import Blueprint, request, g, current_app, Response

from ..decorators import require_auth, require_permission
from ..services import data_exchange_service, permission_service
from ..validation import ValidationError


data_bp = Blueprint("data", __name__, url_prefix="/api/data")


@data_bp.get("/export")
@require_auth
@require_permission("EXPORT_DATA")
def export_route():
    export_type = (request.args.get("type") or "").strip().lower()
    fmt = (request.args.get("format") or "csv").strip().lower()

    try:
        content, filename, mimetype = data_exchange_service.export_data(
            export_type=export_type,
            fmt=fmt,
            org_id=g.org_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="DATA_EXPORTED",
        success=True,
        resource=f"/api/data/export?type={export_type}",
        action=f"EXPORT_{fmt.upper()}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        org_id=g.org_id,
    )

    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@data_bp.post("/import")
@require_auth
@require_permission("IMPORT_DATA")
def import_route():
    """
    Rows are created one at a time; failing rows are reported and skipped.

    Returns 201 when at least one record was created, 200 otherwise.
    """
    file = request.files.get("file")
    import_type = (request.form.get("type") or "").strip().lower()
    if file is None or not file.filename:
        return {"error": "file is required"}, 400

    try:
        rows = data_exchange_service.read_upload_rows(file.filename, file.stream)
        result = data_exchange_service.import_rows(import_type=import_type, rows=rows, org_id=g.org_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to import data")
        return {"error": "Internal server error"}, 500

    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="DATA_IMPORTED",
        success=True,
        resource="/api/data/import",
        action=f"IMPORT_{import_type.upper()}",
        reason=f"{result['created']} created, {len(result['errors'])} failed",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        org_id=g.org_id,
    )

    return result, 201 if result["created"] else 200
