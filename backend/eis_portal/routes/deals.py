# Overview: Flask API routes for ops deal management; parses input and returns JSON responses.

# backend/eis_portal/routes/deals.py
"""
Deal management routes (ops dashboard).

SECURITY: Every route requires an ops session (@require_auth) and an OPS or
ADMIN role (@require_ops_role). Note authorship is taken from the session,
never from the request body.
"""

from flask import Blueprint, request, jsonify, g, current_app, send_file

from ..decorators import require_auth, require_ops_role
from ..services import deal_service, document_service, investor_import_service, lifecycle_service
from ..services.document_service import DocumentNotFoundError
from ..services.investor_import_service import InvestorImportError
from ..services.lifecycle_service import DealNotFoundError, LifecycleError
from ..validation import ValidationError


deals_bp = Blueprint("deals", __name__, url_prefix="/api/deals")


@deals_bp.get("")
@require_auth
@require_ops_role
def list_deals_route():
    """
    List deals.

    Query params:
    - status: one of the seven deal statuses
    - scheme_type: SEIS | EIS
    - search: matches company name, company number or founder name
    - sort_by: date | company | amount (default date)
    - order: asc | desc (default desc)
    """
    try:
        deals = deal_service.list_deals(
            status=request.args.get("status") or None,
            scheme_type=request.args.get("scheme_type") or None,
        )
        deals = deal_service.filter_and_sort(
            deals,
            search=request.args.get("search"),
            sort_by=request.args.get("sort_by", "date"),
            order=request.args.get("order", "desc"),
        )
        return jsonify({
            "deals": [d.to_dict() for d in deals],
            "user": g.current_user.to_dict(),
        }), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list deals")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.get("/stats")
@require_auth
@require_ops_role
def deal_stats_route():
    """Dashboard counters plus the five most recent deals."""
    try:
        deals = deal_service.list_deals()
        return jsonify({
            "stats": deal_service.dashboard_stats(deals),
            "recent": [d.to_dict() for d in deals[:5]],
        }), 200
    except Exception:
        current_app.logger.exception("Failed to compute deal stats")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.post("")
@require_auth
@require_ops_role
def create_deal_route():
    """
    Create a deal with its founder and investors.

    Response (201):
        {"deal": {...}, "magic_link": "<APP_BASE_URL>/portal/founder/<token>"}
    """
    payload = request.get_json(silent=True)

    try:
        deal, link = deal_service.create_deal(payload, created_by=g.current_user)
        return jsonify({"deal": deal.to_dict(), "magic_link": link}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create deal")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.post("/import-investors")
@require_auth
@require_ops_role
def import_investors_route():
    """
    Parse an investor spreadsheet (multipart field "file").

    Optional form field investment_date (YYYY-MM-DD) fills rows without a
    share issue date. Nothing is saved; the client posts the investors back
    with the new deal.
    """
    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400

    file = request.files["file"]

    try:
        rows = investor_import_service.read_upload(file.filename or "", file.stream)
        result = investor_import_service.normalize_rows(
            rows, default_date=request.form.get("investment_date") or None
        )
    except InvestorImportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to import investors")
        return jsonify({"error": "Internal server error"}), 500

    if not result.investors:
        return jsonify({
            "error": result.summary_message() or "No valid investors found in file",
            "errors": result.errors,
        }), 400

    return jsonify(result.to_dict()), 200


@deals_bp.get("/<int:deal_id>")
@require_auth
@require_ops_role
def get_deal_route(deal_id: int):
    try:
        deal = deal_service.get_deal(deal_id)
        data = deal.to_dict(detail=True)
        data["status_label"] = lifecycle_service.status_label(deal.status)
        data["days_since_created"] = deal_service.days_since(deal.created_at)
        return jsonify({"deal": data}), 200
    except DealNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load deal")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.patch("/<int:deal_id>")
@require_auth
@require_ops_role
def update_deal_route(deal_id: int):
    """
    Ops edit. Writable fields: company_name, company_number, scheme_type,
    investment_date, investment_amount (or investment_amount_pence), status.
    """
    payload = request.get_json(silent=True)

    try:
        deal = deal_service.update_deal(deal_id, payload)
        current_app.logger.info("Deal %s updated by user %s", deal_id, g.current_user.id)
        return jsonify({"deal": deal.to_dict()}), 200
    except DealNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update deal")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.delete("/<int:deal_id>")
@require_auth
@require_ops_role
def delete_deal_route(deal_id: int):
    try:
        deal_service.delete_deal(deal_id)
        current_app.logger.info("Deal %s deleted by user %s", deal_id, g.current_user.id)
        return jsonify({"success": True}), 200
    except DealNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete deal")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.post("/<int:deal_id>/notes")
@require_auth
@require_ops_role
def add_note_route(deal_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        note = deal_service.add_note(deal_id, data.get("content"), author=g.current_user)
        return jsonify({"note": note.to_dict()}), 201
    except DealNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to add note")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.post("/<int:deal_id>/complete")
@require_auth
@require_ops_role
def complete_deal_route(deal_id: int):
    """Mark a deal COMPLETE. Only allowed from EIS2_RECEIVED."""
    try:
        deal = lifecycle_service.complete_deal(deal_id)
        current_app.logger.info("Deal %s completed by user %s", deal_id, g.current_user.id)
        return jsonify({"deal": deal.to_dict()}), 200
    except DealNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except LifecycleError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to complete deal")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.get("/<int:deal_id>/documents/<int:document_id>/download")
@require_auth
@require_ops_role
def download_document_route(deal_id: int, document_id: int):
    try:
        doc, path = document_service.document_path(deal_id, document_id)
    except (DealNotFoundError, DocumentNotFoundError) as e:
        return jsonify({"error": str(e)}), 404

    return send_file(path, as_attachment=True, download_name=doc.filename)
