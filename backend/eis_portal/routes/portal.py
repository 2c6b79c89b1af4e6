# Overview: Flask API routes for the founder/accountant portal; parses input and returns JSON responses.

"""
Portal routes (magic-link access).

No session: the token in the URL is the credential. Every route resolves it
first, so an unknown token is 404 and an expired one is 401 on all of them.

- GET  /api/portal/<token>             deal view for the token holder
- POST /api/portal/<token>             {"action": ..., "data": {...}}
- POST /api/portal/<token>/accountant  founder delegates to an accountant
- POST /api/portal/<token>/upload      multipart file + document_type
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import document_service, lifecycle_service, portal_service, token_service
from ..services.lifecycle_service import LifecycleError, UnknownActionError
from ..services.portal_service import PortalPermissionError
from ..services.token_service import TokenExpiredError, TokenNotFoundError
from ..validation import ConflictError, ValidationError


portal_bp = Blueprint("portal", __name__, url_prefix="/api/portal")


def _token_error(e: Exception):
    if isinstance(e, TokenExpiredError):
        return jsonify({"error": str(e)}), 401
    return jsonify({"error": "Invalid or expired link"}), 404


@portal_bp.get("/<token>")
def portal_view_route(token: str):
    try:
        party = token_service.resolve_token(token)
        return jsonify(portal_service.portal_view(party)), 200
    except (TokenNotFoundError, TokenExpiredError) as e:
        return _token_error(e)
    except Exception:
        current_app.logger.exception("Portal access failed")
        return jsonify({"error": "Internal server error"}), 500


@portal_bp.post("/<token>")
def portal_action_route(token: str):
    """
    Perform a lifecycle action.

    Body: {"action": "complete_onboarding" | "confirm_submission" | "confirm_eis2",
           "data": {...}}
    """
    body = request.get_json(silent=True) or {}

    try:
        party = token_service.resolve_token(token)
        if not isinstance(body, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        action = body.get("action")
        data = body.get("data") or {}
        if not isinstance(data, dict):
            return jsonify({"error": "data must be an object"}), 400
        deal = lifecycle_service.perform_portal_action(party, action, data)
        return jsonify({
            "success": True,
            "status": deal.status,
            "current_step": lifecycle_service.current_step(deal.status, party.role),
        }), 200
    except (TokenNotFoundError, TokenExpiredError) as e:
        return _token_error(e)
    except (UnknownActionError, LifecycleError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Portal update failed")
        return jsonify({"error": "Internal server error"}), 500


@portal_bp.post("/<token>/accountant")
def add_accountant_route(token: str):
    """
    Founder delegates the HMRC submission.

    Response (201): {"accountant": {...}, "magic_link": ".../portal/accountant/<token>"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        party = token_service.resolve_token(token)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        accountant, link = portal_service.delegate_to_accountant(party, payload)
        return jsonify({"accountant": accountant.to_dict(), "magic_link": link}), 201
    except (TokenNotFoundError, TokenExpiredError) as e:
        return _token_error(e)
    except PortalPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to add accountant")
        return jsonify({"error": "Internal server error"}), 500


@portal_bp.post("/<token>/upload")
def upload_document_route(token: str):
    try:
        party = token_service.resolve_token(token)
        doc = document_service.record_upload(
            party,
            request.files.get("file"),
            request.form.get("document_type"),
        )
        return jsonify({"document": doc.to_dict()}), 201
    except (TokenNotFoundError, TokenExpiredError) as e:
        return _token_error(e)
    except (ValidationError, LifecycleError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Document upload failed")
        return jsonify({"error": "Internal server error"}), 500
