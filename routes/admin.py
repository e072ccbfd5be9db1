# routes/admin.py
import logging
from functools import wraps

from firebase_admin import auth
from flask import Blueprint, current_app, g, jsonify, request
from pydantic import ValidationError

from services.clinic import ClinicService
from services.schemas import ClinicInput

admin_bp = Blueprint('admin', __name__)


def authorize(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        authorization_header = request.headers.get('Authorization')
        id_token = authorization_header.replace("Bearer ", "").strip() if authorization_header else None
        if not id_token:
            return jsonify({"error": "Authorization token is missing or invalid"}), 401

        try:
            decoded_token = auth.verify_id_token(id_token)
        except Exception as e:
            logging.warning("Rejected admin token: %s", str(e))
            return jsonify({"error": "Unauthorized"}), 401

        if not decoded_token.get("admin"):
            logging.info("User %s is not an admin", decoded_token.get("uid"))
            return jsonify({"error": "Admin access required"}), 403

        g.admin = decoded_token
        return f(*args, **kwargs)

    return decorated_function


def _clinic_service():
    db = current_app.extensions.get("firestore")
    if db is None:
        return None
    return ClinicService(db, current_app.config["CLINICS_COLLECTION"])


@admin_bp.route('/clinics', methods=['GET'])
@authorize
def list_clinics():
    service = _clinic_service()
    if service is None:
        return jsonify({"error": "Clinic store unavailable"}), 503
    try:
        return jsonify(service.list_documents()), 200
    except Exception as e:
        logging.error("Error listing clinics: %s", str(e))
        return jsonify({"error": "Error listing clinics"}), 500


@admin_bp.route('/clinics', methods=['POST'])
@authorize
def upsert_clinic():
    service = _clinic_service()
    if service is None:
        return jsonify({"error": "Clinic store unavailable"}), 503

    try:
        payload = ClinicInput.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        errors = [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()]
        return jsonify({"error": "Invalid clinic", "details": errors}), 400

    try:
        clinic_id = service.upsert(payload.to_document())
    except Exception as e:
        logging.error("Error saving clinic %s: %s", payload.id, str(e))
        return jsonify({"error": "Error saving clinic"}), 500
    return jsonify({"ok": True, "id": clinic_id}), 200


@admin_bp.route('/clinics', methods=['DELETE'])
@authorize
def delete_clinic():
    clinic_id = request.args.get("id", "").strip()
    if not clinic_id:
        return jsonify({"error": "Missing id"}), 400

    service = _clinic_service()
    if service is None:
        return jsonify({"error": "Clinic store unavailable"}), 503
    try:
        service.delete(clinic_id)
    except Exception as e:
        logging.error("Error deleting clinic %s: %s", clinic_id, str(e))
        return jsonify({"error": "Error deleting clinic"}), 500
    return jsonify({"ok": True}), 200


@admin_bp.route('/translate', methods=['POST'])
@authorize
def translate_summary():
    data = request.get_json(silent=True) or {}
    text = data.get("text")
    if not text or not isinstance(text, str):
        return jsonify({"error": "Missing text"}), 400

    llm = current_app.extensions.get("llm")
    if llm is None:
        return jsonify({"error": "Translation service unavailable"}), 503

    try:
        translated = llm.translate_to_spanish(text)
    except Exception as e:
        logging.error("Translation failed: %s", str(e))
        return jsonify({"error": "Translation failed"}), 500
    if not translated:
        return jsonify({"error": "Translation returned empty"}), 500
    return jsonify({"ok": True, "summary_es": translated}), 200
