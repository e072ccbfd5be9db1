# routes/api.py
import logging

from flask import Blueprint, current_app, jsonify, make_response, request

from components.i18n import COOKIE_MAX_AGE, COOKIE_NAME, LANGUAGES, resolve_lang, t
from services.clinic import ClinicNotFoundError, ClinicService
from services.finder import DEFAULT_RADIUS_MILES, find_clinics, parse_reference
from services.geo import to_float
from services.map_view import MapView
from services.metrics import live_metrics

api_bp = Blueprint('api', __name__)

TRUTHY = {"1", "true", "yes", "on"}


def _clinic_service():
    db = current_app.extensions.get("firestore")
    if db is None:
        return None
    return ClinicService(db, current_app.config["CLINICS_COLLECTION"])


def current_clinics():
    """Live snapshot when the stream has one, else a one-shot read, else the local file."""
    stream = current_app.extensions.get("clinic_stream")
    if stream is not None and stream.ready:
        return list(stream.clinics), stream.status()

    error = stream.error if stream is not None else None
    clinics = []
    service = _clinic_service()
    if service is not None:
        try:
            clinics = service.list_clinics()
        except Exception as e:
            logging.error("Error reading clinics: %s", str(e))
            error = str(e)
    if not clinics:
        clinics = ClinicService.load_local_file(current_app.config.get("CLINICS_LOCAL_FILE"))

    return clinics, {"ready": False, "stale": error is not None, "error": error, "count": len(clinics),
                     "updated_at": None}


def search_params():
    radius = to_float(request.args.get("radius"))
    if radius is None or radius <= 0:
        radius = DEFAULT_RADIUS_MILES
    reference = parse_reference(request.args.get("lat"), request.args.get("lng"))
    address = request.args.get("address", "").strip()
    if reference is None and address:
        reference = current_app.extensions["geocoder"].geocode(address)
    return {
        "service_text": request.args.get("service", "").strip(),
        "verified_only": request.args.get("verified", "").lower() in TRUTHY,
        "reference": reference,
        "radius_miles": radius,
    }


def clinic_payload(clinic, lang):
    data = clinic.to_dict()
    data["summary_localized"] = clinic.summary_for(lang)
    return data


@api_bp.route('/clinics', methods=['GET'])
def list_clinics():
    lang = resolve_lang(request)
    params = search_params()
    clinics, status = current_clinics()
    results = find_clinics(clinics, **params)

    if params["reference"] is None:
        message = None
    elif results:
        message = t(lang, "showing", count=len(results), radius=f"{params['radius_miles']:g}")
    else:
        message = t(lang, "none_within", radius=f"{params['radius_miles']:g}")

    return jsonify({
        "clinics": [clinic_payload(c, lang) for c in results],
        "count": len(results),
        "message": message,
        "reference": list(params["reference"]) if params["reference"] else None,
        "radius": params["radius_miles"],
        "stale": status["stale"],
        "error": status["error"],
    }), 200


@api_bp.route('/clinics/<id_or_slug>', methods=['GET'])
def get_clinic(id_or_slug):
    lang = resolve_lang(request)
    service = _clinic_service()
    try:
        if service is not None:
            clinic = service.get(id_or_slug)
        else:
            local = ClinicService.load_local_file(current_app.config.get("CLINICS_LOCAL_FILE"))
            clinic = next((c for c in local if id_or_slug in (c.id, c.slug)), None)
            if clinic is None:
                raise ClinicNotFoundError(f"Clinic {id_or_slug} not found")
    except ClinicNotFoundError:
        return jsonify({"error": "Clinic not found"}), 404
    except Exception as e:
        logging.error("Error fetching clinic %s: %s", id_or_slug, str(e))
        return jsonify({"error": "Error loading clinic"}), 500

    return jsonify(clinic_payload(clinic, lang)), 200


@api_bp.route('/map', methods=['GET'])
def clinic_map():
    lang = resolve_lang(request)
    params = search_params()
    clinics, status = current_clinics()
    results = find_clinics(clinics, **params)

    view = MapView(fitted=request.args.get("refit", "").lower() in TRUTHY)
    payload = view.render(results, reference=params["reference"], radius_miles=params["radius_miles"],
                          selected_id=request.args.get("selected"), lang=lang)
    payload["stale"] = status["stale"]
    payload["error"] = status["error"]
    return jsonify(payload), 200


@api_bp.route('/geocode', methods=['GET'])
def geocode():
    query = request.args.get("q", "")
    geocoder = current_app.extensions["geocoder"]
    suggestions = geocoder.search(query)
    return jsonify([s.to_dict() for s in suggestions]), 200


@api_bp.route('/metrics', methods=['GET'])
def metrics():
    clinics, status = current_clinics()
    data = live_metrics(clinics)
    data["stale"] = status["stale"]
    return jsonify(data), 200


@api_bp.route('/lang', methods=['POST'])
def set_lang():
    data = request.get_json(silent=True) or {}
    lang = str(data.get("lang") or "").strip().lower()
    if lang not in LANGUAGES:
        return jsonify({"error": f"Unsupported language: {lang or 'missing'}"}), 400

    response = make_response(jsonify({"lang": lang}), 200)
    response.set_cookie(COOKIE_NAME, lang, max_age=COOKIE_MAX_AGE, samesite="Lax")
    return response


@api_bp.route('/triage', methods=['POST'])
def triage():
    data = request.get_json(silent=True) or {}
    question = str(data.get("question") or "").strip()
    if not question:
        return jsonify({"error": "Missing question"}), 400

    history = data.get("history") if isinstance(data.get("history"), list) else []
    try:
        answer = current_app.extensions["triage"].answer(question, history)
    except Exception as e:
        logging.error("Triage assistant failed: %s", str(e))
        return jsonify({"error": "Triage assistant failed"}), 500
    return jsonify({"message": answer}), 200


@api_bp.route('/ai/health', methods=['GET'])
def ai_health():
    llm = current_app.extensions.get("llm")
    if llm is None:
        return jsonify({"ok": False, "error": "OPENAI_API_KEY is not set"}), 500
    try:
        sample = llm.ping()
    except Exception as e:
        logging.error("Model health check failed: %s", str(e))
        return jsonify({"ok": False, "error": str(e) or "Model health check failed"}), 500
    return jsonify({"ok": True, "model": llm.model_name, "sample": sample}), 200
