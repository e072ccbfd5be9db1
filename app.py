import atexit
import logging
import os

import firebase_admin
from dotenv import load_dotenv
from firebase_admin import credentials, firestore
from flask import Flask
from flask_cors import CORS

from components.llm import LLM
from routes.admin import admin_bp
from routes.api import api_bp
from services.geocode import DEFAULT_USER_AGENT, GeocodeService
from services.stream import ClinicStream
from services.triage import TriageService


def load_settings():
    return {
        "FIREBASE_CREDENTIALS": os.getenv("FIREBASE_CREDENTIALS", "./serviceAccountKey.json"),
        "FIREBASE_ADMIN_PROJECT_ID": os.getenv("FIREBASE_ADMIN_PROJECT_ID"),
        "FIREBASE_ADMIN_CLIENT_EMAIL": os.getenv("FIREBASE_ADMIN_CLIENT_EMAIL"),
        "FIREBASE_ADMIN_PRIVATE_KEY": os.getenv("FIREBASE_ADMIN_PRIVATE_KEY"),
        "CLINICS_COLLECTION": os.getenv("CLINICS_COLLECTION", "clinics"),
        "CLINICS_LOCAL_FILE": os.getenv("CLINICS_LOCAL_FILE", "clinics.json"),
        "CLINIC_STREAM_ENABLED": os.getenv("CLINIC_STREAM_ENABLED", "1") != "0",
        "OPENAI_API_KEY": os.getenv("OPENAI_API_KEY"),
        "OPENAI_MODEL": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        "TRIAGE_SERVICE_URL": os.getenv("TRIAGE_SERVICE_URL"),
        "TRIAGE_SERVICE_KEY": os.getenv("TRIAGE_SERVICE_KEY"),
        "GEOCODER_USER_AGENT": os.getenv("GEOCODER_USER_AGENT", DEFAULT_USER_AGENT),
        "LOG_FILE": os.getenv("LOG_FILE", "app.log"),
    }


def configure_logging(log_file):
    log_format = "%(asctime)s - %(levelname)s - %(message)s"
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(level=logging.INFO, format=log_format, handlers=handlers)


def firebase_credentials(config):
    project_id = config.get("FIREBASE_ADMIN_PROJECT_ID")
    client_email = config.get("FIREBASE_ADMIN_CLIENT_EMAIL")
    private_key = config.get("FIREBASE_ADMIN_PRIVATE_KEY")
    if project_id and client_email and private_key:
        # .env files usually carry the key with escaped newlines
        return credentials.Certificate({
            "type": "service_account",
            "project_id": project_id,
            "client_email": client_email,
            "private_key": private_key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        })

    path = config.get("FIREBASE_CREDENTIALS")
    if path and os.path.exists(path):
        return credentials.Certificate(path)
    return None


def init_firestore(config):
    cred = firebase_credentials(config)
    if cred is None:
        logging.warning("Firebase credentials not configured; serving clinics from %s",
                        config.get("CLINICS_LOCAL_FILE"))
        return None
    try:
        firebase_admin.get_app()
    except ValueError:
        firebase_admin.initialize_app(cred)
    return firestore.client()


def create_app(test_config=None):
    load_dotenv()

    app = Flask(__name__)
    CORS(app)
    app.config.from_mapping(load_settings())
    if test_config:
        app.config.update(test_config)

    configure_logging(None if app.config.get("TESTING") else app.config["LOG_FILE"])

    db = app.config.get("FIRESTORE_CLIENT") or init_firestore(app.config)
    app.extensions["firestore"] = db

    stream = None
    if db is not None and app.config["CLINIC_STREAM_ENABLED"]:
        try:
            stream = ClinicStream(db, app.config["CLINICS_COLLECTION"]).start()
            atexit.register(stream.close)
        except Exception as e:
            logging.error("Could not subscribe to clinics: %s", str(e))
            stream = None
    app.extensions["clinic_stream"] = stream

    app.extensions["geocoder"] = app.config.get("GEOCODER") or GeocodeService(app.config["GEOCODER_USER_AGENT"])

    llm = app.config.get("LLM")
    if llm is None and app.config.get("OPENAI_API_KEY"):
        llm = LLM(model_name=app.config["OPENAI_MODEL"], api_key=app.config["OPENAI_API_KEY"])
    app.extensions["llm"] = llm
    app.extensions["triage"] = TriageService(
        llm=llm,
        service_url=app.config.get("TRIAGE_SERVICE_URL"),
        service_key=app.config.get("TRIAGE_SERVICE_KEY"),
    )

    # Register blueprints
    app.register_blueprint(api_bp, url_prefix='/api/v1')
    app.register_blueprint(admin_bp, url_prefix='/api/v1/admin')

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 8081))
    app.run(host='0.0.0.0', port=port, debug=True)
