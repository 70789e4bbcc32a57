# app.py
# Relay service: re-exposes registry operations that need the operator's signature,
# plus the insight endpoint. Run with `python app.py` or `patient-ledger-relay`.

import logging
import sys

from flask import Blueprint, Flask, current_app, jsonify, render_template, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import Config
from insight import InsightGenerator
from utils import (
    LedgerContext, format_ether, get_contract_balance, get_patient_details_from_chain, register_patient_on_chain,
)

EXTENSION_KEY = 'patient_ledger'
NOT_AUTHORIZED_MESSAGE = "Not authorized to view patient details."

relay = Blueprint('relay', __name__)


# --- Helpers ---

def _ledger():
    return current_app.extensions[EXTENSION_KEY]['ledger']


def _insights():
    return current_app.extensions[EXTENSION_KEY]['insights']


def _json_body():
    """Request JSON as a dict; anything else counts as an empty body."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _fail(message, status):
    return jsonify({"success": False, "error": message}), status


# --- Routes ---

@relay.route('/')
def index():
    """Static login page."""
    return render_template('login.html')


@relay.route('/balance')
def balance():
    wei, error = get_contract_balance(_ledger())
    if error:
        return _fail(error.message, 500)
    return jsonify({"success": True, "balance": f"{format_ether(wei)} ETH"})


@relay.route('/register', methods=['POST'])
def register():
    body = _json_body()
    name = body.get('name')
    age = body.get('age')
    medical_history = body.get('medicalHistory')

    if not name or not age or not medical_history:
        return _fail("Missing required fields", 400)

    tx_hash, error = register_patient_on_chain(_ledger(), name, age, medical_history)
    if error:
        current_app.logger.error("Error registering patient: %s", error.message)
        return _fail(error.message, error.http_status)
    return jsonify({"success": True, "transactionHash": tx_hash})


@relay.route('/patient/<string:address>')
def patient_details(address):
    details, error = get_patient_details_from_chain(_ledger(), address)
    if error:
        # The raw provider error is logged, never returned
        current_app.logger.error("Error fetching patient details: %s", error.message)
        return _fail(NOT_AUTHORIZED_MESSAGE, 500)
    return jsonify({"success": True, "data": details})


@relay.route('/generate-insight', methods=['POST'])
def generate_insight():
    patient_address = _json_body().get('patientAddress')
    if not patient_address:
        return _fail("Patient address is required", 400)

    details, error = get_patient_details_from_chain(_ledger(), patient_address)
    if error:
        return _fail(error.message, 500)

    insight, error = _insights().generate(details)
    if error:
        return _fail(error.message, 500)
    return jsonify({"success": True, "insight": insight})


# --- App Factory ---

def create_app(ledger_ctx, insight_generator, config=Config):
    app = Flask(__name__)
    app.config.from_object(config)
    CORS(app, send_wildcard=True)

    app.extensions[EXTENSION_KEY] = {'ledger': ledger_ctx, 'insights': insight_generator}
    app.register_blueprint(relay)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return _fail(e.name, e.code)
        app.logger.exception("Unhandled error: %s", e)
        return _fail("Internal server error", 500)

    return app


# --- Main Execution ---

def main():
    logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger = logging.getLogger('relay')

    missing = Config.missing_required()
    if missing:
        for key in missing:
            logger.error("Missing required environment variable: %s", key)
        sys.exit(1)

    try:
        ledger_ctx = LedgerContext.from_config(Config)
    except ValueError as e:
        logger.error("Invalid chain configuration: %s", e)
        sys.exit(1)
    logger.info("Web3 and contract setup complete")

    app = create_app(ledger_ctx, InsightGenerator.from_config(Config))
    logger.info("Server running on http://localhost:%s", Config.PORT)
    app.run(host='0.0.0.0', port=Config.PORT)


if __name__ == '__main__':
    main()
