# config.py

import os

from dotenv import load_dotenv

load_dotenv()

REQUIRED_ENV_VARS = ('INFURA_PROJECT_ID', 'CONTRACT_ADDRESS', 'PRIVATE_KEY', 'OPENAI_API')


class Config:
    """Loads relay and client settings from the environment (.env supported)."""

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

    # --- Chain ---
    INFURA_PROJECT_ID = os.getenv('INFURA_PROJECT_ID')
    BLOCKCHAIN_NODE_URI = os.getenv('BLOCKCHAIN_NODE_URI') or (
        f"https://sepolia.infura.io/v3/{INFURA_PROJECT_ID}" if INFURA_PROJECT_ID else None
    )
    CONTRACT_ADDRESS = os.getenv('CONTRACT_ADDRESS')
    PRIVATE_KEY = os.getenv('PRIVATE_KEY')  # operator credential, never leaves the relay

    # --- Text generation ---
    OPENAI_API = os.getenv('OPENAI_API')
    OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-3.5-turbo')
    INSIGHT_MAX_TOKENS = int(os.getenv('INSIGHT_MAX_TOKENS', '150'))

    # --- Relay process ---
    PORT = int(os.getenv('PORT', '3000'))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # --- Client side ---
    WALLET_PROVIDER_URI = os.getenv('WALLET_PROVIDER_URI', 'http://127.0.0.1:8545')
    RELAY_URL = os.getenv('RELAY_URL', 'http://localhost:3000')
    SESSION_FILE = os.getenv('SESSION_FILE', os.path.join(os.path.expanduser('~'), '.patient_ledger_session.json'))

    @classmethod
    def missing_required(cls):
        """Names of required variables that are unset or empty."""
        return [name for name in REQUIRED_ENV_VARS if not getattr(cls, name, None)]
