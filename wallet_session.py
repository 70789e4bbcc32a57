# wallet_session.py
# Wallet-backed login: which account is active, and is it still the one the wallet reports.

import json
import logging
import os
from collections.abc import MutableMapping

from web3 import Web3

from errors import (
    AccountDrift, AddressMismatch, ChainCallFailed, NoSession, ProviderUnavailable, ValidationError,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = 'account'


class Web3WalletProvider:
    """
    JSON-RPC wallet endpoint (EIP-1193 style): answers eth_requestAccounts /
    eth_accounts and signs eth_sendTransaction for its own accounts.
    """

    def __init__(self, uri, timeout=60):
        self.uri = uri
        self._provider = Web3.HTTPProvider(uri, request_kwargs={'timeout': timeout})

    def is_available(self):
        return self._provider.is_connected()

    def request(self, method, params=None):
        response = self._provider.make_request(method, params or [])
        if response.get('error'):
            error = response['error']
            message = error.get('message') if isinstance(error, dict) else str(error)
            raise ChainCallFailed(message or f"Wallet request {method} failed")
        return response.get('result')

    def web3(self):
        return Web3(self._provider)


class JsonFileStorage(MutableMapping):
    """Small persistent key/value store backed by a JSON file."""

    def __init__(self, path):
        self.path = path
        self._data = {}
        if os.path.exists(path):
            try:
                with open(path, 'r') as f:
                    data = json.load(f)
            except ValueError as e:
                logger.warning("Ignoring unreadable session file %s: %s", path, e)
                data = {}
            if not isinstance(data, dict):
                logger.warning("Ignoring session file %s: not a JSON object", path)
                data = {}
            self._data = data

    def _flush(self):
        with open(self.path, 'w') as f:
            json.dump(self._data, f)

    def __getitem__(self, key):
        return self._data[key]

    def __setitem__(self, key, value):
        self._data[key] = value
        self._flush()

    def __delitem__(self, key):
        del self._data[key]
        self._flush()

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)


class WalletSession:
    """
    Holds at most one active account in `storage` (any mutable mapping: a
    JsonFileStorage, a Flask session, a dict). Methods return (value, error).
    """

    def __init__(self, provider, storage):
        self.provider = provider
        self.storage = storage

    def _provider_present(self):
        if self.provider is None:
            return False
        try:
            return bool(self.provider.is_available())
        except Exception as e:
            logger.error("Wallet provider check failed: %s", e)
            return False

    def current_account(self):
        return self.storage.get(STORAGE_KEY)

    def connect(self, expected_address=None):
        """Asks the wallet for account access and stores its primary account."""
        if expected_address is not None and not expected_address.strip():
            return None, ValidationError("Please enter your wallet address!")

        if not self._provider_present():
            return None, ProviderUnavailable("No wallet provider found. Install or start a wallet to use this feature.")

        try:
            accounts = self.provider.request('eth_requestAccounts')
        except Exception as e:
            logger.error("Error connecting to wallet: %s", e)
            return None, ChainCallFailed(getattr(e, 'message', None) or str(e))

        if not accounts:
            return None, ChainCallFailed("No accounts returned by wallet provider")

        account = accounts[0]
        if expected_address and account.lower() != expected_address.strip().lower():
            logger.warning("Wallet account %s does not match entered address %s", account, expected_address)
            return None, AddressMismatch("The entered wallet address does not match the connected wallet account!")

        self.storage[STORAGE_KEY] = account
        logger.info("Wallet connected: %s", account)
        return account, None

    def restore_session(self):
        """Revalidates the stored account against the wallet; run before every protected action."""
        account = self.storage.get(STORAGE_KEY)
        if not account:
            return None, NoSession("Please log in first.")

        if not self._provider_present():
            return None, ProviderUnavailable("No wallet provider found. Install or start a wallet to use this DApp.")

        try:
            accounts = self.provider.request('eth_accounts')
        except Exception as e:
            logger.error("Error querying wallet accounts: %s", e)
            return None, ChainCallFailed(getattr(e, 'message', None) or str(e))

        if not accounts or accounts[0].lower() != account.lower():
            logger.warning("Stored account %s no longer matches the wallet; clearing session", account)
            self.logout()
            return None, AccountDrift("The connected wallet account does not match the logged-in account!")

        return account, None

    def logout(self):
        self.storage.pop(STORAGE_KEY, None)
