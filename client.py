# client.py
# User-side front end: wallet login plus the patient / payment actions.
# Every command except `login` revalidates the stored session first.

import argparse
import logging
import sys

import requests

from config import Config
from ledger import LedgerClient
from utils import format_ether
from wallet_session import JsonFileStorage, WalletSession, Web3WalletProvider

logger = logging.getLogger(__name__)


class RelayClient:
    """Talks to the relay service over HTTP. Methods return (payload, error_message)."""

    def __init__(self, base_url, timeout=120):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _handle(self, response):
        try:
            data = response.json()
        except ValueError:
            response.raise_for_status()
            return None, f"Unexpected response from relay (status {response.status_code})"
        if not data.get('success'):
            return None, data.get('error') or f"Relay error (status {response.status_code})"
        return data, None

    def _request(self, method, path, **kwargs):
        try:
            response = requests.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
            return self._handle(response)
        except requests.exceptions.RequestException as e:
            logger.error("Relay request %s %s failed: %s", method, path, e)
            return None, f"Could not reach relay at {self.base_url}"

    def balance(self):
        data, error = self._request('GET', '/balance')
        return (data['balance'], None) if data else (None, error)

    def register(self, name, age, medical_history):
        data, error = self._request('POST', '/register',
                                    json={'name': name, 'age': age, 'medicalHistory': medical_history})
        return (data['transactionHash'], None) if data else (None, error)

    def patient(self, address):
        data, error = self._request('GET', f'/patient/{address}')
        return (data['data'], None) if data else (None, error)

    def generate_insight(self, patient_address):
        data, error = self._request('POST', '/generate-insight', json={'patientAddress': patient_address})
        return (data['insight'], None) if data else (None, error)


# --- Output ---

def alert(message):
    print(message)


def fail(message):
    alert(message)
    return 1


# --- Commands ---

def cmd_login(session, args):
    account, error = session.connect(args.address)
    if error:
        logger.error("Error connecting to wallet: %r", error)
        return fail(error.message)
    alert(f"Connected: {account}")
    return 0


def cmd_logout(session, args):
    session.logout()
    alert("Logged out.")
    return 0


def cmd_whoami(session, args, account):
    alert(account)
    return 0


def cmd_register(ledger, args):
    tx_hash, error = ledger.register(args.name, args.age, args.medical_history)
    if error:
        return fail(f"Failed to register patient: {error.message}")
    alert(f"Patient successfully registered! Transaction: {tx_hash}")
    return 0


def cmd_details(ledger, args):
    details, error = ledger.get_details(args.address)
    if error:
        return fail("Unable to fetch patient details. Ensure the address is authorized.")
    name, age, medical_history = details
    alert(f"Name: {name}\nAge: {age}\nMedical History: {medical_history}")
    return 0


def cmd_deposit(ledger, args):
    tx_hash, error = ledger.deposit(args.amount)
    if error:
        return fail(f"Failed to make payment: {error.message}")
    alert(f"Payment successfully made! Transaction: {tx_hash}")
    return 0


def cmd_withdraw(ledger, args):
    tx_hash, error = ledger.withdraw(args.recipient, args.amount)
    if error:
        return fail(f"Failed to withdraw funds: {error.message}")
    alert(f"Withdrawal successful! Transaction: {tx_hash}")
    return 0


def cmd_balance(ledger, args):
    wei, error = ledger.get_balance()
    if error:
        return fail("Unable to fetch contract balance.")
    alert(f"Payments Contract Balance: {format_ether(wei)} ETH")
    return 0


def cmd_pay(ledger, args):
    tx_hash, error = ledger.pay_admin(args.address, args.wallet_id, args.amount)
    if error:
        return fail(f"Failed to submit payment: {error.message}")
    alert(f"Payment successfully sent to the admin wallet! Transaction: {tx_hash}")
    return 0


def cmd_insight(relay_client, args):
    insight, error = relay_client.generate_insight(args.address)
    if error:
        return fail(f"Failed to generate insight: {error}")
    alert(f"Insight: {insight}")
    return 0


LEDGER_COMMANDS = {
    'register': cmd_register,
    'details': cmd_details,
    'deposit': cmd_deposit,
    'withdraw': cmd_withdraw,
    'balance': cmd_balance,
    'pay': cmd_pay,
}


def build_parser():
    parser = argparse.ArgumentParser(prog='patient-ledger', description="Patient ledger wallet client")
    sub = parser.add_subparsers(dest='command', required=True)

    login = sub.add_parser('login', help="Connect the wallet and start a session")
    login.add_argument('--address', help="Expected wallet address; must match the wallet's account")
    sub.add_parser('logout', help="Clear the stored session")
    sub.add_parser('whoami', help="Show the active account")

    register = sub.add_parser('register', help="Register a patient record")
    register.add_argument('name')
    register.add_argument('age')
    register.add_argument('medical_history')

    details = sub.add_parser('details', help="Show a patient's record")
    details.add_argument('address')

    deposit = sub.add_parser('deposit', help="Deposit ether into the custody contract")
    deposit.add_argument('amount')

    withdraw = sub.add_parser('withdraw', help="Withdraw ether from the custody contract")
    withdraw.add_argument('recipient')
    withdraw.add_argument('amount')

    sub.add_parser('balance', help="Show the custody contract balance")

    pay = sub.add_parser('pay', help="Send a payment to the admin wallet")
    pay.add_argument('address', help="Your Ethereum address")
    pay.add_argument('wallet_id')
    pay.add_argument('amount')

    insight = sub.add_parser('insight', help="Generate an insight for a patient via the relay")
    insight.add_argument('address')
    return parser


def run(args, session, relay_client=None):
    """Dispatches one parsed command. Returns the process exit code."""
    if args.command == 'login':
        return cmd_login(session, args)
    if args.command == 'logout':
        return cmd_logout(session, args)

    account, error = session.restore_session()
    if error:
        logger.error("Session check failed: %r", error)
        return fail(error.message)

    if args.command == 'whoami':
        return cmd_whoami(session, args, account)
    if args.command == 'insight':
        return cmd_insight(relay_client or RelayClient(Config.RELAY_URL), args)

    ledger = LedgerClient(session.provider.web3(), account)
    return LEDGER_COMMANDS[args.command](ledger, args)


def main(argv=None):
    logging.basicConfig(level=Config.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    session = WalletSession(Web3WalletProvider(Config.WALLET_PROVIDER_URI), JsonFileStorage(Config.SESSION_FILE))
    return run(args, session)


if __name__ == '__main__':
    sys.exit(main())
