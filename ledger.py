# ledger.py
# Wallet-signed calls against the record registry and the funds-custody contract.

import logging

from web3 import Web3
from web3.exceptions import ContractLogicError

from contract_abi import (
    ADMIN_WALLET_ADDRESS, CUSTODY_ABI, CUSTODY_ADDRESS, REGISTER_GAS_LIMIT, REGISTRY_ABI, REGISTRY_ADDRESS,
)
from errors import AddressMismatch, BridgeError, ChainCallFailed, NoSession, Unauthorized, ValidationError
from utils import RECEIPT_TIMEOUT, parse_age, to_base_units

logger = logging.getLogger(__name__)


class LedgerClient:
    """
    Typed wrapper over the two contracts, with every state-changing call
    sent from `account` and signed by the wallet behind `w3`.
    All public methods return (value, error); nothing is retried.
    """

    def __init__(self, w3, account, registry_address=REGISTRY_ADDRESS, custody_address=CUSTODY_ADDRESS):
        self.w3 = w3
        self.account = account
        self.registry = w3.eth.contract(address=Web3.to_checksum_address(registry_address), abi=REGISTRY_ABI)
        self.custody = w3.eth.contract(address=Web3.to_checksum_address(custody_address), abi=CUSTODY_ABI)

    def _sender(self):
        if not self.account:
            raise NoSession("Please log in first.")
        return Web3.to_checksum_address(self.account)

    def _wait(self, tx_hash):
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)
        if receipt['status'] == 0:
            raise ChainCallFailed(f"Transaction reverted: {Web3.to_hex(tx_hash)}")
        return Web3.to_hex(tx_hash)

    def _run(self, label, call):
        try:
            return call(), None
        except BridgeError as e:
            logger.error("%s failed: %s", label, e.message)
            return None, e
        except Exception as e:
            logger.error("%s failed: %s", label, e)
            return None, ChainCallFailed(str(e))

    # --- Record registry ---

    def register(self, name, age, medical_history):
        if not name or not age or not medical_history:
            return None, ValidationError("Please fill in all fields!")

        def call():
            tx_hash = self.registry.functions.registerPatient(name, parse_age(age), medical_history).transact({
                'from': self._sender(),
                'gas': REGISTER_GAS_LIMIT,
            })
            return self._wait(tx_hash)

        return self._run("Registering patient", call)

    def get_details(self, address):
        """Reads a record with the patient's own address as caller."""
        if not address:
            return None, ValidationError("Please enter the patient's Ethereum address!")
        try:
            checksum = Web3.to_checksum_address(address)
            details = self.registry.functions.getPatientDetails(checksum).call({'from': checksum})
        except ContractLogicError as e:
            logger.error("Patient details rejected for %s: %s", address, e)
            return None, Unauthorized(str(e))
        except Exception as e:
            logger.error("Error fetching patient details for %s: %s", address, e)
            return None, ChainCallFailed(str(e))
        return list(details), None

    # --- Funds custody ---

    def deposit(self, amount):
        if not amount:
            return None, ValidationError("Please enter an amount to deposit!")

        def call():
            value = to_base_units(amount)
            tx_hash = self.custody.functions.deposit().transact({'from': self._sender(), 'value': value})
            return self._wait(tx_hash)

        return self._run("Deposit", call)

    def withdraw(self, recipient, amount):
        if not recipient or not amount:
            return None, ValidationError("Please enter a recipient address and amount!")

        def call():
            value = to_base_units(amount)
            to = Web3.to_checksum_address(recipient)
            tx_hash = self.custody.functions.withdraw(to, value).transact({'from': self._sender()})
            return self._wait(tx_hash)

        return self._run("Withdrawal", call)

    def get_balance(self):
        """Custody contract balance in wei."""
        return self._run("Fetching custody balance", lambda: self.custody.functions.getBalance().call())

    def pay_admin(self, ethereum_address, wallet_id, amount):
        """Plain value transfer from the active account to the admin wallet."""
        if not ethereum_address or not wallet_id or not amount:
            return None, ValidationError("Please fill in all fields!")
        if not self.account:
            return None, NoSession("Please log in first.")
        if ethereum_address.lower() != self.account.lower():
            return None, AddressMismatch("The entered Ethereum address does not match your connected wallet!")

        def call():
            tx_hash = self.w3.eth.send_transaction({
                'from': self._sender(),
                'to': Web3.to_checksum_address(ADMIN_WALLET_ADDRESS),
                'value': to_base_units(amount),
            })
            logger.info("Wallet ID: %s", wallet_id)
            return self._wait(tx_hash)

        return self._run("Admin payment", call)
