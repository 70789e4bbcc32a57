# utils.py
# Chain connection, unit conversion and operator-signed calls used by the relay.

import logging
from decimal import Decimal, InvalidOperation, localcontext

from web3 import Web3

from contract_abi import REGISTRY_ABI
from errors import ChainCallFailed, ValidationError

logger = logging.getLogger(__name__)

WEI_DECIMALS = 18
WEI_PER_ETHER = Decimal(10) ** WEI_DECIMALS
RECEIPT_TIMEOUT = 180  # seconds


# --- Units ---

def parse_age(age):
    """Age as a uint256-compatible int: an int (not bool) or a string of digits."""
    if isinstance(age, int) and not isinstance(age, bool) and age >= 0:
        return age
    if isinstance(age, str) and age.strip().isdigit():
        return int(age.strip())
    raise ValidationError(f"Age must be a whole number: {age!r}")


def to_base_units(amount):
    """
    Converts a decimal ether amount (string) into an integer number of wei.
    Raises ValidationError for anything that is not an exact, non-negative
    amount with at most 18 fractional digits.
    """
    text = str(amount).strip() if amount is not None else ''
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value < 0:
        raise ValidationError(f"Invalid amount: {amount!r}")

    with localcontext() as ctx:
        ctx.prec = 999
        scaled = value * WEI_PER_ETHER
        if scaled != scaled.to_integral_value():
            raise ValidationError(f"Amount {amount!r} has more than {WEI_DECIMALS} decimal places")

    try:
        return Web3.to_wei(value, 'ether')
    except ValueError as e:
        raise ValidationError(str(e))


def format_ether(base_units):
    """Exact decimal ether string for a wei amount, e.g. 1500000000000000000 -> '1.5'."""
    ether = Decimal(Web3.from_wei(int(base_units), 'ether'))
    text = format(ether, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'


# --- Blockchain Connection ---

def connect_to_blockchain(node_uri):
    """Returns a Web3 instance for node_uri, or None if the node can't be reached."""
    if not node_uri:
        logger.error("Blockchain node URI is not configured.")
        return None
    w3 = Web3(Web3.HTTPProvider(node_uri))
    if not w3.is_connected():
        logger.warning("Blockchain node at %s is not responding; calls will fail until it is.", node_uri)
    return w3


class LedgerContext:
    """
    Everything the relay needs to talk to the chain: the Web3 instance, the
    record registry contract and the operator account. Built once at startup
    and handed to the Flask app; handlers only read from it.
    """

    def __init__(self, w3, registry_address, operator_private_key):
        self.w3 = w3
        self.registry_address = Web3.to_checksum_address(registry_address)
        self.registry = w3.eth.contract(address=self.registry_address, abi=REGISTRY_ABI)
        # Raises ValueError for a malformed key, caught by the startup code
        self.operator = w3.eth.account.from_key(operator_private_key)
        logger.info("Ledger context ready (registry %s, operator %s)",
                    self.registry_address, self.operator.address)

    @classmethod
    def from_config(cls, config):
        w3 = connect_to_blockchain(config.BLOCKCHAIN_NODE_URI)
        if w3 is None:
            raise ValueError("Blockchain node URI is not configured")
        return cls(w3, config.CONTRACT_ADDRESS, config.PRIVATE_KEY)

    @property
    def operator_address(self):
        return self.operator.address


# --- Transaction Sending ---

def send_transaction(ctx, function_call):
    """
    Estimates gas, fetches the gas price, signs the call with the operator
    key and submits it. Waits for the receipt.
    Returns (receipt, None) on success or (None, ChainCallFailed) on failure.
    """
    w3 = ctx.w3
    operator_address = ctx.operator_address
    try:
        gas = function_call.estimate_gas({'from': operator_address})
        gas_price = w3.eth.gas_price
        nonce = w3.eth.get_transaction_count(operator_address)
        logger.info("Sending transaction from %s (nonce %s, gas %s, gas price %s)",
                    operator_address, nonce, gas, gas_price)

        transaction = function_call.build_transaction({
            'from': operator_address,
            'nonce': nonce,
            'gas': gas,
            'gasPrice': gas_price,
        })
        signed_tx = ctx.operator.sign_transaction(transaction)
        tx_hash = w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.info("Transaction sent: %s", w3.to_hex(tx_hash))

        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)
    except Exception as e:
        logger.error("Error sending transaction: %s", e)
        return None, ChainCallFailed(str(e))

    if receipt['status'] == 0:
        logger.error("Transaction reverted: %s", w3.to_hex(tx_hash))
        return None, ChainCallFailed(f"Transaction reverted: {w3.to_hex(tx_hash)}")

    logger.info("Transaction confirmed in block %s, gas used %s", receipt['blockNumber'], receipt['gasUsed'])
    return receipt, None


# --- Record registry, operator-attributed ---

def register_patient_on_chain(ctx, name, age, medical_history):
    """Registers a patient signed by the operator. Returns (tx_hash_hex, error)."""
    try:
        func_call = ctx.registry.functions.registerPatient(name, parse_age(age), medical_history)
    except ValidationError as e:
        return None, e
    except Exception as e:
        logger.error("Could not build registerPatient call: %s", e)
        return None, ChainCallFailed(str(e))

    receipt, error = send_transaction(ctx, func_call)
    if error:
        return None, error
    return Web3.to_hex(receipt['transactionHash']), None


def get_patient_details_from_chain(ctx, patient_address):
    """Reads a record with the operator as caller. Returns ([name, age, history], error)."""
    try:
        checksum = Web3.to_checksum_address(patient_address)
        details = ctx.registry.functions.getPatientDetails(checksum).call({'from': ctx.operator_address})
    except Exception as e:
        logger.error("Error fetching patient details for %s: %s", patient_address, e)
        return None, ChainCallFailed(str(e))
    return list(details), None


def get_contract_balance(ctx):
    """Native balance (wei) held at the registry contract address. Returns (wei, error)."""
    try:
        return ctx.w3.eth.get_balance(ctx.registry_address), None
    except Exception as e:
        logger.error("Error fetching balance: %s", e)
        return None, ChainCallFailed(str(e))
