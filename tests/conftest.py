import pytest
from eth_account import Account
from web3 import Web3

from contract_abi import CUSTODY_ABI, REGISTRY_ABI

TX_HASH = b"\x12" * 32
OPERATOR_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
REGISTRY = "0x" + "11" * 20
PATIENT = Web3.to_checksum_address("0x" + "ab" * 20)
USER = Web3.to_checksum_address("0x" + "cd" * 20)


class FakeFunction:
    def __init__(self, contract, name, args):
        self.contract = contract
        self.name = name
        self.args = args

    def _record(self, kind, tx):
        self.contract.calls.append((kind, self.name, self.args, tx))
        error = self.contract.errors.get((kind, self.name)) or self.contract.errors.get(self.name)
        if error:
            raise error

    def estimate_gas(self, tx):
        self._record("estimate_gas", tx)
        return 52000

    def build_transaction(self, tx):
        self._record("build_transaction", tx)
        built = {"to": self.contract.address, "data": "0x", "value": 0, "chainId": 11155111}
        built.update(tx)
        return built

    def call(self, tx=None):
        self._record("call", tx)
        return self.contract.results[self.name]

    def transact(self, tx):
        self._record("transact", tx)
        return TX_HASH


class FakeFunctions:
    def __init__(self, contract):
        self._contract = contract

    def __getattr__(self, name):
        return lambda *args: FakeFunction(self._contract, name, args)


class FakeContract:
    def __init__(self):
        self.address = None
        self.results = {}
        self.errors = {}
        self.calls = []
        self.functions = FakeFunctions(self)

    def calls_of(self, kind):
        return [call for call in self.calls if call[0] == kind]


class FakeEth:
    def __init__(self):
        self.registry = FakeContract()
        self.custody = FakeContract()
        self.account = Account
        self.gas_price = 10 ** 9
        self.balance = 0
        self.balance_error = None
        self.receipt_status = 1
        self.sent_raw = []
        self.sent = []

    def contract(self, address, abi):
        contract = self.registry if abi is REGISTRY_ABI else self.custody
        assert abi in (REGISTRY_ABI, CUSTODY_ABI)
        contract.address = address
        return contract

    def get_transaction_count(self, address):
        return 7

    def send_raw_transaction(self, raw):
        self.sent_raw.append(raw)
        return TX_HASH

    def send_transaction(self, tx):
        self.sent.append(tx)
        return TX_HASH

    def wait_for_transaction_receipt(self, tx_hash, timeout=None):
        return {"status": self.receipt_status, "transactionHash": tx_hash, "blockNumber": 1, "gasUsed": 52000}

    def get_balance(self, address):
        if self.balance_error:
            raise self.balance_error
        return self.balance


class FakeWeb3:
    to_hex = staticmethod(Web3.to_hex)

    def __init__(self):
        self.eth = FakeEth()


class FakeCompletions:
    def __init__(self, content="  Stay hydrated.  ", error=None):
        self.content = content
        self.error = error
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        message = type("Message", (), {"content": self.content})()
        choice = type("Choice", (), {"message": message})()
        return type("Response", (), {"choices": [choice]})()


class FakeOpenAI:
    def __init__(self, completions):
        self.chat = type("Chat", (), {"completions": completions})()


@pytest.fixture
def w3():
    return FakeWeb3()


@pytest.fixture
def completions():
    return FakeCompletions()
