# contract_abi.py
# Single copy of the contract interfaces used by both the wallet-side client and the relay.

REGISTRY_ABI = [
    {
        "inputs": [
            {"internalType": "string", "name": "_name", "type": "string"},
            {"internalType": "uint256", "name": "_age", "type": "uint256"},
            {"internalType": "string", "name": "_medicalHistory", "type": "string"}
        ],
        "name": "registerPatient",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address", "name": "_patient", "type": "address"}
        ],
        "name": "getPatientDetails",
        "outputs": [
            {"internalType": "string", "name": "", "type": "string"},
            {"internalType": "uint256", "name": "", "type": "uint256"},
            {"internalType": "string", "name": "", "type": "string"}
        ],
        "stateMutability": "view",
        "type": "function"
    }
]

CUSTODY_ABI = [
    {
        "inputs": [],
        "name": "deposit",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address payable", "name": "_to", "type": "address"},
            {"internalType": "uint256", "name": "_amount", "type": "uint256"}
        ],
        "name": "withdraw",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "getBalance",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# Fixed deployments the client talks to directly (Sepolia)
REGISTRY_ADDRESS = "0xc589794a729e6c75943de3e86f231aeab10f9a63"
CUSTODY_ADDRESS = "0xa06c3453d444551513ea83c4c1ac032f57b5dd6f"
ADMIN_WALLET_ADDRESS = "0xe9A57EabCB19a7d59AbfAA0a19ECa27f3f540EFe"

# Gas ceiling for wallet-signed registrations
REGISTER_GAS_LIMIT = 300000
