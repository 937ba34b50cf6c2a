# services/ledger/addresses.py
# Program ids and program-derived accounts of the privacy pool.
from __future__ import annotations

from typing import Sequence, Tuple

from solders.pubkey import Pubkey

from services.balance.config import STORAGE_ACC_SEED

PROGRAM_IDS = {
    "mainnet-beta": "4CgyHKuP6yi1vbmcdsArngEKcETR4nZupqYEMk2hEoQd",
    "devnet": "B5TTFPKCd2Rkw3vAJigLeRCDGK673vfAWefmrrZKou9V",
}


def get_program_id(cluster: str) -> Pubkey:
    try:
        return Pubkey.from_string(PROGRAM_IDS[cluster])
    except KeyError:
        raise ValueError(f"Invalid cluster for program id: {cluster}") from None


def generate_pda(seeds: Sequence[bytes], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """(address, bump) for `seeds` under `program_id`."""
    return Pubkey.find_program_address(list(seeds), program_id)


def storage_account_address(cluster: str) -> str:
    """Base58 address of the tree storage account (the one the insertion wait subscribes to)."""
    pda, _bump = generate_pda([STORAGE_ACC_SEED], get_program_id(cluster))
    return str(pda)
