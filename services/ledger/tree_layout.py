# services/ledger/tree_layout.py
# Index arithmetic for the on-chain commitment tree.
#
# The tree is stored in heap order (root = global 0, children of g are
# 2g+1 / 2g+2) across STORAGE_SUB_ACCOUNTS accounts of equal size.
# Leaves sit on level MT_HEIGHT.
from __future__ import annotations

from dataclasses import dataclass

MT_HEIGHT = 20
MT_COMMITMENT_COUNT = 2 ** MT_HEIGHT
MT_SIZE = 2 ** (MT_HEIGHT + 1) - 1

STORAGE_SUB_ACCOUNTS = 7
VALUES_PER_SUB_ACCOUNT = MT_SIZE // STORAGE_SUB_ACCOUNTS  # 299_593, divides exactly


@dataclass(frozen=True)
class LocalIndex:
    index: int
    level: int


@dataclass(frozen=True)
class AccIndex:
    account: int
    offset: int


def comm_leaf_index_to_local_index(leaf_index: int) -> LocalIndex:
    if not 0 <= leaf_index < MT_COMMITMENT_COUNT:
        raise ValueError(f"leaf index out of range: {leaf_index}")
    return LocalIndex(index=leaf_index, level=MT_HEIGHT)


def local_index_to_global_index(li: LocalIndex) -> int:
    if not 0 <= li.level <= MT_HEIGHT or not 0 <= li.index < 2 ** li.level:
        raise ValueError(f"invalid local index: {li}")
    return 2 ** li.level - 1 + li.index


def global_index_to_local_index(g: int) -> LocalIndex:
    if not 0 <= g < MT_SIZE:
        raise ValueError(f"global index out of range: {g}")
    level = (g + 1).bit_length() - 1
    return LocalIndex(index=g - (2 ** level - 1), level=level)


def global_index_to_acc_index(g: int) -> AccIndex:
    if not 0 <= g < MT_SIZE:
        raise ValueError(f"global index out of range: {g}")
    return AccIndex(account=g // VALUES_PER_SUB_ACCOUNT, offset=g % VALUES_PER_SUB_ACCOUNT)


def local_index_to_acc_index(li: LocalIndex) -> AccIndex:
    return global_index_to_acc_index(local_index_to_global_index(li))


def start_account_for_leaf(leaf_index: int) -> AccIndex:
    """First storage position a commitment inserted at/after leaf_index can occupy."""
    return local_index_to_acc_index(comm_leaf_index_to_local_index(leaf_index))
