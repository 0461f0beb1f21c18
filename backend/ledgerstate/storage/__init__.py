"""Ledger storage: operations, plus the block and event stores they rely on."""

from ledgerstate.storage.blocks import BlockStorage
from ledgerstate.storage.events import EventStorage
from ledgerstate.storage.operations import OperationStorage

__all__ = ["BlockStorage", "EventStorage", "OperationStorage"]
