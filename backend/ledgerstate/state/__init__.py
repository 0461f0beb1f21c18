"""Block replay into a materialized object projection."""

from ledgerstate.state.machine import StateMachineStorage
from ledgerstate.state.singleflight import SingleFlight

__all__ = ["SingleFlight", "StateMachineStorage"]
