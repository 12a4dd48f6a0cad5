"""
Selection policies: which station wins when several are eligible.

Every rule is "lowest index first" within a pool; pool priority between
the two result buses is fixed by BROADCAST_PRIORITY. These tie-breaks
decide the cycle-accurate trace, so each one lives in its own function.
"""

from typing import List, Optional

from .isa import Pool
from .state import ReservationStation, StationPool

# Multiply/divide results preempt add/sub results in the same cycle.
BROADCAST_PRIORITY = (Pool.MUL, Pool.ADD)
DISPATCH_ORDER = (Pool.ADD, Pool.MUL)


def first_ready(pool: StationPool) -> Optional[ReservationStation]:
    """Lowest-index station that is waiting and has both operands."""
    for st in pool:
        if st.is_ready():
            return st
    return None


def first_free(pool: StationPool, cycle: int) -> Optional[ReservationStation]:
    """Lowest-index free station that was not freed during this cycle."""
    for st in pool:
        if st.is_allocatable(cycle):
            return st
    return None


def first_broadcasting(pool: StationPool, cycle: int) -> Optional[ReservationStation]:
    """Lowest-index dispatched station whose result is due this cycle."""
    for st in pool:
        if st.is_broadcasting(cycle):
            return st
    return None


def contenders(pool: StationPool, winner: ReservationStation, cycle: int) -> List[ReservationStation]:
    """Other stations of the pool that lost the bus to winner this cycle."""
    return [st for st in pool if st is not winner and st.is_broadcasting(cycle)]
