# radios/flexradio/status.py
"""
Last-known radio state, as mirrored from SmartSDR Response and Status lines.

The model is owned by exactly one driver instance and is discarded on
disconnect. It is plain data plus a few helpers; all locking is the driver's
business.
"""

from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_SLICE_ID = 0


@dataclass
class RadioIdentity:
    model: str = ""
    version: str = ""
    serial: str = ""
    callsign: str = ""
    nickname: str = ""


@dataclass
class Slice:
    """One independently tunable receive/transmit channel."""
    id: int
    frequency: int = 0          # Hz
    mode: str = ""
    active: bool = False
    rxant: str = ""
    txant: str = ""
    wide: bool = False
    locked: bool = False


@dataclass
class TransmitState:
    frequency: int = 0          # Hz
    power: int = 0              # W
    tune: bool = False
    mox: bool = False


@dataclass
class InterlockState:
    state: str = "UNKNOWN"
    reason: str = ""


@dataclass
class RadioStatus:
    radio: RadioIdentity = field(default_factory=RadioIdentity)
    slices: List[Slice] = field(default_factory=list)
    transmit: TransmitState = field(default_factory=TransmitState)
    interlock: InterlockState = field(default_factory=InterlockState)

    # ---------- Slices ----------

    def ensure_default_slice(self) -> bool:
        """Create the synthetic default slice if none exists yet. Returns True if created."""
        if self.slices:
            return False
        self.slices.append(Slice(id=DEFAULT_SLICE_ID))
        return True

    def get_slice(self, slice_id: int) -> Optional[Slice]:
        for sl in self.slices:
            if sl.id == slice_id:
                return sl
        return None

    def upsert_slice(self, slice_id: int) -> Slice:
        """Return the slice with this id, appending a new one (kept in id order) if missing."""
        sl = self.get_slice(slice_id)
        if sl is None:
            sl = Slice(id=slice_id)
            self.slices.append(sl)
            self.slices.sort(key=lambda s: s.id)
        return sl

    def remove_slice(self, slice_id: int) -> bool:
        before = len(self.slices)
        self.slices = [s for s in self.slices if s.id != slice_id]
        return len(self.slices) != before

    def current_slice(self) -> Optional[Slice]:
        """The first slice marked active, else the first slice, else None.

        Ties between several active slices resolve by list order.
        """
        for sl in self.slices:
            if sl.active:
                return sl
        return self.slices[0] if self.slices else None
