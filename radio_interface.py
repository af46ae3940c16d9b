# radio_interface.py

"""
NEXTLOG-COMPANION radio driver contract: lifecycle, events and errors

This module defines the interface every radio-family driver implements and
the error kinds callers can branch on. The session manager only ever talks to
this contract, so a new radio family is added by writing a driver and
registering it in radio_registry.py; nothing else changes.

Lifecycle
---------
A driver instance serves exactly one connection. It is created fresh for
every connect and is never reused after disconnect():

    IDLE -> CONNECTING -> AWAITING_INIT -> READY -> POLLING -> DISCONNECTED

• connect(config)      -> True once the transport is open AND the radio has
                          reported enough status to be queried.
                          Raises RadioConnectionError / ConnectTimeoutError /
                          InitializationTimeoutError on failure.
• disconnect()         -> always safe, any state, any number of times.
• get_current_data()   -> RadioData snapshot; raises NotConnectedError or
                          NoActiveSliceError.
• is_connected()       -> True only when transport open and initialised.

Events (published on driver.events)
-----------------------------------
• "data-update"   payload RadioData, once per poll tick while polling.
• "disconnected"  payload None, the radio closed the connection.
• "error"         payload the exception, transport-level failure.

After disconnect() returns no further events are published, even if the
transport still delivers buffered bytes.

Developer checklist for new drivers
-----------------------------------
[ ] Subclass BaseRadioDriver, set name/models
[ ] Implement connect(), disconnect(), get_current_data(), is_connected()
[ ] Publish through self.events, never through a module-level bus
[ ] Register the class in radio_registry.RADIO_DRIVERS
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from events import EventBus


class BaseRadioError(Exception):
    """Generic radio communication error (superclass for all driver errors)."""
    pass


class RadioConnectionError(BaseRadioError, ConnectionError):
    """The transport could not be opened, or failed while in use."""
    pass


class ConnectTimeoutError(BaseRadioError, TimeoutError):
    """The transport did not open within the connect timeout."""
    pass


class InitializationTimeoutError(BaseRadioError, TimeoutError):
    """The radio did not report enough status within the initialization timeout."""
    pass


class NotConnectedError(BaseRadioError):
    """Query issued before the driver finished connecting, or after disconnect."""
    pass


class NoActiveSliceError(BaseRadioError):
    """The status model holds no slice to build a snapshot from."""
    pass


class UnsupportedRadioTypeError(BaseRadioError, ValueError):
    """No driver is registered for the requested radio family."""
    pass


class BaseRadioDriver(ABC):
    name: str = "radio"
    models: List[str] = []

    def __init__(self, events: Optional[EventBus] = None):
        self.events = events or EventBus(name=self.name)

    @abstractmethod
    def connect(self, config) -> bool: ...

    @abstractmethod
    def disconnect(self) -> None: ...

    @abstractmethod
    def get_current_data(self):
        """Return a RadioData snapshot of the current tuning/transmit state."""

    @abstractmethod
    def is_connected(self) -> bool: ...

    def close(self) -> None:
        self.disconnect()
