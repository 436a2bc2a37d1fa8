"""StoreHandle protocol — repositories depend on this, not on the concrete client.

Two variants exist and the session picks one at connect time:
- "live": backed by a connected AsyncMongoClient
- "degraded": inert stand-in used outside production when every
  connection attempt failed
"""

from typing import Any, Literal, Protocol

HandleKind = Literal["live", "degraded"]


class StoreHandle(Protocol):
    kind: HandleKind

    def database(self, name: str) -> Any: ...
