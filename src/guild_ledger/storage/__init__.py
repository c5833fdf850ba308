"""Storage package: the JSON document and dotted-path helpers.

Public surface
--------------
- :class:`RecordStore`: load/save/transaction/health-check of the document.
- :func:`get_path`, :func:`set_path`, :func:`has_path`, :func:`delete_path`:
  dotted-path access (``"guildID.memberID.field"``) into a loaded snapshot.
"""

from guild_ledger.storage.paths import delete_path, get_path, has_path, set_path
from guild_ledger.storage.store import Document, RecordStore

__all__ = [
    "Document",
    "RecordStore",
    "delete_path",
    "get_path",
    "has_path",
    "set_path",
]
