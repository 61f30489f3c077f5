"""
mnemos.storage.encrypted — Content encryption as a store decorator.

:class:`EncryptedStore` wraps any :class:`MemoryStore`.  Records at one
of the configured privacy levels have their content sealed on the way
in (``store``/``update``) and unsealed on the way out (``retrieve``,
``query``, ``get_all``).  Everything else is delegated untouched.

The cipher is a pluggable boundary.  The default :class:`Base64Cipher`
only encodes; it keeps plaintext out of casual view in exports and is
not a security control.  Supply a real cipher for actual protection.
"""

from __future__ import annotations

import base64
import dataclasses
import json
import logging
from typing import Iterable, List, Optional

from mnemos.core.errors import DeserializationError
from mnemos.core.types import Privacy
from mnemos.models.codec import CONTENT_TYPES
from mnemos.models.record import MemoryRecord
from mnemos.models.sealed import SealedContent
from mnemos.storage.base import MemoryStore, QueryOptions

log = logging.getLogger(__name__)

DEFAULT_ENCRYPT_LEVELS = (Privacy.SENSITIVE, Privacy.CONFIDENTIAL)


class Cipher:
    """Text-to-text reversible transform."""

    def encrypt(self, plaintext: str) -> str:
        raise NotImplementedError

    def decrypt(self, ciphertext: str) -> str:
        raise NotImplementedError


class Base64Cipher(Cipher):
    """Placeholder transform: base64 of the UTF-8 text."""

    def encrypt(self, plaintext: str) -> str:
        return base64.b64encode(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        return base64.b64decode(ciphertext.encode("ascii")).decode("utf-8")


class EncryptedStore(MemoryStore):
    """
    Store decorator that seals content for restricted privacy levels.

    Parameters
    ----------
    inner : MemoryStore
        Backend that receives the sealed records.
    cipher : Cipher, optional
        Defaults to :class:`Base64Cipher`.
    encrypt_levels : iterable of Privacy or str
        Privacy levels whose content is sealed.
    """

    def __init__(
        self,
        inner: MemoryStore,
        cipher: Optional[Cipher] = None,
        encrypt_levels: Iterable = DEFAULT_ENCRYPT_LEVELS,
    ) -> None:
        self.inner = inner
        self.cipher = cipher or Base64Cipher()
        self.encrypt_levels = frozenset(Privacy(level) for level in encrypt_levels)

    # -- sealing ------------------------------------------------------------

    def should_encrypt(self, record: MemoryRecord) -> bool:
        return record.privacy in self.encrypt_levels

    def _seal(self, record: MemoryRecord) -> MemoryRecord:
        if not self.should_encrypt(record) or isinstance(record.content, SealedContent):
            return record
        plaintext = json.dumps(record.content.to_dict())
        sealed = SealedContent(record.kind, self.cipher.encrypt(plaintext))
        return dataclasses.replace(record, content=sealed)

    def _unseal(self, record: Optional[MemoryRecord]) -> Optional[MemoryRecord]:
        if record is None or not isinstance(record.content, SealedContent):
            return record
        try:
            payload = json.loads(self.cipher.decrypt(record.content.data))
        except ValueError as exc:
            raise DeserializationError(
                f"Could not decrypt content of memory {record.id}: {exc}"
            ) from exc
        content = CONTENT_TYPES[record.kind].from_dict(payload)
        # Metadata is shared with the stored copy so access bookkeeping sticks.
        return dataclasses.replace(record, content=content)

    def _unseal_all(self, records: List[MemoryRecord]) -> List[MemoryRecord]:
        return [self._unseal(r) for r in records]

    # -- contract -----------------------------------------------------------

    def store(self, record: MemoryRecord) -> None:
        record.validate()
        self.inner.store(self._seal(record))

    def retrieve(self, record_id: str) -> Optional[MemoryRecord]:
        return self._unseal(self.inner.retrieve(record_id))

    def update(self, record: MemoryRecord) -> None:
        record.validate()
        self.inner.update(self._seal(record))

    def delete(self, record_id: str) -> bool:
        return self.inner.delete(record_id)

    def query(self, options: Optional[QueryOptions] = None) -> List[MemoryRecord]:
        return self._unseal_all(self.inner.query(options))

    def get_all(self) -> List[MemoryRecord]:
        return self._unseal_all(self.inner.get_all())

    def clear(self) -> None:
        self.inner.clear()

    def exists(self, record_id: str) -> bool:
        return self.inner.exists(record_id)

    def count(self, options: Optional[QueryOptions] = None) -> int:
        return self.inner.count(options)

    def stats(self):
        return self.inner.stats()

    def export(self, options: Optional[QueryOptions] = None) -> str:
        return self.inner.export(options)

    def optimize(self) -> int:
        return self.inner.optimize()
