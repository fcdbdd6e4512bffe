"""
Secrets store.

Per-version encrypted key/value bundles. Bundles are sealed with the
injected cipher before they reach the repository; plaintext never leaves
this module except as a SecretsBundle.
"""

import json
import logging
from typing import Dict, Iterable, Optional

from ..errors import VersionCorrupt
from ..models import SecretsBundle
from ..protocols import CipherProtocol
from ..store.base import VersionRepository
from .cipher import CipherError

logger = logging.getLogger(__name__)


class SecretsStore:
    """
    Save, fetch and copy SecretsBundles.

    Example:
        store = SecretsStore(repository, SecretsCipher(key_hex))
        sealed = store.seal({"DATABASE_URL": "postgresql://..."})
        bundle = await store.fetch(version_id)
    """

    def __init__(self, repository: VersionRepository, cipher: CipherProtocol):
        self._repository = repository
        self._cipher = cipher

    def seal(self, values: Dict[str, str]) -> str:
        return self._cipher.encrypt(json.dumps(values, sort_keys=True))

    def unseal(self, sealed: str) -> Dict[str, str]:
        values = json.loads(self._cipher.decrypt(sealed))
        if not isinstance(values, dict):
            raise CipherError("Sealed bundle does not hold a mapping")
        return {str(k): str(v) for k, v in values.items()}

    async def save(self, version_id: str, bundle: SecretsBundle) -> None:
        """Attach a bundle to an existing version that has none yet."""
        await self._repository.insert_secrets(version_id, self.seal(bundle.values))
        logger.debug(f"Saved secrets for version {version_id} ({len(bundle.values)} keys)")

    async def fetch(self, version_id: str) -> Optional[SecretsBundle]:
        sealed = await self._repository.get_secrets(version_id)
        if sealed is None:
            return None
        return SecretsBundle(version_id=version_id, values=self.unseal(sealed))

    async def require(self, version_id: str) -> SecretsBundle:
        """Fetch a bundle, raising VersionCorrupt when it is missing."""
        bundle = await self.fetch(version_id)
        if bundle is None:
            raise VersionCorrupt(version_id)
        return bundle

    async def copy(self, from_version_id: str, to_version_id: str) -> SecretsBundle:
        """Copy a bundle verbatim onto another version (re-sealed with a new IV)."""
        source = await self.require(from_version_id)
        bundle = SecretsBundle(version_id=to_version_id, values=dict(source.values))
        await self.save(to_version_id, bundle)
        return bundle

    async def delete_for_versions(self, version_ids: Iterable[str]) -> int:
        ids = list(version_ids)
        removed = await self._repository.delete_secrets(ids)
        logger.debug(f"Deleted {removed} secrets bundle(s)")
        return removed
