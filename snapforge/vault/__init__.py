"""
Snapforge Vault - encrypted secrets bundles.

- SecretsCipher: AES-256-GCM encrypt/decrypt
- SecretsStore: save/fetch/copy bundles per version
- SecretsProvisioner: synthesize a fresh bundle from provider state
"""

from .cipher import CipherError, SecretsCipher, generate_key
from .provisioner import SecretsProvisioner
from .store import SecretsStore

__all__ = [
    "CipherError",
    "SecretsCipher",
    "generate_key",
    "SecretsProvisioner",
    "SecretsStore",
]
