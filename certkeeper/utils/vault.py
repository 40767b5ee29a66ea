#!/usr/bin/env python3
#
# certkeeper/utils/vault.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""
Fernet-based encryption for certificate private keys at rest.

Each stored key is encrypted with its own Fernet key derived from:
  - A random 16-byte salt (stored alongside the ciphertext)
  - The application pepper from CERTKEEPER_SECRET_KEY

Storage format:  "vault:1:<salt_hex>:<fernet_token>"
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os

from cryptography.fernet import Fernet, InvalidToken

_log = logging.getLogger(__name__)

_VAULT_PREFIX = "vault:1:"
_KDF_ITERATIONS = 480_000


def _derive_key(pepper: str, salt: bytes) -> bytes:
	"""Derive a url-safe base64 Fernet key from pepper + salt via PBKDF2-SHA256."""
	dk = hashlib.pbkdf2_hmac("sha256", pepper.encode("utf-8"), salt, iterations=_KDF_ITERATIONS)
	return base64.urlsafe_b64encode(dk)


def encrypt(plaintext: str, pepper: str) -> str:
	"""Encrypt a PEM blob into the vault storage format."""
	if not pepper:
		raise ValueError("CERTKEEPER_SECRET_KEY is not set")
	salt = os.urandom(16)
	token = Fernet(_derive_key(pepper, salt)).encrypt(plaintext.encode("utf-8"))
	return f"{_VAULT_PREFIX}{salt.hex()}:{token.decode('ascii')}"


def decrypt(stored: str, pepper: str) -> str:
	"""Decrypt a vault-formatted string back to plaintext.

	Values without the vault prefix are returned unchanged (rows written
	before encryption was enabled).
	"""
	if not pepper:
		raise ValueError("CERTKEEPER_SECRET_KEY is not set")
	if not stored or not stored.startswith(_VAULT_PREFIX):
		return stored
	try:
		salt_hex, fernet_token = stored[len(_VAULT_PREFIX):].split(":", 1)
		salt = bytes.fromhex(salt_hex)
		if len(salt) != 16:
			raise ValueError("Invalid salt length")
		return Fernet(_derive_key(pepper, salt)).decrypt(fernet_token.encode("ascii")).decode("utf-8")
	except (InvalidToken, ValueError) as exc:
		_log.error("VAULT decrypt failed")
		raise ValueError("Cannot decrypt private key - wrong CERTKEEPER_SECRET_KEY?") from exc


def is_encrypted(value: str | None) -> bool:
	"""Check whether a value is already vault-encrypted."""
	return bool(value and value.startswith(_VAULT_PREFIX))
