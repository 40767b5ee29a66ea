#!/usr/bin/env python3
#
# certkeeper/acme/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""ACME CA catalog, account keys and protocol client."""

from .client import AcmeChallenge, AcmeClient, dns01_txt_value
from .keys import AccountKeyRegistry
from .providers import ACME_PROVIDERS, DEFAULT_PROVIDER, AcmeProvider, EabCredentials

__all__ = [
	"ACME_PROVIDERS",
	"DEFAULT_PROVIDER",
	"AccountKeyRegistry",
	"AcmeChallenge",
	"AcmeClient",
	"AcmeProvider",
	"EabCredentials",
	"dns01_txt_value",
]
