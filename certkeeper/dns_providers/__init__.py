#!/usr/bin/env python3
#
# certkeeper/dns_providers/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""DNS-01 challenge providers."""

from .base import DnsChallenge, DnsProvider, relative_name, root_domain
from .manual import PendingChallengeStore
from .registry import DnsProviderRegistry

__all__ = [
	"DnsChallenge",
	"DnsProvider",
	"DnsProviderRegistry",
	"PendingChallengeStore",
	"relative_name",
	"root_domain",
]
