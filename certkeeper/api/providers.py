#!/usr/bin/env python3
#
# certkeeper/api/providers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Provider catalog routes (DNS adapters and ACME CAs)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..acme import providers as acme_providers
from ..utils.deps import get_dns_registry
from .response import ok_response

router = APIRouter(tags=["providers"])


@router.get("/dns")
def list_dns_providers(dns_registry=Depends(get_dns_registry)):
	return ok_response(data=dns_registry.list_available())


@router.get("/dns/manual/pending")
def list_manual_challenges(dns_registry=Depends(get_dns_registry)):
	"""TXT records the operator still has to create by hand."""
	return ok_response(
		data=[
			{"domain": c.domain, "record_name": c.record_name, "record_value": c.record_value}
			for c in dns_registry.pending.all()
		]
	)


@router.get("/acme")
def list_acme_providers(dns_registry=Depends(get_dns_registry)):
	return ok_response(
		data=acme_providers.list_available(dns_registry.environ),
		default=acme_providers.DEFAULT_PROVIDER,
	)
