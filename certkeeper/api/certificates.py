#!/usr/bin/env python3
#
# certkeeper/api/certificates.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate management API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ..acme.providers import ACME_PROVIDERS
from ..models.certificates import CertificateCreate, CertificateRecord, CertificateUpdate
from ..utils.deps import get_dns_registry, get_orchestrator, get_store
from ..utils.rate_limit import RATE_LIMIT_RENEW, limiter
from ..utils.time import utcnow
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(tags=["certificates"])


def _require(store, certificate_id: int) -> CertificateRecord:
	record = store.get(certificate_id)
	if record is None:
		raise HTTPException(status_code=404, detail="Certificate not found")
	return record


def _check_providers(dns_registry, acme_provider: str | None, challenge_type: str, dns_provider: str | None) -> None:
	if acme_provider and acme_provider not in ACME_PROVIDERS:
		raise HTTPException(status_code=422, detail=f"Unknown ACME provider: {acme_provider}")
	if challenge_type == "dns":
		if not dns_provider:
			raise HTTPException(status_code=422, detail="dns_provider is required when challenge_type is 'dns'")
		if not dns_registry.is_known(dns_provider):
			raise HTTPException(status_code=422, detail=f"Unknown DNS provider: {dns_provider}")


@router.get("")
def list_certificates(store=Depends(get_store)):
	now = utcnow()
	return ok_response(data=[r.to_public(now) for r in store.list()])


@router.post("", status_code=201)
async def create_certificate(
	payload: CertificateCreate,
	store=Depends(get_store),
	dns_registry=Depends(get_dns_registry),
	orchestrator=Depends(get_orchestrator),
):
	"""Add a domain; with ``issue_now`` the first issuance runs inline."""
	_check_providers(dns_registry, payload.acme_provider, payload.challenge_type, payload.dns_provider)
	try:
		record = store.create(
			payload.domain,
			challenge_type=payload.challenge_type,
			dns_provider=payload.dns_provider if payload.challenge_type == "dns" else None,
			acme_provider=payload.acme_provider,
			auto_renew=payload.auto_renew,
			hook_script=payload.hook_script,
		)
	except ValueError as exc:
		raise HTTPException(status_code=409, detail=str(exc)) from exc
	_log.info("CERT_CREATED domain=%s challenge=%s", record.domain, record.challenge_type)

	extra = {}
	if payload.issue_now:
		result = await orchestrator.issue_or_renew(record.id)
		extra = {"issued": result.success, "message": result.message}
		record = store.get(record.id)
	return ok_response(data=record.to_public(utcnow()), **extra)


@router.get("/{certificate_id}")
def get_certificate(certificate_id: int, store=Depends(get_store)):
	return ok_response(data=_require(store, certificate_id).to_public(utcnow()))


@router.patch("/{certificate_id}")
def update_certificate(
	certificate_id: int,
	payload: CertificateUpdate,
	store=Depends(get_store),
	dns_registry=Depends(get_dns_registry),
):
	"""Change renewal settings; lifecycle fields stay orchestrator-owned."""
	record = _require(store, certificate_id)
	# Explicit null clears the optional text fields only
	changes = {
		k: v
		for k, v in payload.model_dump(exclude_unset=True).items()
		if v is not None or k in ("dns_provider", "acme_provider", "hook_script")
	}
	challenge_type = changes.get("challenge_type") or record.challenge_type
	dns_provider = changes.get("dns_provider", record.dns_provider)
	_check_providers(dns_registry, changes.get("acme_provider"), challenge_type, dns_provider)
	if challenge_type == "http":
		changes["dns_provider"] = None
	record = store.update(certificate_id, **changes)
	_log.info("CERT_UPDATED domain=%s fields=%s", record.domain, ",".join(sorted(changes)))
	return ok_response(data=record.to_public(utcnow()))


@router.delete("/{certificate_id}")
def delete_certificate(certificate_id: int, store=Depends(get_store)):
	record = _require(store, certificate_id)
	store.delete(certificate_id)
	_log.info("CERT_DELETED domain=%s", record.domain)
	return ok_response(message="Certificate deleted")


@router.post("/{certificate_id}/renew")
@limiter.limit(RATE_LIMIT_RENEW)
async def renew_certificate(
	request: Request,
	certificate_id: int,
	store=Depends(get_store),
	orchestrator=Depends(get_orchestrator),
):
	"""Mark pending, then issue inline; failures surface as HTTP 502."""
	_require(store, certificate_id)
	store.update(certificate_id, status="pending")
	result = await orchestrator.issue_or_renew(certificate_id)
	if not result.success:
		raise HTTPException(status_code=502, detail=result.message)
	return ok_response(
		message="Certificate renewed successfully",
		data=store.get(certificate_id).to_public(utcnow()),
	)


@router.get("/{certificate_id}/hooks")
def list_hook_logs(certificate_id: int, store=Depends(get_store)):
	_require(store, certificate_id)
	logs = store.get_hook_logs(certificate_id)
	return ok_response(
		data=[
			{
				"executed_at": entry.executed_at.isoformat(),
				"success": entry.success,
				"output": entry.output,
			}
			for entry in logs
		]
	)
