#!/usr/bin/env python3
#
# certkeeper/api/challenges.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""HTTP-01 responder: serves stored key authorizations to the CA."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from ..utils.deps import get_store

_log = logging.getLogger(__name__)

router = APIRouter(tags=["acme-challenge"])


@router.get("/.well-known/acme-challenge/{token}", response_class=PlainTextResponse)
def serve_challenge(token: str, store=Depends(get_store)):
	challenge = store.get_challenge_token(token)
	if challenge is None:
		_log.debug("CHALLENGE unknown token requested")
		raise HTTPException(status_code=404, detail="Challenge not found")
	_log.info("CHALLENGE served token for domain=%s", challenge.domain)
	return PlainTextResponse(challenge.key_authorization)
