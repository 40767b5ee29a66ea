#!/usr/bin/env python3
#
# certkeeper/utils/deps.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI dependency helpers (everything lives on ``app.state``)."""

from __future__ import annotations

from fastapi import Request


def get_store(request: Request):
	return request.app.state.store


def get_orchestrator(request: Request):
	return request.app.state.orchestrator


def get_notifier(request: Request):
	return request.app.state.notifier


def get_dns_registry(request: Request):
	return request.app.state.dns_registry


def get_config(request: Request):
	"""Get the application configuration from app state."""
	return request.app.state.cfg
