#!/usr/bin/env python3
#
# certkeeper/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certkeeper - ACME certificate lifecycle orchestrator."""

from .main import create_app

__all__ = ["create_app"]
