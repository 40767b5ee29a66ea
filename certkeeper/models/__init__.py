#!/usr/bin/env python3
#
# certkeeper/models/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate records and API payload models for certkeeper."""
