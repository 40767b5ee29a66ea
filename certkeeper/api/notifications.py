#!/usr/bin/env python3
#
# certkeeper/api/notifications.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Notification channel settings."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..models.certificates import NotificationSettingUpdate
from ..utils.deps import get_notifier, get_store
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"])


@router.get("/settings")
def get_settings(notifier=Depends(get_notifier)):
	return ok_response(data=notifier.list_channel_status())


@router.put("/settings")
def update_setting(payload: NotificationSettingUpdate, store=Depends(get_store), notifier=Depends(get_notifier)):
	store.upsert_notification_setting(payload.channel, payload.enabled)
	_log.info("NOTIFY channel=%s enabled=%s", payload.channel, payload.enabled)
	return ok_response(data=notifier.list_channel_status())
