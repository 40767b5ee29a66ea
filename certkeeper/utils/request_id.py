#!/usr/bin/env python3
#
# certkeeper/utils/request_id.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Request ID middleware for tracing."""

from __future__ import annotations

import re
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
	"""Echo a caller-supplied X-Request-ID (if sane) or mint a new one."""

	async def dispatch(self, request: Request, call_next: Callable) -> Response:
		incoming = request.headers.get("X-Request-ID", "")
		request_id = incoming if _SAFE_ID.match(incoming) else uuid.uuid4().hex
		request.state.request_id = request_id
		response = await call_next(request)
		response.headers["X-Request-ID"] = request_id
		return response
