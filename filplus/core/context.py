# filplus/core/context.py

import contextvars

correlation_id_ctx = contextvars.ContextVar("correlation_id", default=None)
application_id_ctx = contextvars.ContextVar("application_id", default=None)
