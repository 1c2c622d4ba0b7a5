"""doubao_gateway.config.defaults
==============================

Central place for the stable default values used by the Doubao adapter.
Every value can be overridden through the config file, ``DOUBAO_*``
environment variables or explicit overrides (see ``doubao_gateway.config``).

Only plain constants live here; no I/O and no imports from other gateway
packages.
"""

from __future__ import annotations

# ---- Upstream chat service ----
DOUBAO_DEFAULT_BASE_URL = "https://www.doubao.com"
DOUBAO_DEFAULT_ASSISTANT_ID = "497858"
DOUBAO_DEFAULT_VERSION_CODE = "20800"
DOUBAO_DEFAULT_PC_VERSION = "2.44.0"

# ---- Object storage control plane (request signing scope) ----
IMAGEX_DEFAULT_REGION = "cn-north-1"
IMAGEX_DEFAULT_SERVICE = "imagex"
IMAGEX_API_VERSION = "2018-08-01"

# ---- Resilience ----
# Retries after the first attempt of the completion pipeline.
DOUBAO_DEFAULT_MAX_RETRIES = 3
DOUBAO_DEFAULT_RETRY_DELAY_SECONDS = 5.0
# Attempts per upload phase (apply, transfer, commit, ...).
UPLOAD_DEFAULT_PHASE_ATTEMPTS = 2

# ---- Attachments ----
FILE_DEFAULT_MAX_SIZE = 100 * 1024 * 1024
UPLOAD_DEFAULT_MAX_WORKERS = 4
