"""Asset upload pipeline: credential -> apply -> transfer -> commit.

Stages one attachment in the upstream's object storage so the chat call can
reference it by storage key.

Phases (each wrapped in the shared ``retry()`` policy for transient codes):

1. pre-check      HEAD request for remote URLs (status and declared size)
2. materialize    decode inline data or download, bounded by the size ceiling
3. credential     ``prepare_upload`` through the session-cookie transport
4. apply          signed GET ``Action=ApplyImageUpload``
5. transfer       PUT bytes to ``https://{object_host}/upload/v1/{store_uri}``
6. commit         signed POST ``Action=CommitImageUpload`` (images only,
                  best-effort)
7. dimensions     header sniffing for images (default 1x1)

The pipeline fails closed: :meth:`AssetUploader.upload_asset` never raises.
A failed image yields ``None``; a failed file yields a placeholder
:class:`AssetRef`. Every failure is logged with its taxonomy ``kind`` and
``error_code``.
"""
from __future__ import annotations

import base64
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

import httpx

from ..base.errors import (
    ErrorCode,
    GatewayError,
    InvalidRemoteAsset,
    TRANSIENT_CODES,
    UploadFailed,
    classify_exception,
    code_for_status,
)
from ..base.http import get_httpx_client
from ..base.inline_data import is_data_uri
from ..base.logging import LogContext, get_logger, normalized_log_event
from ..base.log_support import truncate_for_log
from ..base.models import AssetRef, StagedObject, UploadCredential
from ..base.resilience import RetryConfig, retry
from ..base.timeouts import get_timeout_config
from ..config import get_gateway_config
from ..config.defaults import IMAGEX_API_VERSION
from .attachments import AttachmentSource
from .media import (
    MaterializedAsset,
    asset_from_data_uri,
    asset_from_download,
    crc32_hex,
    filename_from_url,
    is_image_mime,
    mime_for_name,
    sniff_image_size,
)
from .signer import sha256_hex, sign_request
from .transport import DoubaoTransport

T = TypeVar("T")

RESOURCE_TYPE_IMAGE = 2
RESOURCE_TYPE_FILE = 1

UPLOAD_SUCCESS_CODE = 2000


def _is_success_code(value: Any) -> bool:
    return value == UPLOAD_SUCCESS_CODE or str(value) == str(UPLOAD_SUCCESS_CODE)


def _first(items: Any) -> Any:
    return items[0] if isinstance(items, list) and items else None


def _upload_error(message: str, exc: Exception) -> UploadFailed:
    code = classify_exception(exc)
    return UploadFailed(message, code=code, retryable=code in TRANSIENT_CODES, raw=exc)


def _status_error(message: str, status: int) -> UploadFailed:
    code = code_for_status(status)
    return UploadFailed(f"{message}: HTTP {status}", code=code, retryable=code in TRANSIENT_CODES)


def build_session_key(staged: StagedObject) -> str:
    """Base64 session descriptor sent with the commit call."""
    descriptor = {
        "accountType": "ImageX",
        "appId": "",
        "bizType": "",
        "fileType": "image",
        "legal": "",
        "storeInfos": json.dumps(
            [
                {
                    "StoreUri": staged.store_uri,
                    "Auth": staged.auth_token,
                    "UploadID": "",
                    "UploadHeader": None,
                    "StorageHeader": None,
                }
            ],
            separators=(",", ":"),
            ensure_ascii=False,
        ),
        "uploadHost": staged.object_host,
        "uri": staged.store_uri,
        "userId": "",
    }
    raw = json.dumps(descriptor, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


class AssetUploader:
    """Upload attachments for one completion request.

    Parameters:
        transport: Session-cookie transport used for credential acquisition.
        config: Merged ``doubao`` config section (defaults to
            ``get_gateway_config("doubao")``).
        logger: Optional logger override.
    """

    def __init__(
        self,
        transport: DoubaoTransport,
        *,
        config: Optional[Dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        cfg = config if config is not None else get_gateway_config("doubao")
        self._transport = transport
        self._logger = logger or get_logger("gateway.doubao.upload")
        self._max_size = int(cfg["file_max_size"])
        self._region = str(cfg["imagex_region"])
        self._service = str(cfg["imagex_service"])
        self._max_workers = max(1, int(cfg["upload_max_workers"]))
        self._ctx = LogContext(upstream="doubao")
        self._phase_retry = RetryConfig(
            max_attempts=max(1, int(cfg["upload_phase_attempts"])),
            retryable_codes=TRANSIENT_CODES,
            attempt_logger=self._log_attempt,
        )

    # ---- public API ----
    def upload_asset(
        self,
        source: str,
        credential: str,
        is_image: Optional[bool] = None,
        *,
        part_type: Optional[str] = None,
    ) -> Optional[AssetRef]:
        """Upload one asset; never raises.

        Parameters:
            source: http(s) URL or data URI.
            credential: Caller's upstream session token.
            is_image: Force image/file handling; ``None`` decides from the
                MIME type of the materialized bytes.
            part_type: Kind of content part the source came from; only used
                to classify a failure that happens before the MIME type is
                known.

        Returns:
            The committed :class:`AssetRef`, ``None`` for a failed image, or a
            placeholder reference for a failed file.
        """
        asset: Optional[MaterializedAsset] = None
        try:
            if not is_data_uri(source):
                self._run_phase("precheck", self.precheck, source)
            asset = self._run_phase("materialize", self.materialize, source)
            image = asset.is_image if is_image is None else is_image
            return self._stage(asset, credential, image)
        except GatewayError as exc:
            image = self._expect_image(source, asset, is_image, part_type)
            self._log_failure("upload.failed", exc, image=image, source=truncate_for_log(source, 120))
            if image:
                return None
            name = asset.filename if asset else filename_from_url(source)
            ext = asset.extension if asset else ""
            return AssetRef.placeholder(name=name, extension=ext)

    def upload_all(
        self,
        sources: Sequence[Union[AttachmentSource, str]],
        credential: str,
    ) -> List[Optional[AssetRef]]:
        """Upload every source concurrently; results keep the input order."""
        if not sources:
            return []

        def _one(item: Union[AttachmentSource, str]) -> Optional[AssetRef]:
            if isinstance(item, AttachmentSource):
                return self.upload_asset(item.source, credential, part_type=item.part_type)
            return self.upload_asset(item, credential)

        workers = min(self._max_workers, len(sources))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="doubao-upload") as pool:
            return list(pool.map(_one, sources))

    # ---- phases ----
    def precheck(self, url: str) -> None:
        """Probe a remote asset; raises :class:`InvalidRemoteAsset`."""
        try:
            response = self._client().head(
                url,
                follow_redirects=True,
                timeout=get_timeout_config().metadata_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise _upload_error(f"pre-check of {truncate_for_log(url, 120)} failed: {exc}", exc) from exc
        if response.status_code >= 400:
            raise InvalidRemoteAsset(
                f"File {truncate_for_log(url, 120)} is not valid: [{response.status_code}] {response.reason_phrase}",
                code=code_for_status(response.status_code),
            )
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self._max_size:
            raise InvalidRemoteAsset(
                f"File {truncate_for_log(url, 120)} exceeds {self._max_size} bytes",
                code=ErrorCode.PAYLOAD_TOO_LARGE,
            )

    def materialize(self, source: str) -> MaterializedAsset:
        """Decode inline data or download the URL into memory."""
        if is_data_uri(source):
            try:
                asset = asset_from_data_uri(source)
            except ValueError as exc:
                raise InvalidRemoteAsset(f"invalid inline data: {exc}", raw=exc) from exc
            if asset.size > self._max_size:
                raise InvalidRemoteAsset("inline data exceeds size ceiling", code=ErrorCode.PAYLOAD_TOO_LARGE)
            return asset

        chunks: List[bytes] = []
        total = 0
        try:
            with self._client().stream(
                "GET",
                source,
                follow_redirects=True,
                timeout=get_timeout_config().transfer_timeout_seconds,
            ) as response:
                if response.status_code >= 400:
                    raise InvalidRemoteAsset(
                        f"download of {truncate_for_log(source, 120)} failed: HTTP {response.status_code}",
                        code=code_for_status(response.status_code),
                    )
                content_type = response.headers.get("content-type")
                for chunk in response.iter_bytes():
                    total += len(chunk)
                    if total > self._max_size:
                        raise InvalidRemoteAsset(
                            f"download of {truncate_for_log(source, 120)} exceeds {self._max_size} bytes",
                            code=ErrorCode.PAYLOAD_TOO_LARGE,
                        )
                    chunks.append(chunk)
        except httpx.HTTPError as exc:
            raise _upload_error(f"download of {truncate_for_log(source, 120)} failed: {exc}", exc) from exc
        return asset_from_download(b"".join(chunks), source, content_type)

    def acquire_credential(self, session_token: str, is_image: bool) -> UploadCredential:
        """Obtain a fresh STS credential for one asset."""
        try:
            data = self._transport.prepare_upload(
                session_token, RESOURCE_TYPE_IMAGE if is_image else RESOURCE_TYPE_FILE
            )
        except GatewayError as exc:
            raise UploadFailed(
                f"prepare_upload failed: {exc.message}", code=exc.code, retryable=exc.retryable, raw=exc
            ) from exc
        if not isinstance(data, dict) or not data.get("upload_auth_token"):
            raise UploadFailed("prepare_upload missing credentials")
        try:
            return UploadCredential.from_payload(data)
        except (KeyError, TypeError) as exc:
            raise UploadFailed(f"prepare_upload credentials incomplete: {exc}", raw=exc) from exc

    def apply(self, credential: UploadCredential, file_size: int, extension: str) -> StagedObject:
        """Declare the upload and obtain a store location."""
        params = {
            "Action": "ApplyImageUpload",
            "Version": IMAGEX_API_VERSION,
            "ServiceId": credential.service_id,
            "NeedFallback": "true",
            "UploadNum": "1",
            "FileSize": str(file_size),
            "FileExtension": extension if extension.startswith(".") else f".{extension}",
        }
        signed = sign_request(
            "GET", credential.upload_host, "/", params, credential,
            region=self._region, service=self._service,
        )
        headers = signed.headers()
        if credential.session_token:
            headers["X-Security-Token"] = credential.session_token
        try:
            response = self._client().get(
                signed.url(credential.upload_host),
                headers=headers,
                timeout=get_timeout_config().signed_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise _upload_error(f"ApplyImageUpload failed: {exc}", exc) from exc
        if response.status_code >= 400:
            raise _status_error("ApplyImageUpload failed", response.status_code)
        try:
            body = response.json() or {}
        except ValueError as exc:
            raise UploadFailed("ApplyImageUpload returned non-JSON body", raw=exc) from exc

        result = body.get("Result") if isinstance(body, dict) else None
        address = result.get("UploadAddress") if isinstance(result, dict) else None
        if not isinstance(address, dict):
            raise UploadFailed(f"ApplyImageUpload failed: {truncate_for_log(json.dumps(body, ensure_ascii=False))}")
        store_info = _first(address.get("StoreInfos")) or {}
        object_host = _first(address.get("UploadHosts"))
        inner_node = _first((result.get("InnerUploadAddress") or {}).get("UploadNodes")) or {}
        session_key = address.get("SessionKey") or result.get("SessionKey") or inner_node.get("SessionKey") or ""
        if not store_info.get("StoreUri") or not store_info.get("Auth") or not object_host:
            raise UploadFailed(
                "ApplyImageUpload response missing fields: "
                f"store_uri={bool(store_info.get('StoreUri'))} auth={bool(store_info.get('Auth'))} "
                f"host={bool(object_host)}"
            )
        return StagedObject(
            store_uri=store_info["StoreUri"],
            auth_token=store_info["Auth"],
            object_host=object_host,
            session_key=session_key,
        )

    def transfer(self, staged: StagedObject, asset: MaterializedAsset) -> None:
        """Upload the raw bytes to the staged location."""
        try:
            response = self._client().put(
                f"https://{staged.object_host}/upload/v1/{staged.store_uri}",
                content=asset.data,
                headers={
                    "Authorization": staged.auth_token,
                    "Content-CRC32": crc32_hex(asset.data),
                    "Content-Type": asset.mime_type or "application/octet-stream",
                },
                timeout=get_timeout_config().transfer_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise _upload_error(f"binary transfer failed: {exc}", exc) from exc
        if response.status_code >= 300:
            raise _status_error("binary transfer failed", response.status_code)
        try:
            body = response.json() or {}
        except ValueError:
            body = {}
        code = body.get("code") if isinstance(body, dict) else None
        if not _is_success_code(code):
            raise UploadFailed(f"binary transfer failed: status={response.status_code}, code={code}")

    def commit(self, credential: UploadCredential, staged: StagedObject) -> None:
        """Confirm an uploaded image with the control plane."""
        params = {
            "Action": "CommitImageUpload",
            "Version": IMAGEX_API_VERSION,
            "ServiceId": credential.service_id,
        }
        body = json.dumps({"SessionKey": build_session_key(staged)}, separators=(",", ":"))
        signed = sign_request(
            "POST", credential.upload_host, "/", params, credential,
            payload_hash=sha256_hex(body), sign_content_sha256=True,
            region=self._region, service=self._service,
        )
        headers = signed.headers()
        headers["content-type"] = "application/json"
        try:
            response = self._client().post(
                signed.url(credential.upload_host),
                content=body.encode("utf-8"),
                headers=headers,
                timeout=get_timeout_config().signed_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise _upload_error(f"CommitImageUpload failed: {exc}", exc) from exc
        if response.status_code >= 300:
            raise _status_error("CommitImageUpload failed", response.status_code)
        try:
            data = response.json() or {}
        except ValueError:
            data = {}
        result = _first(((data.get("Result") or {}) if isinstance(data, dict) else {}).get("Results")) or {}
        uri_status = result.get("UriStatus")
        if not _is_success_code(uri_status):
            raise UploadFailed(f"CommitImageUpload failed: status={response.status_code}, uriStatus={uri_status}")

    # ---- internals ----
    def _stage(self, asset: MaterializedAsset, session_token: str, is_image: bool) -> AssetRef:
        credential = self._run_phase("credential", self.acquire_credential, session_token, is_image)
        staged = self._run_phase("apply", self.apply, credential, asset.size, asset.extension)
        self._run_phase("transfer", self.transfer, staged, asset)

        if is_image:
            try:
                self._run_phase("commit", self.commit, credential, staged)
            except GatewayError as exc:
                # the staged object is usually usable without a commit
                self._log_failure("upload.commit_failed", exc, store_uri=staged.store_uri)

        width = height = None
        if is_image:
            width, height = sniff_image_size(asset.data, asset.mime_type) or (1, 1)
        normalized_log_event(
            self._logger,
            "upload.complete",
            self._ctx,
            phase="finalize",
            emitted=True,
            store_uri=staged.store_uri,
            image=is_image,
            size=asset.size,
        )
        return AssetRef(
            storage_key=staged.store_uri,
            kind="image" if is_image else "file",
            name=asset.filename,
            extension=asset.extension,
            width=width,
            height=height,
        )

    def _run_phase(self, phase: str, fn: Callable[..., T], *args: Any) -> T:
        return retry(self._phase_retry)(fn)(*args)

    @staticmethod
    def _expect_image(
        source: str,
        asset: Optional[MaterializedAsset],
        is_image: Optional[bool],
        part_type: Optional[str],
    ) -> bool:
        if is_image is not None:
            return is_image
        if asset is not None:
            return asset.is_image
        if is_data_uri(source):
            return is_image_mime(source[5:].split(";", 1)[0])
        guessed = mime_for_name(filename_from_url(source))
        if guessed:
            return is_image_mime(guessed)
        return part_type != "file"

    def _client(self) -> httpx.Client:
        return get_httpx_client(None, "doubao.upload")

    def _log_attempt(self, *, attempt: int, max_attempts: int, delay: float | None, error: GatewayError | None) -> None:
        if error is None:
            return
        normalized_log_event(
            self._logger,
            "upload.attempt_failed",
            self._ctx,
            level=logging.WARNING,
            phase="upload",
            attempt=attempt + 1,
            error_code=error.code.value,
            kind=error.kind,
            emitted=False,
            max_attempts=max_attempts,
            delay=delay,
            error=truncate_for_log(error.message),
        )

    def _log_failure(self, event: str, exc: GatewayError, **fields: Any) -> None:
        normalized_log_event(
            self._logger,
            event,
            self._ctx,
            level=logging.WARNING,
            phase="finalize",
            error_code=exc.code.value,
            kind=exc.kind,
            emitted=False,
            error=truncate_for_log(exc.message),
            **fields,
        )


__all__ = [
    "AssetUploader",
    "build_session_key",
    "RESOURCE_TYPE_IMAGE",
    "RESOURCE_TYPE_FILE",
]
