"""
REST Upload Gateway
Posts the package archive to the CRM package endpoint as a multipart upload.
"""

from typing import Optional

import httpx
from loguru import logger

from connector_upgrader.core.constants import UPLOAD_FIELD_NAME
from connector_upgrader.core.enums import UploadStatus
from connector_upgrader.core.models import UploadRequest, UploadResult
from connector_upgrader.data_access.interfaces import UploadGateway


class RestUploadGateway(UploadGateway):
    """
    Upload gateway backed by the CRM's package REST endpoint.

    The endpoint answers with ``{"status": "staged", "file_install": "<id>"}``
    once the archive is accepted.
    """

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.Client(timeout=timeout, headers=headers)
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def upload(self, request: UploadRequest) -> UploadResult:
        logger.info(f"Posting {request.name} ({request.size} bytes) to {self.url}")
        try:
            with open(request.temp_path, "rb") as fh:
                response = self._client.post(
                    self.url,
                    files={UPLOAD_FIELD_NAME: (request.name, fh, request.content_type)},
                )
            response.raise_for_status()
            payload = response.json()

        except httpx.ConnectError:
            logger.error(f"Connection refused by package endpoint at {self.url}")
            return UploadResult(
                status=UploadStatus.ERROR,
                message=f"Cannot connect to package endpoint {self.url}.",
            )
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Package endpoint returned error {e.response.status_code}: {e.response.text}"
            )
            status = (
                UploadStatus.REJECTED
                if 400 <= e.response.status_code < 500
                else UploadStatus.ERROR
            )
            return UploadResult(
                status=status,
                message=f"Package endpoint error {e.response.status_code}: {e.response.text}",
            )
        except httpx.HTTPError as e:
            logger.error(f"Unexpected error during package upload: {e}")
            return UploadResult(status=UploadStatus.ERROR, message=str(e))
        except (OSError, ValueError) as e:
            return UploadResult(status=UploadStatus.ERROR, message=str(e))

        if not isinstance(payload, dict):
            return UploadResult(
                status=UploadStatus.ERROR, message="Unexpected package endpoint response"
            )

        try:
            status = UploadStatus(payload.get("status"))
        except ValueError:
            status = UploadStatus.ERROR
        return UploadResult(
            status=status,
            staged_record_id=payload.get("file_install") or None,
            message=str(payload.get("message", "")),
        )
