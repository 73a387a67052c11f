from typing import Any, Dict
import requests
from pydantic import ValidationError
from rankkeeper.configuration import CloudSettings
from rankkeeper.errors import RemotePayloadError, RemoteSyncError
from rankkeeper.logger import create_logger
from rankkeeper.schema import (
    IncrementalSyncPayload,
    PushResult,
    RemoteSnapshot,
    SyncPayload,
)
from rankkeeper.constants import (
    APPLICATION_NAME,
    APPLICATION_VERSION,
    CLOUD_ENDPOINT_PUSH,
    CLOUD_ENDPOINT_PUSH_INCREMENTAL,
    CLOUD_ENDPOINT_PULL,
    PAYLOAD_FIELD_SESSION_ID,
)

USER_AGENT = f"{APPLICATION_NAME}/{APPLICATION_VERSION}"

logger = create_logger()


class CloudClient:
    """Talks to the remote ratings endpoints"""

    def __init__(self, settings: CloudSettings):
        self.settings = settings

    def build_url(self, endpoint: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{endpoint}"

    def build_headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
            headers["apikey"] = self.settings.api_key
        return headers

    def push(self, payload: SyncPayload) -> PushResult:
        """Upload the full local state. Raises RemoteSyncError if the remote rejects it."""
        return self._push(CLOUD_ENDPOINT_PUSH, payload.model_dump(by_alias=True))

    def push_incremental(self, payload: IncrementalSyncPayload) -> PushResult:
        return self._push(
            CLOUD_ENDPOINT_PUSH_INCREMENTAL, payload.model_dump(by_alias=True)
        )

    def pull(self, session_id: str) -> RemoteSnapshot:
        """
        Download the remote state for a session.
        Raises RemoteSyncError on transport failure, RemotePayloadError on an unusable body.
        """
        data = self._post(CLOUD_ENDPOINT_PULL, {PAYLOAD_FIELD_SESSION_ID: session_id})
        if not isinstance(data, dict):
            raise RemotePayloadError(f"Unexpected pull response type: {type(data).__name__}")
        try:
            snapshot = RemoteSnapshot.model_validate(data)
        except ValidationError as error:
            raise RemotePayloadError(f"Malformed pull response: {error}") from error
        if not snapshot.success:
            raise RemotePayloadError(snapshot.error or "Remote reported failure")
        return snapshot

    def _push(self, endpoint: str, body: Dict[str, Any]) -> PushResult:
        data = self._post(endpoint, body)
        try:
            result = PushResult.model_validate(data)
        except ValidationError as error:
            raise RemoteSyncError(f"Malformed push response: {error}") from error
        if not result.success:
            raise RemoteSyncError(result.error or "Remote rejected the push")
        return result

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        url = self.build_url(endpoint)
        logger.debug(f"POST {url}")
        try:
            response = requests.post(
                url,
                json=body,
                headers=self.build_headers(),
                timeout=self.settings.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as error:
            raise RemoteSyncError(f"{endpoint} request failed: {error}") from error
        try:
            return response.json()
        except ValueError as error:
            raise RemotePayloadError(f"{endpoint} returned invalid JSON: {error}") from error
