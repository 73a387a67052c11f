import pytest
import requests
from unittest.mock import patch, MagicMock
from rankkeeper.configuration import CloudSettings
from rankkeeper.errors import RemotePayloadError, RemoteSyncError
from rankkeeper.remote import CloudClient
from rankkeeper.schema import IncrementalSyncPayload, Rating, SyncPayload

# --- Fixtures ---


@pytest.fixture
def cloud_client():
    return CloudClient(
        CloudSettings(enabled=True, base_url="https://example.test/functions/", api_key="key")
    )


def mock_response(json_data=None, status_error=None, json_error=None):
    response = MagicMock()
    if status_error:
        response.raise_for_status.side_effect = status_error
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data
    return response


# --- Test Cases ---


def test_push_posts_full_payload(cloud_client):
    payload = SyncPayload(
        session_id="session-1",
        ratings={"25": Rating(mu=30.0, sigma=5.0, last_updated=10)},
        total_battles=2,
        last_updated=1234,
    )
    with patch("rankkeeper.remote.requests.post") as mock_post:
        mock_post.return_value = mock_response({"success": True})

        result = cloud_client.push(payload)

    assert result.success is True
    args, kwargs = mock_post.call_args
    assert args[0] == "https://example.test/functions/sync-ratings"
    assert kwargs["json"]["sessionId"] == "session-1"
    assert kwargs["json"]["ratings"]["25"]["battleCount"] == 0
    assert kwargs["headers"]["Authorization"] == "Bearer key"
    assert kwargs["timeout"] == cloud_client.settings.timeout


def test_push_incremental_uses_its_endpoint(cloud_client):
    payload = IncrementalSyncPayload(session_id="s", changed_ratings={"1": Rating()})
    with patch("rankkeeper.remote.requests.post") as mock_post:
        mock_post.return_value = mock_response({"success": True})
        cloud_client.push_incremental(payload)

    assert mock_post.call_args[0][0].endswith("/sync-ratings-incremental")
    assert "changedRatings" in mock_post.call_args[1]["json"]


def test_push_rejected_raises(cloud_client):
    with patch("rankkeeper.remote.requests.post") as mock_post:
        mock_post.return_value = mock_response({"success": False, "error": "quota"})
        with pytest.raises(RemoteSyncError, match="quota"):
            cloud_client.push(SyncPayload(session_id="s"))


def test_transport_failure_raises_sync_error(cloud_client):
    with patch("rankkeeper.remote.requests.post") as mock_post:
        mock_post.side_effect = requests.ConnectionError("offline")
        with pytest.raises(RemoteSyncError):
            cloud_client.pull("s")


def test_http_error_raises_sync_error(cloud_client):
    with patch("rankkeeper.remote.requests.post") as mock_post:
        mock_post.return_value = mock_response(
            status_error=requests.HTTPError("500 Server Error")
        )
        with pytest.raises(RemoteSyncError):
            cloud_client.push(SyncPayload(session_id="s"))


def test_pull_parses_snapshot(cloud_client):
    body = {
        "success": True,
        "ratings": {"7": {"mu": 28.0, "sigma": 3.0, "battleCount": 5, "lastUpdated": 99}},
        "totalBattles": 5,
        "totalBattlesLastUpdated": "2024-01-01T00:00:00Z",
        "pendingBattles": ["8"],
        "refinementQueue": [],
    }
    with patch("rankkeeper.remote.requests.post") as mock_post:
        mock_post.return_value = mock_response(body)
        snapshot = cloud_client.pull("s")

    assert mock_post.call_args[1]["json"] == {"sessionId": "s"}
    assert snapshot.ratings["7"].battle_count == 5
    assert snapshot.total_battles_last_updated == 1704067200000
    assert snapshot.pending_battles == ["8"]


@pytest.mark.parametrize(
    "body",
    [
        ["not", "a", "dict"],
        {"success": False, "error": "no record"},
        {"success": True, "ratings": {"7": {"mu": 1.0, "sigma": -2.0}}},
    ],
)
def test_pull_unusable_payload(cloud_client, body):
    with patch("rankkeeper.remote.requests.post") as mock_post:
        mock_post.return_value = mock_response(body)
        with pytest.raises(RemotePayloadError):
            cloud_client.pull("s")


def test_pull_invalid_json(cloud_client):
    with patch("rankkeeper.remote.requests.post") as mock_post:
        mock_post.return_value = mock_response(json_error=ValueError("bad json"))
        with pytest.raises(RemotePayloadError):
            cloud_client.pull("s")


def test_headers_without_api_key():
    headers = CloudClient(CloudSettings(base_url="https://example.test")).build_headers()
    assert "Authorization" not in headers
    assert headers["Content-Type"] == "application/json"
