"""
Tests for the Construct OS remote sync provider.
"""

import json

import httpx
import pytest

from constructos.core.config import SecurityConfig
from constructos.persistence.crypto import seal_snapshot
from constructos.persistence.errors import AuthenticationError, MalformedEnvelopeError, SyncError
from constructos.persistence.remote import RemoteSyncProvider

ENDPOINT = "http://sync.test/sync"


def provider_for(handler, passphrase="pass", token=None) -> RemoteSyncProvider:
    return RemoteSyncProvider(
        ENDPOINT,
        passphrase,
        timeout=5.0,
        token=token,
        transport=httpx.MockTransport(handler),
    )


class TestRemoteLoad:
    """Tests for fetching the remote snapshot."""

    @pytest.mark.asyncio
    async def test_empty_object(self):
        """Test an empty response means no remote data."""
        provider = provider_for(lambda request: httpx.Response(200, json={}))

        assert await provider.load_snapshot() is None

    @pytest.mark.asyncio
    async def test_empty_payload(self):
        """Test an empty payload string means no remote data."""
        provider = provider_for(lambda request: httpx.Response(200, json={"payload": ""}))

        assert await provider.load_snapshot() is None

    @pytest.mark.asyncio
    async def test_payload(self, snapshot):
        """Test a stored envelope is fetched and decrypted."""
        payload = await seal_snapshot(snapshot, "pass")
        provider = provider_for(lambda request: httpx.Response(200, json={"payload": payload}))

        assert await provider.load_snapshot() == snapshot

    @pytest.mark.asyncio
    async def test_uses_get(self):
        """Test the fetch is a GET to the endpoint."""
        seen = []

        def handler(request):
            seen.append((request.method, str(request.url)))
            return httpx.Response(200, json={})

        await provider_for(handler).load_snapshot()

        assert seen == [("GET", ENDPOINT)]

    @pytest.mark.asyncio
    async def test_wrong_passphrase(self, snapshot):
        """Test a payload sealed with another passphrase fails authentication."""
        payload = await seal_snapshot(snapshot, "other")
        provider = provider_for(lambda request: httpx.Response(200, json={"payload": payload}))

        with pytest.raises(AuthenticationError):
            await provider.load_snapshot()

    @pytest.mark.asyncio
    async def test_non_string_payload(self):
        """Test a payload that is not a string is malformed."""
        provider = provider_for(lambda request: httpx.Response(200, json={"payload": {"iv": "x"}}))

        with pytest.raises(MalformedEnvelopeError):
            await provider.load_snapshot()

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Test a non-2xx response raises SyncError with the status."""
        provider = provider_for(lambda request: httpx.Response(503))

        with pytest.raises(SyncError) as exc_info:
            await provider.load_snapshot()

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        """Test a non-JSON body raises SyncError."""
        provider = provider_for(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(SyncError):
            await provider.load_snapshot()

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test transport failures raise SyncError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SyncError):
            await provider_for(handler).load_snapshot()

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test timeouts raise SyncError."""

        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(SyncError, match="timed out"):
            await provider_for(handler).load_snapshot()


class TestRemoteSave:
    """Tests for uploading the snapshot."""

    @pytest.mark.asyncio
    async def test_posts_envelope(self, snapshot):
        """Test the upload is a POST of {"payload": envelope-json}."""
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        await provider_for(handler).save_snapshot(snapshot)

        assert captured["method"] == "POST"
        assert set(captured["body"]) == {"payload"}
        envelope = json.loads(captured["body"]["payload"])
        assert set(envelope) == {"iv", "salt", "cipher"}
        assert "Bolt" not in captured["body"]["payload"]

    @pytest.mark.asyncio
    async def test_bearer_token(self, snapshot):
        """Test the token is sent as a bearer authorization header."""
        headers = {}

        def handler(request):
            headers.update(request.headers)
            return httpx.Response(200)

        await provider_for(handler, token="s3cret").save_snapshot(snapshot)

        assert headers["authorization"] == "Bearer s3cret"

    @pytest.mark.asyncio
    async def test_no_token_no_header(self, snapshot):
        """Test no authorization header is sent without a token."""
        headers = {}

        def handler(request):
            headers.update(request.headers)
            return httpx.Response(200)

        await provider_for(handler).save_snapshot(snapshot)

        assert "authorization" not in headers

    @pytest.mark.asyncio
    async def test_rejected(self, snapshot):
        """Test a rejected upload raises SyncError."""
        provider = provider_for(lambda request: httpx.Response(401))

        with pytest.raises(SyncError) as exc_info:
            await provider.save_snapshot(snapshot)

        assert exc_info.value.status_code == 401


class TestFromConfig:
    """Tests for building providers from security settings."""

    def test_from_config(self):
        """Test endpoint, passphrase, timeout and token come from the config."""
        config = SecurityConfig(
            passphrase="p",
            cloud_enabled=True,
            cloud_endpoint="http://example.test/sync",
            cloud_token="t",
            sync_timeout=7,
        )

        provider = RemoteSyncProvider.from_config(config)

        assert provider.endpoint == "http://example.test/sync"
        assert provider.passphrase == "p"
        assert provider.timeout == 7
        assert provider.token == "t"


class TestAgainstReferenceServer:
    """Tests against the reference sync endpoint over ASGI."""

    @pytest.mark.asyncio
    async def test_push_then_pull(self, sync_app, snapshot):
        """Test a pushed snapshot is pulled back by another provider."""
        transport = httpx.ASGITransport(app=sync_app)
        pusher = RemoteSyncProvider("http://testserver/sync", "pass", transport=transport)
        puller = RemoteSyncProvider("http://testserver/sync", "pass", transport=transport)

        assert await puller.load_snapshot() is None
        await pusher.save_snapshot(snapshot)

        assert await puller.load_snapshot() == snapshot
