"""Tests for SessionManager."""

from __future__ import annotations

import asyncio
import os

import pytest

from sealedquery.security.obfuscation import TransportObfuscator
from sealedquery.services.session_manager import SessionManager, SessionState
from sealedquery.shared.constants import APIEndpoints, APIHeaders
from sealedquery.shared.errors import (
    DecryptError,
    DecryptFailure,
    HandshakeFailure,
    SessionError,
)


async def _yield(times: int = 5) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


class TestEnsureReady:
    """Establishing the session."""

    def test_initial_state(self, session):
        assert session.state is SessionState.UNESTABLISHED
        assert not session.is_ready()
        assert session.auth_headers() == {}
        assert session.current_token() is None

    @pytest.mark.asyncio
    async def test_ensure_ready_establishes_session(self, session, service):
        await session.ensure_ready()

        assert session.state is SessionState.READY
        assert session.is_ready()
        assert session.handshake_count == 1
        assert session.expiry is not None
        assert service.count(APIEndpoints.PUBLIC_KEY) == 1
        assert service.count(APIEndpoints.SESSION_INIT) == 1

    @pytest.mark.asyncio
    async def test_ready_session_is_reused(self, session, service):
        await session.ensure_ready()
        await session.ensure_ready()

        assert session.handshake_count == 1
        assert service.count(APIEndpoints.SESSION_INIT) == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_handshake(self, session, service):
        gate = asyncio.Event()
        service.gates[APIEndpoints.PUBLIC_KEY] = gate

        waiters = [asyncio.create_task(session.ensure_ready()) for _ in range(3)]
        await _yield()
        assert session.state is SessionState.ESTABLISHING

        gate.set()
        await asyncio.gather(*waiters)

        assert session.handshake_count == 1
        assert service.count(APIEndpoints.PUBLIC_KEY) == 1
        assert session.state is SessionState.READY

    @pytest.mark.asyncio
    async def test_expired_session_is_reestablished(self, session, service):
        service.expiry = "2000-01-01T00:00:00Z"
        await session.ensure_ready()
        assert session.state is SessionState.READY
        assert not session.is_ready()

        service.expiry = "2099-01-01T00:00:00Z"
        await session.ensure_ready()

        assert session.handshake_count == 2
        assert session.is_ready()


class TestHandshakeFailure:
    """Failed handshakes surface as SessionError."""

    @pytest.mark.asyncio
    async def test_failure_sets_failed_state(self, session, service):
        service.override(APIEndpoints.PUBLIC_KEY, 503)

        with pytest.raises(SessionError) as exc_info:
            await session.ensure_ready()

        assert exc_info.value.reason == HandshakeFailure.PUBLIC_KEY_UNAVAILABLE
        assert session.state is SessionState.FAILED
        assert session.auth_headers() == {}

    @pytest.mark.asyncio
    async def test_token_exchange_failure_reason(self, session, service):
        service.override(APIEndpoints.SESSION_INIT, 500)

        with pytest.raises(SessionError) as exc_info:
            await session.ensure_ready()

        assert exc_info.value.reason == HandshakeFailure.TOKEN_EXCHANGE_FAILED

    @pytest.mark.asyncio
    async def test_concurrent_callers_all_see_the_failure(self, session, service):
        gate = asyncio.Event()
        service.gates[APIEndpoints.PUBLIC_KEY] = gate
        service.override(APIEndpoints.PUBLIC_KEY, 500)

        waiters = [asyncio.create_task(session.ensure_ready()) for _ in range(2)]
        await _yield()
        gate.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert all(isinstance(r, SessionError) for r in results)
        assert session.handshake_count == 1

    @pytest.mark.asyncio
    async def test_failed_session_can_recover(self, session, service):
        service.override(APIEndpoints.PUBLIC_KEY, 500)
        with pytest.raises(SessionError):
            await session.ensure_ready()

        await session.ensure_ready()

        assert session.state is SessionState.READY
        assert session.handshake_count == 2


class TestSessionMaterial:
    """Token, headers, decryption and discard."""

    @pytest.mark.asyncio
    async def test_auth_headers_carry_obfuscated_token_and_salt(self, session):
        await session.ensure_ready()

        headers = session.auth_headers()

        assert headers[APIHeaders.OBF_SALT] == session.device_salt
        token = TransportObfuscator(session.device_salt).deobfuscate(
            headers[APIHeaders.SESSION_TOKEN],
        )
        assert token == "token-1"

    @pytest.mark.asyncio
    async def test_force_reestablish_replaces_token(self, session):
        await session.ensure_ready()
        await session.force_reestablish()

        token = TransportObfuscator(session.device_salt).deobfuscate(session.current_token())
        assert token == "token-2"
        assert session.handshake_count == 2

    @pytest.mark.asyncio
    async def test_force_reestablish_joins_pending_handshake(self, session, service):
        gate = asyncio.Event()
        service.gates[APIEndpoints.PUBLIC_KEY] = gate

        first = asyncio.create_task(session.ensure_ready())
        await _yield()
        second = asyncio.create_task(session.force_reestablish())
        await _yield()
        gate.set()
        await asyncio.gather(first, second)

        assert session.handshake_count == 1

    @pytest.mark.asyncio
    async def test_decrypt_uses_session_key(self, session, service):
        await session.ensure_ready()
        envelope = service.envelope({"success": True, "data": []}).payload["data"]

        assert session.decrypt(envelope) == {"success": True, "data": []}

    @pytest.mark.asyncio
    async def test_decrypt_without_session_is_no_key(self, session, service):
        envelope = service.envelope({"a": 1}, key=os.urandom(32)).payload["data"]

        with pytest.raises(DecryptError) as exc_info:
            session.decrypt(envelope)
        assert exc_info.value.reason == DecryptFailure.NO_KEY

    @pytest.mark.asyncio
    async def test_discard_zeroes_key_and_resets_state(self, session):
        await session.ensure_ready()
        key = session._key
        assert any(key)

        session.discard()

        assert not any(key)
        assert session.state is SessionState.UNESTABLISHED
        assert session.current_token() is None
        assert session.expiry is None

    @pytest.mark.asyncio
    async def test_discard_cancels_pending_handshake(self, session, service):
        gate = asyncio.Event()
        service.gates[APIEndpoints.PUBLIC_KEY] = gate

        waiter = asyncio.create_task(session.ensure_ready())
        await _yield()
        session.discard()

        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert session.state is SessionState.UNESTABLISHED

        del service.gates[APIEndpoints.PUBLIC_KEY]
        await session.ensure_ready()
        assert session.state is SessionState.READY


class TestDeviceSalt:
    """Salt selection."""

    def test_salt_is_computed_when_not_given(self, service, mocker):
        mocker.patch(
            "sealedquery.services.session_manager.compute_device_salt",
            return_value="computed",
        )
        assert SessionManager(service).device_salt == "computed"
