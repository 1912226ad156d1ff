"""
Tests for the fire-and-forget sound dispatcher.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from alerthook.config import SoundSettings
from alerthook.core.metrics import MetricsCollector
from alerthook.core.sound import SoundDispatcher
from alerthook.models.alert import AlertPayload


def make_process(returncode: int = 0, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(b"", stderr))
    process.wait = AsyncMock(return_value=-9)
    return process


async def drain(dispatcher: SoundDispatcher) -> None:
    await asyncio.gather(*list(dispatcher._tasks), return_exceptions=True)


FIRING = AlertPayload(status="firing")
RESOLVED = AlertPayload(status="resolved")


class TestSoundDispatcher:
    """Test when and how sounds are played."""

    @pytest.mark.asyncio
    async def test_firing_alert_plays_configured_sound(self) -> None:
        settings = SoundSettings(enabled=True, name="Ping", volume=0.5, directory="/sounds")
        metrics = MetricsCollector()
        dispatcher = SoundDispatcher(settings, metrics)

        with patch(
            "alerthook.core.sound.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=make_process()),
        ) as mock_exec:
            assert dispatcher.dispatch(FIRING) is True
            await drain(dispatcher)

        args = mock_exec.call_args.args
        assert args == ("afplay", "-v", "0.5", "/sounds/Ping.aiff")
        assert metrics.registry.get_sample_value(
            "alerthook_sound_dispatch_total", {"outcome": "played"}
        ) == 1.0
        assert dispatcher.in_flight == 0

    @pytest.mark.asyncio
    async def test_resolved_alert_is_silent(self) -> None:
        dispatcher = SoundDispatcher(SoundSettings(enabled=True))
        with patch("alerthook.core.sound.asyncio.create_subprocess_exec") as mock_exec:
            assert dispatcher.dispatch(RESOLVED) is False
        mock_exec.assert_not_called()

    @pytest.mark.asyncio
    async def test_disabled_dispatcher_is_silent(self) -> None:
        dispatcher = SoundDispatcher(SoundSettings(enabled=False))
        assert dispatcher.dispatch(FIRING) is False
        assert dispatcher.in_flight == 0

    @pytest.mark.asyncio
    async def test_missing_player_is_logged_not_raised(self) -> None:
        metrics = MetricsCollector()
        dispatcher = SoundDispatcher(SoundSettings(enabled=True), metrics)

        with patch(
            "alerthook.core.sound.asyncio.create_subprocess_exec",
            new=AsyncMock(side_effect=FileNotFoundError("afplay")),
        ), patch("alerthook.core.sound.logger") as mock_logger:
            dispatcher.dispatch(FIRING)
            await drain(dispatcher)

        mock_logger.error.assert_called_once()
        assert metrics.registry.get_sample_value(
            "alerthook_sound_dispatch_total", {"outcome": "error"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_logged(self) -> None:
        metrics = MetricsCollector()
        dispatcher = SoundDispatcher(SoundSettings(enabled=True), metrics)

        with patch(
            "alerthook.core.sound.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=make_process(returncode=1, stderr=b"no such file")),
        ), patch("alerthook.core.sound.logger") as mock_logger:
            dispatcher.dispatch(FIRING)
            await drain(dispatcher)

        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.kwargs["stderr"] == "no such file"

    @pytest.mark.asyncio
    async def test_dispatch_does_not_wait_for_player(self) -> None:
        release = asyncio.Event()

        async def slow_communicate():
            await release.wait()
            return b"", b""

        process = make_process()
        process.communicate = slow_communicate
        dispatcher = SoundDispatcher(SoundSettings(enabled=True, max_concurrent=1))

        with patch(
            "alerthook.core.sound.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            assert dispatcher.dispatch(FIRING) is True
            assert dispatcher.in_flight == 1

            # Bounded: a second play is skipped while the first runs
            assert dispatcher.dispatch(FIRING) is False

            release.set()
            await drain(dispatcher)

        assert dispatcher.in_flight == 0

    @pytest.mark.asyncio
    async def test_aclose_cancels_running_plays(self) -> None:
        never = asyncio.Event()

        async def hang():
            await never.wait()
            return b"", b""

        process = make_process()
        process.communicate = hang
        dispatcher = SoundDispatcher(SoundSettings(enabled=True))

        with patch(
            "alerthook.core.sound.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            dispatcher.dispatch(FIRING)
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            await dispatcher.aclose()

        assert dispatcher.in_flight == 0
        process.kill.assert_called_once()
        process.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aclose_tolerates_player_already_gone(self) -> None:
        never = asyncio.Event()

        async def hang():
            await never.wait()
            return b"", b""

        process = make_process()
        process.communicate = hang
        process.kill.side_effect = ProcessLookupError()
        dispatcher = SoundDispatcher(SoundSettings(enabled=True))

        with patch(
            "alerthook.core.sound.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            dispatcher.dispatch(FIRING)
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            await dispatcher.aclose()

        assert dispatcher.in_flight == 0
        process.wait.assert_awaited_once()
