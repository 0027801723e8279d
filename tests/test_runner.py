"""Tests for Runner."""

import asyncio

import pytest

from cuesync import Runner, SyncRegistry

from conftest import FAST, AsyncStubClip, InfiniteClip, StubClip, request


# --- tick ---


class TestTick:
    def test_tick_output(self) -> None:
        outputs: list = []
        runner = Runner(ctx=None, output_fn=outputs.append)
        result = asyncio.run(runner.tick(StubClip(value=3.0, clip_duration=5.0), 2.0))
        assert result == {"ch": 6.0}
        assert outputs == [{"ch": 6.0}]

    def test_tick_apply_fn(self) -> None:
        runner = Runner(ctx=None, apply_fn=lambda d: sum(d.values()))
        assert asyncio.run(runner.tick(StubClip(value=1.0, clip_duration=5.0), 3.0)) == 3.0

    def test_tick_async_clip(self) -> None:
        runner = Runner(ctx=None)
        assert asyncio.run(runner.tick(AsyncStubClip(value=2.0, clip_duration=5.0), 1.5)) == {"ch": 3.0}

    def test_ctx_propagation(self) -> None:
        class CtxClip:
            @property
            def duration(self) -> float:
                return 1.0

            def render(self, t: float, ctx: str) -> dict[str, str]:
                return {"ctx_val": ctx}

        runner = Runner(ctx="hello")
        assert asyncio.run(runner.tick(CtxClip(), 0.0)) == {"ctx_val": "hello"}

    def test_invalid_fps(self) -> None:
        with pytest.raises(ValueError):
            Runner(ctx=None, fps=0)


# --- play + wait ---


class TestPlayWait:
    def test_finite_clip_completes_on_final_frame(self) -> None:
        async def scenario():
            outputs: list = []
            clip = StubClip(value=3.0, clip_duration=0.05)
            runner = Runner(ctx=None, output_fn=outputs.append, fps=100.0)
            runner.play(clip)
            assert runner.state == "playing"
            await runner.wait()
            return outputs, runner, clip

        outputs, runner, clip = asyncio.run(scenario())
        assert len(outputs) >= 1
        assert outputs[-1] == clip.render(clip.duration, None)
        assert runner.state == "stopped"
        assert runner.elapsed == pytest.approx(0.05)

    def test_zero_duration(self) -> None:
        async def scenario():
            outputs: list = []
            runner = Runner(ctx=None, output_fn=outputs.append)
            runner.play(StubClip(value=1.0, clip_duration=0.0))
            await runner.wait()
            return outputs

        assert asyncio.run(scenario()) == [{"ch": 0.0}]

    def test_stop_halts_infinite_clip(self) -> None:
        async def scenario():
            runner = Runner(ctx=None, fps=100.0)
            runner.play(InfiniteClip(value=1.0))
            await asyncio.sleep(0.03)
            runner.stop()
            await asyncio.wait_for(runner.wait(), 1.0)
            return runner

        assert asyncio.run(scenario()).state == "stopped"

    def test_stop_safe_when_idle(self) -> None:
        Runner(ctx=None).stop()

    def test_render_errors_do_not_stop_playback(self, caplog) -> None:
        class Flaky:
            def __init__(self):
                self.calls = 0

            @property
            def duration(self) -> float:
                return 0.03

            def render(self, t, ctx):
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("first frame")
                return {"ch": t}

        async def scenario():
            flaky = Flaky()
            runner = Runner(ctx=None, fps=100.0)
            runner.play(flaky)
            await asyncio.wait_for(runner.wait(), 1.0)
            return flaky

        assert asyncio.run(scenario()).calls >= 2
        assert "Error rendering frame" in caplog.text


# --- pause / resume ---


class TestPauseResume:
    def test_pause_stops_output_and_resume_continues(self) -> None:
        async def scenario():
            outputs: list = []
            runner = Runner(ctx=None, output_fn=outputs.append, fps=100.0)
            runner.play(InfiniteClip(value=1.0))
            await asyncio.sleep(0.03)
            runner.pause()
            assert runner.state == "paused"
            count_at_pause = len(outputs)
            await asyncio.sleep(0.03)
            paused_count = len(outputs)
            runner.resume()
            await asyncio.sleep(0.03)
            runner.stop()
            return count_at_pause, paused_count, len(outputs)

        at_pause, while_paused, after_resume = asyncio.run(scenario())
        assert while_paused == at_pause
        assert after_resume > at_pause

    def test_wait_blocks_while_paused(self) -> None:
        async def scenario():
            runner = Runner(ctx=None, fps=100.0)
            runner.play(InfiniteClip(value=1.0))
            await asyncio.sleep(0.02)
            runner.pause()
            with pytest.raises(TimeoutError):
                await asyncio.wait_for(runner.wait(), 0.05)
            runner.stop()
            await asyncio.wait_for(runner.wait(), 1.0)

        asyncio.run(scenario())

    def test_pause_when_idle_is_noop(self) -> None:
        runner = Runner(ctx=None)
        runner.pause()
        assert runner.state == "stopped"


# --- registry playback ---


class TestRegistryPlayback:
    def test_master_plays_when_ready(self) -> None:
        async def scenario():
            outputs: list = []
            runner = Runner(ctx=None, output_fn=outputs.append, fps=100.0)
            reg = SyncRegistry(config=FAST, player=runner)
            reg.register_segment(request("a", duration=0.02, labels={"x": 0.01}))
            reg.register_segment(request("b", duration=0.02, depends_on=["a.x"]))
            await reg.wait_ready()
            assert runner.clip is reg.master
            await asyncio.wait_for(runner.wait(), 1.0)
            return runner, outputs

        runner, outputs = asyncio.run(scenario())
        assert runner.state == "stopped"
        assert runner.elapsed == pytest.approx(0.03)
        assert len(outputs) >= 1
