"""
Step Playback

Drives an AlgorithmRun one step at a time or continuously with a delay
between steps, as an interactive front end would. The controller owns no
algorithm state; pausing simply stops pulling steps from the run.

Example:
    >>> controller = PlaybackController(delay=0.0)
    >>> controller.start(run)
    >>> controller.step()
    >>> controller.play(on_step=print)
"""

import time
from enum import Enum
from typing import Callable, Optional

from .config import runtime_config
from .data_models import AlgorithmStep
from .algorithms.runner import AlgorithmRun
from .logging import get_logger

logger = get_logger("playback")

StepCallback = Callable[[AlgorithmStep], None]


class PlaybackState(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


class PlaybackController:
    """
    Stepwise or timed playback of an algorithm run.

    Attributes:
        delay: Base delay between steps in seconds
        speed: Playback speed multiplier; the effective delay is delay / speed
        state: Current playback state
        current_step: Most recently produced step
    """

    def __init__(
        self,
        delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.delay = runtime_config().playback_delay if delay is None else delay
        self.speed = 1.0
        self._sleep = sleep
        self._run: Optional[AlgorithmRun] = None
        self.state = PlaybackState.IDLE
        self.current_step: Optional[AlgorithmStep] = None

    @property
    def run(self) -> Optional[AlgorithmRun]:
        return self._run

    def start(self, run: AlgorithmRun) -> None:
        """Attach a new run, abandoning any previous one."""
        self.reset()
        self._run = run
        self.state = PlaybackState.PAUSED

    def step(self) -> Optional[AlgorithmStep]:
        """
        Advance exactly one step.

        Returns:
            The new step, or None if the run is over or no run is attached
        """
        if self._run is None or self.state == PlaybackState.FINISHED:
            return None
        step = self._run.step()
        if step is None:
            self.state = PlaybackState.FINISHED
            return None
        self.current_step = step
        return step

    def play(
        self,
        on_step: Optional[StepCallback] = None,
        max_steps: Optional[int] = None
    ) -> int:
        """
        Advance continuously until the run ends, pause() is called or
        `max_steps` steps have been produced.

        Args:
            on_step: Called with every produced step; may call pause()
            max_steps: Optional cap on steps produced by this call

        Returns:
            Number of steps produced
        """
        if self._run is None or self.state == PlaybackState.FINISHED:
            return 0
        self.state = PlaybackState.PLAYING
        produced = 0
        while self.state == PlaybackState.PLAYING:
            if max_steps is not None and produced >= max_steps:
                self.state = PlaybackState.PAUSED
                break
            step = self.step()
            if step is None:
                break
            produced += 1
            if on_step is not None:
                on_step(step)
            if self.state == PlaybackState.PLAYING and self.delay > 0:
                self._sleep(self.delay / self.speed)
        logger.debug("Playback produced %d steps, state %s", produced, self.state.value)
        return produced

    def pause(self) -> None:
        if self.state == PlaybackState.PLAYING:
            self.state = PlaybackState.PAUSED

    def reset(self) -> None:
        """Detach and close the current run."""
        if self._run is not None and not self._run.finished:
            self._run.close()
        self._run = None
        self.current_step = None
        self.state = PlaybackState.IDLE

    def set_speed(self, speed: float) -> None:
        if speed <= 0:
            raise ValueError(f"Playback speed must be positive, got {speed}")
        self.speed = speed
