"""Round clock arithmetic.

The round timer is never stored as a live countdown. A lobby keeps the start
of the current running segment (``timer_start_time``) and the milliseconds
accumulated by earlier segments (``timer_accumulated``); remaining time is
recomputed from those on every read. All values are integer milliseconds.
"""

from .state import Lobby


MS_PER_MINUTE = 60_000


def total_duration_ms(timer_minutes: int) -> int:
    return int(timer_minutes) * MS_PER_MINUTE


def running_segment_ms(lobby: Lobby, now_ms: int, offset_ms: int = 0) -> int:
    """Length of the current running segment; 0 while paused or stopped.

    A caller clock running behind the store can make the segment negative,
    which is clamped so elapsed time never goes backwards.
    """
    if lobby.is_paused or lobby.timer_start_time is None:
        return 0
    return max(0, (now_ms + offset_ms) - lobby.timer_start_time)


def elapsed_ms(lobby: Lobby, now_ms: int, offset_ms: int = 0) -> int:
    return (lobby.timer_accumulated or 0) + running_segment_ms(lobby, now_ms, offset_ms)


def remaining_ms(lobby: Lobby, now_ms: int, offset_ms: int = 0) -> int:
    return max(0, total_duration_ms(lobby.settings.timer_minutes) - elapsed_ms(lobby, now_ms, offset_ms))


def is_time_up(lobby: Lobby, now_ms: int, offset_ms: int = 0) -> bool:
    return remaining_ms(lobby, now_ms, offset_ms) == 0


def start(lobby: Lobby, now_ms: int) -> None:
    lobby.timer_start_time = now_ms
    lobby.timer_accumulated = 0
    lobby.is_paused = False


def pause(lobby: Lobby, now_ms: int) -> None:
    """Fold the running segment into the accumulated total and stop the clock."""
    if lobby.is_paused:
        return
    lobby.timer_accumulated = elapsed_ms(lobby, now_ms)
    lobby.timer_start_time = None
    lobby.is_paused = True


def resume(lobby: Lobby, now_ms: int) -> None:
    if not lobby.is_paused:
        return
    lobby.timer_start_time = now_ms
    lobby.is_paused = False


def toggle(lobby: Lobby, now_ms: int) -> None:
    if lobby.is_paused:
        resume(lobby, now_ms)
    else:
        pause(lobby, now_ms)
