from unittest.mock import MagicMock

import pytest

try:
    from player.engine import MpvMediaElement
except (ImportError, OSError):
    pytest.skip("libmpv is not available", allow_module_level=True)

from player.media import MediaPlaybackError


@pytest.fixture
def element():
    player = MagicMock()
    player.time_pos = 0
    player.duration = 180
    element = MpvMediaElement(player=player)
    # Run event handlers inline
    element._dispatch = lambda handler, *args: handler(*args)
    element.events = []
    element.on_ended = lambda: element.events.append("ended")
    element.on_error = lambda message: element.events.append(("error", message))
    element.on_paused = lambda: element.events.append("paused")
    return element


def _start(element, url="http://m/1", duration=180):
    """Load and play, then report what mpv says once the file is open."""
    element.load(url)
    element.play()
    element._handle_idle('idle-active', False)
    element._handle_duration('duration', duration)


def _unload(element):
    element.player.time_pos = None
    element.player.duration = None


def test_observes_playback_properties(element):
    observed = [call.args[0] for call in element.player.observe_property.call_args_list]
    assert observed == ['time-pos', 'duration', 'eof-reached', 'idle-active', 'pause']


def test_load_then_play(element):
    element.load("http://m/1")
    element.player.play.assert_called_once_with("http://m/1")
    element.play()
    assert element.player.pause is False


def test_play_without_source(element):
    with pytest.raises(MediaPlaybackError):
        element.play()


def test_eof_emits_ended_once(element):
    _start(element)
    element._handle_eof('eof-reached', True)
    element._handle_idle('idle-active', True)
    assert element.events == ["ended"]


def test_idle_at_end_of_file_is_a_normal_end(element):
    _start(element)
    element._handle_time_update('time-pos', 179.6)
    # mpv unloads the file before reporting idle
    _unload(element)
    element._handle_time_update('time-pos', None)
    element._handle_idle('idle-active', True)
    assert element.events == ["ended"]


def test_idle_before_end_is_an_error(element):
    _start(element)
    element._handle_time_update('time-pos', 10)
    _unload(element)
    element._handle_idle('idle-active', True)
    assert element.events == [("error", "Playback stopped unexpectedly")]


def test_source_that_never_opens_is_an_error(element):
    element.load("http://m/broken")
    element.play()
    element._handle_idle('idle-active', False)
    element._handle_idle('idle-active', True)
    assert element.events == [("error", "Source could not be played")]


def test_events_from_previous_source_are_ignored(element):
    _start(element, "http://m/1")
    element.stop()
    element.load("http://m/2")
    element.play()
    # Delivered late by mpv for the previous file
    element._handle_eof('eof-reached', True)
    element._handle_idle('idle-active', True)
    assert element.events == []

    element._handle_idle('idle-active', False)
    element._handle_duration('duration', 200)
    element._handle_time_update('time-pos', 199.5)
    element._handle_idle('idle-active', True)
    assert element.events == ["ended"]


def test_play_after_end_reloads_source(element):
    _start(element)
    element._handle_eof('eof-reached', True)
    element.play()
    assert [call.args for call in element.player.play.call_args_list] == [("http://m/1",), ("http://m/1",)]
    assert element.player.pause is False

    before = list(element.events)
    element._handle_idle('idle-active', False)
    element._handle_duration('duration', 180)
    element._handle_time_update('time-pos', 179.5)
    element._handle_idle('idle-active', True)
    assert element.events == before + ["ended"]


def test_play_after_error_reloads_source(element):
    _start(element)
    element._handle_time_update('time-pos', 10)
    element._handle_idle('idle-active', True)
    assert element.events == [("error", "Playback stopped unexpectedly")]

    element.play()
    assert element.player.play.call_count == 2


def test_pause_without_request_is_reported(element):
    _start(element)
    element._handle_pause_change('pause', True)
    assert element.events == ["paused"]

    element.pause()
    element._handle_pause_change('pause', True)
    assert element.events == ["paused"]


def test_stop_clears_source(element):
    element.load("http://m/1")
    element.stop()
    assert element.source is None
    element.player.stop.assert_called_once()
    element._handle_idle('idle-active', True)
    assert element.events == []
