"""Tests for the capture workflow."""

import pytest

from cv60_mcp.errors import InvalidFormatError
from cv60_mcp.models.settings import PictureOrientation
from cv60_mcp.protocol import commands
from cv60_mcp.workflows import iter_live_view_frames, read_picture, take_picture_and_get

from test_parser import live_view_reply, picture_reply

THUMBNAIL_READY = bytes([0, 0, 0, 1, 0, 0, 0, 0, 0])


def script_capture(transport, thumbnail_polls=1):
    """Queue replies for clear, take, polls and a two-part picture."""
    transport.reply(b"\x00")                      # clear picture buffer
    transport.reply(b"\x00")                      # take picture
    transport.reply(b"\x01")                      # try again
    for i in range(thumbnail_polls):
        transport.reply(THUMBNAIL_READY)
        transport.reply(picture_reply(b"thumb%d" % i))
    transport.reply(b"\x03")                      # captured
    transport.reply(picture_reply(b"\xff\xd8part1", False))
    transport.reply(picture_reply(b"part2\xff\xd9", True))


def test_take_picture_and_get(camera, transport):
    script_capture(transport, thumbnail_polls=2)
    thumbnails = []

    image = take_picture_and_get(
        camera,
        PictureOrientation.DEG_180,
        on_thumbnail=thumbnails.append,
        live_view_initialized=True,
    )

    assert image == b"\xff\xd8part1part2\xff\xd9"
    assert thumbnails == [b"thumb0", b"thumb1"]
    assert transport.pending == 0

    opcodes = transport.opcodes
    assert opcodes[0] == commands.CLEAR_PIC_BUF
    assert opcodes[1][:3] == commands.TAKE_PICTURE[:3]
    assert opcodes[1][8] == PictureOrientation.DEG_180
    # second partial read asks for data after the first 7 bytes
    assert opcodes[-1][8:12] == (7).to_bytes(4, "little")
    assert opcodes[-2][8:12] == b"\x00\x00\x00\x00"


def test_take_picture_without_thumbnail_callback(camera, transport):
    """Without a callback, thumbnails are not fetched."""
    transport.reply(b"\x00").reply(b"\x00")
    transport.reply(THUMBNAIL_READY)
    transport.reply(b"\x03")
    transport.reply(picture_reply(b"img", True))

    image = take_picture_and_get(camera, live_view_initialized=True)

    assert image == b"img"
    assert commands.GET_PIC_THUMBNAIL not in transport.opcodes


def test_take_picture_polls_at_interval(camera, transport, no_sleep):
    script_capture(transport, thumbnail_polls=0)
    take_picture_and_get(camera, live_view_initialized=True, poll_interval=0.25)
    assert [c.args[0] for c in no_sleep.call_args_list] == [0.25, 0.25]


def test_take_picture_warms_up_live_view(camera, transport):
    transport.reply(b"\x00")                          # start live view
    transport.reply(b"\x01")                          # status not ready yet
    transport.reply(live_view_reply(b"frame", True))  # one frame
    transport.reply(b"\x00")                          # stop live view
    transport.reply(b"\x00")                          # stop status ok
    script_capture(transport, thumbnail_polls=0)

    take_picture_and_get(camera)

    assert transport.opcodes[:5] == [
        commands.START_LIVE_VIEW,
        commands.CHECK_LIVE_VIEW_STATUS,
        commands.GET_LIVE_VIEW_FRAME,
        commands.STOP_LIVE_VIEW,
        commands.CHECK_LIVE_VIEW_STOP_STATUS,
    ]
    assert transport.pending == 0


def test_take_picture_unknown_capture_status(camera, transport):
    transport.reply(b"\x00").reply(b"\x00").reply(b"\x07")
    with pytest.raises(InvalidFormatError):
        take_picture_and_get(camera, live_view_initialized=True)


def test_read_picture_accumulates_offsets(camera, transport):
    transport.reply(picture_reply(b"a" * 10)).reply(picture_reply(b"b" * 5, True))
    assert read_picture(camera) == b"a" * 10 + b"b" * 5
    assert transport.headers[1].opcode[8:12] == (10).to_bytes(4, "little")


def test_iter_live_view_frames_limit(camera, transport):
    for _ in range(3):
        transport.reply(live_view_reply(b"x", True))
    frames = list(iter_live_view_frames(camera, limit=2))
    assert len(frames) == 2
    assert transport.pending == 1
