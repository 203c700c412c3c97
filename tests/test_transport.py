import socket

import pytest

from bjclient.transport import LineBuffer, LineTooLong, LineTransport


def test_linebuffer_holds_partial_line():
    buf = LineBuffer()
    assert buf.feed(b"OK user:al") == []
    assert buf.pending == b"OK user:al"
    assert buf.feed(b"ice balance:100\n") == ["OK user:alice balance:100"]
    assert buf.pending == b""


def test_linebuffer_rejects_overlong_partial_line():
    buf = LineBuffer(max_line=16)
    assert buf.feed(b"OK user:alice") == []
    with pytest.raises(LineTooLong):
        buf.feed(b" balance:100 and more")


def test_linebuffer_rejects_overlong_complete_line():
    buf = LineBuffer(max_line=8)
    with pytest.raises(LineTooLong):
        buf.feed(b"DEALER 18 K\xe2\x99\xa6 8\xe2\x99\xa0\n")


def test_linebuffer_accepts_line_at_limit():
    assert LineBuffer(max_line=4).feed(b"LOSE\n") == ["LOSE"]


def test_linebuffer_multiple_lines_in_one_chunk():
    buf = LineBuffer()
    assert buf.feed(b"LOSE\r\nDEALER 18 K\xe2\x99\xa6 8\xe2\x99\xa0\nAWAIT") == ["LOSE", "DEALER 18 K♦ 8♠"]
    assert buf.pending == b"AWAIT"


def test_linebuffer_glyph_split_across_reads():
    data = "DEALER 10 K♦\n".encode("utf-8")
    cut = data.index("♦".encode("utf-8")) + 1
    buf = LineBuffer()
    assert buf.feed(data[:cut]) == []
    assert buf.feed(data[cut:]) == ["DEALER 10 K♦"]


def test_linebuffer_bad_bytes_are_replaced():
    (line,) = LineBuffer().feed(b"WIN \xff\n")
    assert line.startswith("WIN ")


def test_roundtrip_over_socket(dealer_server, collector):
    address, accept = dealer_server
    t = LineTransport(collector.on_line, collector.on_closed)
    t.open(address)
    peer = accept()
    try:
        assert t.send("LOGIN alice secret") is True
        assert peer.recv(1024) == b"LOGIN alice secret\n"

        peer.sendall("OK user:al".encode())
        peer.sendall("ice balance:100\n\nAWAITING INPUT\n".encode())
        assert collector.wait_lines(2) == ["OK user:alice balance:100", "AWAITING INPUT"]
    finally:
        t.close()
    assert collector.closed_evt.wait(2.0)


def test_overlong_line_closes_transport(dealer_server, collector):
    address, accept = dealer_server
    t = LineTransport(collector.on_line, collector.on_closed, max_line=64)
    t.open(address)
    peer = accept()
    peer.sendall(b"WIN\n")
    assert collector.wait_lines(1) == ["WIN"]
    peer.sendall(b"x" * 200)
    assert collector.closed_evt.wait(2.0)
    assert "exceeds 64" in collector.closed[0]
    assert not t.is_open


def test_peer_close_fires_on_closed_once(dealer_server, collector):
    address, accept = dealer_server
    t = LineTransport(collector.on_line, collector.on_closed)
    t.open(address)
    peer = accept()
    peer.close()
    assert collector.closed_evt.wait(2.0)
    t.close()
    assert len(collector.closed) == 1
    assert not t.is_open


def test_send_after_close_fails_silently(dealer_server, collector):
    address, accept = dealer_server
    t = LineTransport(collector.on_line, collector.on_closed)
    t.open(address)
    accept()
    t.close()
    assert collector.closed_evt.wait(2.0)
    assert t.send("HIT") is False


def test_send_before_open_fails_silently(collector):
    t = LineTransport(collector.on_line, collector.on_closed)
    assert t.send("HIT") is False


def test_open_refused_raises_oserror(collector):
    # Grab a free port and release it so nothing is listening there.
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    t = LineTransport(collector.on_line, collector.on_closed, connect_timeout=1.0)
    with pytest.raises(OSError):
        t.open(("127.0.0.1", port))
    assert collector.closed == []
