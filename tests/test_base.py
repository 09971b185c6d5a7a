import pytest

from clabkit.transport.base import TransportError, write_config


class FakeTransport:
    def __init__(self, connect_error=None, fail_on=None):
        self.connect_error = connect_error
        self.fail_on = fail_on
        self.events = []

    def connect(self, host):
        self.events.append(("connect", host))
        if self.connect_error:
            raise self.connect_error

    def write(self, data, info):
        self.events.append(("write", data, info))
        if data == self.fail_on:
            raise RuntimeError("fail")

    def close(self):
        self.events.append(("close",))


def test_write_config_writes_in_order_and_closes():
    t = FakeTransport()
    write_config(t, "host1", ["d1", "d2"], ["i1", "i2"])
    assert t.events == [
        ("connect", "host1"),
        ("write", "d1", "i1"),
        ("write", "d2", "i2"),
        ("close",),
    ]


def test_connect_failure_is_wrapped():
    t = FakeTransport(connect_error=RuntimeError("boom"))
    with pytest.raises(TransportError, match="host1: boom"):
        write_config(t, "host1", ["d1"], ["i1"])
    assert ("close",) not in t.events


def test_write_failure_stops_and_closes():
    t = FakeTransport(fail_on="d1")
    with pytest.raises(TransportError, match="could not write config d1: fail"):
        write_config(t, "host1", ["d1", "d2"], ["i1", "i2"])
    assert t.events[-1] == ("close",)
    assert ("write", "d2", "i2") not in t.events


def test_mismatched_lengths():
    t = FakeTransport()
    with pytest.raises(ValueError):
        write_config(t, "host1", ["d1", "d2"], ["i1"])
    assert t.events[-1] == ("close",)


def test_transport_error_keeps_reply():
    err = TransportError("could not commit", reply="r")
    assert err.reply == "r"
    assert str(err) == "could not commit"