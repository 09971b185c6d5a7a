import json
import logging

import pytest

from clabkit.execution import (
    ExecCmd,
    ExecCollection,
    ExecFormat,
    ExecNotSupportedError,
    ExecResult,
    parse_exec_output_format,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("plain", ExecFormat.PLAIN),
        ("pLAiN", ExecFormat.PLAIN),
        ("json", ExecFormat.JSON),
        ("table", ExecFormat.PLAIN),
        ("  JSON ", ExecFormat.JSON),
    ],
)
def test_parse_exec_output_format(text, expected):
    assert parse_exec_output_format(text) is expected


def test_parse_exec_output_format_invalid():
    with pytest.raises(ValueError, match='cannot parse "foobar"'):
        parse_exec_output_format("foobar")


def test_exec_not_supported_message():
    assert str(ExecNotSupportedError()) == "exec not supported for this kind"


def test_exec_cmd_from_string():
    cmd = ExecCmd.from_string('ls -la "/tmp dir"')
    assert cmd.cmd == ["ls", "-la", "/tmp dir"]
    assert cmd.cmd_string() == "ls -la /tmp dir"


def test_exec_cmd_from_string_unbalanced_quote():
    with pytest.raises(ValueError):
        ExecCmd.from_string('echo "oops')


def _result():
    return ExecResult(cmd=["echo", "hi"], return_code=0, stdout="hi\n", stderr="")


def test_result_str():
    assert str(_result()) == "Cmd: echo hi\nReturnCode: 0\nStdOut:\nhi\n\nStdErr:\n\n"


def test_result_dump_plain_matches_str():
    r = _result()
    assert r.dump(ExecFormat.PLAIN) == str(r)
    assert r.dump("plain") == str(r)


def test_result_dump_json():
    out = _result().dump("json")
    assert json.loads(out) == {
        "cmd": ["echo", "hi"],
        "return-code": 0,
        "stdout": "hi\n",
        "stderr": "",
    }
    assert out.startswith('{\n  "cmd": [')


def test_result_dump_unknown_format():
    assert _result().dump("xml") == ""


def test_collection_dump_json():
    ec = ExecCollection()
    ec.add("b", _result())
    ec.add_all("a", [ExecResult(cmd=["true"]), ExecResult(cmd=["false"], return_code=1)])
    data = json.loads(ec.dump(ExecFormat.JSON))
    assert list(data) == ["a", "b"]
    assert [e["return-code"] for e in data["a"]] == [0, 1]
    assert data["b"][0]["stdout"] == "hi\n"


def test_collection_dump_plain():
    ec = ExecCollection()
    ec.add("n1", _result())
    ec.add_all("empty", [])
    ec.add("n2", ExecResult(cmd=["true"]))
    out = ec.dump("plain")
    expected = (
        "Node: n1\n" + str(_result())
        + "\n+++++++++++++++++++++++++++++\n\n"
        + "Node: n2\n" + str(ExecResult(cmd=["true"]))
    )
    assert out == expected


def test_collection_log_levels(caplog):
    ec = ExecCollection()
    ec.add("ok", _result())
    ec.add("bad", ExecResult(cmd=["false"], return_code=1))
    ec.add("warn", ExecResult(cmd=["x"], stderr="boom"))
    with caplog.at_level(logging.INFO, logger="clabkit.execution"):
        ec.log()
    levels = {r.getMessage().split("node ")[1].split(".")[0]: r.levelno for r in caplog.records}
    assert levels == {"ok": logging.INFO, "bad": logging.ERROR, "warn": logging.ERROR}