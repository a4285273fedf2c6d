"""Tests for pyhandler.errors — the handler error hierarchy."""

import pytest

from pyhandler.errors import (
    ExternalToolError,
    HandlerError,
    HandlerNotFound,
    ProcessSpawnError,
    ResolutionError,
)


class TestHandlerError:
    def test_basic_construction(self):
        err = HandlerError("something broke")
        assert str(err) == "something broke"
        assert err.detail == {}

    def test_to_dict(self):
        d = HandlerError("fail", detail={"x": 1}).to_dict()
        assert d == {"error": "HandlerError", "message": "fail", "x": 1}

    @pytest.mark.parametrize(
        "err",
        [
            ResolutionError("/a/h.py"),
            ExternalToolError("pip", 1, "boom"),
            ProcessSpawnError("w", ["python3"], "not found"),
            HandlerNotFound("go1.x", []),
        ],
    )
    def test_subclasses(self, err):
        assert isinstance(err, HandlerError)


class TestResolutionError:
    def test_message_and_detail(self):
        err = ResolutionError("/app/src/h.py", ("requirements.txt", "Pipfile"))
        assert str(err) == "Could not find src for /app/src/h.py"
        assert err.to_dict()["markers"] == ["requirements.txt", "Pipfile"]


class TestExternalToolError:
    def test_output_kept_verbatim(self):
        err = ExternalToolError("pip install -r requirements.txt", 1, "  ERROR: x\n")
        assert err.message == "  ERROR: x\n"
        assert err.to_dict()["exit_code"] == 1

    def test_blank_output_falls_back(self):
        err = ExternalToolError("poetry export", 2, "\n")
        assert str(err) == "Command 'poetry export' exited with code 2"


class TestProcessSpawnError:
    def test_fields(self):
        err = ProcessSpawnError("w1", ["python3", "-u", "shim.py"], "No such file")
        assert err.worker_id == "w1"
        assert "w1" in str(err)
        assert err.to_dict()["command"] == ["python3", "-u", "shim.py"]
