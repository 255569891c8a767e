from flashsale.codes import Code, get_msg
from flashsale.response import Response, failure, success


class _Item:
    def __init__(self, name):
        self.name = name

    def to_dict(self):
        return {"name": self.name}


def test_success_without_data():
    body = success().to_dict()
    assert body == {
        "status": 200,
        "data": None,
        "msg": get_msg(Code.SUCCESS),
        "error": "",
    }


def test_success_keeps_plain_data():
    resp = success({"a": 1})
    assert resp.status == Code.SUCCESS
    assert resp.to_dict()["data"] == {"a": 1}


def test_success_converts_objects_with_to_dict():
    body = success(_Item("piano")).to_dict()
    assert body["data"] == {"name": "piano"}


def test_failure_carries_error_text():
    resp = failure(ValueError("boom"))
    assert resp.status == 500
    assert resp.error == "boom"
    assert resp.data is None
    assert resp.msg == get_msg(Code.ERROR)


def test_failure_to_dict_keys():
    body = failure("bad").to_dict()
    assert set(body) == {"status", "data", "msg", "error"}
    assert body["error"] == "bad"


def test_helpers_build_comparable_responses():
    assert success() == Response(200, None, get_msg(Code.SUCCESS), "")
    assert failure("bad") == Response(500, None, get_msg(Code.ERROR), "bad")