from __future__ import annotations

import pytest

from knnvec.errors import InvalidParameterError
from knnvec.utils.params import ParamSet


def test_parse_list_and_comma_separated_pairs() -> None:
    params = ParamSet.parse(["M=16", "efConstruction=200,indexThreadQty=4"])
    assert params.as_list() == ["M=16", "efConstruction=200", "indexThreadQty=4"]
    assert "M" in params
    assert len(params) == 3


def test_parse_accepts_none_and_single_string() -> None:
    assert len(ParamSet.parse(None)) == 0
    assert ParamSet.parse("p=3").as_list() == ["p=3"]


@pytest.mark.parametrize("raw", [["M"], ["=3"], ["M=1", "M=2"], [5]])
def test_parse_rejects_malformed_input(raw: list) -> None:
    with pytest.raises(InvalidParameterError):
        ParamSet.parse(raw)


def test_typed_getters_and_defaults() -> None:
    params = ParamSet.parse(["NN=5", "p=0.5"])
    assert params.get_int("NN", default=10) == 5
    assert params.get_int("missing", default=10) == 10
    assert params.get_float("p", default=None) == 0.5
    assert params.get_str("name", default="x") == "x"


def test_aliases_resolve_and_conflict() -> None:
    assert ParamSet.parse(["ef=7"]).get_int("efSearch", "ef", default=1) == 7
    with pytest.raises(InvalidParameterError, match="aliases"):
        ParamSet.parse(["ef=7", "efSearch=8"]).get_int("efSearch", "ef", default=1)


def test_bad_values_are_rejected() -> None:
    with pytest.raises(InvalidParameterError, match="integer"):
        ParamSet.parse(["M=abc"]).get_int("M", default=16)
    with pytest.raises(InvalidParameterError, match=">= 2"):
        ParamSet.parse(["M=1"]).get_int("M", default=16, minimum=2)
    with pytest.raises(InvalidParameterError, match="number"):
        ParamSet.parse(["p=x"]).get_float("p", default=None)


def test_check_unused_names_leftover_keys() -> None:
    params = ParamSet.parse(["M=16", "bogus=1"])
    params.get_int("M", default=16)
    with pytest.raises(InvalidParameterError, match="bogus"):
        params.check_unused("method 'hnsw' build")


def test_check_unused_passes_when_all_read() -> None:
    params = ParamSet.parse(["M=16"])
    params.get_int("M", default=16)
    params.check_unused("method 'hnsw' build")
