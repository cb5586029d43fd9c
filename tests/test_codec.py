from __future__ import annotations

import numpy as np
import pytest

from knnvec.app.codec import (
    DataType,
    DistType,
    read_id,
    read_ids,
    read_matrix,
    read_vector,
    reader_for,
    write_vector,
    writer_for,
)
from knnvec.errors import ParameterError


def test_type_tags_match_native_constants() -> None:
    assert int(DataType.VECTOR) == 1
    assert int(DataType.STRING) == 2
    assert int(DistType.FLOAT) == 4
    assert int(DistType.INT) == 5


def test_read_vector_accepts_sequences_and_arrays() -> None:
    vector = read_vector([1, 2, 3])
    assert vector.dtype == np.float32
    assert vector.tolist() == [1.0, 2.0, 3.0]
    assert read_vector(np.arange(2, dtype=np.float64)).dtype == np.float32


@pytest.mark.parametrize("bad", ["abc", [], [[1.0, 2.0]], [1.0, "x"], 3.0])
def test_read_vector_rejects_bad_input(bad: object) -> None:
    with pytest.raises(ParameterError):
        read_vector(bad)


def test_read_matrix_rejects_fortran_order() -> None:
    data = np.asfortranarray(np.arange(6, dtype=np.float32).reshape(2, 3))
    with pytest.raises(ParameterError, match="Fortran"):
        read_matrix(data)


def test_read_matrix_accepts_nested_lists() -> None:
    matrix = read_matrix([[1, 2], [3, 4]])
    assert matrix.shape == (2, 2)
    assert matrix.flags.c_contiguous


@pytest.mark.parametrize("bad", [[[1.0, 2.0], [3.0]], [1.0, 2.0], [["a", "b"]]])
def test_read_matrix_rejects_bad_shapes(bad: object) -> None:
    with pytest.raises(ParameterError):
        read_matrix(bad)


def test_read_ids_requires_int32_integers() -> None:
    assert read_ids([1, 2]).dtype == np.int32
    assert read_ids(np.asarray([1.0, 2.0])).tolist() == [1, 2]
    with pytest.raises(ParameterError):
        read_ids([1.5])
    with pytest.raises(ParameterError):
        read_ids([2**31])
    with pytest.raises(ParameterError):
        read_ids([[1, 2]])


def test_read_id_rejects_bool_and_floats() -> None:
    assert read_id(np.int64(7)) == 7
    for bad in (True, 1.0, "1", 2**40):
        with pytest.raises(ParameterError):
            read_id(bad)


def test_writers_return_plain_floats() -> None:
    assert write_vector(np.asarray([1.5, 2.0], dtype=np.float32)) == [1.5, 2.0]
    assert writer_for(DataType.VECTOR) is write_vector
    assert reader_for(DataType.VECTOR) is read_vector


def test_unknown_data_type_has_no_codec() -> None:
    with pytest.raises(ParameterError, match="unknown data type"):
        reader_for(DataType.STRING)
    with pytest.raises(ParameterError, match="unknown data type"):
        writer_for(DataType.STRING)
