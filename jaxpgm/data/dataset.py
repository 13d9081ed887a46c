# jaxpgm/data/dataset.py
"""
Columnar dataset adapter.

Factors consume named, typed float columns that carry a per-row null
marker. `Dataset` wraps a pyarrow Table/RecordBatch, a pandas DataFrame or
a dict of arrays behind that interface. Pandas and dict inputs follow
pyarrow's pandas conversion rules, so NaN becomes a null.
"""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.compute as pc

from ..exceptions import DataTypeMismatchError

FLOAT_TYPES = (pa.float32(), pa.float64())


def _to_table(data: Any) -> pa.Table:
    if isinstance(data, pa.Table):
        return data
    if isinstance(data, pa.RecordBatch):
        return pa.Table.from_batches([data])
    if isinstance(data, pd.DataFrame):
        return pa.Table.from_pandas(data, preserve_index=False)
    if isinstance(data, Mapping):
        columns = {}
        for name, values in data.items():
            if isinstance(values, (pa.Array, pa.ChunkedArray)):
                columns[str(name)] = values
            else:
                columns[str(name)] = pa.array(np.asarray(values), from_pandas=True)
        return pa.table(columns)
    raise TypeError(
        f"Unsupported dataset type {type(data).__name__}; expected pyarrow.Table, "
        f"pyarrow.RecordBatch, pandas.DataFrame or a mapping of arrays"
    )


class Dataset:
    """
    Read-only view over a pyarrow table.

    Parameters
    ----------
    data : pa.Table | pa.RecordBatch | pd.DataFrame | Mapping[str, array-like]
        Source columns. Extra columns are carried along and ignored by
        factors that do not name them.
    """

    def __init__(self, data: Any):
        self._table = _to_table(data)
        self._cache: Dict[str, pa.Array] = {}

    @classmethod
    def wrap(cls, data: Any) -> "Dataset":
        """Return `data` unchanged if it is already a Dataset, else wrap it."""
        if isinstance(data, Dataset):
            return data
        return cls(data)

    # ---------- Shape ----------

    @property
    def table(self) -> pa.Table:
        return self._table

    @property
    def num_rows(self) -> int:
        return self._table.num_rows

    @property
    def column_names(self) -> List[str]:
        return list(self._table.column_names)

    def has_column(self, name: str) -> bool:
        return name in self._table.column_names

    def __len__(self) -> int:
        return self.num_rows

    def __repr__(self) -> str:
        return f"Dataset(num_rows={self.num_rows}, columns={self.column_names})"

    # ---------- Columns ----------

    def _column(self, name: str) -> pa.Array:
        if name not in self._cache:
            if not self.has_column(name):
                raise ValueError(f"Variable '{name}' not found in dataset (columns: {self.column_names})")
            self._cache[name] = self._table.column(name).combine_chunks()
        return self._cache[name]

    def data_type(self, name: str) -> pa.DataType:
        """Arrow type of column `name`."""
        return self._column(name).type

    def values(self, name: str, dtype: Optional[np.dtype] = None) -> np.ndarray:
        """
        Column values as a 1-D NumPy array; nulls become NaN.

        Parameters
        ----------
        name : str
            Column name
        dtype : np.dtype, optional
            Output dtype; defaults to the column's own NumPy dtype
        """
        column = self._column(name)
        out = column.to_numpy(zero_copy_only=False)
        if dtype is None:
            dtype = column.type.to_pandas_dtype()
        return np.asarray(out, dtype=dtype)

    def valid_mask(self, name: str) -> np.ndarray:
        """Boolean mask, True where the value is non-null and not NaN."""
        column = self._column(name)
        mask = pc.is_valid(column).to_numpy(zero_copy_only=False).astype(bool)
        if pa.types.is_floating(column.type):
            mask &= ~np.isnan(self.values(name))
        return mask

    def combined_valid_mask(self, names: Sequence[str]) -> np.ndarray:
        """Logical AND of `valid_mask` over `names` (rows complete in every column)."""
        mask = np.ones(self.num_rows, dtype=bool)
        for name in names:
            mask &= self.valid_mask(name)
        return mask

    def common_float_type(self, names: Sequence[str]) -> pa.DataType:
        """
        The single float type shared by `names`.

        Raises
        ------
        DataTypeMismatchError
            If a column is not float32/float64 or the widths differ.
        """
        dtype = None
        for name in names:
            column_type = self.data_type(name)
            if column_type not in FLOAT_TYPES:
                raise DataTypeMismatchError(
                    f"Variable '{name}' has unsupported data type {column_type}; expected float32 or float64."
                )
            if dtype is None:
                dtype = column_type
            elif column_type != dtype:
                raise DataTypeMismatchError(
                    f"Variables have inconsistent data types: {dtype} and {column_type} ('{name}')."
                )
        if dtype is None:
            raise ValueError("At least one variable name is required")
        return dtype

    # ---------- Row selection ----------

    def take_rows(self, mask: np.ndarray) -> "Dataset":
        """New Dataset with the rows where `mask` is True."""
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (self.num_rows,):
            raise ValueError(f"mask has shape {mask.shape}, expected ({self.num_rows},)")
        return Dataset(self._table.filter(pa.array(mask)))


def numpy_dtype(arrow_type: pa.DataType) -> np.dtype:
    """NumPy dtype matching a float arrow type."""
    return np.dtype(arrow_type.to_pandas_dtype())
