"""
Dataset access for factors.

Exports:
- Dataset: columnar adapter over pyarrow/pandas data with null masks
- numpy_dtype: arrow float type -> NumPy dtype
"""

from .dataset import Dataset, FLOAT_TYPES, numpy_dtype

__all__ = ["Dataset", "FLOAT_TYPES", "numpy_dtype"]
