"""
Raw churn table loading and feature preparation.

**Usage:**
```python
from src.data import load_raw_dataset, transform

table = transform(load_raw_dataset("data/raw/telecom_churn.csv"))
table.matrix().shape  # (n_customers, 8)
```
"""

from src.data.loader import (
    OUTCOME,
    AGGREGATES,
    SELECTED_PREDICTORS,
    ObservationTable,
    ScalingParameters,
    load_raw_dataset,
    encode_binary_columns,
    add_aggregate_columns,
    select_columns,
    fit_scaling,
    transform,
)

__all__ = [
    "OUTCOME",
    "AGGREGATES",
    "SELECTED_PREDICTORS",
    "ObservationTable",
    "ScalingParameters",
    "load_raw_dataset",
    "encode_binary_columns",
    "add_aggregate_columns",
    "select_columns",
    "fit_scaling",
    "transform",
]
