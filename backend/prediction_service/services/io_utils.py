from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd


def load_table(csv_path: str | Path, *, dtype: Optional[Dict[str, Any]] = None) -> pd.DataFrame:
    """Load a table, preferring a sibling ``.parquet`` file over the CSV.

    Raises ``FileNotFoundError`` when neither file exists.
    """

    csv_path = Path(csv_path)
    parquet_path = csv_path.with_suffix(".parquet")

    if parquet_path.exists():
        frame = pd.read_parquet(parquet_path)
        return frame.astype(dtype) if dtype else frame

    if not csv_path.exists():
        raise FileNotFoundError(f"Dataset not found at {csv_path}")
    return pd.read_csv(csv_path, dtype=dtype)
