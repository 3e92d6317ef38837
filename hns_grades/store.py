import asyncio
import logging
import math
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Union

import pandas as pd

from hns_grades.config import AVERAGES_CSV
from hns_grades.curriculum import SemesterKey

logger = logging.getLogger(__name__)

COLUMNS = ["user_id", "semester_key", "average", "updated_at"]


class SemesterAverageStore:
    """
    Saved semester averages, one row per (user_id, semester_key).
    Saving the same key again overwrites the previous row.
    """

    def __init__(self, path: Union[str, Path] = AVERAGES_CSV):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> pd.DataFrame:
        if not self.path.exists():
            return pd.DataFrame(columns=COLUMNS)
        return pd.read_csv(self.path, dtype={"user_id": str, "semester_key": str})

    def _write(self, df: pd.DataFrame) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                df.to_csv(f, index=False)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def save_semester_average(
        self,
        user_id: str,
        semester_key: Union[SemesterKey, str],
        average: float,
    ) -> bool:
        if not math.isfinite(average):
            raise ValueError(f"Refusing to save non-finite average {average!r}.")
        key = str(semester_key)

        with self._lock:
            df = self._read()
            mask = (df["user_id"] == str(user_id)) & (df["semester_key"] == key)
            df = df.loc[~mask]
            row = pd.DataFrame([{
                "user_id": str(user_id),
                "semester_key": key,
                "average": float(average),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }])
            df = row if df.empty else pd.concat([df, row], ignore_index=True)
            self._write(df[COLUMNS])

        logger.debug("Stored %s/%s = %r in %s", user_id, key, average, self.path)
        return True

    async def save_semester_average_async(
        self,
        user_id: str,
        semester_key: Union[SemesterKey, str],
        average: float,
    ) -> bool:
        return await asyncio.to_thread(self.save_semester_average, user_id, semester_key, average)

    def load_semester_averages(self, user_id: str) -> Dict[str, float]:
        with self._lock:
            df = self._read()
        rows = df.loc[df["user_id"] == str(user_id)].sort_values("semester_key")
        return {str(k): float(v) for k, v in zip(rows["semester_key"], rows["average"])}
