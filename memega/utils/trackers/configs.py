from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class TensorBoardConfig(BaseModel):
    logdir: Path
    summary_writer_kwargs: dict[str, Any] = Field(default_factory=dict)
    queue_size: int = Field(default=8192, gt=0)
    flush_secs: float = Field(default=3.0, gt=0)
