"""
Contract for the external image compressor.

The compressor gives no progress granularity. It may report advisory stage
events through on_stage; callers must not rely on them arriving, or arriving
in order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from plume.utils.enums import ImageFormat


class CompressionStage(Enum):
    LOADING = "loading"
    COMPRESSING = "compressing"
    SAVING = "saving"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class CompressionOutcome:
    compressed_size: int
    output_path: str


StageCallback = Callable[[str, CompressionStage], None]


class Compressor(ABC):
    @abstractmethod
    async def compress(
        self,
        path: str,
        quality: int,
        output_format: ImageFormat,
        item_id: str,
        on_stage: Optional[StageCallback] = None,
    ) -> CompressionOutcome:
        """
        Compress one image.

        Raises:
            CompressionFailure: If the encoder could not produce an output
        """
        pass
