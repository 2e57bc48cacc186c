"""
Immutable image records and their status transitions.

Each ImageItem carries exactly one status payload. Transitions never mutate
the record; they return a new ImageItem, or raise StateTransitionError when
the current status does not allow the move.

    pending -> processing -> processing (progress updates)
                          -> completed
                          -> error
"""

import os
import uuid
from dataclasses import dataclass, replace
from typing import Optional, Union

from plume.exceptions import StateTransitionError
from plume.utils.enums import ImageFormat, ItemStatus
from plume.utils.enums.image_format import detect_image_format


@dataclass(frozen=True)
class ReductionEstimate:
    percent: float
    ratio: float
    confidence: float
    sample_count: int

    @classmethod
    def from_result(cls, result):
        """Build from an EstimationResult"""
        return cls(
            percent=result.percent,
            ratio=result.ratio,
            confidence=result.confidence,
            sample_count=result.sample_count,
        )


@dataclass(frozen=True)
class Pending:
    estimated_reduction: ReductionEstimate
    status = ItemStatus.PENDING


@dataclass(frozen=True)
class Processing:
    progress: float = 0.0
    status = ItemStatus.PROCESSING


@dataclass(frozen=True)
class Completed:
    compressed_size: int
    savings_percent: int
    output_path: str
    status = ItemStatus.COMPLETED


@dataclass(frozen=True)
class Error:
    message: str
    status = ItemStatus.ERROR


StatusPayload = Union[Pending, Processing, Completed, Error]


def clamp_progress(progress):
    return max(0.0, min(100.0, float(progress)))


def savings_percent(original_size, compressed_size):
    """Rounded savings in percent, never negative; 0 for empty originals"""
    if original_size <= 0:
        return 0
    return max(0, round((original_size - compressed_size) / original_size * 100))


@dataclass(frozen=True)
class ImageItem:
    id: str
    name: str
    path: str
    original_size: int
    format: ImageFormat
    payload: StatusPayload

    @classmethod
    def create(cls, path, original_size, estimated_reduction: ReductionEstimate, name: Optional[str] = None):
        """
        New pending item for a file on disk.

        Raises:
            UnsupportedImageFormatError: If the extension is not png, jpg, jpeg or webp
        """
        return cls(
            id=str(uuid.uuid4()),
            name=name or os.path.basename(path),
            path=path,
            original_size=int(original_size),
            format=detect_image_format(path),
            payload=Pending(estimated_reduction),
        )

    @property
    def status(self) -> ItemStatus:
        return self.payload.status

    @property
    def progress(self) -> Optional[float]:
        return self.payload.progress if isinstance(self.payload, Processing) else None

    def _require(self, expected: ItemStatus, target: ItemStatus):
        if self.status is not expected:
            raise StateTransitionError(self.id, self.status, target)

    def to_processing(self) -> 'ImageItem':
        self._require(ItemStatus.PENDING, ItemStatus.PROCESSING)
        return replace(self, payload=Processing(progress=0.0))

    def with_progress(self, progress) -> 'ImageItem':
        self._require(ItemStatus.PROCESSING, ItemStatus.PROCESSING)
        return replace(self, payload=Processing(progress=clamp_progress(progress)))

    def to_completed(self, compressed_size, output_path) -> 'ImageItem':
        self._require(ItemStatus.PROCESSING, ItemStatus.COMPLETED)
        return replace(
            self,
            payload=Completed(
                compressed_size=int(compressed_size),
                savings_percent=savings_percent(self.original_size, compressed_size),
                output_path=output_path,
            ),
        )

    def to_error(self, message) -> 'ImageItem':
        self._require(ItemStatus.PROCESSING, ItemStatus.ERROR)
        return replace(self, payload=Error(message=str(message)))
