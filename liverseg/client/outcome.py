from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from liverseg.client.schemas import MedicalReport, Statistics


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    APPLICATION = "application"
    DECODE = "decode"


@dataclass(frozen=True)
class Success:
    """Resultado de una segmentación completada por el servicio."""

    statistics: Statistics
    overlay_image: Optional[str] = None
    segmentation_artifact: Optional[str] = None
    medical_report: Optional[MedicalReport] = None

    @property
    def has_artifact(self) -> bool:
        return bool(self.segmentation_artifact)


@dataclass(frozen=True)
class Failure:
    """Fallo ya saneado: `message` es apto para mostrarse tal cual al usuario."""

    message: str
    kind: ErrorKind = ErrorKind.APPLICATION
    status_code: Optional[int] = None


SegmentationOutcome = Union[Success, Failure]
