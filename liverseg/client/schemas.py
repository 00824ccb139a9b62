from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Severity(str, Enum):
    NORMAL = "normal"
    MILD = "mild"
    MODERATE = "moderate"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Severity":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.OTHER


class _WireModel(BaseModel):
    # El servicio puede añadir campos nuevos sin romper al cliente.
    model_config = ConfigDict(extra="ignore", frozen=True)


class Statistics(_WireModel):
    volume_shape: Optional[List[int]] = Field(default=None, examples=[[512, 512, 64]])
    liver_voxels: int = Field(..., ge=0, examples=[50000])
    total_voxels: int = Field(..., gt=0, examples=[2000000])
    liver_percentage: float = Field(..., ge=0.0, le=100.0, examples=[2.5])
    slice_index: int = Field(default=0, ge=0)
    total_slices: Optional[int] = Field(default=None, gt=0)
    modality: str = ""
    liver_volume_ml: float = Field(default=0.0, ge=0.0)

    @model_validator(mode="before")
    @classmethod
    def _fill_percentage(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("liver_percentage") is None:
            liver, total = data.get("liver_voxels"), data.get("total_voxels")
            if isinstance(liver, (int, float)) and isinstance(total, (int, float)) and total > 0:
                data = {**data, "liver_percentage": 100.0 * liver / total}
        return data

    @model_validator(mode="after")
    def _check_invariants(self) -> "Statistics":
        if self.liver_voxels > self.total_voxels:
            raise ValueError("liver_voxels no puede superar total_voxels")
        if self.total_slices is not None and self.slice_index >= self.total_slices:
            raise ValueError("slice_index debe ser menor que total_slices")
        if self.volume_shape is not None:
            if len(self.volume_shape) != 3 or any(d <= 0 for d in self.volume_shape):
                raise ValueError("volume_shape debe tener 3 dimensiones positivas")
        return self


class Morphology(_WireModel):
    connected_components: int = Field(..., ge=0)
    largest_component_ratio: float = Field(..., ge=0.0, le=1.0)
    fragmentation: str


class Measurements(_WireModel):
    liver_volume_ml: float = Field(..., ge=0.0)
    liver_percentage: float = Field(..., ge=0.0, le=100.0)
    volume_shape: List[int]
    morphology: Morphology


class MedicalReport(_WireModel):
    patient_id: str
    study_date: str
    modality: str
    findings: List[str] = Field(default_factory=list)
    measurements: Measurements
    impression: str
    recommendations: List[str] = Field(default_factory=list)
    severity: str
    disclaimer: str

    @property
    def severity_level(self) -> Severity:
        return Severity.parse(self.severity)


class SegmentationPayload(_WireModel):
    """Cuerpo JSON de `POST /segment`."""

    success: bool
    overlay_image: Optional[str] = None
    segmentation_file: Optional[str] = None
    statistics: Optional[Statistics] = None
    medical_report: Optional[MedicalReport] = None
    error: Optional[str] = None


class HealthStatus(_WireModel):
    status: str = Field(..., examples=["ok"])
    device: str = Field(..., examples=["cuda"])
    model_t1_loaded: bool = False
    model_t2_loaded: bool = False

    def supports(self, modality: str) -> bool:
        key = getattr(modality, "value", modality)
        return {"T1": self.model_t1_loaded, "T2": self.model_t2_loaded}.get(key, False)
