from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Configuración del cliente del servicio de segmentación."""

    model_config = SettingsConfigDict(
        env_prefix="LIVERSEG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    api_base_url: str = Field(
        default="https://harshithreddy01-srmamamba-liver-segmentation.hf.space/api",
        description="URL base de la API remota (sin barra final).",
    )
    segment_path: str = Field(default="/segment", description="Ruta del endpoint de segmentación.")
    health_path: str = Field(default="/health", description="Ruta del endpoint de salud.")
    request_timeout: Optional[float] = Field(
        default=None,
        description="Timeout en segundos para las peticiones. None espera a que el servicio responda.",
    )

    download_filename: str = Field(
        default="liver_segmentation.nii.gz",
        description="Nombre sugerido para la máscara descargada.",
    )
    download_mime_type: str = Field(
        default="application/octet-stream",
        description="Tipo MIME con el que se ofrece la máscara.",
    )
    allowed_extensions: List[str] = Field(
        default_factory=lambda: [".nii", ".nii.gz"],
        description="Extensiones aceptadas para el volumen de entrada.",
    )

    max_message_length: int = Field(
        default=500,
        description="Longitud máxima de cualquier mensaje de error mostrado al usuario.",
    )
    snippet_length: int = Field(
        default=200,
        description="Caracteres del cuerpo no JSON que se citan en el diagnóstico genérico.",
    )

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_base_url debe empezar por http:// o https://")
        return value.rstrip("/")

    @field_validator("segment_path", "health_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @field_validator("max_message_length", "snippet_length")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("la longitud debe ser positiva")
        return value

    def endpoint(self, path: str) -> str:
        return f"{self.api_base_url}{path}"

    @property
    def segment_url(self) -> str:
        return self.endpoint(self.segment_path)

    @property
    def health_url(self) -> str:
        return self.endpoint(self.health_path)
