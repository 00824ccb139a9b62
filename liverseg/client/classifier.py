"""
Clasificación defensiva de las respuestas de `POST /segment`.

Cualquier respuesta (JSON válido, JSON malformado, páginas HTML de error del
gateway o del framework) se convierte en un único `SegmentationOutcome`. Los
mensajes de fallo siempre están acotados y nunca contienen markup del servidor.
"""

import logging
from typing import Any, Dict, Optional, Sequence

import requests
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from liverseg.client.diagnostics import DEFAULT_RULES, DiagnosticRule, diagnose, strip_markup, truncate
from liverseg.client.errors import ApplicationError, ClientError, ProtocolError
from liverseg.client.outcome import Failure, SegmentationOutcome, Success
from liverseg.client.schemas import SegmentationPayload

logger = logging.getLogger("liverseg.client.classifier")

MALFORMED_DATA_MESSAGE = "server returned malformed data"
SEGMENTATION_FAILED_MESSAGE = "Segmentation failed"

_FLAG = TypeAdapter(bool)


def is_json_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime == "application/json" or mime.endswith("+json")


class ResponseClassifier:
    """
    Traduce un `requests.Response` crudo a `Success` o `Failure`.

    Orden de evaluación (cada paso corta en cuanto decide):

    1. Content-Type ausente o no JSON: diagnóstico heurístico con `rules`, o un
       extracto del cuerpo sin etiquetas y truncado a `snippet_length`.
    2. JSON que no se puede parsear (o que no es un objeto): `MALFORMED_DATA_MESSAGE`.
    3. Estado HTTP fuera de 2xx o `success` falso: el `error` del payload si existe,
       si no un mensaje genérico basado en el estado.
    4. Payload validado contra `SegmentationPayload`; si faltan campos obligatorios
       se trata como error de protocolo.
    """

    def __init__(
        self,
        rules: Sequence[DiagnosticRule] = DEFAULT_RULES,
        max_message_length: int = 500,
        snippet_length: int = 200,
    ):
        self.rules = tuple(rules)
        self.max_message_length = max_message_length
        self.snippet_length = snippet_length

    def classify(self, response: requests.Response) -> SegmentationOutcome:
        try:
            outcome = self._classify(response)
        except ClientError as exc:
            outcome = Failure(
                message=truncate(exc.message, self.max_message_length),
                kind=exc.kind,
                status_code=exc.status_code,
            )
            logger.info(
                "Respuesta clasificada como fallo (%s, HTTP %s): %s",
                outcome.kind.value, outcome.status_code, outcome.message,
            )
        else:
            logger.info("Respuesta clasificada como éxito (HTTP %s)", response.status_code)
        return outcome

    def _classify(self, response: requests.Response) -> Success:
        status_code = response.status_code
        if not is_json_content_type(response.headers.get("content-type")):
            raise ProtocolError(self._describe_non_json(response), status_code=status_code)

        data = self._parse_json(response)

        if not (200 <= status_code < 300) or not self._success_flag(data):
            raise ApplicationError(self._application_message(data, status_code), status_code=status_code)

        try:
            payload = SegmentationPayload.model_validate(data)
        except SchemaValidationError as exc:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
            logger.warning("Payload de éxito inválido: %s", exc)
            raise ProtocolError(
                f"Server response is missing or has invalid fields: {', '.join(fields)}",
                status_code=status_code,
            ) from exc
        if payload.statistics is None:
            raise ProtocolError("Server response is missing or has invalid fields: statistics", status_code=status_code)

        return Success(
            statistics=payload.statistics,
            overlay_image=payload.overlay_image,
            segmentation_artifact=payload.segmentation_file,
            medical_report=payload.medical_report,
        )

    def _describe_non_json(self, response: requests.Response) -> str:
        text = response.text or ""
        logger.debug("Cuerpo no JSON (HTTP %s): %r", response.status_code, text[:1000])
        message = diagnose(text, response.status_code, self.rules)
        if message is not None:
            return message
        base = f"Server returned non-JSON response ({response.status_code})"
        snippet = truncate(strip_markup(text), self.snippet_length)
        return f"{base}: {snippet}" if snippet else base

    def _parse_json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolError(MALFORMED_DATA_MESSAGE, status_code=response.status_code) from exc
        if not isinstance(data, dict):
            raise ProtocolError(MALFORMED_DATA_MESSAGE, status_code=response.status_code)
        return data

    def _success_flag(self, data: Dict[str, Any]) -> bool:
        # Acepta "true", 1, "yes"... con la misma coerción que el esquema.
        try:
            return _FLAG.validate_python(data.get("success"))
        except SchemaValidationError:
            return False

    def _application_message(self, data: Dict[str, Any], status_code: int) -> str:
        # FastAPI devuelve {"detail": ...} en sus HTTPException.
        for key in ("error", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value
        if not (200 <= status_code < 300):
            return f"HTTP error! status: {status_code}"
        return SEGMENTATION_FAILED_MESSAGE
