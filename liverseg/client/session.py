"""
Estado de la sesión del usuario: archivo elegido, envío en curso y resultado.

Todo corre en un único bucle de eventos; la única suspensión ocurre dentro de
`RequestSubmitter.submit`. El indicador `_in_flight` es un guardia de
reentrada, no un lock: impide dos envíos simultáneos en la misma sesión.
"""

import logging
from enum import Enum
from typing import Optional, Union

from liverseg.client.codec import ArtifactSink, decode_and_offer
from liverseg.client.errors import DecodeError
from liverseg.client.outcome import Failure, SegmentationOutcome, Success
from liverseg.client.settings import ClientSettings
from liverseg.client.submitter import Modality, RequestSubmitter, SelectedFile, UploadRequest

logger = logging.getLogger("liverseg.client.session")


class SessionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SegmentationSession:
    """
    Máquina de estados `IDLE -> SUBMITTING -> {SUCCEEDED, FAILED}`.

    Cada envío queda etiquetado con la generación de la selección vigente. Si el
    usuario elige otro archivo mientras la petición sigue en vuelo, el resultado
    tardío se descarta y la sesión conserva el estado de la selección nueva.
    """

    def __init__(self, submitter: RequestSubmitter, settings: Optional[ClientSettings] = None):
        self.submitter = submitter
        self.settings = settings or submitter.settings
        self.state = SessionState.IDLE
        self.selected_file: Optional[SelectedFile] = None
        self.outcome: Optional[SegmentationOutcome] = None
        self.report_revealed = False
        self.download_failure: Optional[Failure] = None
        self._generation = 0
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    @property
    def success(self) -> Optional[Success]:
        return self.outcome if isinstance(self.outcome, Success) else None

    @property
    def failure(self) -> Optional[Failure]:
        return self.outcome if isinstance(self.outcome, Failure) else None

    def select_file(self, selected: Optional[SelectedFile]) -> None:
        """Registra un archivo nuevo y descarta cualquier resultado anterior."""
        self._generation += 1
        self.selected_file = selected
        self._reset_result()
        self.state = SessionState.IDLE
        logger.debug("Selección %d: %s", self._generation, selected.name if selected else None)

    async def submit(
        self, modality: Union[Modality, str] = Modality.T1, slice_idx: Optional[int] = None
    ) -> Optional[SegmentationOutcome]:
        """
        Envía el archivo seleccionado. Devuelve None si ya hay un envío en vuelo.

        El resultado devuelto es siempre el de esta petición, aunque la sesión lo
        haya descartado por pertenecer a una selección anterior.
        """
        if self._in_flight:
            logger.warning("Envío ignorado: ya hay una petición en curso")
            return None

        generation = self._generation
        request = UploadRequest(file=self.selected_file, modality=modality, slice_idx=slice_idx)
        self._in_flight = True
        self._reset_result()
        self.state = SessionState.SUBMITTING
        try:
            outcome = await self.submitter.submit(request)
        finally:
            self._in_flight = False
            if generation == self._generation and self.state is SessionState.SUBMITTING:
                self.state = SessionState.IDLE

        if generation != self._generation:
            logger.info("Resultado descartado: la selección %d fue reemplazada por la %d", generation, self._generation)
            return outcome

        self.outcome = outcome
        self.state = SessionState.SUCCEEDED if isinstance(outcome, Success) else SessionState.FAILED
        return outcome

    def reveal_report(self) -> bool:
        if self.state is not SessionState.SUCCEEDED:
            logger.info("reveal_report ignorado en estado %s", self.state.value)
            return False
        self.report_revealed = True
        return True

    def request_download(self, sink: ArtifactSink) -> bool:
        """Ofrece la máscara al usuario. No cambia el estado de la sesión."""
        success = self.success
        if self.state is not SessionState.SUCCEEDED or success is None or not success.has_artifact:
            logger.info("request_download ignorado en estado %s", self.state.value)
            return False
        self.download_failure = None
        try:
            decode_and_offer(
                success.segmentation_artifact,
                self.settings.download_filename,
                self.settings.download_mime_type,
                sink,
            )
        except DecodeError as exc:
            logger.warning("No se pudo decodificar la máscara: %s", exc.message)
            self.download_failure = exc.to_failure()
            return False
        return True

    def _reset_result(self) -> None:
        self.outcome = None
        self.report_revealed = False
        self.download_failure = None
