import asyncio
import logging
from typing import Optional

import numpy as np
import streamlit as st
from pydantic import ValidationError as PydanticValidationError

from liverseg.client.codec import Artifact, decode_base64, decode_data_uri
from liverseg.client.errors import ClientError, DecodeError
from liverseg.client.schemas import MedicalReport, Severity, Statistics
from liverseg.client.session import SegmentationSession, SessionState
from liverseg.client.settings import ClientSettings
from liverseg.client.submitter import Modality, RequestSubmitter, SelectedFile
from liverseg.client.volume import label_histogram, load_mask_from_bytes, middle_slice_index

logging.basicConfig(level=logging.INFO)

st.set_page_config(page_title="Segmentación hepática", layout="wide")
st.title("Segmentación hepática · MRI 3D")
st.caption("Sube un volumen NIfTI, el servicio remoto devuelve la máscara, estadísticas y un reporte.")

SEVERITY_BADGE = {
    Severity.NORMAL: st.success,
    Severity.MILD: st.warning,
    Severity.MODERATE: st.error,
    Severity.OTHER: st.info,
}


def _get_session(api_url: str) -> SegmentationSession:
    session: Optional[SegmentationSession] = st.session_state.get("segmentation_session")
    if session is None or session.settings.api_base_url != api_url.strip().rstrip("/"):
        try:
            settings = ClientSettings(api_base_url=api_url)
        except PydanticValidationError as exc:
            st.error(f"URL de la API inválida: {exc.errors()[0]['msg']}")
            st.stop()
        session = SegmentationSession(RequestSubmitter(settings=settings))
        st.session_state["segmentation_session"] = session
        st.session_state["selected_key"] = None
    return session


def _sync_selection(session: SegmentationSession, uploaded_file) -> None:
    key = None if uploaded_file is None else (uploaded_file.name, uploaded_file.size)
    if key == st.session_state.get("selected_key"):
        return
    st.session_state["selected_key"] = key
    selected = None
    if uploaded_file is not None:
        selected = SelectedFile(
            name=uploaded_file.name,
            content=bytes(uploaded_file.getbuffer()),
            content_type=uploaded_file.type or "application/octet-stream",
        )
    session.select_file(selected)


def _download_button(artifact: Artifact) -> None:
    st.download_button(
        "Descargar máscara (.nii.gz)",
        data=artifact.data,
        file_name=artifact.filename,
        mime=artifact.mime_type,
    )


def _display_slice(mask: np.ndarray, axis: int, index: int, title: str) -> None:
    import matplotlib.pyplot as plt  # import lazy para no bloquear carga

    fig, ax = plt.subplots()
    ax.imshow(np.take(mask, index, axis=axis), cmap="viridis")
    ax.set_title(title)
    ax.axis("off")
    st.pyplot(fig, use_container_width=True)


def _show_statistics(stats: Statistics) -> None:
    cols = st.columns(4)
    cols[0].metric("Volumen hepático", f"{stats.liver_volume_ml:.1f} ml")
    cols[1].metric("Porcentaje hepático", f"{stats.liver_percentage:.2f}%")
    cols[2].metric("Vóxeles hepáticos", f"{stats.liver_voxels:,}")
    total_slices = stats.total_slices if stats.total_slices is not None else "?"
    cols[3].metric("Corte", f"{stats.slice_index + 1} / {total_slices}")
    if stats.volume_shape:
        st.caption(f"Forma del volumen: {' × '.join(str(d) for d in stats.volume_shape)} · Modalidad {stats.modality}")


def _show_report(report: MedicalReport) -> None:
    st.subheader("Reporte médico")
    SEVERITY_BADGE[report.severity_level](f"Severidad: {report.severity.upper()}")
    st.write(f"**Paciente:** {report.patient_id} · **Fecha:** {report.study_date} · **Modalidad:** {report.modality}")
    st.markdown("**Hallazgos**")
    for finding in report.findings:
        st.markdown(f"- {finding}")
    morphology = report.measurements.morphology
    st.markdown("**Morfología**")
    st.write(
        {
            "componentes conectados": morphology.connected_components,
            "ratio del componente mayor": round(morphology.largest_component_ratio, 3),
            "fragmentación": morphology.fragmentation,
        }
    )
    st.markdown(f"**Impresión:** {report.impression}")
    if report.recommendations:
        st.markdown("**Recomendaciones**")
        for item in report.recommendations:
            st.markdown(f"- {item}")
    st.warning(report.disclaimer)


with st.sidebar:
    st.subheader("Servicio")
    api_url = st.text_input("URL base de la API", value=ClientSettings().api_base_url)
    session = _get_session(api_url)
    if st.button("Comprobar estado"):
        try:
            health = session.submitter.health()
        except ClientError as exc:
            st.error(exc.message)
        else:
            st.write(
                {
                    "estado": health.status,
                    "dispositivo": health.device,
                    "modelo T1": health.model_t1_loaded,
                    "modelo T2": health.model_t2_loaded,
                }
            )
            for option in Modality:
                if not health.supports(option):
                    st.warning(f"El modelo {option.value} aún no está cargado; los envíos {option.value} pueden fallar.")

col_file, col_opts = st.columns(2)
with col_file:
    uploaded = st.file_uploader("Archivo NIfTI (.nii o .nii.gz)", type=["nii", "nii.gz"], disabled=session.busy)
    _sync_selection(session, uploaded)
with col_opts:
    modality = st.selectbox("Modalidad MRI", options=[m.value for m in Modality], disabled=session.busy)
    pick_slice = st.checkbox("Elegir corte para el overlay", value=False)
    slice_idx = st.number_input("Corte", min_value=0, value=0, step=1) if pick_slice else None

if st.button("Segmentar", disabled=session.busy or session.selected_file is None, type="primary"):
    with st.spinner("Llamando a la API..."):
        asyncio.run(session.submit(modality=modality, slice_idx=int(slice_idx) if slice_idx is not None else None))

if session.state is SessionState.FAILED and session.failure is not None:
    st.error(session.failure.message)

result = session.success
if session.state is SessionState.SUCCEEDED and result is not None:
    st.success("Segmentación completada.")
    left, right = st.columns(2)
    with left:
        if result.overlay_image:
            try:
                st.image(decode_data_uri(result.overlay_image), caption="Overlay de la segmentación")
            except DecodeError as exc:
                st.warning(exc.message)
    with right:
        _show_statistics(result.statistics)
        if result.has_artifact:
            session.request_download(_download_button)
            if session.download_failure is not None:
                st.error(session.download_failure.message)

    if result.has_artifact and session.download_failure is None and st.checkbox("Previsualizar máscara"):
        try:
            mask = load_mask_from_bytes(decode_base64(result.segmentation_artifact))
        except Exception as exc:  # pylint: disable=broad-except
            st.warning(f"No se pudo leer la máscara como NIfTI: {exc}")
        else:
            axis = st.selectbox("Eje para visualizar", options=[0, 1, 2], index=2)
            idx = st.slider(
                "Corte de la máscara",
                min_value=0,
                max_value=max(mask.shape[axis] - 1, 0),
                value=middle_slice_index(mask, axis),
            )
            _display_slice(mask, axis=axis, index=idx, title=f"Corte {idx} (eje {axis})")
            st.write(label_histogram(mask))

    if result.medical_report is not None:
        if not session.report_revealed and st.button("Generar reporte"):
            session.reveal_report()
        if session.report_revealed:
            _show_report(result.medical_report)

st.markdown("---")
st.info(
    "1) Configura `LIVERSEG_API_BASE_URL` o ajusta la URL en la barra lateral.\n"
    "2) Si el servicio responde con error tras un arranque en frío, espera unos segundos y reintenta.\n"
    "3) Los resultados no sustituyen la valoración de un radiólogo."
)
