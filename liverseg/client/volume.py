import gzip
from typing import Dict

import nibabel as nib
import numpy as np

_GZIP_MAGIC = b"\x1f\x8b"


def load_mask_from_bytes(raw: bytes) -> np.ndarray:
    """
    Carga una máscara NIfTI (.nii o .nii.gz) desde memoria.

    Parámetros
    ----------
    raw : bytes
        Contenido del archivo, comprimido con gzip o no.

    Retorna
    -------
    np.ndarray
        Volumen de etiquetas como uint8, con la forma almacenada en el archivo.
    """
    if raw[:2] == _GZIP_MAGIC:
        raw = gzip.decompress(raw)
    img = nib.Nifti1Image.from_bytes(raw)
    return np.asarray(img.dataobj).astype(np.uint8)


def label_histogram(mask: np.ndarray) -> Dict[int, int]:
    unique, counts = np.unique(mask, return_counts=True)
    return {int(k): int(v) for k, v in zip(unique, counts)}


def middle_slice_index(mask: np.ndarray, axis: int = 2) -> int:
    return mask.shape[axis] // 2
