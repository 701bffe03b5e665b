"""
registry.py

Model registry / factory for the two collaborators.

Goal:
- Centralize where models come from in ONE place.
- Keep the provider and pipeline unaware of folders, Hub ids and devices.

The loading logic for each collaborator is:
    1) io/gcs.py (optional) downloads <X>_GCS_URI -> <X>_MODEL_DIR
    2) if <X>_MODEL_DIR holds a pretrained folder, load it strictly offline
    3) else, if ALLOW_HF_FALLBACK=true, load <X>_HF_MODEL_NAME from the Hub
    4) else fail with ModelLoadError
"""

# ============================================================
# Standard library imports
# ============================================================

import os  # path checks
from typing import Any, List, Optional, Tuple

# ============================================================
# Third-party imports
# ============================================================

import torch  # used only to detect device

# ============================================================
# Project imports
# ============================================================

from capseg_package.models.captioner import BlipCaptioner
from capseg_package.models.segmenter import BackgroundRemover
from capseg_package.utils.exceptions import ModelLoadError
from capseg_package.utils.logging import get_logger

# Create module logger
logger = get_logger(__name__)


# ============================================================
# Helper: device resolution
# ============================================================

def get_device(settings: Any) -> torch.device:
    """
    Decide which device to use.

    Priority:
    1) settings.DEVICE if it names a device ("cpu", "cuda", "cuda:1")
    2) "auto" (or unset): CUDA if available
    3) Else CPU
    """

    device_str = (getattr(settings, "DEVICE", None) or "auto").lower()

    if device_str != "auto":
        # Respect explicit configuration
        return torch.device(device_str)

    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


# ============================================================
# Model source resolution
# ============================================================

def _is_pretrained_dir(path: str) -> bool:
    return os.path.isdir(path) and os.path.isfile(os.path.join(path, "config.json"))


def resolve_model_source(
    local_model_dir: Optional[str],
    hf_model_name: Optional[str] = None,
    allow_hf_fallback: bool = False,
) -> Tuple[str, bool]:
    """
    Decide where to load a model from.

    Rules:
    1) If local_model_dir is a valid pretrained folder (config.json exists),
       return it.
    2) If local_model_dir is a parent folder, search ONE level down.
       - exactly ONE valid child -> return it
       - multiple -> raise (no guessing)
    3) Otherwise return hf_model_name if the Hub fallback is allowed.
    4) Otherwise raise.

    Returns
    -------
    (source, local_files_only)
        The value to pass to from_pretrained(...) and whether it is local.

    Raises
    ------
    ModelLoadError
        If nothing usable is found, or the local choice is ambiguous.
    """

    if local_model_dir:

        # Case 1) local_model_dir is already a pretrained folder
        if _is_pretrained_dir(local_model_dir):
            logger.info(f"Using local model folder: {local_model_dir}")
            return local_model_dir, True

        # Case 2) local_model_dir is a parent folder -> search children
        if os.path.isdir(local_model_dir):
            candidate_folders: List[str] = [
                os.path.join(local_model_dir, child)
                for child in sorted(os.listdir(local_model_dir))
                if _is_pretrained_dir(os.path.join(local_model_dir, child))
            ]

            if len(candidate_folders) == 1:
                chosen = candidate_folders[0]
                logger.info(f"Found one pretrained model folder inside {local_model_dir}: {chosen}")
                return chosen, True

            if len(candidate_folders) > 1:
                raise ModelLoadError(
                    f"Multiple pretrained model folders found inside {local_model_dir}: "
                    f"{candidate_folders}. Point the model dir at the exact folder you want."
                )

    # Case 3) Hub fallback
    if allow_hf_fallback and hf_model_name:
        logger.info(f"No local model in {local_model_dir!r}; falling back to Hub id {hf_model_name}")
        return hf_model_name, False

    # Case 4) nothing usable
    raise ModelLoadError(
        f"No valid local pretrained model found in: {local_model_dir!r} "
        "and Hub fallback is disabled (ALLOW_HF_FALLBACK=false). "
        "Mount the models folder or set the matching *_GCS_URI."
    )


# ============================================================
# Factories: one per collaborator
# ============================================================

def load_captioner(settings: Any) -> BlipCaptioner:
    """Build the captioning collaborator described by `settings`."""

    device = get_device(settings)
    source, local_only = resolve_model_source(
        getattr(settings, "CAPTION_MODEL_DIR", None),
        getattr(settings, "CAPTION_HF_MODEL_NAME", None),
        getattr(settings, "ALLOW_HF_FALLBACK", False),
    )
    logger.info(f"Captioner device: {device}")

    try:
        return BlipCaptioner.from_pretrained(
            model_source=source,
            device=device,
            local_files_only=local_only,
            max_new_tokens=settings.MAX_NEW_TOKENS,
            num_beams=settings.BEAM_SIZE,
        )
    except Exception as e:
        raise ModelLoadError(f"Could not load captioner from {source}: {e}") from e


def load_segmenter(settings: Any) -> BackgroundRemover:
    """Build the background-removal collaborator described by `settings`."""

    device = get_device(settings)
    source, local_only = resolve_model_source(
        getattr(settings, "SEGMENTATION_MODEL_DIR", None),
        getattr(settings, "SEGMENTATION_HF_MODEL_NAME", None),
        getattr(settings, "ALLOW_HF_FALLBACK", False),
    )
    logger.info(f"Segmenter device: {device}")

    try:
        return BackgroundRemover.from_pretrained(
            model_source=source,
            device=device,
            local_files_only=local_only,
            trust_remote_code=getattr(settings, "TRUST_REMOTE_CODE", False),
        )
    except Exception as e:
        raise ModelLoadError(f"Could not load segmenter from {source}: {e}") from e
