"""
capseg_package/config.py

Central configuration for capseg.

Design goals:
- No network/model downloads happen here.
- All defaults are safe for local dev.
- Provide BOTH a singleton `settings` and a `get_settings()` accessor
  so any module can import either.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class Settings:
    # --- captioning collaborator ---
    # Local folder produced by save_pretrained(...); preferred over the Hub
    CAPTION_MODEL_DIR: str = os.getenv("CAPTION_MODEL_DIR", "models/captioner")
    CAPTION_HF_MODEL_NAME: str = os.getenv(
        "CAPTION_HF_MODEL_NAME",
        "Salesforce/blip-image-captioning-base"
    )

    # --- segmentation (background removal) collaborator ---
    SEGMENTATION_MODEL_DIR: str = os.getenv("SEGMENTATION_MODEL_DIR", "models/segmenter")
    SEGMENTATION_HF_MODEL_NAME: str = os.getenv(
        "SEGMENTATION_HF_MODEL_NAME",
        "briaai/RMBG-1.4"
    )

    # Optional GCS URI prefixes, downloaded into the model dirs by io/gcs.py
    # Example: gs://bucket/models/blip_base
    CAPTION_GCS_URI: Optional[str] = os.getenv("CAPTION_GCS_URI") or None
    SEGMENTATION_GCS_URI: Optional[str] = os.getenv("SEGMENTATION_GCS_URI") or None

    # Hub fallback gate: when no local folder is found, load by Hub id
    ALLOW_HF_FALLBACK: bool = _env_bool("ALLOW_HF_FALLBACK", "true")
    # RMBG ships its own pipeline code
    TRUST_REMOTE_CODE: bool = _env_bool("TRUST_REMOTE_CODE", "true")

    # --- inference ---
    DEVICE: str = os.getenv("DEVICE", "auto")  # auto | cpu | cuda
    MAX_NEW_TOKENS: int = int(os.getenv("MAX_NEW_TOKENS", "40"))
    BEAM_SIZE: int = int(os.getenv("BEAM_SIZE", "3"))
    # longer edge bound for images handed to the captioner
    CAPTION_MAX_EDGE: int = int(os.getenv("CAPTION_MAX_EDGE", "384"))

    # --- pipeline ---
    FALLBACK_CAPTION: str = os.getenv(
        "FALLBACK_CAPTION",
        "Error generating caption. The image may be too complex or the model failed to load."
    )
    EMPTY_CAPTION: str = os.getenv(
        "EMPTY_CAPTION",
        "Unable to generate caption for this image."
    )

    # --- api ---
    PRELOAD_MODELS: bool = _env_bool("PRELOAD_MODELS", "true")

    # --- misc ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


# Singleton settings object
settings = Settings()


def get_settings() -> Settings:
    """Accessor for the process-wide settings."""
    return settings
