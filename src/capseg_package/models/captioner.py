"""
captioner.py

Inference-only BLIP wrapper for the captioning collaborator.

Loading order is decided by models.registry:
    1) a LOCAL folder containing a BLIP save_pretrained(...)
    2) OR (if ALLOW_HF_FALLBACK=true) the Hugging Face Hub model id.

This file only knows how to load from whatever source it is given and
how to turn one PIL image into one caption string.
"""

# ============================================================
# Standard library imports
# ============================================================

from dataclasses import dataclass  # convenient container for model + processor

# ============================================================
# Third-party imports
# ============================================================

import torch  # device + no_grad inference
from PIL import Image
from transformers import BlipForConditionalGeneration, AutoProcessor  # BLIP classes

# ============================================================
# Project imports
# ============================================================

from capseg_package.utils.logging import get_logger  # central logger helper


# Create logger for this module
logger = get_logger(__name__)


# ============================================================
# BLIP Wrapper
# ============================================================

@dataclass
class BlipCaptioner:
    """
    Small container around BLIP for caption generation.

    Attributes
    ----------
    processor : AutoProcessor
        Handles image preprocessing + decoding text outputs.
    model : BlipForConditionalGeneration
        Vision encoder + text decoder.
    device : torch.device
        CPU or GPU used for inference.
    max_new_tokens : int
        Upper bound on generated tokens.
    num_beams : int
        Beam search width.
    """

    processor: AutoProcessor
    model: BlipForConditionalGeneration
    device: torch.device
    max_new_tokens: int = 40
    num_beams: int = 3

    @classmethod
    def from_pretrained(
        cls,
        model_source: str,
        device: torch.device,
        local_files_only: bool = True,
        **generate_kwargs,
    ) -> "BlipCaptioner":
        """
        Load BLIP from a local folder or a Hub id.

        Parameters
        ----------
        model_source : str
            Local folder (config.json, weights, ...) or Hub model id.
        device : torch.device
            "cpu" or "cuda"
        local_files_only : bool
            True forbids downloading (local folder sources).

        Returns
        -------
        BlipCaptioner
            Ready-to-use inference wrapper.
        """

        logger.info(
            f"Loading BLIP captioner from {model_source} "
            f"({'local only' if local_files_only else 'hub allowed'})"
        )

        processor = AutoProcessor.from_pretrained(
            model_source,
            local_files_only=local_files_only,
        )

        model = BlipForConditionalGeneration.from_pretrained(
            model_source,
            local_files_only=local_files_only,
        )

        # Move model to chosen device (CPU/GPU)
        model.to(device)

        # Set inference mode
        model.eval()

        return cls(processor=processor, model=model, device=device, **generate_kwargs)

    def generate(self, image: Image.Image) -> str:
        """
        Generate a caption for ONE PIL image.

        Returns an empty string when the model produces no text; the
        pipeline decides what to show in that case.
        """

        # Convert PIL image -> BLIP tensors
        encoding = self.processor(images=image.convert("RGB"), return_tensors="pt")

        # Move tensors to same device as model
        encoding = encoding.to(self.device)

        # Disable gradients for speed and memory
        with torch.no_grad():
            generated_ids = self.model.generate(
                pixel_values=encoding["pixel_values"],
                max_new_tokens=self.max_new_tokens,
                num_beams=self.num_beams,
                do_sample=False,  # deterministic
            )

        # Decode tokens -> text
        generated_text = self.processor.batch_decode(
            generated_ids,
            skip_special_tokens=True
        )[0]

        return generated_text.strip()
