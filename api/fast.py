"""
api/fast.py

FastAPI server for image captioning + background removal.

Endpoints:
- GET  /                          -> health check
- POST /image                     -> select ONE image (multipart "file")
- POST /process                   -> run caption + segmentation on it
- GET  /status                    -> current session view (progress, result)
- GET  /results/{id}/original     -> original image bytes
- GET  /results/{id}/segmented    -> background-removed PNG

The API stays thin and delegates real work to capseg_package.
"""

# FastAPI core objects
from fastapi import FastAPI, File, Form, HTTPException, Request, Response, UploadFile

from typing import Optional

# Import the building blocks from our package
from capseg_package import (
    ImageCandidate,
    InferenceProvider,
    ProcessingPipeline,
    Session,
)
from capseg_package.config import Settings, get_settings
from capseg_package.intake import ORIGIN_PICKER
from capseg_package.utils.exceptions import (
    DecodeError,
    InvalidMediaType,
    NoImageSelectedError,
    PipelineBusyError,
    ResultAlreadyAvailableError,
)
from capseg_package.utils.logging import get_logger

logger = get_logger(__name__)

# Failure kind -> HTTP status for POST /process
_RUN_ERROR_STATUS = {
    DecodeError: 422,
}


def create_app(
    provider: Optional[InferenceProvider] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or get_settings()
    provider = provider or InferenceProvider(settings)

    app = FastAPI(
        title="Image Caption & Background Removal API",
        description="Upload an image, get a caption and a background-removed cut-out",
        version="0.1.0",
    )
    app.state.provider = provider
    app.state.session = Session(ProcessingPipeline(provider, settings))

    # ------------------------------------------------------------
    # Startup event: load both models ONCE when the server starts
    # ------------------------------------------------------------
    @app.on_event("startup")
    def startup_event():
        if settings.PRELOAD_MODELS and hasattr(provider, "warmup"):
            provider.warmup()

    # ------------------------------------------------------------
    # Health check route
    # ------------------------------------------------------------
    @app.get("/")
    def root():
        """Simple health check."""
        return {"status": "ok", "message": "Caption & segmentation API is up"}

    # ------------------------------------------------------------
    # Image selection (file chooser and drag-and-drop both land here)
    # ------------------------------------------------------------
    @app.post("/image")
    async def select_image(
        request: Request,
        file: UploadFile = File(...),
        origin: str = Form(ORIGIN_PICKER),
    ):
        session: Session = request.app.state.session

        candidate = ImageCandidate(
            data=await file.read(),
            media_type=file.content_type,
            filename=file.filename or "",
            origin=origin,
        )

        try:
            session.select_image(candidate)
        except InvalidMediaType as e:
            raise HTTPException(status_code=415, detail=e.to_dict())
        except PipelineBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))

        return session.view()

    # ------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------
    @app.post("/process")
    async def process(request: Request):
        session: Session = request.app.state.session

        try:
            outcome = await session.start_processing()
        except NoImageSelectedError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except (PipelineBusyError, ResultAlreadyAvailableError) as e:
            raise HTTPException(status_code=409, detail=str(e))

        if not outcome.ok:
            status = _RUN_ERROR_STATUS.get(type(outcome.error), 502)
            raise HTTPException(
                status_code=status,
                detail={**outcome.error.to_dict(), "notification": session.notification.message},
            )

        return session.view()

    @app.get("/status")
    def status(request: Request):
        return request.app.state.session.view()

    # ------------------------------------------------------------
    # Result images (only the current result is served)
    # ------------------------------------------------------------
    def _current_result(request: Request, result_id: str):
        result = request.app.state.session.result
        if result is None or result.id != result_id:
            raise HTTPException(status_code=404, detail="Result not found")
        return result

    @app.get("/results/{result_id}/original")
    def original_image(result_id: str, request: Request):
        result = _current_result(request, result_id)
        return Response(content=result.original.data, media_type=result.original.media_type)

    @app.get("/results/{result_id}/segmented")
    def segmented_image(result_id: str, request: Request):
        result = _current_result(request, result_id)
        return Response(content=result.segmented, media_type=result.segmented_media_type)

    return app


# Create the FastAPI app
app = create_app()
