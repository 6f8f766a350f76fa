"""
FastAPI server for exercise coaching.

Endpoints:
- POST /analyze        upload a video, sample it and score facial expression
- POST /score-posture  score a batch of streamed landmark frames
- POST /final-score    fuse posture and expression scores

Every error response has the shape {ok: false, msg}.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from fusion.score_fusion import compose_result
from scoring.coaching_comments import safe_generate_comments
from scoring.posture_geometry import FALLBACK_REPORT, score_posture_frames
from video_pipeline.face_analyzer import RekognitionEmotionDetector
from video_pipeline.frame_sampler import FrameSampler
from video_pipeline.timestamp_planner import InvalidDuration

from .config_loader import DEFAULT_CONFIG_PATH, get_nested_config, load_config
from .video_io import OpenCVMediaSource, ProbeFailure

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_MB = 200
UPLOAD_CHUNK_BYTES = 1024 * 1024


class UnsupportedMediaType(ValueError):
    """Raised when an upload does not declare a video media type."""


class JointPayload(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None


class LandmarkFramePayload(BaseModel):
    ts: float
    points: List[JointPayload] = []


class ScorePostureRequest(BaseModel):
    frames: Optional[List[LandmarkFramePayload]] = None


class FinalScoreRequest(BaseModel):
    poseScore: float
    expressionScore: float
    poseWeight: Optional[float] = None
    exprWeight: Optional[float] = None


def _error(status_code: int, msg: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'ok': False, 'msg': msg, **extra})


def _default_config() -> Dict:
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    logger.warning(f"No config at {DEFAULT_CONFIG_PATH}, using built-in defaults")
    return {}


def _default_sampler(config: Dict) -> FrameSampler:
    region = get_nested_config(config, 'detectors.rekognition.region')
    return FrameSampler(OpenCVMediaSource(), RekognitionEmotionDetector(region=region), config)


def check_video_media_type(content_type: Optional[str]) -> None:
    """
    Raises:
        UnsupportedMediaType: If content_type is not video/*
    """
    if not content_type or not content_type.startswith('video/'):
        raise UnsupportedMediaType(f"Not a video media type: {content_type}")


def create_app(config: Optional[Dict] = None, sampler: Optional[FrameSampler] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Configuration dict (configs/coach.yaml if None)
        sampler: Frame sampler (OpenCV + Rekognition, created on first use, if None)
    """
    if config is None:
        config = _default_config()

    api_config = config.get('api') or {}
    max_upload_bytes = int(api_config.get('max_upload_mb', DEFAULT_MAX_UPLOAD_MB) * 1024 * 1024)

    app = FastAPI(
        title="Exercise Coach API",
        description="Expression and posture scoring for exercise videos",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.get('cors_origins', ["http://localhost:3000"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.sampler = sampler

    def get_sampler() -> FrameSampler:
        if app.state.sampler is None:
            app.state.sampler = _default_sampler(config)
        return app.state.sampler

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Malformed request to {request.url.path}: {exc.errors()}")
        return _error(400, "malformed request body")

    @app.get("/")
    async def root():
        """API root endpoint."""
        return {
            "message": "Exercise Coach API",
            "version": "1.0.0",
            "endpoints": ["/analyze", "/score-posture", "/final-score"]
        }

    @app.post("/analyze")
    async def analyze(video: Optional[UploadFile] = File(None)):
        """
        Upload a video and score facial expression at planned instants.

        Returns:
            {ok, duration, frames, expressionScore}
        """
        if video is None:
            return _error(400, "video file is required (field: video)")

        try:
            check_video_media_type(video.content_type)
        except UnsupportedMediaType as e:
            return _error(415, str(e))

        logger.info(f"Analyze request: name={video.filename} type={video.content_type}")

        tmp_dir = Path(tempfile.mkdtemp(prefix='vid-'))
        try:
            video_path = tmp_dir / 'input.mp4'
            written = 0
            with open(video_path, 'wb') as buffer:
                while True:
                    chunk = await video.read(UPLOAD_CHUNK_BYTES)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_upload_bytes:
                        return _error(413, f"video exceeds {max_upload_bytes // (1024 * 1024)} MB")
                    buffer.write(chunk)

            logger.info(f"Saved upload ({written} bytes) to {video_path}")

            result = await run_in_threadpool(get_sampler().analyze, str(video_path))

            return {
                'ok': True,
                'duration': result.duration,
                'frames': [f.to_dict() for f in result.frames],
                'expressionScore': result.expression_score(
                    get_nested_config(config, 'scoring.expression.weights')
                ),
            }

        except ProbeFailure as e:
            logger.error(f"Probe failed: {e}")
            return _error(500, str(e) or "probe failed", step='probe')

        except InvalidDuration as e:
            logger.error(f"Cannot plan video: {e}")
            return _error(422, str(e), step='plan')

        except Exception as e:
            logger.exception("Analyze failed")
            return _error(500, str(e) or "server error")

        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

    @app.post("/score-posture")
    async def score_posture(body: Optional[ScorePostureRequest] = None):
        """
        Score one batch of landmark frames.

        Empty or absent frames return the demo fallback (source='fallback').

        Returns:
            {ok, overall, breakdown, comments, source, validFrames}
        """
        if body is None or not body.frames:
            report = FALLBACK_REPORT
        else:
            frames = [
                {'ts': f.ts, 'points': [p.model_dump() for p in f.points]}
                for f in body.frames
            ]
            weights = get_nested_config(config, 'scoring.posture.overall_weights')
            report = score_posture_frames(frames, weights=weights)

            if report is None:
                return _error(422, "no complete skeleton in batch")

        return {
            'ok': True,
            **report.to_dict(),
            'comments': safe_generate_comments(report, config=config),
        }

    @app.post("/final-score")
    async def final_score(body: FinalScoreRequest):
        """
        Fuse posture and expression scores.

        Returns:
            {ok, poseScore, expressionScore, finalScore}
        """
        result = compose_result(
            body.poseScore,
            body.expressionScore,
            pose_weight=body.poseWeight,
            expression_weight=body.exprWeight,
            config=config
        )
        return {'ok': True, **result.to_dict()}

    return app


app = create_app()


def start_server(host: str = "127.0.0.1", port: int = 8000):
    """
    Start the API server.

    Args:
        host: Host address
        port: Port number
    """
    logger.info(f"Starting Exercise Coach API server at http://{host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    start_server()
