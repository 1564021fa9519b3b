import asyncio
import json
import logging
import zipfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse

from .cache import CacheStore
from .config import DEFAULT_STYLES, normalize_config
from .core import BrandkitPipeline
from .errors import BrandkitError, ConfigError, JobNotFound
from .gallery import GALLERY_NAME, archive_name, render_gallery
from .jobs import Job, JobManager, JobStatus
from .logging_setup import configure_logging
from .prompts import PROMPT_PRESETS, STYLE_TEMPLATES
from .settings import Settings

log = logging.getLogger(__name__)

CACHED_PREFIX = "cached/"


def _file_entries(job: Job) -> List[Dict[str, Any]]:
    """
    Relative paths for every file of a completed job. Cache hits that live
    outside this job's output directory are addressed by index.
    """
    entries = []
    for index, file in enumerate(job.files):
        try:
            rel = Path(file).relative_to(job.output_dir).as_posix()
        except ValueError:
            rel = f"{CACHED_PREFIX}{index}"
        entries.append({"path": rel, "name": Path(file).name})
    return entries


def _resolve_job_file(job: Job, file_path: str) -> Optional[Path]:
    if job.output_dir is None:
        return None
    if file_path.startswith(CACHED_PREFIX):
        try:
            return Path(job.files[int(file_path[len(CACHED_PREFIX):])])
        except (ValueError, IndexError):
            return None

    root = job.output_dir.resolve()
    candidate = (root / file_path).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    return candidate


def _write_archive(job: Job, target: Path) -> Path:
    """
    Zip every file of a completed job. Cache hits from earlier runs are
    stored under their variants/ names and the gallery is re-rendered with
    links relative to the archive.
    """
    output_dir = job.output_dir
    with zipfile.ZipFile(target, "w", zipfile.ZIP_DEFLATED) as zf:
        for file in job.files:
            arcname = archive_name(Path(file), output_dir)
            if arcname != GALLERY_NAME:
                zf.write(file, arcname)
        if job.manifest_path is not None:
            manifest = json.loads(job.manifest_path.read_text(encoding="utf-8"))
            page = render_gallery(manifest, lambda p: "../" + archive_name(Path(p), output_dir))
            zf.writestr(GALLERY_NAME, page)
    return target


def _require_completed(job: Job) -> Optional[JSONResponse]:
    if job.status != JobStatus.COMPLETED:
        return JSONResponse(
            {"error": "Job not completed yet", "status": job.status.value},
            status_code=400,
        )
    return None


def build_router(manager: JobManager) -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.post("/jobs")
    async def create_job(file: UploadFile = File(...), config: str = Form(...)) -> Dict[str, str]:
        try:
            raw = json.loads(config)
        except ValueError as exc:
            raise ConfigError(f"Config is not valid JSON: {exc}", field="config") from exc
        if not isinstance(raw, dict):
            raise ConfigError("Config must be a JSON object", field="config")

        brand_config = normalize_config(raw)
        logo = await file.read()
        job_id = await manager.submit(logo, brand_config)
        return {"jobId": job_id}

    @router.get("/jobs/{job_id}")
    async def get_job(job_id: str) -> Dict[str, Any]:
        return manager.get_or_raise(job_id).to_dict()

    @router.post("/jobs/{job_id}/cancel")
    async def cancel_job(job_id: str) -> Dict[str, Any]:
        return {"cancelled": manager.cancel(job_id)}

    @router.get("/jobs/{job_id}/events")
    async def job_events(job_id: str, since: int = 0) -> StreamingResponse:
        manager.get_or_raise(job_id)

        async def gen() -> AsyncIterator[bytes]:
            async for record in manager.stream(job_id, since=since):
                yield f"data: {json.dumps(record)}\n\n".encode()

        return StreamingResponse(
            gen(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @router.get("/jobs/{job_id}/result")
    async def job_result(job_id: str, request: Request) -> Any:
        job = manager.get_or_raise(job_id)
        not_ready = _require_completed(job)
        if not_ready is not None:
            return not_ready

        files = []
        for entry in _file_entries(job):
            url = request.url_for("job_file", job_id=job_id, file_path=entry["path"])
            files.append({**entry, "url": str(url)})

        manifest = None
        if job.manifest_path and job.manifest_path.exists():
            text = await asyncio.to_thread(job.manifest_path.read_text, encoding="utf-8")
            manifest = json.loads(text)

        return {
            "manifest": manifest,
            "files": files,
            "outputDir": str(job.output_dir),
            "cost": job.cost.to_dict(),
        }

    @router.get("/jobs/{job_id}/files/{file_path:path}", name="job_file")
    async def job_file(job_id: str, file_path: str) -> Any:
        job = manager.get_or_raise(job_id)
        path = _resolve_job_file(job, file_path)
        if path is None or not path.is_file():
            return JSONResponse({"error": "File not found"}, status_code=404)
        return FileResponse(path)

    @router.get("/jobs/{job_id}/download")
    async def download_job(job_id: str) -> Any:
        job = manager.get_or_raise(job_id)
        not_ready = _require_completed(job)
        if not_ready is not None:
            return not_ready

        archive = await asyncio.to_thread(
            _write_archive, job, job.job_dir / f"brandkit-{job_id}.zip"
        )
        return FileResponse(
            archive,
            media_type="application/zip",
            filename=f"brandkit-{job_id}.zip",
        )

    @router.get("/presets")
    async def list_presets() -> List[Dict[str, str]]:
        return [
            {"id": p.id, "name": p.name, "description": p.description}
            for p in PROMPT_PRESETS
        ]

    @router.get("/styles")
    async def list_styles() -> Dict[str, Any]:
        return {"styles": STYLE_TEMPLATES, "default": list(DEFAULT_STYLES)}

    return router


def create_app(settings: Optional[Settings] = None, manager: Optional[JobManager] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    if manager is None:
        pipeline = BrandkitPipeline(cache=CacheStore(settings.cache_file), settings=settings)
        manager = JobManager(pipeline, settings.jobs_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Starting brandkit API server...")
        yield
        log.info("Shutting down brandkit API server...")
        await manager.shutdown()

    app = FastAPI(title="brandkit", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(BrandkitError)
    async def brandkit_error_handler(request: Request, exc: BrandkitError) -> JSONResponse:
        if not isinstance(exc, JobNotFound):
            log.warning("Request failed: %s", exc)
        return JSONResponse({"error": exc.message, "code": exc.code}, status_code=exc.status_code)

    app.include_router(build_router(manager))
    app.state.manager = manager
    return app


def main() -> None:
    import uvicorn

    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
