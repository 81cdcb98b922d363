import logging
from typing import AsyncIterator, List
from fastapi import Depends, FastAPI, HTTPException
from fastapi.staticfiles import StaticFiles
from site_extractor.config import settings
from site_extractor.exceptions import FetchError, InvalidProjectError
from site_extractor.logging_conf import configure_logging
from site_extractor.models.schemas import ExtractRequest, ExtractionResult, StoredFile
from site_extractor.services.orchestrator import ExtractionOrchestrator
from site_extractor.services.storage import AssetStorage

configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title=settings.APP_NAME)

# every stored_url handed out by the pipeline resolves through this mount
app.mount(
    settings.ASSETS_PUBLIC_PREFIX,
    StaticFiles(directory=settings.ASSETS_DIR, check_dir=False),
    name="cloned-assets",
)

async def get_orchestrator() -> AsyncIterator[ExtractionOrchestrator]:
    orchestrator = ExtractionOrchestrator()
    try:
        yield orchestrator
    finally:
        await orchestrator.close()

def get_storage() -> AssetStorage:
    return AssetStorage()

@app.post("/extract", response_model=ExtractionResult)
async def extract_site(req: ExtractRequest, orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.extract(req.url, req.message, project_id=req.project_id, overrides=req.overrides)
    except InvalidProjectError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except FetchError as e:
        logger.warning("extraction aborted: %s", e)
        raise HTTPException(status_code=400, detail=f"Could not access this URL: {e}")

@app.get("/projects/{project_id}/assets", response_model=List[StoredFile])
def list_project_assets(project_id: str, storage: AssetStorage = Depends(get_storage)):
    try:
        return storage.list_assets(project_id)
    except InvalidProjectError as e:
        raise HTTPException(status_code=422, detail=str(e))

@app.delete("/projects/{project_id}/assets")
def delete_project_assets(project_id: str, storage: AssetStorage = Depends(get_storage)):
    try:
        removed = storage.cleanup(project_id)
    except InvalidProjectError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"project_id": project_id, "removed": removed}
