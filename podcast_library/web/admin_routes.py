"""
Admin routes for library maintenance.

All routes require admin authentication via the get_current_admin dependency.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from podcast_library.config import ConfigurationStore
from podcast_library.exceptions import LibraryPathNotFoundError
from podcast_library.library.retention import cleanup_all_episodes
from podcast_library.scheduler import run_refresh_cycle
from podcast_library.web.auth import get_current_admin
from podcast_library.web.models import CleanupResponse, RefreshResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_episodes(
    request: Request,
    current_admin: dict = Depends(get_current_admin)
):
    """
    Delete every episode file in the library.

    Podcast-level ``tvshow.nfo`` and ``folder.jpg`` are kept. Requires
    admin access.
    """
    store: ConfigurationStore = request.app.state.store

    configuration = store.load()
    if configuration is None:
        logger.error("Cleanup requested but plugin configuration is not available")
        raise HTTPException(status_code=400, detail="Plugin configuration not available")

    try:
        files_deleted = cleanup_all_episodes(configuration.library_path)
    except LibraryPathNotFoundError as e:
        logger.error(str(e))
        raise HTTPException(status_code=404, detail="Library path not found")
    except OSError as e:
        logger.exception(f"Error during podcast cleanup: {e}")
        raise HTTPException(status_code=500, detail="Cleanup failed")

    logger.info(f"Admin {current_admin.get('sub')} cleaned up {files_deleted} files")
    return CleanupResponse(files_deleted=files_deleted)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_library(
    request: Request,
    current_admin: dict = Depends(get_current_admin)
):
    """
    Run one library synchronization cycle now.

    Returns cycle statistics. Requires admin access.
    """
    config = request.app.state.config
    store: ConfigurationStore = request.app.state.store

    logger.info(f"Admin {current_admin.get('sub')} triggered a library refresh")
    result = await run_refresh_cycle(config, store)
    return RefreshResponse.from_result(result)
