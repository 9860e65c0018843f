"""System API: scheduler status and database backups"""

import os
import logging
from datetime import datetime
from typing import Any
from fastapi import APIRouter, HTTPException

from produce_app.core.config import settings
from produce_app.schemas.v1.common import ApiResponse
from produce_app.services.scheduler import auto_backup, get_backup_dir, get_scheduler_status

logger = logging.getLogger(__name__)

router = APIRouter()


def backup_info(filepath: str) -> dict:
    stat = os.stat(filepath)
    return {
        "filename": os.path.basename(filepath),
        "size": stat.st_size,
        "size_display": f"{stat.st_size / 1024 / 1024:.2f} MB",
        "created_at": datetime.fromtimestamp(stat.st_mtime).isoformat(),
    }


@router.get("/scheduler/status", response_model=ApiResponse)
async def scheduler_status() -> Any:
    return ApiResponse(data={
        "auto_backup": {
            "enabled": settings.AUTO_BACKUP_ENABLED,
            "schedule": f"Daily at {settings.AUTO_BACKUP_HOUR:02d}:{settings.AUTO_BACKUP_MINUTE:02d}",
            "keep_count": settings.AUTO_BACKUP_KEEP_COUNT,
        },
        "scheduler": get_scheduler_status(),
    })


@router.get("/backups", response_model=ApiResponse)
async def list_backups() -> Any:
    backup_dir = get_backup_dir()
    backups = [backup_info(os.path.join(backup_dir, f)) for f in os.listdir(backup_dir) if f.endswith(".db")]
    backups.sort(key=lambda b: b["created_at"], reverse=True)
    return ApiResponse(data={"backups": backups, "backup_dir": os.path.abspath(backup_dir)})


@router.post("/backups", response_model=ApiResponse)
async def backup_now() -> Any:
    """Run the backup job immediately."""
    filename = auto_backup()
    if filename is None:
        raise HTTPException(status_code=500, detail="Backup failed")
    return ApiResponse(message="Backup created successfully",
                       data=backup_info(os.path.join(get_backup_dir(), filename)))


@router.delete("/backups/{filename}", response_model=ApiResponse)
async def delete_backup(filename: str) -> Any:
    backup_dir = os.path.abspath(get_backup_dir())
    backup_path = os.path.abspath(os.path.join(backup_dir, filename))
    if os.path.dirname(backup_path) != backup_dir:
        raise HTTPException(status_code=403, detail="Invalid backup path")
    if not os.path.exists(backup_path):
        raise HTTPException(status_code=404, detail="Backup not found")

    os.remove(backup_path)
    logger.info(f"Deleted backup {filename}")
    return ApiResponse(message="Backup deleted")
