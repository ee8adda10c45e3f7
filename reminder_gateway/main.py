"""FastAPI 主入口"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from loguru import logger

from .config import Settings, configure_logging, settings
from .scheduler import (
    DeliveryMechanism,
    DeliveryMode,
    InvalidRecurrenceError,
    InvalidTimeError,
    LoggingDelivery,
    NotOwnerError,
    Reminder,
    ReminderCreate,
    ReminderNotFoundError,
    ReminderPatch,
    ReminderService,
    WebhookDelivery,
    recurrence_to_human,
)

# 全局服务实例
reminder_service: Optional[ReminderService] = None


def build_delivery(app_settings: Settings) -> DeliveryMechanism:
    """根据配置选择投递方式"""
    if app_settings.delivery_webhook_url:
        return WebhookDelivery(
            app_settings.delivery_webhook_url,
            timeout_seconds=app_settings.delivery_timeout_seconds,
        )
    return LoggingDelivery()


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """应用生命周期管理"""
    global reminder_service

    configure_logging("DEBUG" if settings.debug else settings.log_level)

    logger.info("=" * 50)
    logger.info("  Reminder Gateway")
    logger.info(f"  Database: {settings.db_path}")
    logger.info(f"  Delivery: {settings.delivery_webhook_url or 'log only'}")
    logger.info("=" * 50)

    reminder_service = ReminderService(
        db_path=settings.db_path,
        delivery=build_delivery(settings),
        staleness_tolerance_seconds=settings.staleness_tolerance_seconds,
        shutdown_timeout_seconds=settings.shutdown_timeout_seconds,
    )

    # 启动调度器
    await reminder_service.start()

    logger.info("Gateway started")
    logger.info(f"FastAPI docs: http://{settings.host}:{settings.port}/docs")

    yield

    # 清理
    logger.info("Shutting down...")
    await reminder_service.stop()
    reminder_service = None
    logger.info("Goodbye!")


app = FastAPI(
    title="Reminder Gateway",
    description="One-shot and recurring reminder scheduler",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============== Pydantic Models ==============

class ReminderCreateRequest(BaseModel):
    """创建提醒请求"""
    owner_id: str
    message: str
    trigger_time: datetime
    target_id: Optional[str] = None
    origin_id: Optional[str] = None
    title: Optional[str] = None
    recurrence: Optional[str] = None
    delivery_mode: DeliveryMode = DeliveryMode.DIRECT


class ReminderPatchRequest(BaseModel):
    """修改提醒请求"""
    owner_id: str
    message: Optional[str] = None
    title: Optional[str] = None
    trigger_time: Optional[datetime] = None
    recurrence: Optional[str] = None


def _require_service() -> ReminderService:
    if not reminder_service:
        raise HTTPException(status_code=503, detail="Service not ready")
    return reminder_service


def _reminder_response(reminder: Reminder) -> dict:
    data = reminder.to_dict()
    data["recurrence_human"] = recurrence_to_human(reminder.recurrence)
    return data


# ============== REST API ==============

@app.get("/")
async def root():
    """根路径"""
    return {
        "name": "Reminder Gateway",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
@app.get("/api/health")
async def health():
    """健康检查"""
    scheduler_status = {}
    if reminder_service:
        status = await reminder_service.status()
        scheduler_status = status.to_dict()

    return {
        "status": "ok",
        "version": "0.1.0",
        "scheduler": scheduler_status,
    }


@app.get("/api/status")
async def status():
    """系统状态"""
    service = _require_service()
    scheduler_status = await service.status()

    return {
        "database": str(settings.db_path),
        "delivery": "webhook" if settings.delivery_webhook_url else "log",
        "staleness_tolerance_seconds": service.staleness_tolerance_seconds,
        "scheduler": scheduler_status.to_dict(),
    }


# ============== Reminder API ==============

@app.get("/api/reminders")
async def list_reminders(owner_id: str):
    """列出用户的有效提醒"""
    service = _require_service()
    reminders = await service.list(owner_id)

    return {
        "reminders": [_reminder_response(r) for r in reminders],
        "total": len(reminders),
    }


@app.get("/api/reminders/{reminder_id}")
async def get_reminder(reminder_id: int):
    """获取提醒详情"""
    service = _require_service()

    reminder = await service.get(reminder_id)
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")

    return {"reminder": _reminder_response(reminder)}


@app.post("/api/reminders")
async def create_reminder(request: ReminderCreateRequest):
    """创建提醒"""
    service = _require_service()

    try:
        reminder = await service.create(ReminderCreate(
            owner_id=request.owner_id,
            message=request.message,
            trigger_time=request.trigger_time,
            target_id=request.target_id,
            origin_id=request.origin_id,
            title=request.title,
            recurrence=request.recurrence,
            delivery_mode=request.delivery_mode,
        ))
    except (InvalidTimeError, InvalidRecurrenceError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "reminder": _reminder_response(reminder)}


@app.patch("/api/reminders/{reminder_id}")
async def edit_reminder(reminder_id: int, request: ReminderPatchRequest):
    """修改提醒"""
    service = _require_service()

    patch = ReminderPatch(
        message=request.message,
        title=request.title,
        trigger_time=request.trigger_time,
        recurrence=request.recurrence,
    )

    try:
        reminder = await service.edit(reminder_id, request.owner_id, patch)
    except ReminderNotFoundError:
        raise HTTPException(status_code=404, detail="Reminder not found")
    except NotOwnerError:
        raise HTTPException(status_code=403, detail="Permission denied")
    except (InvalidTimeError, InvalidRecurrenceError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "reminder": _reminder_response(reminder)}


@app.delete("/api/reminders/{reminder_id}")
async def cancel_reminder(reminder_id: int, owner_id: str, permanent: bool = False):
    """取消提醒"""
    service = _require_service()

    try:
        result = await service.cancel(reminder_id, owner_id, permanent=permanent)
    except ReminderNotFoundError:
        raise HTTPException(status_code=404, detail="Reminder not found")
    except NotOwnerError:
        raise HTTPException(status_code=403, detail="Permission denied")

    return {"status": "deleted" if result.deleted else "cancelled", **result.to_dict()}


# ============== 启动入口 ==============

def main():
    """启动 FastAPI 服务"""
    import uvicorn

    uvicorn.run(
        "reminder_gateway.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
