import os
import logging
from typing import Optional
from fastapi import FastAPI, Header, HTTPException
import firebase_admin
from firebase_admin import credentials, firestore
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.background import BackgroundScheduler

from missed_checkin import config
from missed_checkin.errors import ScanAborted
from missed_checkin.firestore_store import FirestoreStore
from missed_checkin.push import FcmPushSender
from missed_checkin.scanner import MissedCheckinScanner
from missed_checkin.voice import HttpCallTrigger

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("missed_checkin.server")

app = FastAPI(title="Missed Check-in Scheduler")
app.state.scanner = None
app.state.caller = None

SCAN_JOB_ID = "missed_checkin_scan"


def build_scanner() -> MissedCheckinScanner:
    # Initialize Firebase Admin
    if not os.path.exists(config.SERVICE_ACCOUNT):
        raise RuntimeError(f"service account JSON not found at {config.SERVICE_ACCOUNT}")
    try:
        firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(config.SERVICE_ACCOUNT)
        firebase_admin.initialize_app(cred)

    caller = None
    if config.MAKECALL_URL:
        caller = HttpCallTrigger(config.MAKECALL_URL, timeout=config.CALL_TIMEOUT_SECONDS)
        app.state.caller = caller
        logger.info("Voice-call fallback enabled")

    return MissedCheckinScanner(
        FirestoreStore(firestore.client()),
        FcmPushSender(),
        caller=caller,
        page_size=config.SCAN_PAGE_SIZE,
    )


def require_api_key(x_api_key: str = Header(None)):
    if x_api_key != config.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


# Background job
def check_for_missed():
    scanner: Optional[MissedCheckinScanner] = app.state.scanner
    if scanner is None:
        logger.warning("Scanner not initialised, skipping scheduled scan")
        return None
    # ScanAborted propagates so the scheduler records the run as failed
    return scanner.run()


def log_job_error(event):
    logger.error(f"Scheduled scan failed: {event.exception!r}")


scheduler = BackgroundScheduler()
scheduler.add_listener(log_job_error, EVENT_JOB_ERROR)


# Endpoints
@app.get("/health")
def health():
    job = scheduler.get_job(SCAN_JOB_ID) if scheduler.running else None
    return {
        "ok": True,
        "scheduler_running": scheduler.running,
        "next_run": job.next_run_time.isoformat() if job and job.next_run_time else None,
        "scan_interval_minutes": config.SCAN_INTERVAL_MINUTES,
    }


@app.post("/scan")
def scan(x_api_key: str = Header(None)):
    require_api_key(x_api_key)
    scanner: Optional[MissedCheckinScanner] = app.state.scanner
    if scanner is None:
        raise HTTPException(status_code=503, detail="Scanner not initialised")
    try:
        summary = scanner.run()
    except ScanAborted as e:
        logger.error(f"Manual scan aborted: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    logger.info(f"Manual scan complete: {summary.as_dict()}")
    return {"ok": True, "summary": summary.as_dict()}


@app.on_event("startup")
def startup_event():
    if app.state.scanner is None:
        app.state.scanner = build_scanner()
    logger.info(f"Starting scheduler (every {config.SCAN_INTERVAL_MINUTES} min)...")
    scheduler.add_job(
        check_for_missed,
        "interval",
        minutes=config.SCAN_INTERVAL_MINUTES,
        id=SCAN_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()


@app.on_event("shutdown")
def shutdown_event():
    logger.info("Shutting down scheduler...")
    if scheduler.running:
        scheduler.shutdown(wait=False)
    caller = app.state.caller
    if caller is not None:
        caller.close()
        app.state.caller = None
