from fastapi import FastAPI, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List
from dataclasses import asdict
import logging

from .admin import router as admin_router
from .audit import SqlAuditRecorder
from .auth import router as auth_router, ensure_bootstrap_admin
from .config import APP_VERSION, LOG_LEVEL
from .database import init_db, get_db, utcnow, SessionLocal
from .elections import router as elections_router
from .errors import BlockVoteError
from .ledger import SqlVotingStore, count_transactions, count_verified_votes, find_orphaned_transactions, recent_transactions
from .models import Election
from .schemas import LedgerStats, TransactionItem, VoteRequest, VoteResponse
from .voting import VotePipeline


logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="BlockVote", version=APP_VERSION)


@app.exception_handler(BlockVoteError)
async def blockvote_error_handler(request: Request, exc: BlockVoteError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def on_startup():
    init_db()
    db = SessionLocal()
    try:
        ensure_bootstrap_admin(db)
    finally:
        db.close()
    logger.info("BlockVote API ready")


@app.get("/")
def root():
    return {"message": "BlockVote API", "version": APP_VERSION}


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(elections_router)


def get_vote_pipeline(db: Session = Depends(get_db)) -> VotePipeline:
    return VotePipeline(SqlVotingStore(db), SqlAuditRecorder(db))


@app.post("/api/vote", response_model=VoteResponse)
def submit_vote(req: VoteRequest, pipeline: VotePipeline = Depends(get_vote_pipeline)):
    outcome = pipeline.submit_vote(
        req.election_id,
        req.candidate_id,
        req.voter_address,
        req.vote_data,
        req.signature,
    )
    return VoteResponse(transaction_hash=outcome.transaction_hash, receipt=asdict(outcome.receipt))


@app.get("/api/blockchain/stats", response_model=LedgerStats)
def ledger_stats(db: Session = Depends(get_db)):
    return LedgerStats(
        total_transactions=count_transactions(db),
        verified_votes=count_verified_votes(db),
        active_elections=db.query(Election).filter(Election.status == "active").count(),
        orphaned_transactions=len(find_orphaned_transactions(db)),
    )


@app.get("/api/blockchain/transactions", response_model=List[TransactionItem])
def ledger_transactions(limit: int = Query(20, ge=1, le=200), db: Session = Depends(get_db)):
    return [
        TransactionItem(
            transaction_hash=tx.transaction_hash,
            timestamp=tx.timestamp,
            status=tx.status,
            election_title=title,
            candidate_name=name,
        )
        for tx, title, name in recent_transactions(db, limit)
    ]


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return JSONResponse(
            status_code=500,
            content={"status": "ERROR", "database": "disconnected", "error": str(exc)},
        )
    return {
        "status": "OK",
        "timestamp": utcnow().isoformat(),
        "database": "connected",
        "version": APP_VERSION,
    }
