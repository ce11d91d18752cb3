from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from database import Base, engine, SessionLocal, get_settings
from core.exceptions import RouletteException
from schemas import ErrorResponse
from core.settlement_engine import SettlementEngine
from api import admin, asset, bets, oracle, rounds

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# 業務錯誤的回應格式（OpenAPI 文件用；422 沿用 FastAPI 驗證錯誤的描述）
ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 402, 403, 404, 409, 502)
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料表、設定列與 round 0
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        SettlementEngine.bootstrap(db, get_settings())
    finally:
        db.close()
    yield
    # Shutdown: 如果需要清理資源可以加在這裡


app = FastAPI(
    title="Roulette Engine API",
    description="Round-based roulette wagering engine with oracle-driven spins",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RouletteException)
async def roulette_exception_handler(request: Request, exc: RouletteException):
    # 業務錯誤一律回傳穩定的錯誤代碼，狀態已由 @transactional rollback
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.code, detail=str(exc)).model_dump()
    )


# Include routers
app.include_router(admin.router, responses=ERROR_RESPONSES)
app.include_router(asset.router, responses=ERROR_RESPONSES)
app.include_router(bets.router, responses=ERROR_RESPONSES)
app.include_router(oracle.router, responses=ERROR_RESPONSES)
app.include_router(rounds.router, responses=ERROR_RESPONSES)


@app.get("/")
def root():
    return {"message": "Roulette Engine API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
