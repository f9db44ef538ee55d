import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import RedirectResponse

from .gemini_client import GeminiClient
from .generation import GenerationService
from .settings import settings
from .routers import health, studio, narration

BASE_DIR = Path(__file__).resolve().parents[2]
FRONTEND_DIR = BASE_DIR / "frontend"

logger = logging.getLogger(__name__)


def _default_generation() -> GenerationService:
	# Raises MissingCredentialError when no API key is configured
	return GenerationService(GeminiClient())


async def _session_sweeper():
	# Runs until cancelled at shutdown
	while True:
		await asyncio.sleep(settings.session_sweep_seconds)
		try:
			await studio.prune_idle_sessions(settings.session_idle_seconds)
		except Exception:
			logger.exception("Idle session sweep failed")


def create_app(generation_factory: Optional[Callable[[], GenerationService]] = None) -> FastAPI:
	logging.basicConfig(
		level=settings.log_level.upper(),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		# A missing credential aborts startup entirely
		app.state.generation = (generation_factory or _default_generation)()
		logger.info("Learning Studio ready (model=%s)", settings.gemini_model)
		sweeper = asyncio.create_task(_session_sweeper())
		try:
			yield
		finally:
			sweeper.cancel()
			await asyncio.gather(sweeper, return_exceptions=True)
			for session in list(studio._sessions.values()):
				await session.aclose()
			studio._sessions.clear()
			await app.state.generation.aclose()

	app = FastAPI(title="Learning Studio API", lifespan=lifespan)
	app.include_router(health.router)
	app.include_router(studio.router)
	app.include_router(narration.router)

	origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()] or ["*"]
	app.add_middleware(
		CORSMiddleware,
		allow_origins=origins,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	# Static frontend at /app (absolute path so cwd doesn't matter when launching)
	if FRONTEND_DIR.is_dir():
		app.mount("/app", StaticFiles(directory=FRONTEND_DIR, html=True), name="frontend")

	@app.get("/", include_in_schema=False)
	async def redirect_root_to_app():
		return RedirectResponse(url="/app")

	@app.get("/info")
	def info():
		return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}

	return app


app = create_app()
