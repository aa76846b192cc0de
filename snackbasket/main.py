import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

from snackbasket import db as db_module
from snackbasket.config import settings
from snackbasket.routers import api, auth, dashboard, deliveries, orders, shops, surveys, users
from snackbasket.security.csrf import install_csrf_cookie_middleware
from snackbasket.security.headers import install_security_headers
from snackbasket.security.sessions import install_auth_session_middleware
from snackbasket.services.catalog_service import seed_default_skus

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.auto_create_tables:
        db_module.create_tables()
    if settings.seed_catalog_on_startup:
        with db_module.SessionLocal() as db:
            seed_default_skus(db)
            db.commit()
    logger.info('Snack Basket portal started')
    yield


app = FastAPI(title='Snack Basket Order Management', lifespan=lifespan)

TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'
app.state.templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def _csrf_token(request: Request) -> str:
    return getattr(request.state, 'csrf_token', '')


app.state.templates.env.globals['csrf_token'] = _csrf_token

install_security_headers(app)
install_csrf_cookie_middleware(app)
install_auth_session_middleware(app)

app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(shops.router)
app.include_router(orders.router)
app.include_router(deliveries.router)
app.include_router(surveys.router)
app.include_router(users.router)
app.include_router(api.router)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception('Database error on %s %s', request.method, request.url.path, exc_info=exc)
    return JSONResponse({'detail': 'Database unavailable'}, status_code=503)


@app.get('/')
def root():
    return RedirectResponse('/home', status_code=303)


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'


@app.get('/healthz')
def healthz() -> dict:
    return {'status': 'ok'}
