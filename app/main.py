from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from app.config import settings
from app.logging_config import setup_logging
from app.routers import auth, purchases, vendors
from app.security.csrf import install_csrf_cookie_middleware
from app.security.headers import install_security_headers
from app.security.sessions import install_auth_session_middleware

setup_logging(settings.log_level)

app = FastAPI(title='Purchase Approval Portal')

install_security_headers(app)
install_csrf_cookie_middleware(app)
install_auth_session_middleware(app)

app.include_router(auth.router)
app.include_router(purchases.router)
app.include_router(vendors.router)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
