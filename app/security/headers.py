from fastapi import FastAPI, Request
from starlette.responses import Response


SECURITY_HEADERS = {
    'X-Robots-Tag': 'noindex, nofollow, noarchive',
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'no-referrer',
}


def install_security_headers(app: FastAPI) -> None:
    @app.middleware('http')
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        # Order data and generated workbooks must not be cached by shared proxies.
        response.headers.setdefault('Cache-Control', 'no-store')
        return response
