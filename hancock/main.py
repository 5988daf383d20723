import logging

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from hancock.database import make_engine, make_session_factory
from hancock.keys import DatabaseKeyLookup, KeyLookup
from hancock.middleware import Clock, signed_wrapper
from hancock.params import normalize
from hancock.schemas import SignedRequestInfo

logger = logging.getLogger(__name__)

SIGNED_ECHO_PATH = "/signed/echo"


def create_app(
    key_lookup: KeyLookup | None = None,
    session_factory: sessionmaker | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """
    Build the application.

    Keys come from ``key_lookup`` when given, otherwise from the ``api_keys``
    table behind ``session_factory`` (the default SQLite database if that is
    missing too). ``clock`` overrides the time used for freshness checks.
    """
    application = FastAPI(title="Hancock Signed URL Service")

    if key_lookup is None:
        if session_factory is None:
            session_factory = make_session_factory(make_engine())
        key_lookup = DatabaseKeyLookup(session_factory)
    signed = signed_wrapper(key_lookup, clock=clock)

    @application.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    async def signed_echo(request: Request) -> Response:
        """Report the verified parameters back to the caller."""
        info = SignedRequestInfo(
            apikey=request.state.apikey,
            params=normalize(request.query_params),
        )
        logger.info("Signed request accepted for key %s", info.apikey)
        return JSONResponse(status_code=200, content=info.model_dump())

    application.add_api_route(
        SIGNED_ECHO_PATH, signed(signed_echo), methods=["GET", "POST"]
    )

    return application
