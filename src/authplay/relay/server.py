"""FastAPI application exposing the relay endpoints and the catalog read API.

Routes:

* ``POST /device-code-relay`` -- forward a device authorization request.
* ``POST /token-relay`` -- forward a device access token request.
* ``GET /api/formulas`` -- ``{id, label}`` listing, or search with ``?q=``.
* ``GET /api/formulas/{id}`` -- one formula, 404 when unknown.
* ``GET /api/formulas.json`` -- the full id-keyed catalog.

The ``/api`` routes are a mounted sub-application with CORS enabled so other
sites can read formula metadata. The relay routes stay same-origin only.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authplay import __version__
from authplay.catalog import FormulaCatalog
from authplay.exceptions import RelayError
from authplay.relay.gateway import RelayGateway

logger = logging.getLogger(__name__)

relay_router = APIRouter(tags=["Relay"])
catalog_router = APIRouter(tags=["Formulas"])


async def _read_form(request: Request) -> dict[str, str]:
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


@relay_router.post("/device-code-relay")
async def device_code_relay(request: Request):
    """Forward a device authorization request to ``_target_url``."""
    gateway: RelayGateway = request.app.state.gateway
    result = await gateway.request_device_code(await _read_form(request))
    return JSONResponse(status_code=result.status_code, content=result.body)


@relay_router.post("/token-relay")
async def token_relay(request: Request):
    """Forward a token polling request to ``_target_url``."""
    gateway: RelayGateway = request.app.state.gateway
    result = await gateway.request_token(await _read_form(request))
    return JSONResponse(status_code=result.status_code, content=result.body)


@catalog_router.get("/formulas")
async def list_formulas(request: Request, q: Optional[str] = None):
    """List formulas, or search them when ``q`` is given."""
    catalog: FormulaCatalog = request.app.state.catalog
    if q:
        results = catalog.search(q)
        return {
            "formulas": [{"id": f.id, "label": f.label} for f in results],
            "total": len(results),
            "query": q,
        }
    return {
        "formulas": [s.model_dump() for s in catalog.list()],
        "total": len(catalog),
    }


@catalog_router.get("/formulas.json")
async def all_formulas(request: Request):
    """Return every formula keyed by id."""
    catalog: FormulaCatalog = request.app.state.catalog
    return catalog.to_dict()


@catalog_router.get("/formulas/{formula_id}")
async def get_formula(request: Request, formula_id: str):
    """Return one formula or a 404 error object."""
    catalog: FormulaCatalog = request.app.state.catalog
    formula = catalog.get(formula_id)
    if formula is None:
        return JSONResponse(status_code=404, content={"error": "Formula not found"})
    return formula.to_wire()


async def _relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    logger.info("Relay request to %s rejected: %s", request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


def create_app(
    catalog: FormulaCatalog,
    gateway: Optional[RelayGateway] = None,
) -> FastAPI:
    """Build the relay application.

    Args:
        catalog: The formula catalog served under ``/api``.
        gateway: Relay gateway; a default :class:`RelayGateway` is created
            when omitted.
    """
    gateway = gateway or RelayGateway()

    app = FastAPI(title="authplay relay", version=__version__)
    app.state.catalog = catalog
    app.state.gateway = gateway
    app.add_exception_handler(RelayError, _relay_error_handler)
    app.include_router(relay_router)

    api = FastAPI(title="authplay formulas", version=__version__)
    api.state.catalog = catalog
    api.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    api.include_router(catalog_router)
    app.mount("/api", api)

    return app


def run_server(
    catalog: FormulaCatalog,
    host: str = "127.0.0.1",
    port: int = 8787,
    timeout: float = 30.0,
) -> None:
    """Start the relay server with uvicorn (blocks until interrupted)."""
    import uvicorn

    app = create_app(catalog, RelayGateway(timeout=timeout))
    uvicorn.run(app, host=host, port=port, log_level="warning")
