"""
Proxy Routes
Catch-all that forwards /api/* to the owning backend service
"""

from fastapi import APIRouter, HTTPException, Request, status

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


@router.api_route("/api/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(request: Request, path: str):
    gateway_router = request.app.state.gateway_router
    route = gateway_router.match(request.url.path)
    if route is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found")
    return await gateway_router.forward(route, request)
