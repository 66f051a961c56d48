from fastapi import Request

from spark.services.container import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container built in the lifespan."""
    return request.app.state.services
