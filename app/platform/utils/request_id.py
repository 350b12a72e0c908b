import uuid

from fastapi import Request


def get_request_id(request: Request) -> str:
    """Id for the current request, generated once and kept on request.state."""
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id
