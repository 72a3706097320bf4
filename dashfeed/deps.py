from fastapi import Request

from dashfeed.config import AppContext


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx
